"""Single-observer notification hub.

At most one observer is registered at a time; registering another one
replaces it. Notifications with no observer registered are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from pylocchanger.models.location import LocationRecord
from pylocchanger.state.events import AuthorizationStatus, ProviderFailure

_logger = logging.getLogger(__name__)


class LocationObserver(Protocol):
    """Receiver of store notifications."""

    def location_updated(self, record: LocationRecord) -> None: ...

    def provider_failed(self, failure: ProviderFailure) -> None: ...

    def authorization_changed(self, status: AuthorizationStatus) -> None: ...


class Subscription:
    """Handle returned by :meth:`SubscriptionHub.subscribe`.

    Cancelling releases the observer only if it is still the registered
    one, so a stale handle never unregisters a newer observer.
    """

    def __init__(self, hub: SubscriptionHub, token: int) -> None:
        self._hub = hub
        self._token = token
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled and self._hub._is_current(self._token)  # noqa: SLF001

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._hub._release(self._token)  # noqa: SLF001

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()


class SubscriptionHub:
    """Holds one strong observer reference and fans notifications out to it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observer: LocationObserver | None = None
        self._token = 0

    @property
    def has_observer(self) -> bool:
        with self._lock:
            return self._observer is not None

    def subscribe(self, observer: LocationObserver) -> Subscription:
        with self._lock:
            if self._observer is not None:
                _logger.debug("Replacing registered observer %r", self._observer)
            self._token += 1
            self._observer = observer
            return Subscription(self, self._token)

    def location_updated(self, record: LocationRecord) -> None:
        self._deliver("location_updated", lambda observer: observer.location_updated(record))

    def provider_failed(self, failure: ProviderFailure) -> None:
        self._deliver("provider_failed", lambda observer: observer.provider_failed(failure))

    def authorization_changed(self, status: AuthorizationStatus) -> None:
        self._deliver("authorization_changed", lambda observer: observer.authorization_changed(status))

    def _deliver(self, kind: str, call: Callable[[LocationObserver], None]) -> None:
        with self._lock:
            observer = self._observer
        if observer is None:
            _logger.debug("Dropping %s notification: no observer", kind)
            return
        try:
            call(observer)
        except Exception:
            _logger.exception("Observer raised while handling %s", kind)

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return self._observer is not None and self._token == token

    def _release(self, token: int) -> None:
        with self._lock:
            if self._token == token:
                self._observer = None


class LoopObserver:
    """Re-deliver notifications onto an asyncio event loop.

    Wrap a UI-side observer with this when the store is driven from
    provider threads but the observer must run on the loop's thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, observer: LocationObserver) -> None:
        self._loop = loop
        self._observer = observer

    def location_updated(self, record: LocationRecord) -> None:
        self._loop.call_soon_threadsafe(self._observer.location_updated, record)

    def provider_failed(self, failure: ProviderFailure) -> None:
        self._loop.call_soon_threadsafe(self._observer.provider_failed, failure)

    def authorization_changed(self, status: AuthorizationStatus) -> None:
        self._loop.call_soon_threadsafe(self._observer.authorization_changed, status)
