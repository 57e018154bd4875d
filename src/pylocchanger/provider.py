"""Real-location provider interface and an in-process implementation.

The hosting platform supplies a :class:`RealLocationProvider`; its pushes
(position fixes, failures, authorization changes) are fed into the store's
``handle_*`` methods from whatever thread the platform delivers them on.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from pylocchanger.models.location import Coordinate
from pylocchanger.state.events import AuthorizationStatus, ProviderErrorKind

_logger = logging.getLogger(__name__)


class RealLocationProvider(Protocol):
    """Device location source consumed by the store."""

    def request_authorization(self) -> None:
        """Ask the platform for location access; the answer arrives as a push."""
        ...

    def authorization_status(self) -> AuthorizationStatus: ...

    def current_coordinate(self) -> Coordinate | None:
        """Best-effort last known fix, or ``None``."""
        ...


class ProviderListener(Protocol):
    """Push entry points implemented by the store."""

    def handle_provider_location(self, coordinate: Coordinate) -> None: ...

    def handle_provider_failure(self, kind: ProviderErrorKind | str, detail: str = "") -> None: ...

    def handle_authorization_changed(self, status: AuthorizationStatus) -> None: ...


class ManualLocationProvider:
    """Provider whose fixes and authorization are set by the host.

    Useful for desktop hosts without a platform location service, for the
    command line and in tests. ``request_authorization`` grants
    ``grant_on_request`` when the status is still undetermined.
    """

    def __init__(
        self,
        *,
        status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        coordinate: Coordinate | None = None,
        grant_on_request: AuthorizationStatus = AuthorizationStatus.AUTHORIZED_WHEN_IN_USE,
    ) -> None:
        self._lock = threading.Lock()
        self._status = status
        self._coordinate = coordinate
        self._grant_on_request = grant_on_request
        self._listener: ProviderListener | None = None
        self.authorization_requests = 0

    def attach(self, listener: ProviderListener | None) -> None:
        with self._lock:
            self._listener = listener

    def authorization_status(self) -> AuthorizationStatus:
        with self._lock:
            return self._status

    def request_authorization(self) -> None:
        with self._lock:
            self.authorization_requests += 1
            if self._status != AuthorizationStatus.NOT_DETERMINED:
                return
        self.set_authorization_status(self._grant_on_request)

    def current_coordinate(self) -> Coordinate | None:
        with self._lock:
            if not self._status.is_authorized:
                return None
            return self._coordinate

    def set_authorization_status(self, status: AuthorizationStatus) -> None:
        with self._lock:
            changed = status != self._status
            self._status = status
            listener = self._listener
        if changed and listener is not None:
            listener.handle_authorization_changed(status)

    def push_location(self, coordinate: Coordinate) -> None:
        """Record a new fix and forward it to the attached listener."""
        with self._lock:
            self._coordinate = coordinate
            listener = self._listener
            authorized = self._status.is_authorized
        if not authorized:
            _logger.debug("Ignoring fix pushed while unauthorized")
            return
        if listener is not None:
            listener.handle_provider_location(coordinate)

    def push_failure(self, kind: ProviderErrorKind, detail: str = "") -> None:
        with self._lock:
            listener = self._listener
        if listener is not None:
            listener.handle_provider_failure(kind, detail)
