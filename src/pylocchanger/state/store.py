"""Location state store.

This is the only component allowed to change the reported location, the
history log and the favorites set. UI calls and provider pushes may arrive
on different threads; all of them are serialized through one re-entrant
lock, and observers are notified while it is held so they see events in
the order the mutations happened.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import datetime
from typing import Any, TypeVar

from pylocchanger.config import DEFAULT_HISTORY_CAPACITY, LocChangerConfig
from pylocchanger.exceptions import ProviderError
from pylocchanger.models._base import utcnow
from pylocchanger.models.location import Coordinate, LocationRecord
from pylocchanger.models.presets import PRESET_LOCATIONS
from pylocchanger.persistence import FAVORITES_KEY, HISTORY_KEY, JsonFileBlobStore, PersistenceAdapter
from pylocchanger.provider import RealLocationProvider
from pylocchanger.state.events import AuthorizationStatus, CurrentState, ProviderErrorKind, ProviderFailure
from pylocchanger.state.hub import LocationObserver, Subscription, SubscriptionHub
from pylocchanger.state.records import FavoritesSet, HistoryLog

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

#: Name of the record synthesized by ``get_current_location`` from a real fix.
REAL_LOCATION_NAME = "Current real location"
#: Name of the record forwarded to observers for a pushed real fix.
LIVE_LOCATION_NAME = "Current location"


def _call_provider(call: Callable[[], _T]) -> _T:
    """Run a provider call, wrapping whatever it raises in :class:`ProviderError`."""
    try:
        return call()
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(f"{type(exc).__name__}: {exc}") from exc


def _log_write_failure(future: Future[None]) -> None:
    exc = future.exception()
    if exc is not None:
        _logger.error("Background persistence write failed", exc_info=exc)


class LocationStore:
    """Owns the current override, the history log and the favorites set.

    Usage::

        store = LocationStore(PersistenceAdapter(JsonFileBlobStore(path)), provider)
        with store.subscribe(observer):
            store.set_virtual_location(record)

    Parameters
    ----------
    persistence : PersistenceAdapter
        Where history and favorites are loaded from and saved to.
    provider : RealLocationProvider or None
        Source of the real device location used while no override is set.
    hub : SubscriptionHub or None
        Notification hub; a private one is created when omitted.
    history_capacity : int
        Maximum history length.
    background_writes : bool
        Persist on a single background worker instead of the calling thread.
    clock : callable
        Returns the current UTC time; used for synthesized records.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        provider: RealLocationProvider | None = None,
        *,
        hub: SubscriptionHub | None = None,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
        background_writes: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = threading.RLock()
        self._persistence = persistence
        self._provider = provider
        self._hub = hub if hub is not None else SubscriptionHub()
        self._clock = clock
        self._state = CurrentState.disabled()
        self._history = HistoryLog(persistence.load(HISTORY_KEY), capacity=history_capacity)
        self._favorites = FavoritesSet(persistence.load(FAVORITES_KEY))
        self._writer: ThreadPoolExecutor | None = None
        if background_writes:
            self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pylocchanger-writer")
        self._last_write: Future[None] | None = None
        _logger.debug(
            "Location store ready history=%d favorites=%d capacity=%d",
            len(self._history),
            len(self._favorites),
            self._history.capacity,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> LocationStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued writes. Returns ``False`` if *timeout* expired first."""
        with self._lock:
            pending = self._last_write
        if pending is None:
            return True
        done, _ = wait_futures([pending], timeout=timeout)
        return bool(done)

    def close(self) -> None:
        """Flush pending writes and stop the background writer.

        The store stays usable afterwards; later writes happen inline.
        """
        with self._lock:
            writer = self._writer
            self._writer = None
        if writer is not None:
            writer.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Override state
    # ------------------------------------------------------------------

    @property
    def hub(self) -> SubscriptionHub:
        return self._hub

    @property
    def current_state(self) -> CurrentState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._state.active

    def set_virtual_location(self, record: LocationRecord) -> None:
        """Report *record* instead of the real location and log it in history."""
        if not isinstance(record, LocationRecord):
            raise TypeError(f"expected LocationRecord, got {type(record).__name__}")
        with self._lock:
            self._state = CurrentState.overridden(record)
            evicted = self._history.insert(record)
            if evicted is not None:
                _logger.debug("History full, evicted %s", evicted.name)
            self._persist_locked()
            _logger.debug(
                "Virtual location set: %s (%s, %s)",
                record.name,
                record.latitude,
                record.longitude,
            )
            self._hub.location_updated(record)

    def disable_virtual_location(self) -> None:
        with self._lock:
            if not self._state.active:
                return
            self._state = CurrentState.disabled()
            _logger.debug("Virtual location disabled")

    def get_current_location(self) -> LocationRecord | None:
        """The override when active, else the provider's last fix, else ``None``."""
        with self._lock:
            state = self._state
        if state.active:
            return state.override
        coordinate = self._real_coordinate()
        if coordinate is None:
            return None
        return LocationRecord.from_coordinate(
            coordinate,
            name=REAL_LOCATION_NAME,
            address="",
            captured_at=self._clock(),
        )

    def _real_coordinate(self) -> Coordinate | None:
        if self._provider is None:
            return None
        try:
            return _call_provider(self._provider.current_coordinate)
        except ProviderError as exc:
            _logger.warning("Real location provider failed to report a coordinate: %s", exc, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # History / favorites / presets
    # ------------------------------------------------------------------

    def get_historical_locations(self) -> list[LocationRecord]:
        """History, newest first."""
        with self._lock:
            return self._history.newest_first()

    def get_favorite_locations(self) -> list[LocationRecord]:
        with self._lock:
            return self._favorites.snapshot()

    def get_preset_locations(self) -> tuple[LocationRecord, ...]:
        return PRESET_LOCATIONS

    def is_favorited(self, record: LocationRecord) -> bool:
        with self._lock:
            return record in self._favorites

    def add_to_favorites(self, record: LocationRecord) -> None:
        with self._lock:
            if not self._favorites.add(record):
                return
            _logger.debug("Added favorite %s", record.name)
            self._persist_locked()

    def remove_from_favorites(self, record: LocationRecord) -> None:
        with self._lock:
            removed = self._favorites.remove(record)
            if removed:
                _logger.debug("Removed favorite %s", record.name)
            self._persist_locked()

    def toggle_favorite(self, record: LocationRecord) -> bool:
        """Flip *record*'s favorite state. Returns ``True`` if it is now a favorite."""
        with self._lock:
            if record in self._favorites:
                self.remove_from_favorites(record)
                return False
            self.add_to_favorites(record)
            return True

    # ------------------------------------------------------------------
    # Observers and provider pushes
    # ------------------------------------------------------------------

    def subscribe(self, observer: LocationObserver) -> Subscription:
        return self._hub.subscribe(observer)

    def request_authorization(self) -> AuthorizationStatus:
        """Ask for location access if it has not been decided yet.

        Returns the status observed before asking. A denied or restricted
        status is only logged; prompting the user is up to the host.
        """
        provider = self._provider
        if provider is None:
            return AuthorizationStatus.NOT_DETERMINED
        try:
            status = _call_provider(provider.authorization_status)
            if status == AuthorizationStatus.NOT_DETERMINED:
                _call_provider(provider.request_authorization)
        except ProviderError as exc:
            _logger.warning("Real location provider failed to request authorization: %s", exc, exc_info=True)
            return AuthorizationStatus.NOT_DETERMINED
        if status in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED):
            _logger.warning("Location access is %s; real location unavailable", status.value)
        return status

    def handle_provider_location(self, coordinate: Coordinate) -> None:
        """Forward a pushed real fix to observers unless an override is active."""
        with self._lock:
            if self._state.active:
                _logger.debug("Ignoring real fix while virtual location is active")
                return
            record = LocationRecord.from_coordinate(
                coordinate,
                name=LIVE_LOCATION_NAME,
                address="",
                captured_at=self._clock(),
            )
            self._hub.location_updated(record)

    def handle_provider_failure(self, kind: ProviderErrorKind | str, detail: str = "") -> None:
        with self._lock:
            try:
                kind = ProviderErrorKind(kind)
            except ValueError:
                _logger.debug("Unknown provider failure kind %r, reporting as other", kind)
                kind = ProviderErrorKind.OTHER
            failure = ProviderFailure(kind=kind, detail=detail, occurred_at=self._clock())
            _logger.warning("Real location provider failed: %s %s", failure.kind.value, detail)
            self._hub.provider_failed(failure)

    def handle_authorization_changed(self, status: AuthorizationStatus) -> None:
        with self._lock:
            status = AuthorizationStatus(status)
            _logger.debug("Location authorization changed to %s", status.value)
            self._hub.authorization_changed(status)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist_locked(self) -> None:
        history = self._history.oldest_first()
        favorites = self._favorites.snapshot()
        if self._writer is None:
            self._write_snapshot(history, favorites)
            return
        future = self._writer.submit(self._write_snapshot, history, favorites)
        future.add_done_callback(_log_write_failure)
        self._last_write = future

    def _write_snapshot(self, history: list[LocationRecord], favorites: list[LocationRecord]) -> None:
        self._persistence.save(HISTORY_KEY, history)
        self._persistence.save(FAVORITES_KEY, favorites)


def open_store(
    config: LocChangerConfig | None = None,
    provider: RealLocationProvider | None = None,
    *,
    hub: SubscriptionHub | None = None,
) -> LocationStore:
    """Build a store persisting to JSON files under ``config.storage_dir``."""
    if config is None:
        config = LocChangerConfig.from_env()
    persistence = PersistenceAdapter(JsonFileBlobStore(config.storage_dir))
    return LocationStore(
        persistence,
        provider,
        hub=hub,
        history_capacity=config.history_capacity,
        background_writes=config.background_writes,
    )
