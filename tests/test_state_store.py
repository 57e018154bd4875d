from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

import pytest

from pylocchanger.config import LocChangerConfig
from pylocchanger.exceptions import ProviderError
from pylocchanger.models.location import Coordinate, LocationRecord
from pylocchanger.persistence import (
    FAVORITES_KEY,
    HISTORY_KEY,
    MemoryBlobStore,
    PersistenceAdapter,
    encode_records,
)
from pylocchanger.provider import ManualLocationProvider
from pylocchanger.state.events import AuthorizationStatus, CurrentState, ProviderErrorKind, ProviderFailure
from pylocchanger.state.store import LIVE_LOCATION_NAME, REAL_LOCATION_NAME, LocationStore, open_store


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _record(name: str, lat: float = 0.0, lon: float = 0.0) -> LocationRecord:
    return LocationRecord(latitude=lat, longitude=lon, name=name)


def _store(
    blobs: MemoryBlobStore | None = None,
    provider: ManualLocationProvider | None = None,
    **kwargs: object,
) -> LocationStore:
    adapter = PersistenceAdapter(blobs if blobs is not None else MemoryBlobStore())
    kwargs.setdefault("background_writes", False)
    kwargs.setdefault("clock", _dt)
    return LocationStore(adapter, provider, **kwargs)  # type: ignore[arg-type]


class _RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def location_updated(self, record: LocationRecord) -> None:
        self.events.append(("location", record))

    def provider_failed(self, failure: ProviderFailure) -> None:
        self.events.append(("failure", failure))

    def authorization_changed(self, status: AuthorizationStatus) -> None:
        self.events.append(("authorization", status))


class _BrokenProvider:
    def request_authorization(self) -> None:
        raise ProviderError("platform unavailable")

    def authorization_status(self) -> AuthorizationStatus:
        return AuthorizationStatus.AUTHORIZED_ALWAYS

    def current_coordinate(self) -> Coordinate | None:
        raise ProviderError("platform unavailable")


class _CrashingProvider:
    def request_authorization(self) -> None:
        raise RuntimeError("gps daemon gone")

    def authorization_status(self) -> AuthorizationStatus:
        raise RuntimeError("gps daemon gone")

    def current_coordinate(self) -> Coordinate | None:
        raise RuntimeError("gps daemon gone")


class _FailingBlobStore(MemoryBlobStore):
    def set(self, key: str, data: bytes) -> None:
        raise PermissionError(13, "Permission denied")


class _BrokenBackend(MemoryBlobStore):
    def set(self, key: str, data: bytes) -> None:
        raise RuntimeError("backend down")


# ------------------------------------------------------------------
# Override state machine
# ------------------------------------------------------------------


def test_starts_disabled_with_no_location() -> None:
    store = _store()
    assert store.current_state == CurrentState.disabled()
    assert store.is_active is False
    assert store.get_current_location() is None


def test_set_then_get_returns_same_record() -> None:
    store = _store()
    record = LocationRecord(latitude=48.8584, longitude=2.2945, name="Eiffel Tower", address="Paris")

    store.set_virtual_location(record)

    assert store.get_current_location() == record
    assert store.current_state == CurrentState(active=True, override=record)


def test_disable_clears_override_and_is_idempotent() -> None:
    store = _store()
    record = _record("Somewhere")
    store.set_virtual_location(record)

    store.disable_virtual_location()
    store.disable_virtual_location()

    assert store.is_active is False
    assert store.get_current_location() != record
    # Disabling leaves history alone.
    assert store.get_historical_locations() == [record]


def test_set_rejects_non_records() -> None:
    store = _store()
    with pytest.raises(TypeError):
        store.set_virtual_location({"name": "dict"})  # type: ignore[arg-type]


def test_disabled_falls_back_to_provider_fix() -> None:
    provider = ManualLocationProvider(
        status=AuthorizationStatus.AUTHORIZED_WHEN_IN_USE,
        coordinate=Coordinate(latitude=52.37, longitude=4.89),
    )
    store = _store(provider=provider)

    current = store.get_current_location()

    assert current is not None
    assert current.name == REAL_LOCATION_NAME
    assert current.address == ""
    assert (current.latitude, current.longitude) == (52.37, 4.89)
    assert current.captured_at == _dt()


def test_unauthorized_provider_reports_nothing() -> None:
    provider = ManualLocationProvider(
        status=AuthorizationStatus.DENIED,
        coordinate=Coordinate(latitude=52.37, longitude=4.89),
    )
    assert _store(provider=provider).get_current_location() is None


def test_provider_error_degrades_to_none(caplog: pytest.LogCaptureFixture) -> None:
    store = _store(provider=_BrokenProvider())  # type: ignore[arg-type]

    with caplog.at_level(logging.WARNING, logger="pylocchanger.state.store"):
        assert store.get_current_location() is None

    assert "failed to report a coordinate" in caplog.text


def test_unexpected_provider_error_is_wrapped(caplog: pytest.LogCaptureFixture) -> None:
    store = _store(provider=_CrashingProvider())  # type: ignore[arg-type]

    with caplog.at_level(logging.WARNING, logger="pylocchanger.state.store"):
        assert store.get_current_location() is None

    record = next(r for r in caplog.records if "failed to report a coordinate" in r.getMessage())
    assert record.exc_info is not None
    assert isinstance(record.exc_info[1], ProviderError)
    assert isinstance(record.exc_info[1].__cause__, RuntimeError)
    assert "RuntimeError: gps daemon gone" in record.getMessage()


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


def test_history_is_newest_first() -> None:
    store = _store()
    for name in ("A", "B", "C"):
        store.set_virtual_location(_record(name))

    assert [r.name for r in store.get_historical_locations()] == ["C", "B", "A"]


def test_history_caps_at_fifty() -> None:
    store = _store()
    for i in range(51):
        store.set_virtual_location(_record(f"place-{i}"))

    history = store.get_historical_locations()
    assert len(history) == 50
    assert history[0].name == "place-50"
    assert history[-1].name == "place-1"
    assert "place-0" not in {r.name for r in history}


def test_reset_same_name_updates_slot() -> None:
    store = _store()
    store.set_virtual_location(_record("A", lat=1.0))
    store.set_virtual_location(_record("B"))
    store.set_virtual_location(_record("A", lat=2.0))

    history = store.get_historical_locations()
    assert [r.name for r in history] == ["A", "B"]
    assert history[0].latitude == 2.0


def test_history_capacity_is_configurable() -> None:
    store = _store(history_capacity=2)
    for name in ("A", "B", "C"):
        store.set_virtual_location(_record(name))

    assert [r.name for r in store.get_historical_locations()] == ["C", "B"]


def test_reads_are_snapshots() -> None:
    store = _store()
    store.set_virtual_location(_record("A"))
    history = store.get_historical_locations()
    history.clear()

    assert len(store.get_historical_locations()) == 1


# ------------------------------------------------------------------
# Favorites
# ------------------------------------------------------------------


def test_add_to_favorites_is_idempotent() -> None:
    store = _store()
    record = _record("Cafe")

    store.add_to_favorites(record)
    store.add_to_favorites(record)

    assert store.is_favorited(record) is True
    assert len(store.get_favorite_locations()) == 1


def test_remove_missing_favorite_is_noop() -> None:
    store = _store()
    store.add_to_favorites(_record("Kept"))

    store.remove_from_favorites(_record("Absent"))

    assert [r.name for r in store.get_favorite_locations()] == ["Kept"]


def test_favorites_keep_insertion_order() -> None:
    store = _store()
    for name in ("Zoo", "Airport", "Museum"):
        store.add_to_favorites(_record(name))

    assert [r.name for r in store.get_favorite_locations()] == ["Zoo", "Airport", "Museum"]


def test_toggle_favorite() -> None:
    store = _store()
    record = _record("Beach")

    assert store.toggle_favorite(record) is True
    assert store.is_favorited(record) is True
    assert store.toggle_favorite(record) is False
    assert store.is_favorited(record) is False


def test_presets_unchanged_every_call() -> None:
    store = _store()
    first = store.get_preset_locations()
    store.set_virtual_location(first[0])

    assert store.get_preset_locations() == first
    assert len(first) == 8


def test_landmark_scenario() -> None:
    store = _store()
    tiananmen = _record("Tiananmen Square", 39.9042, 116.4074)
    bund = _record("The Bund", 31.2304, 121.4737)

    store.set_virtual_location(tiananmen)
    assert [r.name for r in store.get_historical_locations()] == ["Tiananmen Square"]

    store.add_to_favorites(tiananmen)
    assert [r.name for r in store.get_favorite_locations()] == ["Tiananmen Square"]

    store.set_virtual_location(bund)
    assert [r.name for r in store.get_historical_locations()] == ["The Bund", "Tiananmen Square"]
    assert store.get_current_location() == bund
    assert [r.name for r in store.get_favorite_locations()] == ["Tiananmen Square"]


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------


def test_round_trip_into_fresh_store() -> None:
    blobs = MemoryBlobStore()
    store = _store(blobs)
    for name in ("A", "B", "C"):
        store.set_virtual_location(_record(name))
    store.add_to_favorites(_record("B"))
    store.add_to_favorites(_record("Z"))

    reloaded = _store(blobs)

    assert reloaded.get_historical_locations() == store.get_historical_locations()
    assert reloaded.get_favorite_locations() == store.get_favorite_locations()
    # The override itself is not persisted.
    assert reloaded.is_active is False


@pytest.mark.parametrize(
    "favorites_blob",
    [
        b"{broken",
        b'[{"latitude": 1.0, "longitude": 2.0, "name": "Late", "capturedAt": 1e20}]',
        b'[{"latitude": 1.0, "longitude": 2.0, "name": "Late", "capturedAt": 1e300}]',
        b'[{"latitude": 1.0, "longitude": 2.0, "name": "Early", "capturedAt": -1e20}]',
    ],
)
def test_malformed_favorites_do_not_block_startup(favorites_blob: bytes) -> None:
    history = [_record("Old"), _record("New")]
    blobs = MemoryBlobStore({HISTORY_KEY: encode_records(history), FAVORITES_KEY: favorites_blob})

    store = _store(blobs)

    assert store.get_favorite_locations() == []
    assert [r.name for r in store.get_historical_locations()] == ["New", "Old"]


def test_remove_from_favorites_persists_even_when_absent() -> None:
    blobs = MemoryBlobStore()
    store = _store(blobs)

    store.remove_from_favorites(_record("Absent"))

    assert blobs.get(FAVORITES_KEY) == b"[]"


def test_write_failure_does_not_raise(caplog: pytest.LogCaptureFixture) -> None:
    store = _store(_FailingBlobStore())
    record = _record("Unsaved")

    with caplog.at_level(logging.WARNING, logger="pylocchanger.persistence"):
        store.set_virtual_location(record)

    assert store.get_current_location() == record
    assert store.get_historical_locations() == [record]
    assert "Persisting HistoricalLocations failed" in caplog.text


def test_backend_error_does_not_raise(caplog: pytest.LogCaptureFixture) -> None:
    store = _store(_BrokenBackend())
    record = _record("Unsaved")

    with caplog.at_level(logging.WARNING, logger="pylocchanger.persistence"):
        store.set_virtual_location(record)
        store.add_to_favorites(record)

    assert store.get_current_location() == record
    assert store.is_favorited(record) is True
    assert "backend down" in caplog.text


def test_background_writes_flush() -> None:
    blobs = MemoryBlobStore()
    with _store(blobs, background_writes=True) as store:
        store.set_virtual_location(_record("Queued"))
        assert store.get_historical_locations()[0].name == "Queued"
        assert store.flush(timeout=5.0) is True

        assert [r.name for r in _store(blobs).get_historical_locations()] == ["Queued"]

    # Closed stores keep working with inline writes.
    store.add_to_favorites(_record("Later"))
    assert [r.name for r in _store(blobs).get_favorite_locations()] == ["Later"]


def test_open_store_uses_storage_dir(tmp_path: Path) -> None:
    config = LocChangerConfig(storage_dir=tmp_path, history_capacity=5, background_writes=False)

    with open_store(config) as store:
        store.set_virtual_location(_record("Disk"))

    assert (tmp_path / "HistoricalLocations.json").exists()
    with open_store(config) as reopened:
        assert [r.name for r in reopened.get_historical_locations()] == ["Disk"]


# ------------------------------------------------------------------
# Notifications and provider pushes
# ------------------------------------------------------------------


def test_set_notifies_observer() -> None:
    store = _store()
    observer = _RecordingObserver()
    store.subscribe(observer)
    record = _record("Notify")

    store.set_virtual_location(record)

    assert observer.events == [("location", record)]


def test_observer_sees_state_already_applied() -> None:
    store = _store()
    seen: list[LocationRecord | None] = []

    class _Probe(_RecordingObserver):
        def location_updated(self, record: LocationRecord) -> None:
            seen.append(store.get_current_location())

    store.subscribe(_Probe())
    record = _record("Probe")
    store.set_virtual_location(record)

    assert seen == [record]


def test_provider_push_ignored_while_overridden() -> None:
    provider = ManualLocationProvider(status=AuthorizationStatus.AUTHORIZED_WHEN_IN_USE)
    store = _store(provider=provider)
    provider.attach(store)
    observer = _RecordingObserver()
    store.subscribe(observer)
    override = _record("Override")

    store.set_virtual_location(override)
    provider.push_location(Coordinate(latitude=1.0, longitude=1.0))

    assert observer.events == [("location", override)]
    assert store.get_current_location() == override
    assert store.get_historical_locations() == [override]

    store.disable_virtual_location()
    provider.push_location(Coordinate(latitude=2.0, longitude=3.0))

    assert len(observer.events) == 2
    kind, live = observer.events[1]
    assert kind == "location"
    assert isinstance(live, LocationRecord)
    assert live.name == LIVE_LOCATION_NAME
    assert (live.latitude, live.longitude) == (2.0, 3.0)
    assert store.get_historical_locations() == [override]


def test_provider_failure_forwarded_even_when_overridden() -> None:
    provider = ManualLocationProvider()
    store = _store(provider=provider)
    provider.attach(store)
    observer = _RecordingObserver()
    store.subscribe(observer)
    store.set_virtual_location(_record("Override"))

    provider.push_failure(ProviderErrorKind.LOCATION_UNKNOWN, "no fix")

    kind, failure = observer.events[-1]
    assert kind == "failure"
    assert failure == ProviderFailure(kind=ProviderErrorKind.LOCATION_UNKNOWN, detail="no fix", occurred_at=_dt())
    assert store.is_active is True


def test_unknown_failure_kind_reported_as_other() -> None:
    store = _store()
    observer = _RecordingObserver()
    store.subscribe(observer)

    store.handle_provider_failure("satellite_glitch", "lost lock")

    assert observer.events == [
        ("failure", ProviderFailure(kind=ProviderErrorKind.OTHER, detail="lost lock", occurred_at=_dt())),
    ]


def test_request_authorization_when_undetermined() -> None:
    provider = ManualLocationProvider()
    store = _store(provider=provider)
    provider.attach(store)
    observer = _RecordingObserver()
    store.subscribe(observer)

    assert store.request_authorization() == AuthorizationStatus.NOT_DETERMINED

    assert provider.authorization_requests == 1
    assert observer.events == [("authorization", AuthorizationStatus.AUTHORIZED_WHEN_IN_USE)]


def test_request_authorization_when_denied(caplog: pytest.LogCaptureFixture) -> None:
    provider = ManualLocationProvider(status=AuthorizationStatus.DENIED)
    store = _store(provider=provider)

    with caplog.at_level(logging.WARNING, logger="pylocchanger.state.store"):
        assert store.request_authorization() == AuthorizationStatus.DENIED

    assert provider.authorization_requests == 0
    assert "Location access is denied" in caplog.text


def test_request_authorization_without_provider() -> None:
    assert _store().request_authorization() == AuthorizationStatus.NOT_DETERMINED


def test_request_authorization_provider_error_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    store = _store(provider=_CrashingProvider())  # type: ignore[arg-type]

    with caplog.at_level(logging.WARNING, logger="pylocchanger.state.store"):
        assert store.request_authorization() == AuthorizationStatus.NOT_DETERMINED

    assert "failed to request authorization" in caplog.text


def test_concurrent_mutations_do_not_lose_updates() -> None:
    provider = ManualLocationProvider(status=AuthorizationStatus.AUTHORIZED_ALWAYS)
    store = _store(provider=provider)
    provider.attach(store)
    observer = _RecordingObserver()
    store.subscribe(observer)
    barrier = threading.Barrier(6)

    def _ui_worker(worker: int) -> None:
        barrier.wait()
        for i in range(20):
            record = _record(f"w{worker}-{i}")
            store.set_virtual_location(record)
            store.add_to_favorites(record)

    def _provider_worker() -> None:
        barrier.wait()
        for i in range(50):
            provider.push_location(Coordinate(latitude=float(i), longitude=0.0))

    threads = [threading.Thread(target=_ui_worker, args=(w,)) for w in range(5)]
    threads.append(threading.Thread(target=_provider_worker))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    history = store.get_historical_locations()
    assert len(history) == 50
    assert len({r.name for r in history}) == 50
    assert len(store.get_favorite_locations()) == 100
    set_events = [e for e in observer.events if isinstance(e[1], LocationRecord) and e[1].name != LIVE_LOCATION_NAME]
    assert len(set_events) == 100
