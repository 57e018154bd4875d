"""pylocchanger - virtual location state manager with history and favorites."""

from importlib.metadata import PackageNotFoundError, version

from pylocchanger.config import LocChangerConfig
from pylocchanger.exceptions import (
    LocChangerConfigError,
    LocChangerError,
    PersistenceDecodeError,
    PersistenceError,
    PersistenceWriteError,
    ProviderError,
)
from pylocchanger.models import PRESET_LOCATIONS, Coordinate, LocationRecord
from pylocchanger.persistence import (
    FAVORITES_KEY,
    HISTORY_KEY,
    BlobStore,
    JsonFileBlobStore,
    MemoryBlobStore,
    PersistenceAdapter,
)
from pylocchanger.provider import ManualLocationProvider, ProviderListener, RealLocationProvider
from pylocchanger.state.events import AuthorizationStatus, CurrentState, ProviderErrorKind, ProviderFailure
from pylocchanger.state.hub import LocationObserver, LoopObserver, Subscription, SubscriptionHub
from pylocchanger.state.store import LocationStore, open_store

try:
    __version__ = version("pylocchanger")
except PackageNotFoundError:
    __version__ = "0+local"

__all__ = [
    "__version__",
    "AuthorizationStatus",
    "BlobStore",
    "Coordinate",
    "CurrentState",
    "FAVORITES_KEY",
    "HISTORY_KEY",
    "JsonFileBlobStore",
    "LocChangerConfig",
    "LocChangerConfigError",
    "LocChangerError",
    "LocationObserver",
    "LocationRecord",
    "LocationStore",
    "LoopObserver",
    "ManualLocationProvider",
    "MemoryBlobStore",
    "PRESET_LOCATIONS",
    "PersistenceAdapter",
    "PersistenceDecodeError",
    "PersistenceError",
    "PersistenceWriteError",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderFailure",
    "ProviderListener",
    "RealLocationProvider",
    "Subscription",
    "SubscriptionHub",
    "open_store",
]
