"""Library configuration for pylocchanger."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pylocchanger.exceptions import LocChangerConfigError

#: Maximum number of entries kept in the history log.
DEFAULT_HISTORY_CAPACITY = 50


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_storage_dir() -> Path:
    return Path.home() / ".pylocchanger"


def validate_history_capacity(value: Any) -> int:
    """Coerce *value* to a positive history capacity or raise."""
    try:
        capacity = int(value)
    except (TypeError, ValueError) as exc:
        raise LocChangerConfigError(f"history_capacity must be an integer, got {value!r}") from exc
    if capacity < 1:
        raise LocChangerConfigError(f"history_capacity must be >= 1, got {capacity}")
    return capacity


@dataclasses.dataclass(frozen=True)
class LocChangerConfig:
    """Store configuration.

    Parameters
    ----------
    storage_dir : Path
        Directory holding the persisted history and favorites blobs.
        Created on first write.
    history_capacity : int
        Maximum number of history entries; the oldest entry is evicted
        once this is exceeded.
    background_writes : bool
        Dispatch persistence writes to a single background worker instead
        of writing inline on the calling thread.
    """

    storage_dir: Path = dataclasses.field(default_factory=_default_storage_dir)
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    background_writes: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "storage_dir", Path(self.storage_dir).expanduser())
        object.__setattr__(self, "history_capacity", validate_history_capacity(self.history_capacity))

    @classmethod
    def from_env(cls, **overrides: Any) -> LocChangerConfig:
        """Create configuration from environment variables.

        Reads ``LOCCHANGER_STORAGE_DIR``, ``LOCCHANGER_HISTORY_CAPACITY``
        and ``LOCCHANGER_BACKGROUND_WRITES``. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        LocChangerConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        storage_env = env.get("LOCCHANGER_STORAGE_DIR")
        if storage_env:
            config_kwargs["storage_dir"] = Path(storage_env)

        capacity_env = env.get("LOCCHANGER_HISTORY_CAPACITY")
        if capacity_env is not None and "history_capacity" not in overrides:
            config_kwargs["history_capacity"] = validate_history_capacity(capacity_env)

        if "background_writes" not in overrides:
            config_kwargs["background_writes"] = _env_bool(env.get("LOCCHANGER_BACKGROUND_WRITES"), True)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
