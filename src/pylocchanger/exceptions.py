"""Custom exception hierarchy for pylocchanger."""

from __future__ import annotations


class LocChangerError(Exception):
    """Base exception for all pylocchanger errors."""


class LocChangerConfigError(LocChangerError):
    """Invalid or missing configuration."""


class PersistenceError(LocChangerError):
    """Blob store read/write or wire-format failure."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class PersistenceDecodeError(PersistenceError):
    """Stored blob is not a valid list of location records.

    Never surfaces past :class:`~pylocchanger.persistence.PersistenceAdapter`;
    the adapter substitutes an empty collection.
    """


class PersistenceWriteError(PersistenceError):
    """Blob could not be written (disk full, permissions, encoding)."""


class ProviderError(LocChangerError):
    """A real-location provider call raised.

    The store wraps anything a provider raises in this error, logs it and
    degrades to "no real location available".
    """
