"""Blob stores and the record-list codec used to persist history and favorites.

The adapter is best-effort by contract: :meth:`PersistenceAdapter.load`
returns an empty list for absent or malformed blobs, and
:meth:`PersistenceAdapter.save` logs write failures instead of raising.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from pylocchanger.exceptions import PersistenceDecodeError, PersistenceError, PersistenceWriteError
from pylocchanger.models.location import LocationRecord

_logger = logging.getLogger(__name__)

HISTORY_KEY = "HistoricalLocations"
FAVORITES_KEY = "FavoriteLocations"

_RECORD_LIST = TypeAdapter(list[LocationRecord])
_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class BlobStore(Protocol):
    """Minimal key-value store of opaque byte blobs."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, data: bytes) -> None: ...


class MemoryBlobStore:
    """Dict-backed blob store, shared safely between threads."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._blobs.get(key)

    def set(self, key: str, data: bytes) -> None:
        with self._lock:
            self._blobs[key] = bytes(data)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._blobs)


class JsonFileBlobStore:
    """One ``<key>.json`` file per key inside *directory*.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never observe a half-written blob.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(f"Unsupported blob key: {key!r}", key=key)
        return self._directory / f"{key}.json"

    def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self._directory)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise


def encode_records(records: Iterable[LocationRecord]) -> bytes:
    """Encode records as a JSON array using the camelCase stored layout."""
    return _RECORD_LIST.dump_json(list(records), by_alias=True)


def decode_records(data: bytes | str, *, key: str = "") -> list[LocationRecord]:
    """Decode a JSON array of records, raising on any malformed content."""
    try:
        return _RECORD_LIST.validate_json(data)
    except ValidationError as exc:
        raise PersistenceDecodeError(
            f"Malformed location list ({exc.error_count()} errors)",
            key=key,
        ) from exc


class PersistenceAdapter:
    """Save and load ordered record lists through a :class:`BlobStore`."""

    def __init__(self, blob_store: BlobStore) -> None:
        self._blob_store = blob_store

    @property
    def blob_store(self) -> BlobStore:
        return self._blob_store

    def save(self, key: str, records: Iterable[LocationRecord]) -> bool:
        """Persist *records* under *key*. Returns ``False`` when the write failed."""
        try:
            self._write(key, records)
        except PersistenceError as exc:
            _logger.warning("Persisting %s failed: %s", key, exc, exc_info=True)
            return False
        return True

    def load(self, key: str) -> list[LocationRecord]:
        """Load the list stored under *key*; empty when absent or malformed."""
        try:
            data = self._blob_store.get(key)
        except Exception as exc:
            _logger.warning("Reading %s failed, starting empty: %s", key, exc, exc_info=True)
            return []
        if data is None:
            _logger.debug("No stored blob for %s", key)
            return []
        try:
            records = decode_records(data, key=key)
        except PersistenceDecodeError as exc:
            _logger.warning("Discarding stored %s: %s", key, exc)
            return []
        _logger.debug("Loaded %d records for %s", len(records), key)
        return records

    def _write(self, key: str, records: Iterable[LocationRecord]) -> None:
        try:
            payload = encode_records(records)
        except (TypeError, ValueError) as exc:
            raise PersistenceWriteError(f"Could not encode {key}: {exc}", key=key) from exc
        try:
            self._blob_store.set(key, payload)
        except Exception as exc:
            raise PersistenceWriteError(f"Could not write {key}: {exc}", key=key) from exc
