import os
import tempfile
from pathlib import Path
from typing import Protocol

import msgspec
import structlog

from mintstats.cache.entry import CacheEntry
from mintstats.core.logging import Logger
from mintstats.exceptions import CacheCorruptionError

logger: Logger = structlog.getLogger(__name__)

_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(CacheEntry)


def encode_entry(entry: CacheEntry) -> bytes:
    return _encoder.encode(entry)


def decode_entry(key: str, data: bytes) -> CacheEntry:
    """
    Decode a persisted record.

    Raises:
        CacheCorruptionError: If the bytes are not a valid cache record
    """
    try:
        return _decoder.decode(data)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise CacheCorruptionError(key, str(e)) from e


class CacheStore(Protocol):
    """Keyed storage for the last known aggregate per parent name."""

    def load(self, key: str) -> CacheEntry | None: ...

    def save(self, key: str, entry: CacheEntry) -> None: ...


class MemoryCacheStore:
    """
    Process-local cache store.

    Keeps encoded bytes rather than structs so corrupt records behave the
    same way they do on disk.
    """

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def load(self, key: str) -> CacheEntry | None:
        raw = self._data.get(key)
        if raw is None:
            return None

        try:
            return decode_entry(key, raw)
        except CacheCorruptionError as e:
            logger.warning("Failed to load cached stats", key=key, reason=e.reason)
            return None

    def save(self, key: str, entry: CacheEntry) -> None:
        self._data[key] = encode_entry(entry)

    def __len__(self) -> int:
        return len(self._data)


class FileCacheStore:
    """
    Cache store backed by one JSON file per key.

    Writes go to a temporary file in the same directory and are moved into
    place, so readers never observe a partial record.
    """

    __slots__ = ("_directory",)

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        safe = key.replace(os.sep, "_").replace("/", "_")
        return self._directory / f"{safe}.json"

    def load(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.warning("Failed to read cached stats", key=key, error=str(e))
            return None

        try:
            return decode_entry(key, raw)
        except CacheCorruptionError as e:
            logger.warning("Failed to load cached stats", key=key, reason=e.reason)
            return None

    def save(self, key: str, entry: CacheEntry) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)

        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encode_entry(entry))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
