"""Timestamped cache of the last known aggregate per parent name."""

from mintstats.cache.entry import CacheEntry, cache_key, is_fresh, now_ms
from mintstats.cache.store import (
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    decode_entry,
    encode_entry,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "cache_key",
    "decode_entry",
    "encode_entry",
    "is_fresh",
    "now_ms",
]
