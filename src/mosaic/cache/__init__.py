"""mosaic build cache — content hashes and key-value stores."""

from mosaic.cache.build_cache import BuildCache, CacheEntry, hash_content
from mosaic.cache.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "BuildCache",
    "CacheEntry",
    "hash_content",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
]
