# storage/__init__.py
from ranobe.storage.repository import KeyValueStore, SqliteStore
from ranobe.storage.cache import SegmentCache, compute_fingerprint

__all__ = [
    "KeyValueStore", "SqliteStore",
    "SegmentCache", "compute_fingerprint",
]
