"""
Session storage: PersistenceGateway over a memory, file or Redis backend.
"""

from .backends import (
    FileBackend,
    MemoryBackend,
    RedisBackend,
    StorageBackend,
    StorageQuotaExceeded,
    StorageUnavailable,
    make_backend,
)
from .gateway import PersistenceGateway, storage_keys

__all__ = [
    "PersistenceGateway",
    "storage_keys",
    "StorageBackend",
    "MemoryBackend",
    "FileBackend",
    "RedisBackend",
    "StorageQuotaExceeded",
    "StorageUnavailable",
    "make_backend",
]
