"""
Durable key-value substrates for session storage.

memory: process-local dict (tests, or no durable store wanted).
file:   one file per key under STORAGE_DIR; survives restarts.
redis:  shared client from plotter.core.redis_client.

Every backend raises StorageQuotaExceeded when a write does not fit and
StorageUnavailable when the substrate cannot be reached.
"""

import errno
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from plotter.core.config import settings
from plotter.core.redis_client import get_redis

_SAFE_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageQuotaExceeded(Exception):
    """The write would exceed the backend's capacity."""

    pass


class StorageUnavailable(Exception):
    """The backend cannot be reached or written at all."""

    pass


class StorageBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _size(value: str) -> int:
    return len(value.encode("utf-8"))


class MemoryBackend:
    """In-process store with an optional byte quota over all keys."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_bytes
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self._quota is not None:
                used = sum(_size(v) for k, v in self._data.items() if k != key)
                if used + _size(value) > self._quota:
                    raise StorageQuotaExceeded(
                        f"quota of {self._quota} bytes exceeded writing {key!r}"
                    )
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class FileBackend:
    """One UTF-8 file per key; writes go through a temp file and os.replace."""

    def __init__(self, directory: str | Path, quota_bytes: int | None = None) -> None:
        self._dir = Path(directory)
        self._quota = quota_bytes
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY_RE.match(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailable(f"cannot read {path}: {e}") from e

    def _used_bytes(self, exclude: Path) -> int:
        total = 0
        for p in self._dir.glob("*.json"):
            if p != exclude:
                try:
                    total += p.stat().st_size
                except OSError:
                    pass
        return total

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        data = value.encode("utf-8")
        with self._lock:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                if self._quota is not None and self._used_bytes(path) + len(data) > self._quota:
                    raise StorageQuotaExceeded(
                        f"quota of {self._quota} bytes exceeded writing {key!r}"
                    )
                fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(data)
                    os.replace(tmp, path)
                except BaseException:
                    Path(tmp).unlink(missing_ok=True)
                    raise
            except OSError as e:
                if e.errno in (errno.ENOSPC, errno.EDQUOT):
                    raise StorageQuotaExceeded(str(e)) from e
                raise StorageUnavailable(f"cannot write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"cannot delete {path}: {e}") from e


class RedisBackend:
    """Plain string keys in Redis; OOM replies map to StorageQuotaExceeded."""

    def __init__(self, client: object | None = None) -> None:
        self._client = client

    def _redis(self):  # type: ignore[no-untyped-def]
        client = self._client if self._client is not None else get_redis()
        if client is None:
            raise StorageUnavailable("redis is not configured or not reachable")
        return client

    def get(self, key: str) -> str | None:
        try:
            value = self._redis().get(key)
        except StorageUnavailable:
            raise
        except Exception as e:
            raise StorageUnavailable(f"redis GET failed: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._redis().set(key, value)
        except StorageUnavailable:
            raise
        except Exception as e:
            if "OOM" in str(e):
                raise StorageQuotaExceeded(str(e)) from e
            raise StorageUnavailable(f"redis SET failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._redis().delete(key)
        except StorageUnavailable:
            raise
        except Exception as e:
            raise StorageUnavailable(f"redis DEL failed: {e}") from e


def make_backend() -> StorageBackend:
    """Backend selected by STORAGE_BACKEND."""
    kind = settings.STORAGE_BACKEND
    if kind == "memory":
        return MemoryBackend(quota_bytes=settings.STORAGE_QUOTA_BYTES)
    if kind == "redis":
        return RedisBackend()
    return FileBackend(settings.STORAGE_DIR, quota_bytes=settings.STORAGE_QUOTA_BYTES)
