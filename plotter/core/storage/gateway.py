"""
PersistenceGateway: tolerant wrapper over a StorageBackend.

Values are JSON text. Nothing here raises to the caller: an unavailable or full
backend makes save() return False, a missing or corrupt value makes load()
return None, and the caller keeps working from memory.
"""

import json
import logging
from typing import Any

from plotter.core.config import settings

from .backends import StorageBackend, StorageQuotaExceeded, make_backend

_LOG = logging.getLogger(__name__)


def storage_keys(prefix: str | None = None) -> dict[str, str]:
    """Keys managed by the gateway: the project snapshot plus the legacy per-field keys."""
    p = settings.STORAGE_KEY_PREFIX if prefix is None else prefix
    return {
        "PROJECT": f"{p}current_project",
        "CODE": f"{p}code",
        "VIEWPORT": f"{p}viewport",
        "PROJECT_NAME": f"{p}project_name",
    }


class PersistenceGateway:
    def __init__(
        self,
        backend: StorageBackend | None = None,
        *,
        key_prefix: str | None = None,
    ) -> None:
        self._backend = backend if backend is not None else make_backend()
        prefix = settings.STORAGE_KEY_PREFIX if key_prefix is None else key_prefix
        self.keys = storage_keys(prefix)
        self._probe_key = f"{prefix}storage_probe"

    @property
    def managed_keys(self) -> tuple[str, ...]:
        return tuple(self.keys.values())

    def is_available(self) -> bool:
        """Throwaway write + delete. Never raises."""
        try:
            self._backend.set(self._probe_key, self._probe_key)
            self._backend.delete(self._probe_key)
            return True
        except StorageQuotaExceeded:
            # reachable but full; save() handles the recovery
            return True
        except Exception as e:
            _LOG.debug("storage probe failed: %s", e)
            return False

    def save(self, key: str, value: Any) -> bool:
        """
        JSON-encode value and write it under key.

        On quota exceeded: clear the managed keys once and retry. Returns False
        (never raises) if the store is unavailable, the value cannot be encoded,
        or the retry fails too.
        """
        if not self.is_available():
            _LOG.warning("session storage is not available; keeping %s in memory", key)
            return False
        try:
            text = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            _LOG.error("cannot encode value for %s: %s", key, e)
            return False
        try:
            self._backend.set(key, text)
            return True
        except StorageQuotaExceeded:
            _LOG.error("session storage quota exceeded while saving %s", key)
        except Exception as e:
            _LOG.error("error saving %s to session storage: %s", key, e)
            return False

        self.clear()
        try:
            self._backend.set(key, text)
        except Exception as e:
            _LOG.error("failed to save %s even after clearing storage: %s", key, e)
            return False
        _LOG.info("cleared old data and saved %s", key)
        return True

    def load(self, key: str) -> Any | None:
        """Decoded value, or None when missing, unreadable or corrupt. Never raises."""
        try:
            text = self._backend.get(key)
        except Exception as e:
            _LOG.error("error loading %s from session storage: %s", key, e)
            return None
        if not text:
            return None
        try:
            return json.loads(text)
        except (ValueError, RecursionError) as e:
            _LOG.error("corrupt value under %s ignored: %s", key, e)
            return None

    def remove(self, key: str) -> bool:
        try:
            self._backend.delete(key)
            return True
        except Exception as e:
            _LOG.error("error removing %s from session storage: %s", key, e)
            return False

    def clear(self) -> bool:
        """Remove every managed key. Idempotent; False if the backend failed."""
        ok = True
        for key in self.managed_keys:
            ok = self.remove(key) and ok
        return ok

    def storage_size(self) -> int:
        """Approximate bytes held by the managed keys."""
        size = 0
        for key in self.managed_keys:
            try:
                text = self._backend.get(key)
            except Exception as e:
                _LOG.error("error calculating storage size: %s", e)
                return size
            if text:
                size += len(text.encode("utf-8"))
        return size
