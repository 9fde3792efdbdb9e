"""
Shared Redis client for the redis session-storage backend.

All Redis connections go through this module so there is exactly one client
per process.
"""

import logging
import threading

from plotter.core.config import settings

try:
    import redis
except ImportError:
    redis = None  # type: ignore[assignment]

_LOG = logging.getLogger(__name__)

_lock = threading.Lock()
_client: "redis.Redis | None" = None
_tried = False


def get_redis() -> "redis.Redis | None":
    """Return the shared Redis client (decode_responses=True, str values).

    Returns ``None`` when redis is not installed, ``CACHE_ENABLED`` is
    ``False``, or the initial ping fails.
    """
    global _client, _tried
    if _tried:
        return _client
    with _lock:
        if _tried:
            return _client
        _tried = True
        _client = _create_client()
        return _client


def _create_client() -> "redis.Redis | None":
    if redis is None or not settings.CACHE_ENABLED:
        return None
    try:
        r = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        r.ping()
        return r
    except Exception as e:
        _LOG.debug("Redis unavailable: %s", e)
        return None
