# Shared Redis connection for room locks and rate limiting.
# Opt-in via REDIS_ENABLED; every consumer treats a missing client as "no Redis" and carries on.
import logging
import os
from typing import Optional

_logger = logging.getLogger("nhatro.redis")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


def is_redis_enabled() -> bool:
    value: Optional[str] = os.getenv("REDIS_ENABLED", "false")
    return value is not None and value.strip().lower() in _TRUTHY


# Cached client and a one-shot guard: after a failed connect we stay on the no-Redis path
_client = None
_initialized = False


def get_redis():
    """
    Return a connected Redis client, or None when Redis is disabled or unreachable.

    The first call connects and pings; a failure is logged once and remembered
    for the rest of the process.
    """
    global _client, _initialized
    if not is_redis_enabled():
        return None
    if _client is not None:
        return _client
    if _initialized:
        return None

    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    _initialized = True
    try:
        import redis

        client = redis.Redis.from_url(
            url,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
            retry_on_timeout=False,
            health_check_interval=0,
        )
        client.ping()
    except Exception as exc:
        _logger.warning("Redis unavailable, continuing without it: %s", exc)
        return None

    _client = client
    _logger.info("Connected to Redis at %s", url)
    return _client
