# Redis-backed fixed-window rate limiter used as a FastAPI dependency on auth and write routes.
# Counters are per client IP and scope: rl:v1:ip:{ip}:{scope}. Without Redis every request passes.
import os
import logging
from typing import Callable, Literal, Optional

from fastapi import Request

from . import errors
from .redis_client import get_redis, is_redis_enabled

logger = logging.getLogger("nhatro.rate_limit")

Scope = Literal["login", "signup", "write"]

_DEFAULT_LIMITS = {"login": 10, "signup": 5, "write": 30}


def _env_int(name: str, default: int) -> int:
    value: Optional[str] = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, value)
        return default


def _window_seconds() -> int:
    return _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)


# RATE_LIMIT_LOGIN_PER_WINDOW, RATE_LIMIT_SIGNUP_PER_WINDOW, RATE_LIMIT_WRITE_PER_WINDOW
def _limit_for_scope(scope: Scope) -> int:
    return _env_int(f"RATE_LIMIT_{scope.upper()}_PER_WINDOW", _DEFAULT_LIMITS[scope])


def _client_ip(request: Request) -> str:
    # Remote address only; X-Forwarded-For is not trusted here
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    Build a dependency that counts requests per IP in a fixed window.

    The first hit in a window sets the key's TTL; once the count passes the
    scope's limit the request fails with RATE_LIMITED and a retry_after hint.
    Redis errors are logged and the request is let through.
    """
    window = _window_seconds()
    limit = _limit_for_scope(scope)

    def _dependency(request: Request) -> None:
        if not is_redis_enabled():
            return
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            ttl = r.ttl(key) if current > limit else None
        except Exception as exc:
            logger.warning("Rate limit fail-open (scope=%s, ip=%s): %s", scope, ip, exc)
            return

        if ttl is not None:
            retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
            raise errors.RateLimited(
                details={"scope": scope, "limit": limit, "window_seconds": window, "retry_after": retry_after}
            )

    return _dependency
