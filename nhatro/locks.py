# Per-room Redis locks that serialize contract creation across worker processes.
# The database constraint stays authoritative; the lock only keeps contenders from piling onto it.
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from .redis_client import get_redis

logger = logging.getLogger("nhatro.locks")

# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


def room_lock_key(room_id: int) -> str:
    return f"lock:contract:room:{room_id}"


@contextmanager
def redis_try_lock(key: str, ttl_ms: int = 5000) -> Iterator[bool]:
    """
    Try to take `key` with SET NX PX; yields whether the caller may proceed.

    - True: lock acquired, or Redis disabled/erroring (fail-open).
    - False: another process holds the lock.

        with redis_try_lock(room_lock_key(room.id)) as locked:
            if not locked:
                raise errors.Busy()
            ...
    """
    r = get_redis()
    if r is None:
        yield True
        return

    token = uuid4().hex
    try:
        acquired = bool(r.set(key, token, nx=True, px=ttl_ms))
    except Exception as exc:
        logger.warning("redis_try_lock error (key=%s): %s", key, exc)
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as exc:
                # The TTL reclaims the key
                logger.debug("redis_try_lock release error (key=%s): %s", key, exc)
