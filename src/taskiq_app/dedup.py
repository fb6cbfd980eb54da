"""Redis-based execution locks for scheduled push tasks."""

from __future__ import annotations

from time import monotonic
from uuid import uuid4

from redis.asyncio import Redis

from src.config import get_settings

# key -> (owner, expiry)
_MEMORY_LOCKS: dict[str, tuple[str, float]] = {}

_RELEASE_IF_OWNER = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def build_dedup_key(*, scope: str, task_name: str, fingerprint: str) -> str:
    """Build namespaced dedup key."""

    return f"dedup:{scope}:{task_name}:{fingerprint}"


def _acquire_memory_lock(key: str, owner: str, ttl_seconds: int) -> bool:
    now = monotonic()
    expired = [
        lock_key for lock_key, (_, expiry) in _MEMORY_LOCKS.items() if expiry <= now
    ]
    for lock_key in expired:
        _MEMORY_LOCKS.pop(lock_key, None)

    if key in _MEMORY_LOCKS:
        return False

    _MEMORY_LOCKS[key] = (owner, now + ttl_seconds)
    return True


async def acquire_dedup_lock(key: str, ttl_seconds: int) -> str | None:
    """Acquire a lock via SET NX EX and return the owner token, or None.

    The TTL bounds how long a crashed run can block the next one.
    """

    settings = get_settings()
    owner = uuid4().hex

    if settings.taskiq_testing:
        return owner if _acquire_memory_lock(key, owner, ttl_seconds) else None

    client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        locked = await client.set(key, owner, nx=True, ex=ttl_seconds)
        return owner if locked else None
    finally:
        await client.aclose()


async def release_dedup_lock(key: str, owner: str) -> None:
    """Release a lock only if it is still held by ``owner``.

    A run that outlived its TTL must not delete the lock of the run that
    took over.
    """

    settings = get_settings()

    if settings.taskiq_testing:
        held = _MEMORY_LOCKS.get(key)
        if held is not None and held[0] == owner:
            _MEMORY_LOCKS.pop(key, None)
        return

    client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        await client.eval(_RELEASE_IF_OWNER, 1, key, owner)
    finally:
        await client.aclose()
