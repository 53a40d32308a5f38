"""
Per-IP request limiting for the public endpoints.

Counts live in process memory and, when REDIS_URL is set, are periodically
synced to Redis so several workers converge on the same window.
"""

import logging
import time
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import HTTPException, Request

from .config import REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
_redis_unavailable = False

# {key: {"count": int, "reset_time": int, "last_redis_sync": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10
MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def mask_redis_url(url: str) -> str:
    if "@" not in url:
        return "****"
    scheme = url.split(":", 1)[0]
    return f"{scheme}:****@{url.rsplit('@', 1)[1]}"


def get_redis_client() -> Optional[redis.Redis]:
    """Redis client for cross-worker counts, or None to stay memory-only."""
    global redis_client, _redis_unavailable

    if redis_client is not None or _redis_unavailable or not REDIS_URL:
        return redis_client

    logger.info(f"📡 Connecting rate limiter to Redis: {mask_redis_url(REDIS_URL)}")
    try:
        client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        client.ping()
    except redis.RedisError as e:
        # Memory-only limiting still protects a single worker
        logger.error(f"❌ Redis unavailable, rate limiting per process only: {e}")
        _redis_unavailable = True
        return None

    logger.info("✅ Redis connected for rate limiting")
    redis_client = client
    return redis_client


def cleanup_expired_cache(now: Optional[int] = None) -> None:
    global last_cleanup_time
    current_time = int(now if now is not None else time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired = [k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)]
        for k in expired:
            del memory_cache[k]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired rate limit entries")

    last_cleanup_time = current_time


def _new_entry(key: str, window_seconds: int, now: int, client: Optional[redis.Redis]) -> dict:
    if client is not None:
        try:
            count = client.get(key)
            ttl = client.ttl(key)
            if count and ttl > 0:
                return {"count": int(count), "reset_time": now + ttl, "last_redis_sync": now}
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to load {key} from Redis, using memory only: {e}")
    return {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}


def check_rate_limit(
    key: str,
    limit: int,
    window_seconds: int,
    client: Optional[redis.Redis] = None,
    now: Optional[int] = None,
) -> tuple[bool, int, int]:
    """
    Count one request against ``key``.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(now if now is not None else time.time())
    cleanup_expired_cache(current_time)

    with cache_lock:
        if key not in memory_cache:
            memory_cache[key] = _new_entry(key, window_seconds, current_time, client)
        entry = memory_cache[key]

        if current_time >= entry["reset_time"]:
            entry["count"] = 0
            entry["reset_time"] = current_time + window_seconds
            entry["last_redis_sync"] = 0

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if client is not None and current_time - entry["last_redis_sync"] >= MEMORY_CACHE_SYNC_INTERVAL:
            try:
                client.set(key, entry["count"], ex=window_seconds)
                entry["last_redis_sync"] = current_time
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

        ttl = max(0, entry["reset_time"] - current_time)
        return is_allowed, entry["count"], ttl


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request, limit: int, window_seconds: int, key_prefix: str = "rate_limit"
) -> None:
    key = f"{key_prefix}:{client_ip(request)}"
    is_allowed, current_count, ttl = check_rate_limit(
        key, limit, window_seconds, get_redis_client()
    )

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit") -> Callable:
    """
    Build a per-IP limiter dependency.

    Example:
        download_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="download")

        @router.get("/download/{token}", dependencies=[Depends(download_limit)])
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter
