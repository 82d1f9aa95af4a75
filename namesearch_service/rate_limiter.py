"""
Fixed-window rate limiting keyed by route and client identity

Counters live in Redis when it is enabled and reachable, so every worker
shares them. Otherwise each process keeps its own counters behind an
asyncio lock.
"""
import redis.asyncio as redis
from typing import Dict, Mapping, Optional
import asyncio
import ipaddress
import logging
import math
import re
import time

from .config import settings
from .domain.models import RateLimitConfig, RateLimitRecord, RateLimitResult

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_MS = 30000
MAX_IDENTIFIER_LENGTH = 256

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_:.-]")
_IPV4_WITH_PORT = re.compile(r"(\d{1,3}(?:\.\d{1,3}){3}):\d{1,5}")


def now_ms() -> int:
    return int(time.time() * 1000)


def hash_identifier(identifier: str) -> str:
    """Short stable token for identifiers that are unsafe as keys"""
    data = identifier.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f"rl_{abs(value)}"


def sanitize_identifier(identifier: str) -> str:
    sanitized = _CONTROL_CHARS.sub("", identifier)[:MAX_IDENTIFIER_LENGTH]
    if _UNSAFE_CHARS.search(sanitized):
        return hash_identifier(identifier)
    return sanitized


def get_client_identity(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Identify the caller from proxy/CDN headers

    Order: Cloudflare, Vercel, X-Forwarded-For, X-Real-IP, socket peer, then a
    fingerprint of the request headers.
    """
    for header in ("cf-connecting-ip", "x-vercel-forwarded-for", "x-forwarded-for", "x-real-ip"):
        value = headers.get(header)
        if value:
            return _sanitize_ip(value.split(",")[0].strip())

    if peer:
        return _sanitize_ip(peer)

    fingerprint = ":".join(
        headers.get(name) or "unknown"
        for name in ("user-agent", "accept", "accept-language", "accept-encoding")
    )
    return hash_identifier(fingerprint)


def _sanitize_ip(ip: str) -> str:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        match = _IPV4_WITH_PORT.fullmatch(ip)
        if match:
            return _sanitize_ip(match.group(1))
        return hash_identifier(ip)

    if address.version == 6:
        if address.ipv4_mapped:
            return str(address.ipv4_mapped)
        return hash_identifier(str(address))
    return str(address)


class RateLimiter:
    """Rate limit counters, Redis-backed when available"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = asyncio.Lock()
        self._last_cleanup = now_ms()

    async def connect(self):
        """Connect to Redis"""
        if not settings.REDIS_ENABLED:
            logger.info("Redis rate limiting is disabled, using in-process counters")
            return

        try:
            self.redis = await redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                encoding="utf-8",
                decode_responses=True,
            )
            # Test connection
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Using in-process counters.")
            self.redis = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.close()
            logger.info("Disconnected from Redis")

    def _key(self, identifier: str) -> str:
        return f"ratelimit:{sanitize_identifier(identifier)}"

    async def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """
        Count one request against the identifier's window

        Returns:
            The decision plus limit/remaining/reset, for allowed and denied
            requests alike
        """
        key = self._key(identifier)
        if self.redis:
            try:
                return await self._check_redis(key, config)
            except Exception as e:
                logger.error(f"Redis rate limit check failed for {key}: {e}")
        return await self._check_local(key, config)

    async def _check_redis(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = now_ms()
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.pttl(key)
            count, ttl = await pipe.execute()

        if ttl is None or ttl < 0:
            # First hit of a new window
            await self.redis.pexpire(key, config.interval_ms)
            ttl = config.interval_ms
        return self._result(count, now + ttl, now, config)

    async def _check_local(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        async with self._lock:
            now = now_ms()
            self._cleanup(now)

            record = self._records.get(key)
            if record is None or record.is_expired(now):
                record = RateLimitRecord(count=0, start=now, reset=now + config.interval_ms)
                self._records[key] = record

            if record.count >= config.max_requests:
                return self._result(record.count + 1, record.reset, now, config)

            record.count += 1
            return self._result(record.count, record.reset, now, config)

    def _cleanup(self, now: int):
        if now - self._last_cleanup < CLEANUP_INTERVAL_MS:
            return
        expired = [key for key, record in self._records.items() if record.is_expired(now)]
        for key in expired:
            del self._records[key]
        self._last_cleanup = now
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired rate limit records")

    @staticmethod
    def _result(count: int, reset: int, now: int, config: RateLimitConfig) -> RateLimitResult:
        if count > config.max_requests:
            return RateLimitResult(
                success=False,
                limit=config.max_requests,
                remaining=0,
                reset=reset,
                retry_after=max(1, math.ceil((reset - now) / 1000)),
            )
        return RateLimitResult(
            success=True,
            limit=config.max_requests,
            remaining=config.max_requests - count,
            reset=reset,
        )

    def reset(self):
        """Forget all in-process counters"""
        self._records.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


async def get_rate_limiter() -> RateLimiter:
    """Dependency for getting rate limiter instance"""
    return rate_limiter
