"""
Domain models - Core value types
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional


@dataclass(frozen=True)
class RotatedKey:
    """API key paired with its position in the configured key list"""
    key: str
    index: int


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit policy for one endpoint class"""
    interval_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check"""
    success: bool
    limit: int
    remaining: int
    reset: int  # epoch milliseconds when the window clears
    retry_after: Optional[int] = None  # seconds, set on denial only

    def headers(self) -> Dict[str, str]:
        """X-RateLimit-* headers for this result"""
        reset_at = datetime.fromtimestamp(self.reset / 1000, tz=timezone.utc)
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class RateLimitRecord:
    """Per-identity fixed window counter"""
    count: int
    start: int  # epoch milliseconds
    reset: int  # epoch milliseconds

    def is_expired(self, now: int) -> bool:
        return now >= self.reset


@dataclass(frozen=True)
class ResultStats:
    """Aggregate statistics over a result set"""
    total: int
    found: int
    not_found: int
    nsfw: int
    avg_response_time: float
    category_counts: Dict[str, int] = field(default_factory=dict)
