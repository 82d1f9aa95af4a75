"""
API key rotation and retry classification for Google Custom Search

Google's per-key daily quota is small, so several interchangeable keys can be
configured. Each request walks the keys in a rotation whose starting point is
derived from the query, which spreads load across keys while keeping the
order reproducible for a given query.
"""
import re
from typing import Any, Iterable, List, Optional, Tuple

from .domain.models import RotatedKey

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

RETRYABLE_STATUSES = frozenset({401, 403, 429})

# Quota/auth problems Google sometimes reports as a 400
RETRYABLE_REASONS = frozenset({
    "dailyLimitExceeded",
    "userRateLimitExceeded",
    "rateLimitExceeded",
    "quotaExceeded",
    "keyInvalid",
    "ipRefererBlocked",
})

MAX_RESULTS_PER_PAGE = 10

_KEY_SEPARATOR = re.compile(r"[\s,]+")


def parse_api_keys(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a comma/whitespace separated key list, dropping blanks and duplicates"""
    if not raw:
        return ()

    seen = set()
    keys: List[str] = []
    for candidate in _KEY_SEPARATOR.split(raw):
        key = candidate.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        keys.append(key)
    return tuple(keys)


def resolve_api_keys(multi: Optional[str], single: Optional[str]) -> Tuple[str, ...]:
    """Prefer the multi-key setting, fall back to the single-key one"""
    keys = parse_api_keys(multi)
    return keys if keys else parse_api_keys(single)


def hash32(value: str) -> int:
    """FNV-1a over UTF-16 code units, as an unsigned 32-bit integer"""
    data = value.encode("utf-16-le")
    result = FNV_OFFSET_BASIS
    for i in range(0, len(data), 2):
        result ^= data[i] | (data[i + 1] << 8)
        result = (result * FNV_PRIME) & 0xFFFFFFFF
    return result


def rotated_order(keys: Iterable[str], seed: str) -> List[RotatedKey]:
    """
    Return every key exactly once, round-robin from a seed-derived offset

    Each entry keeps the key's index in the original list so callers can
    report which key served a request.
    """
    keys = list(keys)
    if not keys:
        return []
    if len(keys) == 1:
        return [RotatedKey(key=keys[0], index=0)]

    start = hash32(seed) % len(keys)
    ordered = []
    for offset in range(len(keys)):
        index = (start + offset) % len(keys)
        ordered.append(RotatedKey(key=keys[index], index=index))
    return ordered


def extract_reasons(payload: Any) -> List[str]:
    """Pull error.errors[].reason strings out of a Google error payload"""
    if not isinstance(payload, dict):
        return []
    error = payload.get("error")
    if not isinstance(error, dict):
        return []
    errors = error.get("errors")
    if not isinstance(errors, list):
        return []

    reasons = []
    for entry in errors:
        if isinstance(entry, dict):
            reason = entry.get("reason")
            if isinstance(reason, str) and reason:
                reasons.append(reason)
    return reasons


def is_retryable_error(status: int, payload: Any) -> bool:
    """Whether a failed attempt is worth repeating with another key"""
    if status in RETRYABLE_STATUSES:
        return True
    if status != 400:
        return False
    return any(reason in RETRYABLE_REASONS for reason in extract_reasons(payload))


def format_error_message(
    status: int,
    payload: Any,
    service: str = "Google Search API",
) -> str:
    """Human readable error, with any reason codes appended in brackets"""
    fallback = f"{service} error ({status})"
    if not isinstance(payload, dict):
        return fallback

    error = payload.get("error")
    message = error.get("message") if isinstance(error, dict) else None
    reasons = extract_reasons(payload)
    suffix = f" [{', '.join(reasons)}]" if reasons else ""

    if isinstance(message, str) and message:
        return f"{message}{suffix}"
    return f"{fallback}{suffix}"


def build_username_query(username: str) -> str:
    """Quoted query matching the bare username or its @handle form"""
    trimmed = username.strip()
    if not trimmed:
        return ""
    return f'"{trimmed}" OR "@{trimmed}"'


def clamp_num(num: Any, fallback: int = MAX_RESULTS_PER_PAGE) -> int:
    """Clamp a requested result count into 1..10"""
    try:
        value = float(num)
    except (TypeError, ValueError):
        value = float(fallback)
    if value != value or value in (float("inf"), float("-inf")):
        value = float(fallback)
    return max(1, min(int(value), MAX_RESULTS_PER_PAGE))
