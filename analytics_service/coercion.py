"""
Field Coercion Functions

Total coercion helpers used by the normalizer and the mutators. Every helper
accepts arbitrary (possibly attacker-supplied) input and returns a value of
the expected type; none of them raise.
"""

import math
import re
import secrets
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

# Length caps for user-supplied strings
MAX_VISITOR_ID_LENGTH = 120
MAX_PATH_LENGTH = 400
MAX_TITLE_LENGTH = 200
MAX_REFERRER_LENGTH = 200
MAX_LANGUAGE_LENGTH = 32
MAX_USER_AGENT_LENGTH = 256
MAX_LABEL_LENGTH = 160
MAX_HREF_LENGTH = 500

DEFAULT_PATH = "/"
DIRECT_REFERRER = "Direct"
SERVER_VISITOR_PREFIX = "srv"

_WHITESPACE_RE = re.compile(r"\s+")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def to_non_negative_int(value: Any) -> int:
    """Coerce a value to a non-negative integer, defaulting to 0.

    Numeric strings are accepted; NaN, infinities, containers and anything
    unparsable collapse to 0. Negative numbers clamp to 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value if value > 0 else 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, float):
        if not math.isfinite(value) or value <= 0:
            return 0
        return int(value)
    return 0


def to_bounded_string(value: Any, limit: int) -> Optional[str]:
    """Coerce a scalar to a stripped string of at most ``limit`` characters.

    Returns None for None, booleans, containers and blank strings.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:limit].strip() or None


def to_label(value: Any) -> str:
    """Sanitize a click label: collapse whitespace and cap the length."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return ""
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return text[:MAX_LABEL_LENGTH].strip()


def to_path(value: Any) -> str:
    """Sanitize a page path, defaulting to ``/``."""
    return to_bounded_string(value, MAX_PATH_LENGTH) or DEFAULT_PATH


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 string with millisecond precision."""
    moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f".{moment.microsecond // 1000:03d}Z"
    )


def to_iso_timestamp(value: Any) -> Optional[str]:
    """Parse a timestamp into canonical ISO-8601 form.

    Accepts ISO-8601 strings (a trailing ``Z`` is allowed, naive values are
    read as UTC), datetimes, and numbers interpreted as epoch milliseconds.

    Returns:
        The canonical ``YYYY-MM-DDTHH:MM:SS.mmmZ`` string, or None if the
        value cannot be parsed
    """
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, (int, float)):
            if not math.isfinite(value):
                return None
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text[-1] in ("Z", "z"):
                text = text[:-1] + "+00:00"
            moment = datetime.fromisoformat(text)
        else:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return format_timestamp(moment)
    except (ValueError, OverflowError, OSError):
        return None


def resolve_timestamp(value: Any, now: Optional[datetime] = None) -> str:
    """Like :func:`to_iso_timestamp`, but falls back to the current time."""
    parsed = to_iso_timestamp(value)
    if parsed:
        return parsed
    return format_timestamp(now or datetime.now(timezone.utc))


def to_counter_map(value: Any, limit: Optional[int] = None) -> Dict[str, int]:
    """Coerce a mapping of counters; non-mappings become an empty dict.

    With ``limit``, keys are stripped and capped like :func:`to_bounded_string`.
    Blank keys are dropped and counters whose keys collide after capping are
    summed.
    """
    if not isinstance(value, Mapping):
        return {}
    if limit is None:
        return {str(key): to_non_negative_int(count) for key, count in value.items()}
    counters: Dict[str, int] = {}
    for key, count in value.items():
        name = to_bounded_string(key, limit)
        if name is None:
            continue
        counters[name] = counters.get(name, 0) + to_non_negative_int(count)
    return counters


def format_referrer(value: Any) -> str:
    """Reduce a referrer to its hostname.

    Absolute URLs yield their hostname; anything else has its scheme and
    trailing slash stripped. Empty input means ``Direct``.
    """
    text = to_bounded_string(value, MAX_REFERRER_LENGTH)
    if not text:
        return DIRECT_REFERRER
    try:
        parsed = urlsplit(text)
        if parsed.scheme and parsed.netloc:
            return parsed.hostname or DIRECT_REFERRER
    except ValueError:
        pass
    cleaned = _SCHEME_RE.sub("", text)
    if cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    return cleaned or DIRECT_REFERRER


def language_tag(value: Any) -> Optional[str]:
    """Return the primary entry of a language list.

    Only the substring before the first comma is kept, so
    ``"en-US,en;q=0.9"`` yields ``"en-US"``. Region subtags are preserved.
    """
    text = to_bounded_string(value, MAX_LANGUAGE_LENGTH)
    if not text:
        return None
    return text.split(",", 1)[0].strip() or None


def generate_visitor_id(prefix: str = SERVER_VISITOR_PREFIX) -> str:
    """Generate an opaque visitor identifier of the form ``<prefix>-<hex>``."""
    return f"{prefix}-{secrets.token_hex(6)}"


def coerce_visitor_id(value: Any, prefix: str = SERVER_VISITOR_PREFIX) -> str:
    """Sanitize a visitor id, generating a fresh one when empty."""
    return to_bounded_string(value, MAX_VISITOR_ID_LENGTH) or generate_visitor_id(prefix)
