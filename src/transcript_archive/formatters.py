"""Slug, date, and duration formatting helpers shared by sync and browse flows."""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import datetime, timedelta, timezone
from typing import Final, Optional

COCOA_EPOCH: Final[datetime] = datetime(2001, 1, 1, tzinfo=timezone.utc)
"""Reference date for Core Data timestamps stored as seconds."""

UNKNOWN_DATE: Final[str] = "unknown-date"

_SLUG_STRIP = re.compile(r"[^a-zA-Z0-9\s-]")
_SLUG_COLLAPSE = re.compile(r"[\s_-]+")


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a ``Z`` suffix."""

    return format_iso(datetime.now(timezone.utc))


def format_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_iso(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(value: object, fallback: str = "unknown") -> str:
    """
    Turn ``value`` into a lowercase, hyphen-separated ASCII slug.

    Accents are folded, punctuation is dropped, and runs of whitespace,
    underscores, or hyphens collapse into a single hyphen. Empty results
    return ``fallback``.
    """

    if not isinstance(value, str) or not value:
        return fallback
    cleaned = _SLUG_STRIP.sub("", strip_diacritics(value)).strip()
    cleaned = _SLUG_COLLAPSE.sub("-", cleaned).lower()
    return cleaned or fallback


def truncate_slug(slug: str, max_length: int) -> str:
    if len(slug) <= max_length:
        return slug
    truncated = slug[:max_length].rstrip("-")
    return truncated or slug[:max_length]


def format_slug_as_title(slug: Optional[str]) -> str:
    if not slug:
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("-") if word)


def cocoa_seconds_to_datetime(seconds: object) -> Optional[datetime]:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if not math.isfinite(seconds):
        return None
    try:
        return COCOA_EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def format_cocoa_date(seconds: object, fallback: str = UNKNOWN_DATE) -> str:
    """``YYYY-MM-DD`` for a Core Data timestamp, or ``fallback``."""

    moment = cocoa_seconds_to_datetime(seconds)
    if moment is None:
        return fallback
    return moment.strftime("%Y-%m-%d")


def format_cocoa_datetime(seconds: object) -> Optional[str]:
    moment = cocoa_seconds_to_datetime(seconds)
    if moment is None:
        return None
    return format_iso(moment)


def format_timestamp(seconds: float) -> str:
    """Render an offset in seconds as ``HH:MM:SS``."""

    total = int(max(seconds, 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration_short(seconds: object) -> Optional[str]:
    """Compact duration such as ``1h 5m`` or ``42s``; ``None`` for non-numbers."""

    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if not math.isfinite(seconds):
        return None
    total = max(int(round(seconds)), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def truncate_for_display(value: Optional[str], width: int) -> str:
    if width <= 0:
        return ""
    text = value or ""
    if len(text) <= width:
        return text
    return f"{text[: max(width - 1, 0)]}…"


__all__ = [
    "COCOA_EPOCH",
    "UNKNOWN_DATE",
    "cocoa_seconds_to_datetime",
    "format_cocoa_date",
    "format_cocoa_datetime",
    "format_duration_short",
    "format_iso",
    "format_slug_as_title",
    "format_timestamp",
    "parse_iso",
    "slugify",
    "strip_diacritics",
    "truncate_for_display",
    "truncate_slug",
    "utc_now_iso",
]
