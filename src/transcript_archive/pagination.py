"""Deterministic page/limit slicing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, TypeVar

DEFAULT_LIST_LIMIT = 20
DEFAULT_SELECT_PAGE_SIZE = 10

T = TypeVar("T")

__all__ = [
    "DEFAULT_LIST_LIMIT",
    "DEFAULT_SELECT_PAGE_SIZE",
    "Page",
    "paginate",
    "parse_positive_int",
]


def parse_positive_int(value: Any) -> Optional[int]:
    """Return ``value`` as a positive ``int``, or ``None`` when it is not one."""

    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip(), 10)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    limit: int
    page: int
    total_pages: int

    @property
    def start_index(self) -> int:
        """Zero-based position of the first item within the full sequence."""

        return (self.page - 1) * self.limit


def paginate(
    entries: Sequence[T],
    page: Any = 1,
    limit: Any = None,
    *,
    default_limit: int = DEFAULT_LIST_LIMIT,
) -> Page[T]:
    """
    Slice ``entries`` into one page.

    An invalid ``limit`` falls back to ``default_limit`` and an out-of-range
    ``page`` is clamped into ``[1, total_pages]``. An empty sequence still
    reports page 1 of 1.
    """

    safe_limit = parse_positive_int(limit) or max(default_limit, 1)
    total = len(entries)
    total_pages = max(math.ceil(total / safe_limit), 1)
    desired = parse_positive_int(page) or 1
    current = min(max(desired, 1), total_pages)
    start = (current - 1) * safe_limit
    return Page(
        items=list(entries[start:start + safe_limit]),
        total=total,
        limit=safe_limit,
        page=current,
        total_pages=total_pages,
    )
