"""
Interactive transcript picker modelled as an explicit state machine.

:func:`transition` is pure: it takes a :class:`SelectorState` and an event
and returns the next state. The cursor indexes the full, unpaged entry list
and the visible page is always derived from it. Terminal I/O lives in
:mod:`src.transcript_archive.terminal`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from src.transcript_archive.formatters import UNKNOWN_DATE, truncate_for_display
from src.transcript_archive.models import CatalogEntry
from src.transcript_archive.output_format import format_listening_status_summary
from src.transcript_archive.pagination import DEFAULT_SELECT_PAGE_SIZE, paginate, parse_positive_int

RESERVED_LINES = 7
LINES_PER_ENTRY = 2
DIGIT_KEYS = frozenset("0123456789")

HELP_LINE = "↑/↓ move • ←/→ page • digits jump • enter confirm • q exit"
_INDENT = "  "

__all__ = [
    "Backspace",
    "Cancel",
    "Confirm",
    "Digit",
    "Event",
    "Move",
    "MovePage",
    "Resize",
    "SelectorMode",
    "SelectorState",
    "compute_page_size",
    "initial_state",
    "key_to_event",
    "render_lines",
    "transition",
]


class SelectorMode(Enum):
    BROWSING = "browsing"
    TYPING_NUMBER = "typing_number"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Move:
    delta: int


@dataclass(frozen=True)
class MovePage:
    delta: int


@dataclass(frozen=True)
class Digit:
    value: str


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Resize:
    rows: Optional[int]


Event = Union[Move, MovePage, Digit, Backspace, Confirm, Cancel, Resize]


@dataclass(frozen=True)
class SelectorState:
    entries: Tuple[CatalogEntry, ...]
    cursor: int = 0
    base_page_size: int = DEFAULT_SELECT_PAGE_SIZE
    page_size: int = DEFAULT_SELECT_PAGE_SIZE
    buffer: str = ""
    status_message: Optional[str] = None
    mode: SelectorMode = SelectorMode.BROWSING
    result: Optional[CatalogEntry] = None

    @property
    def current_page(self) -> int:
        return self.cursor // self.page_size + 1

    @property
    def total_pages(self) -> int:
        return max(-(-len(self.entries) // self.page_size), 1)

    @property
    def resolved(self) -> bool:
        return self.mode is SelectorMode.RESOLVED


def compute_page_size(base_page_size: int, rows: Optional[int]) -> int:
    """
    Number of entries that fit in ``rows`` terminal lines.

    Unknown heights use ``base_page_size``; the result is never below 1 and
    never above ``base_page_size``.
    """

    if not rows or rows <= 0:
        return base_page_size
    available = rows - RESERVED_LINES
    if available <= 0:
        return 1
    capacity = available // LINES_PER_ENTRY
    return max(1, min(base_page_size, capacity))


def initial_state(
    entries: Sequence[CatalogEntry],
    page_size: object = None,
    rows: Optional[int] = None,
) -> SelectorState:
    base = max(parse_positive_int(page_size) or DEFAULT_SELECT_PAGE_SIZE, 1)
    return SelectorState(
        entries=tuple(entries),
        base_page_size=base,
        page_size=compute_page_size(base, rows),
    )


def _clamp(state: SelectorState, index: int) -> int:
    if not state.entries:
        return 0
    return min(max(index, 0), len(state.entries) - 1)


def _browsing(state: SelectorState, **changes) -> SelectorState:
    changes.setdefault("buffer", "")
    changes.setdefault("mode", SelectorMode.BROWSING)
    return dataclasses.replace(state, **changes)


def _select_index(state: SelectorState, index: int) -> SelectorState:
    count = len(state.entries)
    if index < 0 or index >= count:
        return _browsing(
            state,
            status_message=f"[WARN] Selection {index + 1} is out of range (1-{count}).",
        )
    target = state.entries[index]
    if target.absolute_path is None or not target.has_markdown:
        label = target.location or str(index + 1)
        return _browsing(state, status_message=f"[ERROR] Markdown file not found for {label}.")
    return dataclasses.replace(
        state,
        buffer="",
        mode=SelectorMode.RESOLVED,
        result=target,
        status_message=None,
    )


def transition(state: SelectorState, event: Event) -> SelectorState:
    """
    Apply ``event`` to ``state`` and return the next state.

    Once resolved, every event is ignored. Key events clear the previous
    status message; resize events keep it.
    """

    if state.resolved:
        return state

    if isinstance(event, Resize):
        return dataclasses.replace(
            state, page_size=compute_page_size(state.base_page_size, event.rows)
        )

    state = dataclasses.replace(state, status_message=None)

    if isinstance(event, Cancel):
        return dataclasses.replace(state, buffer="", mode=SelectorMode.RESOLVED, result=None)

    if isinstance(event, Move):
        message = None
        if state.entries and event.delta < 0 and state.cursor == 0:
            message = "[INFO] Already at the first item."
        elif state.entries and event.delta > 0 and state.cursor == len(state.entries) - 1:
            message = "[INFO] Already at the last item."
        return _browsing(
            state, cursor=_clamp(state, state.cursor + event.delta), status_message=message
        )

    if isinstance(event, MovePage):
        if not state.entries:
            return _browsing(state, cursor=0)
        target_page = min(max(state.current_page + event.delta, 1), state.total_pages)
        start = (target_page - 1) * state.page_size
        return _browsing(state, cursor=min(len(state.entries) - 1, start))

    if isinstance(event, Digit):
        if event.value not in DIGIT_KEYS:
            return state
        return dataclasses.replace(
            state, buffer=state.buffer + event.value, mode=SelectorMode.TYPING_NUMBER
        )

    if isinstance(event, Backspace):
        if not state.buffer:
            return state
        buffer = state.buffer[:-1]
        mode = SelectorMode.TYPING_NUMBER if buffer else SelectorMode.BROWSING
        return dataclasses.replace(state, buffer=buffer, mode=mode)

    if isinstance(event, Confirm):
        if state.buffer:
            return _select_index(state, int(state.buffer) - 1)
        return _select_index(state, state.cursor)

    return state


_ARROWS = {
    "\x1b[A": Move(-1),
    "\x1bOA": Move(-1),
    "\x1b[B": Move(1),
    "\x1bOB": Move(1),
    "\x1b[D": MovePage(-1),
    "\x1bOD": MovePage(-1),
    "\x1b[C": MovePage(1),
    "\x1bOC": MovePage(1),
    "\x1b[5~": MovePage(-1),
    "\x1b[6~": MovePage(1),
}

# Windows console prefixes extended keys with \xe0 or \x00.
_WINDOWS_KEYS = {
    "H": Move(-1),
    "P": Move(1),
    "K": MovePage(-1),
    "M": MovePage(1),
    "I": MovePage(-1),
    "Q": MovePage(1),
}


def key_to_event(key: str) -> Optional[Event]:
    """Translate a key sequence read from the terminal into an event."""

    if not key:
        return None
    if key in _ARROWS:
        return _ARROWS[key]
    if len(key) == 2 and key[0] in ("\xe0", "\x00"):
        return _WINDOWS_KEYS.get(key[1])
    if key in ("\r", "\n", "\r\n"):
        return Confirm()
    if key == "\x1b" or key == "\x03":
        return Cancel()
    if key in ("\x7f", "\x08"):
        return Backspace()
    if len(key) == 1:
        lower = key.lower()
        if lower == "q":
            return Cancel()
        if lower == "n":
            return MovePage(1)
        if lower == "p":
            return MovePage(-1)
        if key in DIGIT_KEYS:
            return Digit(key)
    return None


def _entry_lines(
    entry: CatalogEntry,
    display_index: int,
    active: bool,
    index_width: int,
    max_width: int,
) -> List[str]:
    pointer = ">" if active else " "
    index_width = max(index_width, 2)
    label = str(display_index).rjust(index_width)
    title = f"{entry.show_title or 'Unknown show'} - {entry.episode_title or 'Unknown episode'}"
    title_width = max(max_width - (index_width + 4), 16)
    lines = [f"{pointer} {label}. {truncate_for_display(title, title_width)}"]

    meta_parts = []
    if entry.pub_date and entry.pub_date != UNKNOWN_DATE:
        meta_parts.append(f"Published {entry.pub_date}")
    summary = format_listening_status_summary(entry)
    if summary:
        meta_parts.append(summary)
    if meta_parts:
        meta_width = max(max_width - 4, 16)
        lines.append(f"    {truncate_for_display(' • '.join(meta_parts), meta_width)}")
    return lines


def render_lines(
    state: SelectorState,
    *,
    width: int = 80,
    filter_summary: str = "",
    title: str = "Select a transcript to copy",
) -> List[str]:
    """Lines for one full frame of the picker."""

    page = paginate(state.entries, state.current_page, state.page_size)
    usable_width = max(width - len(_INDENT), 40)
    index_width = max(len(str(max(page.total, state.page_size))), 2)

    lines = [f"{_INDENT}{title}"]
    if filter_summary:
        lines.append(f"{_INDENT}{filter_summary}")
    lines.append(f"{_INDENT}Page {page.page}/{page.total_pages} • {page.total} transcript(s)")
    lines.append("")
    if not page.items:
        lines.append(f"{_INDENT}[No transcripts available]")
    for offset, entry in enumerate(page.items):
        absolute = page.start_index + offset
        for line in _entry_lines(
            entry, absolute + 1, absolute == state.cursor, index_width, usable_width
        ):
            lines.append(f"{_INDENT}{line}")
    lines.append("")
    lines.append(f"{_INDENT}{HELP_LINE}")
    if state.buffer:
        lines.append(f"{_INDENT}Input: {state.buffer}")
    if state.status_message:
        lines.append(f"{_INDENT}{state.status_message}")
    return lines
