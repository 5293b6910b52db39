"""Rendering helpers for list tables, JSON payloads, and sync log lines."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from rich.markup import escape
from rich.table import Table

from src.transcript_archive.formatters import UNKNOWN_DATE, format_duration_short, truncate_for_display
from src.transcript_archive.models import IN_PROGRESS, PLAYED, UNPLAYED, CatalogEntry, ListeningStatus
from src.transcript_archive.pagination import Page
from src.transcript_archive.play_state import get_status_info, normalize_play_state

EPISODE_LOG_COLUMNS = {"state": 12, "date": 12, "show": 28, "episode": 32}

__all__ = [
    "build_list_payload",
    "build_list_table",
    "dumps_payload",
    "describe_empty_result",
    "format_episode_log_line",
    "format_listening_status_summary",
    "format_status_line",
]


def _summary_for_status(status: Optional[ListeningStatus]) -> Optional[str]:
    if status is None:
        return None
    play_state = normalize_play_state(status.play_state)
    if play_state == PLAYED:
        return "Finished"
    if play_state == UNPLAYED:
        return "Not started"
    if play_state != IN_PROGRESS:
        return None
    pieces = ["In progress"]
    if status.completion_ratio is not None:
        pieces.append(f"{round(status.completion_ratio * 100)}%")
    remaining = format_duration_short(status.remaining_seconds)
    if remaining:
        pieces.append(f"{remaining} left")
    return " • ".join(pieces)


def format_listening_status_summary(entry: CatalogEntry) -> Optional[str]:
    """``Finished``, ``Not started``, or ``In progress • 40% • 1h 5m left``."""

    return _summary_for_status(entry.metadata.listening_status)


def _safe_date(pub_date: Optional[str]) -> str:
    if pub_date and pub_date != UNKNOWN_DATE:
        return pub_date
    return "unknown date"


def build_list_table(page: Page[CatalogEntry], *, title: Optional[str] = None) -> Table:
    """Rich table for one page of ``list`` output; missing documents are flagged."""

    table = Table(title=title, show_lines=False, header_style="bold cyan")
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Show", overflow="ellipsis", max_width=28)
    table.add_column("Episode", overflow="ellipsis", max_width=40)
    table.add_column("Location", overflow="fold")
    table.add_column("Progress", no_wrap=True)

    for offset, entry in enumerate(page.items):
        status = entry.status_info
        location = escape(entry.location or "<not saved>")
        if not entry.has_markdown:
            location = f"{location} [yellow]⚠️ missing[/]"
        table.add_row(
            str(page.start_index + offset + 1),
            f"{status.icon} {status.label}",
            _safe_date(entry.pub_date),
            escape(entry.show_title),
            escape(entry.episode_title),
            location,
            escape(format_listening_status_summary(entry) or ""),
        )
    return table


def build_list_payload(
    page: Page[CatalogEntry],
    *,
    filter_summary: str,
    status: str,
    serialize: Any,
) -> Dict[str, Any]:
    """Structured payload emitted by ``list --json``."""

    return {
        "status": status,
        "filters": filter_summary or None,
        "page": page.page,
        "limit": page.limit,
        "total": page.total,
        "totalPages": page.total_pages,
        "items": [serialize(entry) for entry in page.items],
    }


def dumps_payload(payload: Any, indent: int) -> str:
    if indent <= 0:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(payload, indent=indent, ensure_ascii=False)


def describe_empty_result(catalog_size: int, filter_summary: str) -> str:
    """Distinguish an empty catalog from a filter that matched nothing."""

    if catalog_size == 0:
        return "No transcripts in the catalog yet. Run 'sync' first."
    if filter_summary:
        return f"No transcripts match the current filters ({filter_summary})."
    return "No transcripts to show."


def format_status_line(page: Page[CatalogEntry], filter_summary: str) -> str:
    line = f"Page {page.page}/{page.total_pages} • {page.total} transcript(s)"
    if filter_summary:
        line = f"{line} • {filter_summary}"
    return line


def format_episode_log_line(
    *,
    action: str,
    play_state: Optional[str],
    show_title: Optional[str],
    episode_title: Optional[str],
    pub_date: Optional[str],
    used_fallback: bool = False,
) -> str:
    """One fixed-width line describing what sync did with an episode."""

    status = get_status_info(play_state)
    cells = [
        truncate_for_display(status.label, EPISODE_LOG_COLUMNS["state"]).ljust(EPISODE_LOG_COLUMNS["state"]),
        truncate_for_display(_safe_date(pub_date), EPISODE_LOG_COLUMNS["date"]).ljust(EPISODE_LOG_COLUMNS["date"]),
        truncate_for_display(show_title or "Unknown show", EPISODE_LOG_COLUMNS["show"]).ljust(EPISODE_LOG_COLUMNS["show"]),
        truncate_for_display(episode_title or "Unknown episode", EPISODE_LOG_COLUMNS["episode"]).ljust(
            EPISODE_LOG_COLUMNS["episode"]
        ),
    ]
    badge = " ⚠️" if used_fallback else ""
    return f"{status.icon} │ {' │ '.join(cells)} │ [{action.upper()}]{badge}"
