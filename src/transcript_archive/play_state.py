"""Play-state normalization and display metadata."""

from __future__ import annotations

from typing import Dict, Final, Optional

from src.transcript_archive.models import IN_PROGRESS, PLAYED, UNPLAYED, StatusInfo

STATUS_INFO: Final[Dict[str, StatusInfo]] = {
    PLAYED: StatusInfo(icon="✅", label="PLAYED"),
    IN_PROGRESS: StatusInfo(icon="🎧", label="IN PROGRESS"),
    UNPLAYED: StatusInfo(icon="🆕", label="NOT PLAYED"),
}
UNKNOWN_STATUS: Final[StatusInfo] = StatusInfo(icon="❔", label="UNKNOWN")

_ALIASES: Final[Dict[str, str]] = {
    "played": PLAYED,
    "inprogress": IN_PROGRESS,
    "in-progress": IN_PROGRESS,
    "in_progress": IN_PROGRESS,
    "unplayed": UNPLAYED,
    "notplayed": UNPLAYED,
    "not-played": UNPLAYED,
}


def normalize_play_state(play_state: object) -> Optional[str]:
    """
    Map common spellings of a play state onto its canonical value.

    Non-string or empty input yields ``None``. Strings that are not a known
    spelling are returned unchanged so callers can still display them.
    """

    if not isinstance(play_state, str) or not play_state:
        return None
    return _ALIASES.get(play_state.lower(), play_state)


def get_status_info(play_state: object) -> StatusInfo:
    normalized = normalize_play_state(play_state)
    if normalized is None:
        return UNKNOWN_STATUS
    return STATUS_INFO.get(normalized, UNKNOWN_STATUS)


__all__ = ["STATUS_INFO", "UNKNOWN_STATUS", "get_status_info", "normalize_play_state"]
