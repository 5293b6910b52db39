"""
Live episode metadata from the Apple Podcasts library database.

The provider opens ``MTLibrary.sqlite`` read-only, looks episodes up by any of
their three transcript identifier columns, and returns one
:class:`ItemMetadata` per identifier. Every failure mode (missing database,
locked file, unexpected schema) is logged and yields whatever was collected
so far; retrying is left to the caller.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from src.transcript_archive.formatters import (
    format_cocoa_date,
    format_cocoa_datetime,
    slugify,
    truncate_slug,
)
from src.transcript_archive.models import IN_PROGRESS, PLAYED, UNPLAYED, ItemMetadata, ListeningStatus

logger = logging.getLogger(__name__)

CHUNK_SIZE = 200
EPISODE_SLUG_LENGTH = 20
PLAYED_THRESHOLD = 0.98

_BASE_QUERY = """
SELECT
  episode.ZTRANSCRIPTIDENTIFIER AS transcript_identifier,
  episode.ZFREETRANSCRIPTIDENTIFIER AS free_transcript_identifier,
  episode.ZENTITLEDTRANSCRIPTIDENTIFIER AS entitled_transcript_identifier,
  episode.ZTITLE AS episode_title,
  episode.ZPUBDATE AS pub_date,
  episode.ZITEMDESCRIPTION AS item_description,
  episode.ZITEMDESCRIPTIONWITHOUTHTML AS item_description_without_html,
  episode.ZPLAYHEAD AS play_head,
  episode.ZDURATION AS duration,
  episode.ZPLAYCOUNT AS play_count,
  episode.ZHASBEENPLAYED AS has_been_played,
  episode.ZLASTDATEPLAYED AS last_date_played,
  podcast.ZTITLE AS show_title,
  podcast.ZAUTHOR AS station_title
FROM ZMTEPISODE episode
LEFT JOIN ZMTPODCAST podcast ON episode.ZPODCAST = podcast.Z_PK
"""

__all__ = [
    "MetadataProvider",
    "SqliteMetadataProvider",
    "build_listening_status",
    "metadata_from_row",
]


class MetadataProvider(Protocol):
    def fetch(self, identifiers: Iterable[str]) -> Dict[str, ItemMetadata]: ...


def _number(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def build_listening_status(row: Mapping[str, object]) -> ListeningStatus:
    """Derive a play state and progress figures from one episode row."""

    listened = _number(row.get("play_head"))
    duration = _number(row.get("duration"))
    play_count = _number(row.get("play_count"))
    has_been_played = bool(row.get("has_been_played"))

    ratio: Optional[float] = None
    remaining: Optional[float] = None
    if duration and duration > 0 and listened is not None:
        ratio = max(0.0, min(listened / duration, 1.0))
        remaining = max(duration - listened, 0.0)

    if has_been_played or (ratio is not None and ratio >= PLAYED_THRESHOLD):
        state = PLAYED
    elif listened is not None and listened > 0:
        state = IN_PROGRESS
    elif play_count and play_count > 0:
        state = PLAYED
    else:
        state = UNPLAYED

    return ListeningStatus(
        play_state=state,
        play_count=int(play_count) if play_count is not None else None,
        listened_seconds=listened,
        duration_seconds=duration,
        completion_ratio=ratio,
        remaining_seconds=remaining,
        last_played_at=format_cocoa_datetime(row.get("last_date_played")),
    )


def metadata_from_row(row: Mapping[str, object]) -> ItemMetadata:
    show_title = str(row.get("show_title") or "unknown show")
    episode_title = str(row.get("episode_title") or "unknown episode")
    pub_date = format_cocoa_date(row.get("pub_date"))
    show_slug = slugify(show_title, "unknown-show")
    episode_slug = truncate_slug(slugify(episode_title, "episode"), EPISODE_SLUG_LENGTH)
    station_title = row.get("station_title")
    station_titles = [str(station_title)] if station_title else []
    return ItemMetadata(
        show_title=show_title,
        episode_title=episode_title,
        pub_date=pub_date,
        show_slug=show_slug,
        episode_slug=episode_slug,
        base_file_name=f"{show_slug}_{pub_date}_{episode_slug}",
        station_title=station_titles[0] if station_titles else None,
        station_slug=slugify(station_titles[0]) if station_titles else None,
        station_titles=station_titles,
        station_slugs=[slugify(title) for title in station_titles],
        episode_description_html=str(row.get("item_description") or ""),
        episode_description_text=str(row.get("item_description_without_html") or ""),
        listening_status=build_listening_status(row),
    )


def _chunks(values: Sequence[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


class SqliteMetadataProvider:
    """Read-only lookups against ``MTLibrary.sqlite``."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path).expanduser()

    def _connect(self) -> sqlite3.Connection:
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        connection = sqlite3.connect(uri, uri=True)
        connection.row_factory = sqlite3.Row
        return connection

    def fetch(self, identifiers: Iterable[str]) -> Dict[str, ItemMetadata]:
        unique = list(dict.fromkeys(identifier for identifier in identifiers if identifier))
        results: Dict[str, ItemMetadata] = {}
        if not unique:
            return results
        if not self.db_path.is_file():
            logger.warning(
                "Metadata database not found at %s; output filenames will use fallback identifiers",
                self.db_path,
            )
            return results

        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            logger.warning("Unable to open metadata database %s: %s", self.db_path, exc)
            return results

        try:
            for chunk in _chunks(unique, CHUNK_SIZE):
                placeholders = ",".join("?" for _ in chunk)
                query = (
                    f"{_BASE_QUERY} WHERE episode.ZTRANSCRIPTIDENTIFIER IN ({placeholders})"
                    f" OR episode.ZFREETRANSCRIPTIDENTIFIER IN ({placeholders})"
                    f" OR episode.ZENTITLEDTRANSCRIPTIDENTIFIER IN ({placeholders})"
                )
                try:
                    rows = connection.execute(query, chunk * 3).fetchall()
                except sqlite3.Error as exc:
                    logger.warning("Unable to load transcript metadata: %s", exc)
                    return results
                for row in rows:
                    mapping = dict(row)
                    metadata = metadata_from_row(mapping)
                    for column in (
                        "transcript_identifier",
                        "free_transcript_identifier",
                        "entitled_transcript_identifier",
                    ):
                        identifier = mapping.get(column)
                        if identifier:
                            results[str(identifier)] = metadata
        finally:
            connection.close()

        logger.info("Loaded metadata for %d of %d identifiers", len(results), len(unique))
        return results
