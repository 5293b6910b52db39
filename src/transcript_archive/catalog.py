"""Project manifest entries into display-ready catalog entries."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from src.transcript_archive.formatters import UNKNOWN_DATE, format_slug_as_title, parse_iso
from src.transcript_archive.models import CatalogEntry, ItemMetadata, Manifest, ManifestEntry
from src.transcript_archive.play_state import get_status_info, normalize_play_state

UNKNOWN_SHOW = "Unknown show"
UNKNOWN_EPISODE = "Unknown episode"

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ExistsCheck = Callable[[Path], bool]

__all__ = [
    "UNKNOWN_EPISODE",
    "UNKNOWN_SHOW",
    "build_catalog_entries",
    "build_catalog_entry",
    "catalog_sort_key",
    "compute_sort_timestamp",
    "find_catalog_entry",
    "normalize_relative_path",
    "serialize_catalog_entry",
    "sort_catalog_entries",
]


def _default_exists(path: Path) -> bool:
    return path.is_file()


def normalize_relative_path(value: Optional[str]) -> Optional[str]:
    """Return ``value`` with forward slashes, or ``None`` when empty."""

    if not value:
        return None
    return value.replace("\\", "/")


def compute_sort_timestamp(pub_date: Optional[str], fallback_iso: Optional[str]) -> int:
    """
    Milliseconds since the Unix epoch used to order catalog entries.

    A ``YYYY-MM-DD`` publish date counts as UTC midnight. Otherwise the
    fallback ISO timestamp is used, and anything unparseable sorts as ``0``.
    """

    if pub_date and _DATE_ONLY.match(pub_date):
        try:
            moment = datetime.strptime(pub_date, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            moment = None
        if moment is not None:
            return int(moment.timestamp() * 1000)
    fallback = parse_iso(fallback_iso)
    if fallback is not None:
        return int(fallback.timestamp() * 1000)
    return 0


def _resolve_show_title(metadata: ItemMetadata) -> str:
    if metadata.show_title and metadata.show_title != "unknown show":
        return metadata.show_title
    if metadata.show_slug:
        return format_slug_as_title(metadata.show_slug) or UNKNOWN_SHOW
    return UNKNOWN_SHOW


def _resolve_episode_title(
    metadata: ItemMetadata,
    normalized_relative_path: Optional[str],
    identifier: str,
) -> str:
    if metadata.episode_title:
        return metadata.episode_title
    if metadata.base_file_name:
        episode_part = "-".join(metadata.base_file_name.split("_")[2:])
        title = format_slug_as_title(episode_part or metadata.base_file_name)
        if title:
            return title
    return normalized_relative_path or identifier or UNKNOWN_EPISODE


def build_catalog_entry(
    entry: ManifestEntry,
    transcripts_dir: Path,
    *,
    exists: ExistsCheck = _default_exists,
) -> CatalogEntry:
    """
    Resolve display fields for a single manifest entry.

    ``exists`` is consulted once for the entry's document path; it defaults
    to a filesystem probe.
    """

    metadata = entry.metadata if entry.metadata is not None else ItemMetadata()
    relative_path = entry.relative_path or None
    normalized = normalize_relative_path(relative_path)
    absolute_path = Path(transcripts_dir) / normalized if normalized else None

    status = metadata.listening_status
    play_state = normalize_play_state(
        entry.play_state or (status.play_state if status is not None else None)
    )

    station_titles = tuple(value for value in metadata.station_titles if value)
    station_slugs = tuple(value for value in metadata.station_slugs if value)
    station_title = (
        metadata.station_title
        if metadata.station_title and metadata.station_title != "unknown station"
        else None
    ) or (station_titles[0] if station_titles else None)
    station_slug = metadata.station_slug or (station_slugs[0] if station_slugs else None)

    pub_date = metadata.pub_date or UNKNOWN_DATE
    return CatalogEntry(
        identifier=entry.identifier,
        relative_path=relative_path,
        normalized_relative_path=normalized,
        absolute_path=absolute_path,
        metadata=metadata,
        manifest_entry=entry,
        show_title=_resolve_show_title(metadata),
        show_slug=metadata.show_slug or None,
        episode_title=_resolve_episode_title(metadata, normalized, entry.identifier),
        episode_slug=metadata.episode_slug or None,
        pub_date=pub_date,
        station_title=station_title,
        station_slug=station_slug,
        station_titles=station_titles,
        station_slugs=station_slugs,
        play_state=play_state,
        status_info=get_status_info(play_state),
        sort_timestamp=compute_sort_timestamp(
            pub_date, entry.last_processed_at or entry.last_updated_at
        ),
        has_markdown=bool(absolute_path is not None and exists(absolute_path)),
        last_processed_at=entry.last_processed_at,
        last_updated_at=entry.last_updated_at,
    )


def build_catalog_entries(
    manifest: Manifest,
    transcripts_dir: Path,
    *,
    exists: ExistsCheck = _default_exists,
) -> List[CatalogEntry]:
    """Build one catalog entry per manifest entry, in manifest order."""

    return [
        build_catalog_entry(entry, transcripts_dir, exists=exists)
        for entry in manifest.entries.values()
    ]


def catalog_sort_key(entry: CatalogEntry) -> Tuple[int, str, str, str]:
    return (
        -entry.sort_timestamp,
        entry.show_title.casefold(),
        entry.episode_title.casefold(),
        entry.identifier,
    )


def sort_catalog_entries(entries: Iterable[CatalogEntry]) -> List[CatalogEntry]:
    """Newest first, then show title, episode title, and identifier."""

    return sorted(entries, key=catalog_sort_key)


def find_catalog_entry(entries: Sequence[CatalogEntry], key: Optional[str]) -> Optional[CatalogEntry]:
    """
    Locate an entry by identifier, relative path, file name, or base file name.

    Relative-path keys may carry a leading ``./`` or ``transcripts/`` and
    file-name keys may omit the ``.md`` extension.
    """

    if not key or not entries:
        return None
    trimmed = key.strip()
    if not trimmed:
        return None

    for entry in entries:
        if entry.identifier == trimmed:
            return entry

    normalized_key = trimmed.replace("\\", "/")
    if normalized_key.startswith("./"):
        normalized_key = normalized_key[2:]
    if normalized_key.startswith("transcripts/"):
        normalized_key = normalized_key[len("transcripts/"):]
    for entry in entries:
        if entry.normalized_relative_path == normalized_key:
            return entry

    base_name = PurePosixPath(normalized_key).name
    base_no_ext = base_name[:-3] if base_name.endswith(".md") else base_name
    for entry in entries:
        if not entry.normalized_relative_path:
            continue
        if PurePosixPath(entry.normalized_relative_path).name == base_name:
            return entry
        if entry.metadata.base_file_name == base_no_ext:
            return entry

    for entry in entries:
        if entry.metadata.base_file_name == trimmed:
            return entry
    return None


def serialize_catalog_entry(entry: CatalogEntry) -> Dict[str, Any]:
    """JSON-ready mapping for ``list --json``."""

    return {
        "identifier": entry.identifier,
        "showTitle": entry.show_title,
        "episodeTitle": entry.episode_title,
        "showSlug": entry.show_slug,
        "episodeSlug": entry.episode_slug,
        "pubDate": entry.pub_date,
        "playState": entry.play_state,
        "stationTitle": entry.station_title,
        "stationSlug": entry.station_slug,
        "stationTitles": list(entry.station_titles),
        "stationSlugs": list(entry.station_slugs),
        "relativePath": entry.normalized_relative_path or entry.relative_path,
        "absolutePath": str(entry.absolute_path) if entry.absolute_path is not None else None,
        "hasMarkdown": entry.has_markdown,
        "lastProcessedAt": entry.last_processed_at,
        "lastUpdatedAt": entry.last_updated_at,
    }
