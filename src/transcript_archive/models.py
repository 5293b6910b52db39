"""Manifest, metadata, and catalog data structures.

Records are persisted with the camelCase keys used by existing
``.listening-status.json`` manifests, so every dataclass here owns the
conversion between its attribute names and its on-disk mapping. The mapping
form is also what the manifest store compares when deciding whether an upsert
changed anything, which means ``to_mapping`` must be deterministic.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Final, List, Mapping, Optional, Tuple

MANIFEST_VERSION: Final[int] = 2

PLAYED: Final[str] = "played"
IN_PROGRESS: Final[str] = "inProgress"
UNPLAYED: Final[str] = "unplayed"

def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _opt_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _opt_int(value: Any) -> Optional[int]:
    number = _opt_number(value)
    if number is None:
        return None
    return int(number)


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str) and item]


@dataclass
class ListeningStatus:
    """Playback progress reported by the metadata provider for one item."""

    play_state: Optional[str] = None
    play_count: Optional[int] = None
    listened_seconds: Optional[float] = None
    duration_seconds: Optional[float] = None
    completion_ratio: Optional[float] = None
    remaining_seconds: Optional[float] = None
    last_played_at: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["ListeningStatus"]:
        if isinstance(raw, ListeningStatus):
            return copy.deepcopy(raw)
        if not isinstance(raw, Mapping):
            return None
        return cls(
            play_state=_opt_str(raw.get("playState")),
            play_count=_opt_int(raw.get("playCount")),
            listened_seconds=_opt_number(raw.get("listenedSeconds")),
            duration_seconds=_opt_number(raw.get("durationSeconds")),
            completion_ratio=_opt_number(raw.get("completionRatio")),
            remaining_seconds=_opt_number(raw.get("remainingSeconds")),
            last_played_at=_opt_str(raw.get("lastPlayedAt")),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "playState": self.play_state,
            "playCount": self.play_count,
            "listenedSeconds": self.listened_seconds,
            "durationSeconds": self.duration_seconds,
            "completionRatio": self.completion_ratio,
            "remainingSeconds": self.remaining_seconds,
            "lastPlayedAt": self.last_played_at,
        }


_METADATA_KEYS: Final[Tuple[Tuple[str, str], ...]] = (
    ("show_title", "showTitle"),
    ("episode_title", "episodeTitle"),
    ("pub_date", "pubDate"),
    ("show_slug", "showSlug"),
    ("episode_slug", "episodeSlug"),
    ("base_file_name", "baseFileName"),
    ("station_title", "stationTitle"),
    ("station_slug", "stationSlug"),
    ("episode_description_html", "episodeDescriptionHtml"),
    ("episode_description_text", "episodeDescriptionText"),
)
_METADATA_RESERVED: Final[frozenset[str]] = frozenset(
    [key for _, key in _METADATA_KEYS] + ["stationTitles", "stationSlugs", "listeningStatus"]
)


@dataclass
class ItemMetadata:
    """Descriptive fields for one item plus its optional listening status.

    Keys the tool does not model are kept in ``extra`` and written back
    unchanged so newer manifests survive a round trip through older code.
    """

    show_title: Optional[str] = None
    episode_title: Optional[str] = None
    pub_date: Optional[str] = None
    show_slug: Optional[str] = None
    episode_slug: Optional[str] = None
    base_file_name: Optional[str] = None
    station_title: Optional[str] = None
    station_slug: Optional[str] = None
    station_titles: List[str] = field(default_factory=list)
    station_slugs: List[str] = field(default_factory=list)
    episode_description_html: Optional[str] = None
    episode_description_text: Optional[str] = None
    listening_status: Optional[ListeningStatus] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["ItemMetadata"]:
        if isinstance(raw, ItemMetadata):
            return copy.deepcopy(raw)
        if not isinstance(raw, Mapping):
            return None
        values: Dict[str, Any] = {attr: _opt_str(raw.get(key)) for attr, key in _METADATA_KEYS}
        return cls(
            station_titles=_str_list(raw.get("stationTitles")),
            station_slugs=_str_list(raw.get("stationSlugs")),
            listening_status=ListeningStatus.from_mapping(raw.get("listeningStatus")),
            extra={
                key: copy.deepcopy(value)
                for key, value in raw.items()
                if key not in _METADATA_RESERVED
            },
            **values,
        )

    def to_mapping(self) -> Dict[str, Any]:
        mapping: Dict[str, Any] = copy.deepcopy(self.extra)
        for attr, key in _METADATA_KEYS:
            mapping[key] = getattr(self, attr)
        mapping["stationTitles"] = list(self.station_titles)
        mapping["stationSlugs"] = list(self.station_slugs)
        mapping["listeningStatus"] = (
            self.listening_status.to_mapping() if self.listening_status is not None else None
        )
        return mapping


@dataclass
class SourceInfo:
    """Modification time and size of the cached source file."""

    mtime_ms: Optional[float] = None
    size: Optional[int] = None

    def to_mapping(self) -> Dict[str, Any]:
        mapping: Dict[str, Any] = {}
        if self.mtime_ms is not None:
            mapping["mtimeMs"] = self.mtime_ms
        if self.size is not None:
            mapping["size"] = self.size
        return mapping


def normalize_source_info(raw: Any) -> Optional[SourceInfo]:
    """Return a :class:`SourceInfo` with only finite fields, or ``None`` when empty."""

    if isinstance(raw, SourceInfo):
        mtime, size = raw.mtime_ms, raw.size
    elif isinstance(raw, Mapping):
        mtime = raw.get("mtimeMs", raw.get("mtime_ms"))
        size = raw.get("size")
    else:
        return None
    mtime_value = _opt_number(mtime)
    size_value = _opt_int(size)
    if mtime_value is None and size_value is None:
        return None
    return SourceInfo(mtime_ms=mtime_value, size=size_value)


@dataclass
class RenderOptions:
    """Conversion options a document was rendered with."""

    include_timestamps: Optional[bool] = None

    def to_mapping(self) -> Dict[str, Any]:
        if self.include_timestamps is None:
            return {}
        return {"includeTimestamps": self.include_timestamps}


def normalize_render_options(raw: Any) -> Optional[RenderOptions]:
    """Return :class:`RenderOptions` when at least one option is set, else ``None``."""

    if isinstance(raw, RenderOptions):
        value = raw.include_timestamps
    elif isinstance(raw, Mapping):
        if "includeTimestamps" in raw:
            value = raw["includeTimestamps"]
        else:
            value = raw.get("include_timestamps")
    else:
        return None
    if value is None:
        return None
    return RenderOptions(include_timestamps=bool(value))


@dataclass
class ManifestEntry:
    """Persisted per-identifier processing and listening state."""

    identifier: str
    metadata: Optional[ItemMetadata] = None
    relative_path: Optional[str] = None
    play_state: Optional[str] = None
    skip_reason: Optional[str] = None
    last_processed_at: Optional[str] = None
    last_updated_at: Optional[str] = None
    source: Optional[SourceInfo] = None
    render_options: Optional[RenderOptions] = None

    @classmethod
    def from_record(cls, identifier: str, raw: Mapping[str, Any]) -> "ManifestEntry":
        source_raw = raw.get("source", raw.get("sourceInfo"))
        return cls(
            identifier=_opt_str(raw.get("identifier")) or identifier,
            metadata=ItemMetadata.from_mapping(raw.get("metadata")),
            relative_path=_opt_str(raw.get("relativePath")) or None,
            play_state=_opt_str(raw.get("playState")) or None,
            skip_reason=_opt_str(raw.get("skipReason")) or None,
            last_processed_at=_opt_str(raw.get("lastProcessedAt")) or None,
            last_updated_at=_opt_str(raw.get("lastUpdatedAt")) or None,
            source=normalize_source_info(source_raw),
            render_options=normalize_render_options(raw.get("renderOptions")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "metadata": self.metadata.to_mapping() if self.metadata is not None else None,
            "relativePath": self.relative_path,
            "playState": self.play_state,
            "skipReason": self.skip_reason,
            "lastProcessedAt": self.last_processed_at,
            "source": self.source.to_mapping() if self.source is not None else None,
            "renderOptions": (
                self.render_options.to_mapping() if self.render_options is not None else None
            ),
            "lastUpdatedAt": self.last_updated_at,
        }


@dataclass
class Manifest:
    """All manifest entries keyed by their stable identifier."""

    version: int = MANIFEST_VERSION
    entries: Dict[str, ManifestEntry] = field(default_factory=dict)
    updated_at: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "entries": {identifier: entry.to_record() for identifier, entry in self.entries.items()},
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class StatusInfo:
    """Icon and label used when displaying a play state."""

    icon: str
    label: str


@dataclass(frozen=True)
class CatalogEntry:
    """Display-ready projection of one manifest entry.

    ``has_markdown`` reflects the filesystem at the moment the catalog was
    built; it is not refreshed afterwards.
    """

    identifier: str
    relative_path: Optional[str]
    normalized_relative_path: Optional[str]
    absolute_path: Optional[Path]
    metadata: ItemMetadata
    manifest_entry: ManifestEntry
    show_title: str
    show_slug: Optional[str]
    episode_title: str
    episode_slug: Optional[str]
    pub_date: str
    station_title: Optional[str]
    station_slug: Optional[str]
    station_titles: Tuple[str, ...]
    station_slugs: Tuple[str, ...]
    play_state: Optional[str]
    status_info: StatusInfo
    sort_timestamp: int
    has_markdown: bool
    last_processed_at: Optional[str]
    last_updated_at: Optional[str]

    @property
    def location(self) -> str:
        """Best human-readable pointer to the document."""

        return self.normalized_relative_path or self.relative_path or self.identifier


__all__ = [
    "CatalogEntry",
    "IN_PROGRESS",
    "ItemMetadata",
    "ListeningStatus",
    "MANIFEST_VERSION",
    "Manifest",
    "ManifestEntry",
    "PLAYED",
    "RenderOptions",
    "SourceInfo",
    "StatusInfo",
    "UNPLAYED",
    "normalize_render_options",
    "normalize_source_info",
]
