"""
Status filtering and fuzzy show/station search.

Raw user input (status strings and free-text queries from CLI options) is
converted once into a frozen :class:`FilterConfig` by
:func:`build_filter_config`. Everything downstream takes the canonical config
and never re-inspects raw values.

Status filters are deliberately asymmetric: ``unplayed`` means "not finished"
and therefore also matches in-progress items, while ``played`` and
``inProgress`` match only themselves. ``all`` matches every entry, including
entries whose play state is unrecognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from src.transcript_archive.formatters import strip_diacritics
from src.transcript_archive.models import IN_PROGRESS, PLAYED, UNPLAYED, CatalogEntry, ItemMetadata
from src.transcript_archive.play_state import normalize_play_state

STATUS_ALL = "all"

_STATUS_ALIASES = {
    "all": STATUS_ALL,
    "any": STATUS_ALL,
    "*": STATUS_ALL,
    "everything": STATUS_ALL,
    "played": PLAYED,
    "done": PLAYED,
    "complete": PLAYED,
    "unplayed": UNPLAYED,
    "not-played": UNPLAYED,
    "new": UNPLAYED,
    "fresh": UNPLAYED,
    "inprogress": IN_PROGRESS,
    "in-progress": IN_PROGRESS,
    "in_progress": IN_PROGRESS,
    "partial": IN_PROGRESS,
    "progress": IN_PROGRESS,
}

_STATUS_MEMBERS = {
    UNPLAYED: frozenset({UNPLAYED, IN_PROGRESS}),
    PLAYED: frozenset({PLAYED}),
    IN_PROGRESS: frozenset({IN_PROGRESS}),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")

Matcher = Callable[[str], bool]

__all__ = [
    "FilterConfig",
    "FuzzyMatcher",
    "RawFilterInput",
    "STATUS_ALL",
    "build_filter_config",
    "build_fuzzy_matchers",
    "collect_match_fields",
    "describe_filter_summary",
    "filter_catalog_entries",
    "filter_entries_by_status",
    "matches_entry_show",
    "matches_entry_station",
    "metadata_matches_filters",
    "normalize_match_value",
    "normalize_status_filter",
    "parse_multi_value",
    "status_matches",
]


def normalize_status_filter(value: object) -> Optional[str]:
    """
    Resolve a user-supplied status alias to ``all`` or a canonical play state.

    Returns ``None`` for unknown values so callers can report them.
    """

    if value is None:
        return STATUS_ALL
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    if not text:
        return STATUS_ALL
    return _STATUS_ALIASES.get(text)


def parse_multi_value(values: Iterable[Optional[str]]) -> List[str]:
    """Split comma-separated option values and de-duplicate them in order."""

    results: List[str] = []
    seen = set()
    for raw in values:
        if not raw:
            continue
        for piece in raw.split(","):
            text = piece.strip()
            if text and text not in seen:
                seen.add(text)
                results.append(text)
    return results


def collect_match_fields(*values: Any) -> List[str]:
    results: List[str] = []
    seen = set()

    def _add(value: Any) -> None:
        if value is None:
            return
        text = str(value).strip()
        if not text or text in seen:
            return
        seen.add(text)
        results.append(text)

    for value in values:
        if isinstance(value, (list, tuple, set, frozenset)):
            for item in value:
                _add(item)
        else:
            _add(value)
    return results


def normalize_match_value(value: Any) -> str:
    if value is None:
        return ""
    text = strip_diacritics(str(value)).lower()
    return _NON_ALNUM.sub(" ", text).strip()


@dataclass(frozen=True)
class _MatchCandidate:
    normalized: str
    collapsed: str
    tokens: Tuple[str, ...]
    initials: str

    @classmethod
    def build(cls, value: Any) -> Optional["_MatchCandidate"]:
        normalized = normalize_match_value(value)
        if not normalized:
            return None
        tokens = tuple(token for token in _WHITESPACE.split(normalized) if token)
        return cls(
            normalized=normalized,
            collapsed=_WHITESPACE.sub("", normalized),
            tokens=tokens,
            initials="".join(token[0] for token in tokens),
        )


@dataclass(frozen=True)
class FuzzyMatcher:
    """
    Free-text predicate for a single query.

    A field matches when the normalized query is a substring of it, the
    space-free query is a substring of the space-free field, every query
    token appears in it, or the query's initials appear in the field's
    initials.
    """

    query: str
    _candidate: _MatchCandidate = field(repr=False, compare=False)

    @classmethod
    def create(cls, query: str) -> Optional["FuzzyMatcher"]:
        candidate = _MatchCandidate.build(query)
        if candidate is None:
            return None
        return cls(query=query, _candidate=candidate)

    def __call__(self, value: Any) -> bool:
        target = _MatchCandidate.build(value)
        if target is None:
            return False
        query = self._candidate
        if query.normalized in target.normalized:
            return True
        if query.collapsed and query.collapsed in target.collapsed:
            return True
        if query.tokens and all(token in target.normalized for token in query.tokens):
            return True
        if query.initials and query.initials in target.initials:
            return True
        return False


def build_fuzzy_matchers(values: Iterable[str]) -> Tuple[FuzzyMatcher, ...]:
    matchers = []
    for value in values:
        matcher = FuzzyMatcher.create(value)
        if matcher is not None:
            matchers.append(matcher)
    return tuple(matchers)


@dataclass(frozen=True)
class RawFilterInput:
    """Unvalidated filter options exactly as the user supplied them."""

    status: Optional[str] = None
    shows: Sequence[str] = ()
    stations: Sequence[str] = ()


@dataclass(frozen=True)
class FilterConfig:
    """Canonical, validated filter settings."""

    status: str = STATUS_ALL
    show_filters: Tuple[str, ...] = ()
    station_filters: Tuple[str, ...] = ()
    show_matchers: Tuple[FuzzyMatcher, ...] = ()
    station_matchers: Tuple[FuzzyMatcher, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.status == STATUS_ALL and not self.show_filters and not self.station_filters


def build_filter_config(
    raw: Union[FilterConfig, RawFilterInput, str, None],
    errors: Optional[List[str]] = None,
) -> FilterConfig:
    """
    Convert ``raw`` into a :class:`FilterConfig`.

    An existing :class:`FilterConfig` is returned unchanged. A bare string is
    treated as a status. Unknown statuses fall back to ``all`` and, when an
    ``errors`` list is given, append a message to it instead of raising.
    """

    if isinstance(raw, FilterConfig):
        return raw
    if raw is None:
        return FilterConfig()
    if isinstance(raw, str):
        raw = RawFilterInput(status=raw)

    status = normalize_status_filter(raw.status)
    if status is None:
        if errors is not None:
            errors.append(
                f"Unknown status {raw.status!r}. Use all, played, unplayed, or in-progress."
            )
        status = STATUS_ALL
    show_filters = tuple(parse_multi_value(raw.shows))
    station_filters = tuple(parse_multi_value(raw.stations))
    return FilterConfig(
        status=status,
        show_filters=show_filters,
        station_filters=station_filters,
        show_matchers=build_fuzzy_matchers(show_filters),
        station_matchers=build_fuzzy_matchers(station_filters),
    )


def status_matches(status: str, play_state: Optional[str]) -> bool:
    if status == STATUS_ALL:
        return True
    members = _STATUS_MEMBERS.get(status)
    if members is None:
        return False
    return normalize_play_state(play_state) in members


def filter_entries_by_status(entries: Iterable[CatalogEntry], status: str) -> List[CatalogEntry]:
    return [entry for entry in entries if status_matches(status, entry.play_state)]


def _matches_any(matchers: Sequence[Matcher], fields: Sequence[str]) -> bool:
    if not matchers:
        return True
    if not fields:
        return False
    return any(matcher(value) for matcher in matchers for value in fields)


def _show_fields(metadata: Optional[ItemMetadata], *extra: Any) -> List[str]:
    if metadata is None:
        return collect_match_fields(*extra)
    return collect_match_fields(*extra, metadata.show_title, metadata.show_slug)


def _station_fields(metadata: Optional[ItemMetadata], *extra: Any) -> List[str]:
    if metadata is None:
        return collect_match_fields(*extra)
    return collect_match_fields(
        *extra,
        metadata.station_title,
        metadata.station_slug,
        metadata.station_titles,
        metadata.station_slugs,
    )


def matches_entry_show(entry: CatalogEntry, matchers: Sequence[Matcher]) -> bool:
    if not matchers:
        return True
    return _matches_any(matchers, _show_fields(entry.metadata, entry.show_title, entry.show_slug))


def matches_entry_station(entry: CatalogEntry, matchers: Sequence[Matcher]) -> bool:
    if not matchers:
        return True
    fields = _station_fields(
        entry.metadata,
        entry.station_title,
        entry.station_slug,
        entry.station_titles,
        entry.station_slugs,
    )
    return _matches_any(matchers, fields)


def metadata_matches_filters(metadata: Optional[ItemMetadata], config: Optional[FilterConfig]) -> bool:
    """Apply only the show and station matchers to raw metadata during sync."""

    if config is None:
        return True
    if config.show_matchers and not _matches_any(config.show_matchers, _show_fields(metadata)):
        return False
    if config.station_matchers and not _matches_any(
        config.station_matchers, _station_fields(metadata)
    ):
        return False
    return True


def filter_catalog_entries(
    entries: Iterable[CatalogEntry],
    raw: Union[FilterConfig, RawFilterInput, str, None],
) -> List[CatalogEntry]:
    """Apply the status, show, and station filters; each dimension must match."""

    config = build_filter_config(raw)
    result = filter_entries_by_status(entries, config.status)
    if config.show_matchers:
        result = [entry for entry in result if matches_entry_show(entry, config.show_matchers)]
    if config.station_matchers:
        result = [
            entry for entry in result if matches_entry_station(entry, config.station_matchers)
        ]
    return result


def describe_filter_summary(config: Optional[FilterConfig]) -> str:
    """Human-readable summary such as ``status=played | show~hard fork``."""

    if config is None:
        return ""
    parts = []
    if config.status and config.status != STATUS_ALL:
        parts.append(f"status={config.status}")
    if config.show_filters:
        parts.append(f"show~{' OR '.join(config.show_filters)}")
    if config.station_filters:
        parts.append(f"station~{' OR '.join(config.station_filters)}")
    return " | ".join(parts)
