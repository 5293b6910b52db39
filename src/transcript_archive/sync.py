"""
Synchronization pass: TTML cache -> Markdown documents + manifest.

One pass discovers cached ``.ttml`` files, looks up live metadata for them,
fills gaps from the manifest's cached metadata, converts each file, and
upserts one manifest entry per converted item. The manifest is saved only
when at least one entry changed.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence

from src.transcript_archive.cli_runtime import CLIAppError, CliOutput
from src.transcript_archive.config_writer import write_text_atomic
from src.transcript_archive.converter import ConversionError, convert_ttml_to_markdown
from src.transcript_archive.filters import (
    FilterConfig,
    describe_filter_summary,
    metadata_matches_filters,
)
from src.transcript_archive.formatters import (
    UNKNOWN_DATE,
    format_slug_as_title,
    slugify,
    truncate_slug,
)
from src.transcript_archive.manifest_store import (
    get_manifest_path,
    load_manifest,
    merge_cached_metadata_into_live,
    save_manifest,
    upsert_entry,
)
from src.transcript_archive.metadata_provider import EPISODE_SLUG_LENGTH, MetadataProvider
from src.transcript_archive.models import PLAYED, ItemMetadata, Manifest, RenderOptions, SourceInfo
from src.transcript_archive.output_format import format_episode_log_line

logger = logging.getLogger(__name__)

TTML_SUFFIX = ".ttml"
_GENERIC_DIRECTORIES = {"", "transcripts", "played", "summaries"}

__all__ = [
    "SyncSummary",
    "TtmlFile",
    "build_fallback_metadata",
    "convert_single_file",
    "find_ttml_files",
    "identifier_from_relative_path",
    "run_sync",
]


@dataclass(frozen=True)
class TtmlFile:
    path: Path
    identifier: str
    mtime_ms: float
    size: int


@dataclass
class SyncSummary:
    processed: int = 0
    played: int = 0
    unplayed: int = 0
    fallback: int = 0
    failed: int = 0
    retained: int = 0
    manifest_saved: bool = False
    messages: List[str] = field(default_factory=list)

    def describe(self) -> str:
        parts = [
            f"processed={self.processed}",
            f"played={self.played}",
            f"unplayed={self.unplayed}",
        ]
        if self.fallback:
            parts.append(f"fallback={self.fallback}")
        if self.failed:
            parts.append(f"failed={self.failed}")
        return " | ".join(parts)


def identifier_from_relative_path(relative: str) -> str:
    """Cache-relative path with ``/`` separators, truncated after ``.ttml``."""

    normalized = relative.replace(os.sep, "/").replace("\\", "/")
    index = normalized.find(TTML_SUFFIX)
    if index == -1:
        return normalized
    return normalized[: index + len(TTML_SUFFIX)]


def find_ttml_files(cache_dir: Path) -> List[TtmlFile]:
    """Recursively list ``*.ttml`` files below ``cache_dir`` in a stable order."""

    results: List[TtmlFile] = []
    for path in sorted(cache_dir.rglob(f"*{TTML_SUFFIX}")):
        if not path.is_file():
            continue
        stat = path.stat()
        results.append(
            TtmlFile(
                path=path,
                identifier=identifier_from_relative_path(str(path.relative_to(cache_dir))),
                mtime_ms=stat.st_mtime * 1000,
                size=stat.st_size,
            )
        )
    return results


def build_fallback_metadata(
    show_slug: Optional[str],
    episode_title: Optional[str],
    date_segment: Optional[str],
    episode_slug: Optional[str],
) -> ItemMetadata:
    """Metadata for items the provider knows nothing about."""

    show_slug = show_slug or "unknown-show"
    date_segment = date_segment or UNKNOWN_DATE
    episode_slug = episode_slug or "episode"
    return ItemMetadata(
        show_title=format_slug_as_title(show_slug) or "Unknown show",
        episode_title=episode_title or "unknown episode",
        pub_date=date_segment,
        show_slug=show_slug,
        episode_slug=episode_slug,
        base_file_name=f"{show_slug}_{date_segment}_{episode_slug}",
        episode_description_html="",
        episode_description_text="",
    )


def _display_show_title(metadata: Optional[ItemMetadata]) -> str:
    if metadata is None:
        return ""
    if metadata.show_title and metadata.show_title != "unknown show":
        return metadata.show_title
    if metadata.show_slug:
        return format_slug_as_title(metadata.show_slug)
    return ""


def _processing_order(files: Sequence[TtmlFile], live: Dict[str, ItemMetadata]) -> List[TtmlFile]:
    def key(item: TtmlFile):
        metadata = live.get(item.identifier)
        date = "9999-12-31"
        if metadata is not None and metadata.pub_date and metadata.pub_date != UNKNOWN_DATE:
            date = metadata.pub_date
        return (date, _display_show_title(metadata).lower(), item.identifier)

    return sorted(files, key=key)


class _OutputPlanner:
    """
    Assigns document paths for one pass.

    An identifier keeps the path recorded in the manifest while its
    directory still matches its played state. Every recorded path stays
    reserved for its owner, so ``-n`` suffixes never land on the document
    of another (possibly retained) entry.
    """

    def __init__(self, transcripts_dir: Path, manifest: Manifest) -> None:
        self.transcripts_dir = transcripts_dir
        self._recorded: Dict[str, str] = {}
        self._owners: Dict[str, str] = {}
        for identifier, entry in manifest.entries.items():
            if entry.relative_path:
                relative = PurePosixPath(entry.relative_path.replace("\\", "/")).as_posix()
                self._recorded[identifier] = relative
                self._owners.setdefault(relative, identifier)

    def previous(self, identifier: str) -> Optional[Path]:
        relative = self._recorded.get(identifier)
        if relative is None or self._owners.get(relative) != identifier:
            return None
        return self.transcripts_dir / relative

    def _available(self, relative: str, identifier: str) -> bool:
        return self._owners.get(relative, identifier) == identifier

    def resolve(
        self,
        identifier: str,
        show_slug: str,
        date_segment: str,
        episode_slug: str,
        played: bool,
    ) -> Path:
        base_name = f"{show_slug}_{date_segment}_{episode_slug}"
        scope = PurePosixPath(show_slug, "played") if played else PurePosixPath(show_slug)

        recorded = self._recorded.get(identifier)
        if recorded is not None:
            path = PurePosixPath(recorded)
            if (
                self._owners.get(recorded) == identifier
                and path.parent == scope
                and re.fullmatch(rf"{re.escape(base_name)}(-\d+)?", path.stem)
            ):
                return self.transcripts_dir / recorded

        count = 0
        while True:
            suffix = f"-{count}" if count else ""
            relative = (scope / f"{base_name}{suffix}.md").as_posix()
            if self._available(relative, identifier):
                break
            count += 1
        if recorded is not None and self._owners.get(recorded) == identifier:
            del self._owners[recorded]
        self._owners[relative] = identifier
        self._recorded[identifier] = relative
        return self.transcripts_dir / relative


def _relocate_document(previous: Optional[Path], target: Path) -> None:
    """Move the previously recorded document to ``target``."""

    if previous is None or previous == target or not previous.is_file():
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    os.replace(previous, target)
    logger.debug("Moved %s -> %s", previous, target)


def run_sync(
    *,
    transcripts_dir: Path,
    ttml_cache_dir: Path,
    provider: MetadataProvider,
    filters: Optional[FilterConfig] = None,
    include_timestamps: bool = True,
    output: Optional[CliOutput] = None,
) -> SyncSummary:
    """
    Convert every cached transcript and record the results in the manifest.

    Raises:
        CLIAppError: If the TTML cache directory does not exist.
        OSError: If the manifest cannot be written.
    """

    output = output or CliOutput(quiet=True)
    if not ttml_cache_dir.is_dir():
        raise CLIAppError(
            f"TTML directory not found at {ttml_cache_dir}",
            rich_message=f"[red]TTML directory not found at[/] {ttml_cache_dir}",
        )

    output.verbose_line("Scanning TTML cache...")
    files = find_ttml_files(ttml_cache_dir)
    output.line(f"Found {len(files)} TTML file(s)")

    identifiers = [item.identifier for item in files]
    live = provider.fetch(identifiers)
    manifest = load_manifest(transcripts_dir)
    injected = merge_cached_metadata_into_live(manifest, live)
    logger.debug("Reused cached metadata for %d identifier(s)", len(injected))

    ordered = _processing_order(files, live)
    summary = SyncSummary()
    if filters is not None and (filters.show_matchers or filters.station_matchers):
        allowed = [item for item in ordered if metadata_matches_filters(live.get(item.identifier), filters)]
        skipped = len(ordered) - len(allowed)
        label = describe_filter_summary(filters) or "provided filters"
        if not allowed:
            summary.messages.append(f"No TTML files matched filters ({label}).")
            return summary
        without_metadata = sum(
            1 for item in ordered if item not in allowed and item.identifier not in live
        )
        detail = f"matched {len(allowed)}"
        if skipped:
            detail += f" | skipped {skipped}"
            if without_metadata:
                detail += f" ({without_metadata} without metadata)"
        output.line(f"Filters ({label}) → {detail}")
        ordered = allowed

    planner = _OutputPlanner(transcripts_dir, manifest)
    changed = False
    render_options = RenderOptions(include_timestamps=include_timestamps)

    with output.progress() as progress:
        task = progress.add_task("Syncing transcripts", total=len(ordered), detail="")
        for item in ordered:
            metadata = live.get(item.identifier)
            show_slug = slugify(metadata.show_title if metadata else None, "unknown-show")
            raw_episode_title = (
                metadata.episode_title if metadata else Path(item.identifier).name[: -len(TTML_SUFFIX)]
            )
            episode_slug = truncate_slug(slugify(raw_episode_title, "episode"), EPISODE_SLUG_LENGTH)
            date_segment = metadata.pub_date if metadata and metadata.pub_date else UNKNOWN_DATE
            status = metadata.listening_status if metadata else None
            played = status is not None and status.play_state == PLAYED

            try:
                ttml = item.path.read_text(encoding="utf-8")
                markdown = convert_ttml_to_markdown(
                    ttml,
                    metadata,
                    include_timestamps=include_timestamps,
                    fallback_show_slug=show_slug,
                    fallback_date=date_segment,
                )
            except (OSError, UnicodeDecodeError, ConversionError) as exc:
                logger.warning("Skipping %s: %s", item.path, exc)
                summary.failed += 1
                progress.advance(task)
                continue

            previous = planner.previous(item.identifier)
            target = planner.resolve(item.identifier, show_slug, date_segment, episode_slug, played)
            _relocate_document(previous, target)
            write_text_atomic(target, markdown)
            relative = target.relative_to(transcripts_dir).as_posix()

            used_fallback = metadata is None
            manifest_metadata = metadata or build_fallback_metadata(
                show_slug, raw_episode_title, date_segment, episode_slug
            )
            changed = (
                upsert_entry(
                    manifest,
                    item.identifier,
                    metadata=manifest_metadata,
                    relative_path=relative,
                    processed=True,
                    source=SourceInfo(mtime_ms=item.mtime_ms, size=item.size),
                    render_options=render_options,
                )
                or changed
            )

            summary.processed += 1
            if played:
                summary.played += 1
            else:
                summary.unplayed += 1
            if used_fallback:
                summary.fallback += 1

            show_title = _display_show_title(metadata) or format_slug_as_title(show_slug)
            episode_title = metadata.episode_title if metadata and metadata.episode_title else raw_episode_title
            progress.update(task, advance=1, detail=f"{show_title} - {episode_title}")
            if not output.interactive:
                output.plain(
                    format_episode_log_line(
                        action="Saved",
                        play_state=status.play_state if status else None,
                        show_title=show_title,
                        episode_title=episode_title,
                        pub_date=date_segment,
                        used_fallback=used_fallback,
                    )
                )

    seen = set(identifiers)
    summary.retained = sum(1 for identifier in manifest.entries if identifier not in seen)
    if summary.retained:
        summary.messages.append(
            f"Retained {summary.retained} manifest transcript(s) missing from cache."
        )
    if changed:
        save_manifest(transcripts_dir, manifest)
        summary.manifest_saved = True
        summary.messages.append(
            f"Updated listening status manifest at {get_manifest_path(transcripts_dir)}"
        )
    logger.info("Sync finished: %s", summary.describe())
    return summary


def _fallback_context(output_path: Path) -> tuple[str, str]:
    parts = output_path.stem.split("_")
    if parts and parts[0] == "played" and len(parts) >= 4:
        parts = parts[1:]
    parsed_show = parts[0] if parts and parts[0] else "unknown-show"
    date_segment = parts[1] if len(parts) > 1 else ""
    directory = output_path.parent.name
    show_slug = parsed_show if directory in _GENERIC_DIRECTORIES else directory
    return show_slug, date_segment


def convert_single_file(input_path: Path, output_path: Path, *, include_timestamps: bool = True) -> Path:
    """Convert one TTML file to Markdown without touching the manifest."""

    try:
        ttml = input_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIAppError(f"Unable to read {input_path}: {exc}") from exc
    show_slug, date_segment = _fallback_context(output_path)
    try:
        markdown = convert_ttml_to_markdown(
            ttml,
            None,
            include_timestamps=include_timestamps,
            fallback_show_slug=show_slug,
            fallback_date=date_segment or None,
        )
    except ConversionError as exc:
        raise CLIAppError(str(exc)) from exc
    try:
        write_text_atomic(output_path, markdown)
    except OSError as exc:
        raise CLIAppError(f"Unable to write {output_path}: {exc}") from exc
    return output_path
