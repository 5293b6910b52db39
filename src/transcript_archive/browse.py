"""Browsing flows shared by the ``list``, ``copy``, and ``select`` commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import click
from rich.markup import escape

from src.transcript_archive.catalog import (
    build_catalog_entries,
    find_catalog_entry,
    serialize_catalog_entry,
    sort_catalog_entries,
)
from src.transcript_archive.cli_runtime import CLIAppError, CliOutput, TranscriptNotMaterializedError
from src.transcript_archive.clipboard import ClipboardError, copy_file_to_clipboard
from src.transcript_archive.filters import (
    FilterConfig,
    describe_filter_summary,
    filter_catalog_entries,
)
from src.transcript_archive.manifest_store import load_manifest
from src.transcript_archive.metadata_provider import MetadataProvider
from src.transcript_archive.models import CatalogEntry, ItemMetadata, Manifest
from src.transcript_archive.output_format import (
    build_list_payload,
    build_list_table,
    describe_empty_result,
    dumps_payload,
    format_status_line,
)
from src.transcript_archive.pagination import paginate
from src.transcript_archive.terminal import run_interactive_selector

logger = logging.getLogger(__name__)

Selector = Callable[..., Optional[CatalogEntry]]

__all__ = [
    "CatalogView",
    "copy_entry",
    "ensure_station_metadata",
    "load_catalog_view",
    "run_copy",
    "run_list",
    "run_select",
]


@dataclass(frozen=True)
class CatalogView:
    """Sorted catalog plus the subset that passed the active filters."""

    catalog: List[CatalogEntry]
    entries: List[CatalogEntry]
    filters: FilterConfig

    @property
    def summary(self) -> str:
        return describe_filter_summary(self.filters)


def ensure_station_metadata(
    manifest: Manifest,
    provider: Optional[MetadataProvider],
    filters: FilterConfig,
) -> int:
    """
    Backfill station titles for entries that lack them when a station filter is active.

    The refreshed metadata is kept in memory only. An existing listening
    status survives when the provider does not report one.

    Returns:
        int: Number of entries that received metadata.
    """

    if provider is None or not filters.station_filters:
        return 0
    missing = [
        identifier
        for identifier, entry in manifest.entries.items()
        if entry.metadata is None or not any(title.strip() for title in entry.metadata.station_titles)
    ]
    if not missing:
        return 0
    fetched = provider.fetch(missing)
    updated = 0
    for identifier, metadata in fetched.items():
        entry = manifest.entries.get(identifier)
        if entry is None:
            continue
        refreshed = ItemMetadata.from_mapping(metadata)
        if refreshed is None:
            continue
        if refreshed.listening_status is None and entry.metadata is not None:
            refreshed.listening_status = entry.metadata.listening_status
        entry.metadata = refreshed
        updated += 1
    logger.debug("Backfilled station metadata for %d entries", updated)
    return updated


def load_catalog_view(
    transcripts_dir: Path,
    filters: FilterConfig,
    *,
    provider: Optional[MetadataProvider] = None,
) -> CatalogView:
    manifest = load_manifest(transcripts_dir)
    ensure_station_metadata(manifest, provider, filters)
    catalog = sort_catalog_entries(build_catalog_entries(manifest, transcripts_dir))
    return CatalogView(
        catalog=catalog,
        entries=filter_catalog_entries(catalog, filters),
        filters=filters,
    )


def run_list(
    view: CatalogView,
    output: CliOutput,
    *,
    page: object = 1,
    limit: object = None,
    default_limit: int,
    json_mode: bool = False,
    json_indent: int = 2,
) -> None:
    """Print one page of the filtered catalog as a table or JSON."""

    summary = view.summary
    result = paginate(view.entries, page, limit, default_limit=default_limit)
    if json_mode:
        payload = build_list_payload(
            result,
            filter_summary=summary,
            status=view.filters.status,
            serialize=serialize_catalog_entry,
        )
        if not view.entries:
            payload["message"] = describe_empty_result(len(view.catalog), summary)
        click.echo(dumps_payload(payload, json_indent))
        return

    if not view.entries:
        output.console.print(f"[INFO] {escape(describe_empty_result(len(view.catalog), summary))}")
        return
    output.console.print(build_list_table(result))
    output.console.print(escape(format_status_line(result, summary)), highlight=False)


def copy_entry(
    entry: CatalogEntry,
    output: CliOutput,
    *,
    print_content: bool = False,
    confirm_print: Optional[Callable[[], bool]] = None,
) -> Optional[str]:
    """
    Copy the entry's document to the clipboard, falling back to printing it.

    When the clipboard fails the path is shown; the document is printed if
    ``print_content`` is set or ``confirm_print`` returns true.
    """

    if entry.absolute_path is None or not entry.has_markdown:
        raise TranscriptNotMaterializedError(entry.location)

    content: Optional[str] = None
    try:
        content = copy_file_to_clipboard(entry.absolute_path)
    except ClipboardError as exc:
        output.warn(f"Clipboard copy failed: {exc}")
        output.console.print(f"📄 Transcript path: {escape(str(entry.absolute_path))}", highlight=False)
        if not print_content and confirm_print is not None:
            print_content = confirm_print()
        if not print_content:
            output.console.print("Hint: re-run with --print to dump the Markdown for manual copy.")
    except OSError as exc:
        raise CLIAppError(f"Unable to read {entry.absolute_path}: {exc}") from exc
    else:
        output.console.print(f"📋 Copied transcript to clipboard: {escape(entry.location)}", highlight=False)

    if print_content:
        if content is None:
            content = entry.absolute_path.read_text(encoding="utf-8")
        click.echo(content, nl=not content.endswith("\n"))
    return content


def run_copy(view: CatalogView, key: str, output: CliOutput, *, print_content: bool = False) -> CatalogEntry:
    if not view.catalog:
        raise CLIAppError(
            "No transcripts indexed. Verify the Apple Podcasts cache is available and run 'sync'."
        )
    target = find_catalog_entry(view.catalog, key)
    if target is None:
        raise CLIAppError(f'Unable to find a transcript matching "{key}".')
    copy_entry(target, output, print_content=print_content)
    return target


def run_select(
    view: CatalogView,
    output: CliOutput,
    *,
    page_size: object,
    selector: Selector = run_interactive_selector,
    confirm_print: Optional[Callable[[], bool]] = None,
) -> Optional[CatalogEntry]:
    """Drive the picker and copy the chosen document; ``None`` means cancelled."""

    if not view.entries:
        output.console.print(f"[INFO] {escape(describe_empty_result(len(view.catalog), view.summary))}")
        return None
    chosen = selector(view.entries, page_size=page_size, filter_summary=view.summary)
    if chosen is None:
        logger.debug("Selection cancelled")
        return None
    copy_entry(chosen, output, confirm_print=confirm_print)
    return chosen
