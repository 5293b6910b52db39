"""
Durable per-identifier listening state.

The manifest lives next to the converted documents as
``.listening-status.json``. Reads never raise: a missing, unreadable, or
malformed file degrades to an empty manifest and a logged warning. Writes
replace the file atomically and let any ``OSError`` reach the caller.

Entries are never removed here. Identifiers that disappear from the live
metadata source keep their cached metadata so downstream flows can still
show titles and listening state for them.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

from src.transcript_archive.config_writer import write_text_atomic
from src.transcript_archive.formatters import utc_now_iso
from src.transcript_archive.models import (
    MANIFEST_VERSION,
    ItemMetadata,
    Manifest,
    ManifestEntry,
    normalize_render_options,
    normalize_source_info,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".listening-status.json"

__all__ = [
    "MANIFEST_FILENAME",
    "empty_manifest",
    "get_manifest_path",
    "load_manifest",
    "merge_cached_metadata_into_live",
    "save_manifest",
    "upsert_entry",
]


def get_manifest_path(root: Path) -> Path:
    return Path(root) / MANIFEST_FILENAME


def empty_manifest() -> Manifest:
    return Manifest(version=MANIFEST_VERSION, entries={}, updated_at=None)


def _parse_manifest(raw: Any) -> Optional[Manifest]:
    if not isinstance(raw, dict):
        return None
    entries_raw = raw.get("entries")
    if entries_raw is None:
        entries_raw = {}
    if not isinstance(entries_raw, dict):
        return None
    entries: Dict[str, ManifestEntry] = {}
    for identifier, record in entries_raw.items():
        if not isinstance(identifier, str) or not identifier:
            continue
        if not isinstance(record, dict):
            logger.debug("Skipping malformed manifest record for %s", identifier)
            continue
        entries[identifier] = ManifestEntry.from_record(identifier, record)
    updated_at = raw.get("updatedAt")
    return Manifest(
        version=MANIFEST_VERSION,
        entries=entries,
        updated_at=updated_at if isinstance(updated_at, str) else None,
    )


def load_manifest(root: Path) -> Manifest:
    """
    Read the manifest stored under ``root``.

    Parameters:
        root (Path): Directory that holds the converted documents.

    Returns:
        Manifest: The parsed manifest, or an empty one when the file is
        missing, blank, not valid JSON, or does not have the expected shape.
    """

    path = get_manifest_path(root)
    if not path.exists():
        return empty_manifest()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(
            "Unable to read listening status manifest at %s; continuing without cached statuses (%s)",
            path,
            exc,
        )
        return empty_manifest()
    if not text.strip():
        return empty_manifest()
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning(
            "Listening status manifest at %s is not valid JSON; continuing without cached statuses (%s)",
            path,
            exc,
        )
        return empty_manifest()
    manifest = _parse_manifest(raw)
    if manifest is None:
        logger.warning(
            "Listening status manifest at %s has an unexpected shape; continuing without cached statuses",
            path,
        )
        return empty_manifest()
    return manifest


def save_manifest(root: Path, manifest: Manifest, *, now: Optional[str] = None) -> Path:
    """Persist ``manifest`` under ``root`` and stamp its ``updatedAt``."""

    path = get_manifest_path(root)
    manifest.version = MANIFEST_VERSION
    manifest.updated_at = now or utc_now_iso()
    payload = json.dumps(manifest.to_record(), indent=2, ensure_ascii=False)
    write_text_atomic(path, f"{payload}\n")
    logger.debug("Saved %d manifest entries to %s", len(manifest.entries), path)
    return path


def _comparable(entry: Optional[ManifestEntry]) -> Dict[str, Any]:
    if entry is None:
        return {
            "metadata": None,
            "relativePath": None,
            "playState": None,
            "skipReason": None,
            "lastProcessedAt": None,
            "source": None,
            "renderOptions": None,
        }
    record = entry.to_record()
    record.pop("identifier", None)
    record.pop("lastUpdatedAt", None)
    return record


def upsert_entry(
    manifest: Manifest,
    identifier: str,
    *,
    metadata: Any = None,
    relative_path: Optional[str] = None,
    skip_reason: Optional[str] = None,
    processed: bool = False,
    source: Any = None,
    render_options: Any = None,
    now: Optional[str] = None,
) -> bool:
    """
    Create or update the entry for ``identifier``.

    The candidate entry keeps the existing metadata and relative path unless
    new ones are supplied, takes its play state from the metadata's listening
    status when one is present, and only advances ``lastProcessedAt`` when
    ``processed`` is true. Nothing is written unless the candidate differs
    from the stored entry, in which case ``lastUpdatedAt`` is stamped.

    Returns:
        bool: ``True`` when the manifest changed.
    """

    if not identifier:
        return False
    timestamp = now or utc_now_iso()
    existing = manifest.entries.get(identifier)

    next_metadata = ItemMetadata.from_mapping(metadata) if metadata is not None else None
    if next_metadata is None and existing is not None:
        next_metadata = copy.deepcopy(existing.metadata)

    if isinstance(relative_path, str):
        next_relative = relative_path
    else:
        next_relative = existing.relative_path if existing is not None else None

    status = next_metadata.listening_status if next_metadata is not None else None
    if status is not None:
        next_play_state = status.play_state
    else:
        next_play_state = existing.play_state if existing is not None else None

    if processed:
        next_processed = timestamp
    else:
        next_processed = existing.last_processed_at if existing is not None else None

    candidate = ManifestEntry(
        identifier=identifier,
        metadata=next_metadata,
        relative_path=next_relative,
        play_state=next_play_state,
        skip_reason=skip_reason or None,
        last_processed_at=next_processed,
        source=normalize_source_info(source),
        render_options=normalize_render_options(render_options),
    )
    if _comparable(candidate) == _comparable(existing):
        return False
    candidate.last_updated_at = timestamp
    manifest.entries[identifier] = candidate
    logger.debug("Manifest entry %s updated", identifier)
    return True


def merge_cached_metadata_into_live(
    manifest: Manifest,
    live: MutableMapping[str, ItemMetadata],
) -> List[str]:
    """
    Add cached metadata to ``live`` for every identifier it does not report.

    Each injected value is a deep copy so later mutation of the live map
    cannot alter the manifest.

    Returns:
        list[str]: Identifiers that were injected, in manifest order.
    """

    injected: List[str] = []
    for identifier, entry in manifest.entries.items():
        if entry.metadata is None or identifier in live:
            continue
        live[identifier] = copy.deepcopy(entry.metadata)
        injected.append(identifier)
    if injected:
        logger.debug("Injected cached metadata for %d retained entries", len(injected))
    return injected
