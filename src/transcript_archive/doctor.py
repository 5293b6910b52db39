"""Readiness checks for the TTML cache, metadata database, manifest, and clipboard."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Callable, Final, Literal, TypedDict

import click

from src.transcript_archive.clipboard import clipboard_available
from src.transcript_archive.manifest_store import get_manifest_path, load_manifest
from src.transcript_archive.preflight import PreflightResult, is_writable_path

DoctorStatus = Literal["pass", "fail", "warn"]


class DoctorCheck(TypedDict):
    """Structured result for a single readiness check."""

    id: str
    label: str
    status: DoctorStatus
    message: str


_DOCTOR_STATUS_ICONS: Final[dict[DoctorStatus, str]] = {
    "pass": "✅",
    "fail": "❌",
    "warn": "⚠️",
}


def _check_metadata_db(path: Path) -> tuple[DoctorStatus, str]:
    if not path.is_file():
        return "warn", f"Metadata database not found at {path}; sync will use fallback metadata."
    try:
        connection = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        try:
            connection.execute("SELECT 1 FROM ZMTEPISODE LIMIT 1").fetchall()
        finally:
            connection.close()
    except sqlite3.Error as exc:
        return "fail", f"Unable to query {path}: {exc}"
    return "pass", f"{path} is readable."


def collect_checks(
    preflight: PreflightResult,
    *,
    clipboard_probe: Callable[[], tuple[bool, str]] = clipboard_available,
) -> tuple[list[DoctorCheck], list[str]]:
    """Generate doctor check results and auxiliary notes."""

    notes: list[str] = list(preflight.warnings)
    missing_note = f"Config file not found at {preflight.config_path}; using defaults."
    if not preflight.config_found and missing_note not in notes:
        notes.append(missing_note)

    checks: list[DoctorCheck] = []

    cache_dir = preflight.ttml_cache_dir
    if cache_dir.is_dir():
        count = sum(1 for _ in cache_dir.rglob("*.ttml"))
        cache_status: DoctorStatus = "pass" if count else "warn"
        cache_message = f"{count} TTML file(s) under {cache_dir}."
    else:
        cache_status = "fail"
        cache_message = f"TTML directory not found at {cache_dir}. Set [paths].ttml_cache_dir."
    checks.append({
        "id": "ttml_cache",
        "label": "TTML cache",
        "status": cache_status,
        "message": cache_message,
    })

    db_status, db_message = _check_metadata_db(preflight.metadata_db)
    checks.append({
        "id": "metadata_db",
        "label": "Metadata database",
        "status": db_status,
        "message": db_message,
    })

    transcripts_dir = preflight.transcripts_dir
    if is_writable_path(transcripts_dir, for_file=False):
        dir_status: DoctorStatus = "pass"
        dir_message = f"{transcripts_dir} is writable."
    else:
        dir_status = "fail"
        dir_message = f"{transcripts_dir} is not writable. Choose another --root or adjust permissions."
    checks.append({
        "id": "transcripts_dir",
        "label": "Transcripts directory",
        "status": dir_status,
        "message": dir_message,
    })

    manifest_path = get_manifest_path(transcripts_dir)
    if manifest_path.exists():
        manifest = load_manifest(transcripts_dir)
        if manifest.entries:
            manifest_status: DoctorStatus = "pass"
            manifest_message = f"{len(manifest.entries)} entr(ies) in {manifest_path}."
        else:
            manifest_status = "warn"
            manifest_message = f"{manifest_path} is empty or unreadable."
    else:
        manifest_status = "warn"
        manifest_message = "No listening status manifest yet. Run 'sync' to create it."
    checks.append({
        "id": "manifest",
        "label": "Listening status manifest",
        "status": manifest_status,
        "message": manifest_message,
    })

    clip_ok, clip_message = clipboard_probe()
    checks.append({
        "id": "pyperclip",
        "label": "Clipboard helper",
        "status": "pass" if clip_ok else "warn",
        "message": clip_message if clip_ok else f"{clip_message}. Use 'copy --print' instead.",
    })

    return checks, notes


def emit_results(
    checks: Sequence[DoctorCheck],
    notes: Sequence[str],
    *,
    json_mode: bool,
    workspace_root: Path,
    config_path: Path,
) -> None:
    """Render doctor results either as text or JSON payload."""

    if json_mode:
        payload = {
            "workspace_root": str(workspace_root),
            "config_path": str(config_path),
            "checks": list(checks),
            "notes": list(notes),
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if checks:
        width = max(len(check["label"]) for check in checks)
    else:
        width = 0
    for check in checks:
        icon = _DOCTOR_STATUS_ICONS.get(check["status"], "•")
        label = check["label"].ljust(width)
        click.echo(f"{icon} {label} : {check['message']}")
    if notes:
        click.echo("Notes:")
        for note in notes:
            click.echo(f"  - {note}")


__all__ = ["DoctorCheck", "DoctorStatus", "collect_checks", "emit_results"]
