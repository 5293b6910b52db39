"""Workspace root, config path, and data directory resolution."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, List, Optional

from rich.markup import escape

from src.config_loader import ConfigError, load_config
from src.config_paths import CONFIG_RELATIVE_PATH
from src.datatypes import AppConfig
from src.transcript_archive.cli_runtime import CLIAppError

logger = logging.getLogger(__name__)

ROOT_ENV_VAR: Final[str] = "TRANSCRIPT_ARCHIVE_ROOT"

__all__ = [
    "PreflightResult",
    "ROOT_ENV_VAR",
    "is_writable_path",
    "prepare_preflight",
    "resolve_config_path",
    "resolve_data_path",
    "resolve_workspace_root",
]


@dataclass
class PreflightResult:
    """Resolved locations and configuration for one CLI invocation."""

    workspace_root: Path
    config_path: Path
    config: AppConfig
    transcripts_dir: Path
    ttml_cache_dir: Path
    metadata_db: Path
    config_found: bool = True
    warnings: List[str] = field(default_factory=list)


def resolve_workspace_root(cli_root: Optional[str]) -> Path:
    """
    Return the archive root from ``--root``, the environment, or the current directory.

    Raises:
        CLIAppError: If the chosen root exists but is not a directory.
    """

    raw = cli_root or os.environ.get(ROOT_ENV_VAR) or ""
    root = Path(raw).expanduser() if raw else Path.cwd()
    root = root.resolve()
    if root.exists() and not root.is_dir():
        raise CLIAppError(
            f"Workspace root {root} is not a directory",
            rich_message=f"[red]Workspace root is not a directory:[/] {escape(str(root))}",
        )
    return root


def resolve_config_path(root: Path, config_override: Optional[str]) -> Path:
    if config_override:
        return Path(config_override).expanduser()
    return root / CONFIG_RELATIVE_PATH


def resolve_data_path(root: Path, value: str) -> Path:
    """Expand ``~`` and anchor relative paths at ``root``."""

    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path


def is_writable_path(path: Path, *, for_file: bool) -> bool:
    """Whether ``path`` (or its nearest existing ancestor) accepts writes."""

    target = path.parent if for_file else path
    while not target.exists():
        if target.parent == target:
            return False
        target = target.parent
    return os.access(target, os.W_OK)


def prepare_preflight(
    *,
    cli_root: Optional[str],
    config_override: Optional[str],
    strict: bool = True,
) -> PreflightResult:
    """
    Resolve the workspace and load its configuration.

    A missing config file falls back to defaults. A malformed one is fatal
    unless ``strict`` is false, in which case defaults are used and the
    problem is recorded in ``warnings``.
    """

    root = resolve_workspace_root(cli_root)
    config_path = resolve_config_path(root, config_override)
    warnings: List[str] = []
    config_found = True
    try:
        config = load_config(str(config_path))
    except FileNotFoundError:
        config_found = False
        config = AppConfig()
        if config_override:
            warnings.append(f"Config file not found at {config_path}; using defaults.")
        logger.debug("No config at %s; using defaults", config_path)
    except ConfigError as exc:
        if not strict:
            config = AppConfig()
            warnings.append(f"Config parsing failed: {exc}")
        else:
            raise CLIAppError(
                f"Config error in {config_path}: {exc}",
                code=2,
                rich_message=f"[red]Config error in {escape(str(config_path))}:[/] {escape(str(exc))}",
            ) from exc

    return PreflightResult(
        workspace_root=root,
        config_path=config_path,
        config=config,
        transcripts_dir=resolve_data_path(root, config.paths.transcripts_dir),
        ttml_cache_dir=resolve_data_path(root, config.paths.ttml_cache_dir),
        metadata_db=resolve_data_path(root, config.paths.metadata_db),
        config_found=config_found,
        warnings=warnings,
    )
