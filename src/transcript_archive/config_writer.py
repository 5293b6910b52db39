"""Template and atomic file-writing helpers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from src.config_paths import DEFAULT_CONFIG_TEMPLATE_PATH

__all__ = [
    "read_template_text",
    "write_text_atomic",
    "write_default_config",
]


def read_template_text() -> str:
    """Return the config template text, preserving existing comments."""

    return DEFAULT_CONFIG_TEMPLATE_PATH.read_text(encoding="utf-8")


def write_text_atomic(path: Path, content: str) -> None:
    """Atomically write ``content`` to ``path`` with UTF-8 encoding."""

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            delete=False,
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


def write_default_config(path: Path, *, overwrite: bool = False) -> bool:
    """
    Copy the packaged template to ``path``.

    Returns ``False`` without touching the file when it already exists and
    ``overwrite`` is not set.
    """

    if path.exists() and not overwrite:
        return False
    write_text_atomic(path, read_template_text())
    return True
