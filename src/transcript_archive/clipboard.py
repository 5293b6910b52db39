"""Clipboard access through pyperclip."""

from __future__ import annotations

import logging
from pathlib import Path

import pyperclip

logger = logging.getLogger(__name__)

__all__ = ["ClipboardError", "clipboard_available", "copy_file_to_clipboard", "copy_text"]


class ClipboardError(RuntimeError):
    """Raised when no clipboard backend accepted the text."""


def copy_text(text: str) -> None:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as exc:
        raise ClipboardError(str(exc) or "No clipboard mechanism available") from exc


def copy_file_to_clipboard(path: Path) -> str:
    """Copy the UTF-8 contents of ``path`` and return them."""

    content = Path(path).read_text(encoding="utf-8")
    copy_text(content)
    logger.debug("Copied %d characters from %s", len(content), path)
    return content


def clipboard_available() -> tuple[bool, str]:
    """Probe the active pyperclip backend without changing the clipboard."""

    try:
        pyperclip.paste()
    except pyperclip.PyperclipException as exc:
        return False, str(exc) or "No clipboard mechanism available"
    return True, "Clipboard backend available."
