"""Common configuration path helpers shared across the CLI and utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Final

_DATA_DIR: Final[Path] = Path(__file__).resolve().parent / "data"

DEFAULT_CONFIG_TEMPLATE_PATH: Final[Path] = _DATA_DIR / "config.toml.template"
"""Path to the packaged configuration template."""

CONFIG_RELATIVE_PATH: Final[Path] = Path("config") / "config.toml"
"""Location of the workspace config relative to the archive root."""

__all__ = [
    "CONFIG_RELATIVE_PATH",
    "DEFAULT_CONFIG_TEMPLATE_PATH",
]
