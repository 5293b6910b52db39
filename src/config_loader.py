"""Configuration loader that parses and validates user-provided TOML."""

from __future__ import annotations

import tomllib
from dataclasses import fields, is_dataclass
from typing import Any, Dict

from src.datatypes import AppConfig, CatalogConfig, CLIConfig, PathsConfig, SyncConfig
from src.transcript_archive.filters import normalize_status_filter

_SELECT_STATUSES = {"all", "played", "unplayed", "inProgress"}


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or fails validation."""


def _coerce_bool(value: Any, dotted_key: str) -> bool:
    """Return a bool, coercing simple 0/1 representations when necessary."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"0", "1"}:
            return normalized == "1"
        if normalized in {"true", "false"}:
            return normalized == "true"
    raise ConfigError(f"{dotted_key} must be a boolean (use true/false).")


def _sanitize_section(raw: dict[str, Any], name: str, cls):
    """
    Coerce a raw TOML table into an instance of ``cls`` with cleaned booleans.

    Parameters:
        raw (dict[str, Any]): Raw TOML section data.
        name (str): Section name used when reporting validation errors.
        cls: Dataclass type used to construct the section object.

    Returns:
        Any: Instantiated dataclass populated with values from ``raw``.

    Raises:
        ConfigError: If the section is not a table or contains invalid keys or values.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    cleaned: Dict[str, Any] = {}
    cls_fields = {field.name: field for field in fields(cls)}
    bool_fields = {key for key, field in cls_fields.items() if field.type in (bool, "bool")}
    nested_fields = {
        key: field.type
        for key, field in cls_fields.items()
        if is_dataclass(field.type)
    }
    for key, value in raw.items():
        if key in bool_fields:
            cleaned[key] = _coerce_bool(value, f"{name}.{key}")
        elif key in nested_fields:
            if not isinstance(value, dict):
                raise ConfigError(f"[{name}.{key}] must be a table")
            cleaned[key] = _sanitize_section(value, f"{name}.{key}", nested_fields[key])
        else:
            cleaned[key] = value
    try:
        return cls(**cleaned)
    except TypeError as exc:
        raise ConfigError(f"Invalid keys in [{name}]: {exc}") from exc


def _require_positive_int(value: Any, dotted_key: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{dotted_key} must be a positive integer")


def parse_config_text(text: str) -> AppConfig:
    """Parse TOML text into a validated :class:`AppConfig`."""

    try:
        raw = tomllib.loads(text.lstrip("\ufeff"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse TOML: {exc}") from exc

    app = AppConfig(
        paths=_sanitize_section(raw.get("paths", {}), "paths", PathsConfig),
        catalog=_sanitize_section(raw.get("catalog", {}), "catalog", CatalogConfig),
        sync=_sanitize_section(raw.get("sync", {}), "sync", SyncConfig),
        cli=_sanitize_section(raw.get("cli", {}), "cli", CLIConfig),
    )

    for key in ("transcripts_dir", "ttml_cache_dir", "metadata_db"):
        value = getattr(app.paths, key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"paths.{key} must be a non-empty string")

    _require_positive_int(app.catalog.list_limit, "catalog.list_limit")
    _require_positive_int(app.catalog.select_page_size, "catalog.select_page_size")

    status = normalize_status_filter(app.catalog.default_select_status)
    if status not in _SELECT_STATUSES:
        raise ConfigError(
            "catalog.default_select_status must be one of: all, played, unplayed, in-progress"
        )
    app.catalog.default_select_status = status

    indent = app.cli.json_indent
    if isinstance(indent, bool) or not isinstance(indent, int) or indent < 0:
        raise ConfigError("cli.json_indent must be >= 0")

    return app


def load_config(path: str) -> AppConfig:
    """
    Load and validate an application configuration from a TOML file.

    Reads the file at `path` as UTF-8 TOML (a leading BOM is accepted), coerces every
    section into its dataclass, and validates limits and status defaults.

    Returns:
        AppConfig: The validated application configuration.

    Raises:
        FileNotFoundError: If `path` does not exist.
        ConfigError: If the file is not UTF-8, TOML parsing fails, or any validation rule is violated.
    """

    with open(path, "rb") as handle:
        raw_bytes = handle.read()
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        raw_bytes = raw_bytes[3:]
    try:
        text = raw_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError("Configuration file must be UTF-8 encoded") from exc
    return parse_config_text(text)
