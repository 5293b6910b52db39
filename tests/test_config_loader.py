from __future__ import annotations

from pathlib import Path

import pytest

from src.config_loader import ConfigError, _sanitize_section, load_config, parse_config_text
from src.datatypes import AppConfig, SyncConfig
from src.transcript_archive.config_writer import read_template_text, write_default_config


def test_template_parses_to_defaults() -> None:
    config = parse_config_text(read_template_text())

    assert config == AppConfig()


def test_sanitize_section_coerces_booleans() -> None:
    section = _sanitize_section({"include_timestamps": "0"}, "sync", SyncConfig)

    assert section == SyncConfig(include_timestamps=False)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[paths]\nunknown = 1\n", "Invalid keys in [paths]"),
        ("paths = 3\n", "[paths] must be a table"),
        ("[sync]\ninclude_timestamps = 'maybe'\n", "sync.include_timestamps must be a boolean"),
        ("[catalog]\nlist_limit = 0\n", "catalog.list_limit must be a positive integer"),
        ("[catalog]\nselect_page_size = true\n", "catalog.select_page_size must be a positive integer"),
        ("[catalog]\ndefault_select_status = 'sideways'\n", "catalog.default_select_status"),
        ("[paths]\ntranscripts_dir = ''\n", "paths.transcripts_dir must be a non-empty string"),
        ("[cli]\njson_indent = -1\n", "cli.json_indent must be >= 0"),
        ("[paths\n", "Failed to parse TOML"),
    ],
)
def test_parse_config_text_rejects_invalid_values(text: str, message: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        parse_config_text(text)

    assert message in str(excinfo.value)


def test_status_alias_is_canonicalized() -> None:
    config = parse_config_text("[catalog]\ndefault_select_status = 'In-Progress'\n")

    assert config.catalog.default_select_status == "inProgress"


def test_load_config_accepts_bom(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_bytes(b"\xef\xbb\xbf[catalog]\nlist_limit = 5\n")

    assert load_config(str(path)).catalog.list_limit == 5


def test_load_config_rejects_non_utf8(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_bytes(b"[paths]\ntranscripts_dir = \"\xff\"\n")

    with pytest.raises(ConfigError, match="UTF-8"):
        load_config(str(path))


def test_write_default_config_respects_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "config" / "config.toml"

    assert write_default_config(target) is True
    target.write_text("[catalog]\nlist_limit = 3\n", encoding="utf-8")
    assert write_default_config(target) is False
    assert load_config(str(target)).catalog.list_limit == 3

    assert write_default_config(target, overwrite=True) is True
    assert load_config(str(target)) == AppConfig()
