from __future__ import annotations

from pathlib import Path

import pytest

import src.transcript_archive.preflight as preflight_module
from src.transcript_archive.cli_runtime import CLIAppError


def test_resolve_workspace_root_prefers_cli_over_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_root = tmp_path / "env"
    cli_root = tmp_path / "cli"
    monkeypatch.setenv(preflight_module.ROOT_ENV_VAR, str(env_root))

    assert preflight_module.resolve_workspace_root(str(cli_root)) == cli_root.resolve()
    assert preflight_module.resolve_workspace_root(None) == env_root.resolve()


def test_resolve_workspace_root_defaults_to_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(preflight_module.ROOT_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)

    assert preflight_module.resolve_workspace_root(None) == tmp_path.resolve()


def test_resolve_workspace_root_rejects_files(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(CLIAppError):
        preflight_module.resolve_workspace_root(str(target))


def test_resolve_data_path_anchors_relative_values(tmp_path: Path) -> None:
    assert preflight_module.resolve_data_path(tmp_path, "transcripts") == tmp_path / "transcripts"
    assert preflight_module.resolve_data_path(tmp_path, "/abs/ttml") == Path("/abs/ttml")
    assert preflight_module.resolve_data_path(tmp_path, "~/cache") == Path.home() / "cache"


def test_prepare_preflight_uses_config_paths(archive_root: Path) -> None:
    config_dir = archive_root / "config"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text(
        '[paths]\ntranscripts_dir = "out"\nttml_cache_dir = "cache"\n',
        encoding="utf-8",
    )

    result = preflight_module.prepare_preflight(cli_root=str(archive_root), config_override=None)

    assert result.config_found
    assert result.transcripts_dir == archive_root.resolve() / "out"
    assert result.ttml_cache_dir == archive_root.resolve() / "cache"
    assert result.warnings == []


def test_prepare_preflight_warns_for_missing_override(archive_root: Path) -> None:
    missing = archive_root / "nope.toml"

    result = preflight_module.prepare_preflight(cli_root=str(archive_root), config_override=str(missing))

    assert not result.config_found
    assert result.warnings == [f"Config file not found at {missing}; using defaults."]


def test_prepare_preflight_strict_config_errors(archive_root: Path) -> None:
    config_dir = archive_root / "config"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[sync]\ninclude_timestamps = 'sometimes'\n", encoding="utf-8")

    with pytest.raises(CLIAppError) as excinfo:
        preflight_module.prepare_preflight(cli_root=str(archive_root), config_override=None)
    assert excinfo.value.code == 2

    lenient = preflight_module.prepare_preflight(cli_root=str(archive_root), config_override=None, strict=False)
    assert lenient.warnings and lenient.warnings[0].startswith("Config parsing failed:")


def test_is_writable_path_walks_to_existing_parent(tmp_path: Path) -> None:
    assert preflight_module.is_writable_path(tmp_path / "a" / "b" / "c.json", for_file=True)
