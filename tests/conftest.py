from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from tests.helpers.archive import FakeProvider


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click runner configured for CLI smoke tests."""

    return CliRunner()


@pytest.fixture
def archive_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Workspace root with an empty transcripts directory and no config file."""

    monkeypatch.delenv("TRANSCRIPT_ARCHIVE_ROOT", raising=False)
    (tmp_path / "transcripts").mkdir()
    return tmp_path


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clipboard(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture clipboard writes instead of touching the system clipboard."""

    copied: list[str] = []
    monkeypatch.setattr("pyperclip.copy", copied.append)
    monkeypatch.setattr("pyperclip.paste", lambda: copied[-1] if copied else "")
    return copied
