from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import pytest

from src.transcript_archive.metadata_provider import (
    SqliteMetadataProvider,
    build_listening_status,
    metadata_from_row,
)

# 2024-05-01T00:00:00Z in seconds since 2001-01-01.
PUB_DATE = 736214400.0


def _create_library(path: Path) -> None:
    connection = sqlite3.connect(path)
    try:
        connection.executescript(
            """
            CREATE TABLE ZMTPODCAST (Z_PK INTEGER PRIMARY KEY, ZTITLE TEXT, ZAUTHOR TEXT);
            CREATE TABLE ZMTEPISODE (
                Z_PK INTEGER PRIMARY KEY,
                ZPODCAST INTEGER,
                ZTRANSCRIPTIDENTIFIER TEXT,
                ZFREETRANSCRIPTIDENTIFIER TEXT,
                ZENTITLEDTRANSCRIPTIDENTIFIER TEXT,
                ZTITLE TEXT,
                ZPUBDATE REAL,
                ZITEMDESCRIPTION TEXT,
                ZITEMDESCRIPTIONWITHOUTHTML TEXT,
                ZPLAYHEAD REAL,
                ZDURATION REAL,
                ZPLAYCOUNT INTEGER,
                ZHASBEENPLAYED INTEGER,
                ZLASTDATEPLAYED REAL
            );
            """
        )
        connection.execute(
            "INSERT INTO ZMTPODCAST VALUES (1, 'Hard Fork', 'The New York Times')"
        )
        connection.execute(
            "INSERT INTO ZMTEPISODE VALUES (1, 1, 'show/a.ttml', 'free/a.ttml', NULL,"
            " 'The Week in AI: Everything Changed', ?, '<p>Desc</p>', 'Desc', 900, 3600, 0, 0, NULL)",
            (PUB_DATE,),
        )
        connection.commit()
    finally:
        connection.close()


def test_provider_resolves_any_identifier_column(tmp_path: Path) -> None:
    db_path = tmp_path / "MTLibrary.sqlite"
    _create_library(db_path)

    results = SqliteMetadataProvider(db_path).fetch(["free/a.ttml", "missing.ttml"])

    assert set(results) == {"show/a.ttml", "free/a.ttml"}
    metadata = results["free/a.ttml"]
    assert metadata.show_title == "Hard Fork"
    assert metadata.pub_date == "2024-05-01"
    assert metadata.episode_slug == "the-week-in-ai-every"
    assert metadata.base_file_name == "hard-fork_2024-05-01_the-week-in-ai-every"
    assert metadata.station_titles == ["The New York Times"]
    assert metadata.station_slug == "the-new-york-times"
    assert metadata.listening_status is not None
    assert metadata.listening_status.play_state == "inProgress"
    assert metadata.listening_status.remaining_seconds == 2700


def test_provider_missing_database_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        results = SqliteMetadataProvider(tmp_path / "absent.sqlite").fetch(["a.ttml"])

    assert results == {}
    assert any("Metadata database not found" in record.message for record in caplog.records)


def test_provider_unexpected_schema_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    db_path = tmp_path / "empty.sqlite"
    sqlite3.connect(db_path).close()

    with caplog.at_level(logging.WARNING):
        results = SqliteMetadataProvider(db_path).fetch(["a.ttml"])

    assert results == {}
    assert any("Unable to load transcript metadata" in record.message for record in caplog.records)


@pytest.mark.parametrize(
    ("row", "expected"),
    [
        ({"play_head": 0, "duration": 100, "has_been_played": 0}, "unplayed"),
        ({"play_head": 40, "duration": 100, "has_been_played": 0}, "inProgress"),
        ({"play_head": 99, "duration": 100, "has_been_played": 0}, "played"),
        ({"play_head": 0, "duration": 100, "has_been_played": 1}, "played"),
        ({"play_head": None, "duration": None, "play_count": 2}, "played"),
    ],
)
def test_build_listening_status_states(row: dict, expected: str) -> None:
    assert build_listening_status(row).play_state == expected


def test_metadata_from_row_defaults() -> None:
    metadata = metadata_from_row({})

    assert metadata.show_title == "unknown show"
    assert metadata.pub_date == "unknown-date"
    assert metadata.base_file_name == "unknown-show_unknown-date_unknown-episode"
    assert metadata.station_titles == []
