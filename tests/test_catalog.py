from __future__ import annotations

from pathlib import Path

import pytest

from src.transcript_archive.catalog import (
    UNKNOWN_SHOW,
    build_catalog_entries,
    build_catalog_entry,
    compute_sort_timestamp,
    find_catalog_entry,
    serialize_catalog_entry,
    sort_catalog_entries,
)
from src.transcript_archive.models import ItemMetadata
from tests.helpers.archive import (
    ARCHIVE_DIR,
    make_catalog_entry,
    make_manifest,
    make_manifest_entry,
    make_metadata,
)


def test_compute_sort_timestamp_prefers_publish_date() -> None:
    assert compute_sort_timestamp("2024-01-02", "2030-01-01T00:00:00Z") == 1704153600000
    assert compute_sort_timestamp("unknown-date", "2024-01-02T00:00:00.000Z") == 1704153600000
    assert compute_sort_timestamp(None, "garbage") == 0
    assert compute_sort_timestamp("2024-02-30", None) == 0


def test_build_catalog_entry_title_fallbacks() -> None:
    metadata = ItemMetadata(
        show_title="unknown show",
        show_slug="the-daily",
        base_file_name="the-daily_2024-03-01_a-big-story",
    )
    entry = build_catalog_entry(
        make_manifest_entry("id-1", metadata=metadata, relative_path="the-daily\\a.md"),
        ARCHIVE_DIR,
        exists=lambda _path: False,
    )

    assert entry.show_title == "The Daily"
    assert entry.episode_title == "A Big Story"
    assert entry.normalized_relative_path == "the-daily/a.md"
    assert entry.absolute_path == ARCHIVE_DIR / "the-daily/a.md"
    assert entry.has_markdown is False
    assert entry.pub_date == "unknown-date"


def test_build_catalog_entry_without_metadata() -> None:
    entry = build_catalog_entry(make_manifest_entry("orphan.ttml"), ARCHIVE_DIR)

    assert entry.show_title == UNKNOWN_SHOW
    assert entry.episode_title == "orphan.ttml"
    assert entry.absolute_path is None
    assert entry.has_markdown is False
    assert entry.status_info.label == "UNKNOWN"


def test_build_catalog_entry_probes_filesystem(tmp_path: Path) -> None:
    (tmp_path / "show").mkdir()
    (tmp_path / "show" / "present.md").write_text("# doc\n", encoding="utf-8")
    manifest = make_manifest(
        [
            make_manifest_entry("present", metadata=make_metadata(), relative_path="show/present.md"),
            make_manifest_entry("absent", metadata=make_metadata(), relative_path="show/absent.md"),
        ]
    )

    entries = {entry.identifier: entry for entry in build_catalog_entries(manifest, tmp_path)}

    assert entries["present"].has_markdown is True
    assert entries["absent"].has_markdown is False


def test_station_title_falls_back_to_station_list() -> None:
    metadata = make_metadata()
    metadata.station_title = "unknown station"
    metadata.station_titles = ["", "WNYC"]
    entry = build_catalog_entry(make_manifest_entry("id", metadata=metadata), ARCHIVE_DIR)

    assert entry.station_title == "WNYC"
    assert entry.station_titles == ("WNYC",)


def test_sort_is_deterministic_for_equal_timestamps() -> None:
    newest = make_catalog_entry("z-newest", show="Zeta", pub_date="2024-06-01")
    tie_b = make_catalog_entry("id-2", show="beta", episode="Same", pub_date="2024-05-01")
    tie_a_late = make_catalog_entry("id-3", show="Alpha", episode="b episode", pub_date="2024-05-01")
    tie_a_early = make_catalog_entry("id-4", show="alpha", episode="A episode", pub_date="2024-05-01")
    tie_b_twin = make_catalog_entry("id-1", show="Beta", episode="same", pub_date="2024-05-01")

    ordered = sort_catalog_entries([tie_b, tie_a_late, newest, tie_b_twin, tie_a_early])

    assert [entry.identifier for entry in ordered] == ["z-newest", "id-4", "id-3", "id-1", "id-2"]


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("show/ep.ttml", "target"),
        ("hard-fork/ep-one.md", "target"),
        ("./transcripts/hard-fork/ep-one.md", "target"),
        ("ep-one.md", "target"),
        ("hard-fork_2024-05-01_ep-one", "target"),
        ("  show/ep.ttml  ", "target"),
        ("missing", None),
        ("", None),
    ],
)
def test_find_catalog_entry(key: str, expected: str | None) -> None:
    other = make_catalog_entry("other", relative_path="hard-fork/other.md")
    target_metadata = make_metadata(base_file_name="hard-fork_2024-05-01_ep-one")
    target = build_catalog_entry(
        make_manifest_entry("show/ep.ttml", metadata=target_metadata, relative_path="hard-fork/ep-one.md"),
        ARCHIVE_DIR,
        exists=lambda _path: True,
    )

    found = find_catalog_entry([other, target], key)

    if expected is None:
        assert found is None
    else:
        assert found is target


def test_serialize_catalog_entry_uses_camel_case() -> None:
    entry = make_catalog_entry("id-1", station="WNYC", play_state="played")

    payload = serialize_catalog_entry(entry)

    assert payload["identifier"] == "id-1"
    assert payload["playState"] == "played"
    assert payload["stationTitles"] == ["WNYC"]
    assert payload["relativePath"] == "hard-fork/id-1.md"
    assert payload["hasMarkdown"] is True
    assert payload["absolutePath"] == str(ARCHIVE_DIR / "hard-fork/id-1.md")
