from __future__ import annotations

import logging
from pathlib import Path

import pytest

from src.transcript_archive.cli_runtime import CLIAppError, CliOutput
from src.transcript_archive.filters import RawFilterInput, build_filter_config
from src.transcript_archive.manifest_store import get_manifest_path, load_manifest, save_manifest
from src.transcript_archive.sync import (
    convert_single_file,
    find_ttml_files,
    identifier_from_relative_path,
    run_sync,
)
from tests.helpers.archive import (
    SAMPLE_TTML,
    FakeProvider,
    make_manifest,
    make_manifest_entry,
    make_metadata,
)


def _write_ttml(cache: Path, relative: str, content: str = SAMPLE_TTML) -> Path:
    path = cache / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    cache = tmp_path / "ttml"
    _write_ttml(cache, "PodcastContent1/transcript_1.ttml-123.ttml")
    _write_ttml(cache, "PodcastContent2/transcript_2.ttml")
    return cache


def test_identifier_from_relative_path() -> None:
    assert identifier_from_relative_path("a/transcript_1.ttml-123.ttml") == "a/transcript_1.ttml"
    assert identifier_from_relative_path("a\\b.ttml") == "a/b.ttml"
    assert identifier_from_relative_path("notes.txt") == "notes.txt"


def test_find_ttml_files_is_sorted(cache_dir: Path) -> None:
    files = find_ttml_files(cache_dir)

    assert [item.identifier for item in files] == [
        "PodcastContent1/transcript_1.ttml",
        "PodcastContent2/transcript_2.ttml",
    ]
    assert all(item.size > 0 for item in files)


def test_run_sync_writes_documents_and_manifest(tmp_path: Path, cache_dir: Path) -> None:
    transcripts = tmp_path / "transcripts"
    provider = FakeProvider(
        {
            "PodcastContent1/transcript_1.ttml": make_metadata(
                show="Hard Fork", episode="AI Week", pub_date="2024-05-01", play_state="played"
            ),
        }
    )

    summary = run_sync(
        transcripts_dir=transcripts,
        ttml_cache_dir=cache_dir,
        provider=provider,
        output=CliOutput.buffered(),
    )

    assert (summary.processed, summary.played, summary.unplayed, summary.fallback) == (2, 1, 1, 1)
    assert summary.manifest_saved
    played_doc = transcripts / "hard-fork" / "played" / "hard-fork_2024-05-01_ai-week.md"
    assert played_doc.is_file()
    assert "## Episode transcript" in played_doc.read_text(encoding="utf-8")

    manifest = load_manifest(transcripts)
    entry = manifest.entries["PodcastContent1/transcript_1.ttml"]
    assert entry.relative_path == "hard-fork/played/hard-fork_2024-05-01_ai-week.md"
    assert entry.play_state == "played"
    assert entry.last_processed_at is not None
    source_file = cache_dir / "PodcastContent1" / "transcript_1.ttml-123.ttml"
    assert entry.source is not None and entry.source.size == source_file.stat().st_size
    assert entry.render_options is not None and entry.render_options.include_timestamps is True

    fallback = manifest.entries["PodcastContent2/transcript_2.ttml"]
    assert fallback.relative_path is not None
    assert fallback.relative_path.startswith("unknown-show/unknown-show_unknown-date_")
    assert fallback.metadata is not None and fallback.metadata.show_title == "Unknown Show"


def test_run_sync_reuses_cached_metadata_and_reports_retained(tmp_path: Path, cache_dir: Path) -> None:
    transcripts = tmp_path / "transcripts"
    save_manifest(
        transcripts,
        make_manifest(
            [
                make_manifest_entry(
                    "PodcastContent2/transcript_2.ttml",
                    metadata=make_metadata(show="The Daily", episode="Cached", pub_date="2024-01-02"),
                ),
                make_manifest_entry("gone/transcript_9.ttml", metadata=make_metadata(show="Gone")),
            ]
        ),
        now="2024-01-03T00:00:00.000Z",
    )

    summary = run_sync(
        transcripts_dir=transcripts,
        ttml_cache_dir=cache_dir,
        provider=FakeProvider(),
        include_timestamps=False,
    )

    assert summary.fallback == 1
    assert summary.retained == 1
    assert "Retained 1 manifest transcript(s) missing from cache." in summary.messages
    manifest = load_manifest(transcripts)
    assert "gone/transcript_9.ttml" in manifest.entries
    reused = manifest.entries["PodcastContent2/transcript_2.ttml"]
    assert reused.relative_path == "the-daily/the-daily_2024-01-02_cached.md"
    document = (transcripts / reused.relative_path).read_text(encoding="utf-8")
    assert "[00:00:00]" not in document


def test_run_sync_second_pass_keeps_document_paths(tmp_path: Path, cache_dir: Path) -> None:
    transcripts = tmp_path / "transcripts"
    provider = FakeProvider()
    run_sync(transcripts_dir=transcripts, ttml_cache_dir=cache_dir, provider=provider)
    first = {key: entry.relative_path for key, entry in load_manifest(transcripts).entries.items()}

    summary = run_sync(transcripts_dir=transcripts, ttml_cache_dir=cache_dir, provider=provider)

    second = {key: entry.relative_path for key, entry in load_manifest(transcripts).entries.items()}
    assert summary.processed == 2
    assert second == first
    assert not any(path and path.endswith("-1.md") for path in second.values())


def test_run_sync_filters_by_show(tmp_path: Path, cache_dir: Path) -> None:
    provider = FakeProvider(
        {"PodcastContent1/transcript_1.ttml": make_metadata(show="Hard Fork", episode="One")}
    )
    filters = build_filter_config(RawFilterInput(shows=["The Daily"]))

    summary = run_sync(
        transcripts_dir=tmp_path / "transcripts",
        ttml_cache_dir=cache_dir,
        provider=provider,
        filters=filters,
    )

    assert summary.processed == 0
    assert summary.messages == ["No TTML files matched filters (show~The Daily)."]
    assert not get_manifest_path(tmp_path / "transcripts").exists()


def test_run_sync_skips_unparseable_files(
    tmp_path: Path, cache_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    _write_ttml(cache_dir, "PodcastContent3/broken.ttml", "<tt><p>")

    with caplog.at_level(logging.WARNING):
        summary = run_sync(
            transcripts_dir=tmp_path / "transcripts",
            ttml_cache_dir=cache_dir,
            provider=FakeProvider(),
        )

    assert summary.failed == 1
    assert summary.processed == 2
    assert any("Skipping" in record.message for record in caplog.records)


def test_run_sync_requires_cache_directory(tmp_path: Path) -> None:
    with pytest.raises(CLIAppError, match="TTML directory not found"):
        run_sync(
            transcripts_dir=tmp_path / "transcripts",
            ttml_cache_dir=tmp_path / "missing",
            provider=FakeProvider(),
        )


def test_convert_single_file_infers_show_from_output(tmp_path: Path) -> None:
    source = _write_ttml(tmp_path, "input.ttml")
    target = tmp_path / "transcripts" / "hard-fork_2024-03-04_episode.md"

    written = convert_single_file(source, target, include_timestamps=False)

    text = written.read_text(encoding="utf-8")
    assert "Show name: Hard Fork" in text
    assert "Episode date: 2024-03-04" in text
    assert not get_manifest_path(tmp_path / "transcripts").exists()


def test_run_sync_keeps_retained_document_when_colliding_item_is_evicted(tmp_path: Path) -> None:
    cache = tmp_path / "ttml"
    transcripts = tmp_path / "transcripts"
    first = _write_ttml(cache, "a/one.ttml", SAMPLE_TTML.replace("Welcome back.", "ALPHA"))
    _write_ttml(cache, "b/two.ttml", SAMPLE_TTML.replace("Welcome back.", "BRAVO"))
    provider = FakeProvider(
        {
            "a/one.ttml": make_metadata(episode="A Very Long Episode Title Alpha", pub_date="2024-05-01"),
            "b/two.ttml": make_metadata(episode="A Very Long Episode Title Bravo", pub_date="2024-05-01"),
        }
    )
    run_sync(transcripts_dir=transcripts, ttml_cache_dir=cache, provider=provider)
    before = {key: entry.relative_path for key, entry in load_manifest(transcripts).entries.items()}
    assert before["a/one.ttml"] != before["b/two.ttml"]

    first.unlink()
    summary = run_sync(transcripts_dir=transcripts, ttml_cache_dir=cache, provider=provider)

    manifest = load_manifest(transcripts)
    assert summary.retained == 1
    assert manifest.entries["a/one.ttml"].relative_path == before["a/one.ttml"]
    assert manifest.entries["b/two.ttml"].relative_path == before["b/two.ttml"]
    assert "ALPHA" in (transcripts / before["a/one.ttml"]).read_text(encoding="utf-8")
    assert "BRAVO" in (transcripts / before["b/two.ttml"]).read_text(encoding="utf-8")


def test_run_sync_moves_document_when_item_becomes_played(tmp_path: Path) -> None:
    cache = tmp_path / "ttml"
    transcripts = tmp_path / "transcripts"
    _write_ttml(cache, "a/ep.ttml")
    identifier = "a/ep.ttml"

    run_sync(
        transcripts_dir=transcripts,
        ttml_cache_dir=cache,
        provider=FakeProvider({identifier: make_metadata(episode="Ep", play_state="unplayed")}),
    )
    assert load_manifest(transcripts).entries[identifier].relative_path == "hard-fork/hard-fork_2024-05-01_ep.md"

    run_sync(
        transcripts_dir=transcripts,
        ttml_cache_dir=cache,
        provider=FakeProvider({identifier: make_metadata(episode="Ep", play_state="played")}),
    )

    entry = load_manifest(transcripts).entries[identifier]
    assert entry.relative_path == "hard-fork/played/hard-fork_2024-05-01_ep.md"
    documents = sorted(path.relative_to(transcripts).as_posix() for path in transcripts.rglob("*.md"))
    assert documents == ["hard-fork/played/hard-fork_2024-05-01_ep.md"]
    assert "- State: Completed" in (transcripts / entry.relative_path).read_text(encoding="utf-8")
