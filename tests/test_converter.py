from __future__ import annotations

import pytest

from src.transcript_archive.converter import (
    ConversionError,
    build_episode_markdown,
    convert_html_to_markdown,
    convert_ttml_to_markdown,
    parse_ttml_paragraphs,
)
from src.transcript_archive.models import ItemMetadata, ListeningStatus
from tests.helpers.archive import SAMPLE_TTML


def test_parse_ttml_paragraphs_with_and_without_timestamps() -> None:
    assert parse_ttml_paragraphs(SAMPLE_TTML) == ["Welcome back.", "Second paragraph."]
    assert parse_ttml_paragraphs(SAMPLE_TTML, include_timestamps=True) == [
        "[00:00:00] Welcome back.",
        "[00:01:05] Second paragraph.",
    ]


def test_parse_ttml_paragraphs_rejects_malformed_xml() -> None:
    with pytest.raises(ConversionError):
        parse_ttml_paragraphs("<tt><p>")


def test_convert_html_to_markdown() -> None:
    html = '<p>Hosted by <strong>Kevin</strong> &amp; Casey.</p><ul><li>One</li><li><a href="https://x.test">Two</a></li></ul>'

    assert convert_html_to_markdown(html) == (
        "Hosted by **Kevin** & Casey.\n\n- One\n- [Two](https://x.test)"
    )
    assert convert_html_to_markdown(None) == ""


def test_build_episode_markdown_sections() -> None:
    metadata = ItemMetadata(
        show_title="Hard Fork",
        pub_date="2024-05-01",
        episode_description_text="Plain description.",
        listening_status=ListeningStatus(
            play_state="inProgress",
            play_count=1,
            listened_seconds=600,
            duration_seconds=3600,
            completion_ratio=600 / 3600,
            remaining_seconds=3000,
        ),
    )

    markdown = build_episode_markdown("Body text.", metadata)

    assert markdown.startswith("## Listening status\n- State: In progress\n")
    assert "- Progress: 17% 00:10:00 of 01:00:00" in markdown
    assert "- Remaining: 00:50:00" in markdown
    assert "- Play count: 1" in markdown
    assert "Show name: Hard Fork\nEpisode date: 2024-05-01\nEpisode description:\nPlain description." in markdown
    assert markdown.endswith("## Episode transcript\n\nBody text.\n")


def test_convert_ttml_without_metadata_uses_fallbacks() -> None:
    markdown = convert_ttml_to_markdown(
        SAMPLE_TTML,
        None,
        fallback_show_slug="the-daily",
        fallback_date="2024-02-03",
    )

    assert "## Listening status" not in markdown
    assert "Show name: The Daily" in markdown
    assert "Episode date: 2024-02-03" in markdown
    assert "Episode description:\nNot available." in markdown
    assert markdown.endswith("Welcome back.\n\nSecond paragraph.\n")
