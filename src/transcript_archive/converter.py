"""Convert cached TTML transcripts into Markdown documents."""

from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as ET
from html.parser import HTMLParser
from typing import List, Optional

from src.transcript_archive.formatters import (
    UNKNOWN_DATE,
    format_iso,
    format_slug_as_title,
    format_timestamp,
    parse_iso,
)
from src.transcript_archive.models import IN_PROGRESS, PLAYED, UNPLAYED, ItemMetadata, ListeningStatus

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "Not available."

__all__ = [
    "ConversionError",
    "build_episode_markdown",
    "convert_html_to_markdown",
    "convert_ttml_to_markdown",
    "parse_ttml_paragraphs",
]


class ConversionError(ValueError):
    """Raised when a TTML document cannot be parsed."""


def _local(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _parse_begin(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    text = value.strip().rstrip("s")
    try:
        if ":" in text:
            seconds = 0.0
            for part in text.split(":"):
                seconds = seconds * 60 + float(part)
            return seconds
        return float(text)
    except ValueError:
        return None


def _span_words(element: ET.Element) -> List[str]:
    words: List[str] = []
    for child in element:
        if _local(child.tag) != "span":
            continue
        nested = [node for node in child if _local(node.tag) == "span"]
        if nested:
            words.extend(_span_words(child))
        elif child.text and child.text.strip():
            words.append(child.text.strip())
    return words


def parse_ttml_paragraphs(ttml: str, *, include_timestamps: bool = False) -> List[str]:
    """Return one text block per ``<p>`` that contains spoken words."""

    try:
        root = ET.fromstring(ttml)
    except ET.ParseError as exc:
        raise ConversionError(f"Invalid TTML: {exc}") from exc

    paragraphs: List[str] = []
    for paragraph in root.iter():
        if _local(paragraph.tag) != "p":
            continue
        text = " ".join(_span_words(paragraph)).strip()
        if not text:
            continue
        begin = _parse_begin(paragraph.get("begin"))
        if include_timestamps and begin is not None:
            paragraphs.append(f"[{format_timestamp(begin)}] {text}")
        else:
            paragraphs.append(text)
    return paragraphs


class _MarkdownHTMLParser(HTMLParser):
    _INLINE = {"strong": "**", "b": "**", "em": "*", "i": "*", "u": "_", "code": "`"}
    _BLOCK = {"p", "div", "br", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: List[str] = []
        self._links: List[Optional[str]] = []

    def handle_starttag(self, tag, attrs):
        if tag in self._INLINE:
            self.parts.append(self._INLINE[tag])
        elif tag == "a":
            self._links.append(dict(attrs).get("href"))
            self.parts.append("[")
        elif tag == "li":
            self.parts.append("\n- ")
        elif tag in self._BLOCK:
            self.parts.append("\n\n" if tag != "br" else "\n")

    def handle_endtag(self, tag):
        if tag in self._INLINE:
            self.parts.append(self._INLINE[tag])
        elif tag == "a":
            href = self._links.pop() if self._links else None
            self.parts.append(f"]({href.strip()})" if href else "]")
        elif tag in self._BLOCK:
            self.parts.append("\n\n")

    def handle_data(self, data):
        self.parts.append(re.sub(r"\s+", " ", data))


def convert_html_to_markdown(value: Optional[str]) -> str:
    """Best-effort conversion of an episode description to Markdown."""

    if not value:
        return ""
    parser = _MarkdownHTMLParser()
    parser.feed(value.replace("\r\n", "\n"))
    parser.close()
    text = html.unescape("".join(parser.parts))
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _description_markdown(metadata: ItemMetadata) -> str:
    if metadata.episode_description_html:
        converted = convert_html_to_markdown(metadata.episode_description_html)
        if converted:
            return converted
    if metadata.episode_description_text and metadata.episode_description_text.strip():
        return metadata.episode_description_text.strip()
    return ""


def _play_state_label(play_state: Optional[str]) -> str:
    return {PLAYED: "Completed", IN_PROGRESS: "In progress", UNPLAYED: "Not started"}.get(
        play_state or "", "Unknown"
    )


def _seconds(value: Optional[float]) -> Optional[str]:
    if value is None or value < 0:
        return None
    return format_timestamp(round(value))


def _status_section(status: ListeningStatus) -> str:
    lines = [f"State: {_play_state_label(status.play_state)}"]
    progress = []
    if status.completion_ratio is not None:
        progress.append(f"{round(status.completion_ratio * 100)}%")
    listened = _seconds(status.listened_seconds)
    duration = _seconds(status.duration_seconds)
    if listened and duration:
        progress.append(f"{listened} of {duration}")
    elif listened:
        progress.append(f"{listened} listened")
    elif duration:
        progress.append(f"{duration} total")
    if progress:
        lines.append(f"Progress: {' '.join(progress)}")
    remaining = _seconds(status.remaining_seconds)
    if (
        remaining
        and status.remaining_seconds is not None
        and status.remaining_seconds > 1
        and status.play_state != PLAYED
    ):
        lines.append(f"Remaining: {remaining}")
    if status.last_played_at:
        parsed = parse_iso(status.last_played_at)
        lines.append(f"Last played: {format_iso(parsed) if parsed else status.last_played_at}")
    if status.play_count is not None:
        lines.append(f"Play count: {status.play_count}")
    return "\n".join(["## Listening status", *(f"- {line}" for line in lines)])


def build_episode_markdown(
    transcript_text: str,
    metadata: Optional[ItemMetadata],
    *,
    fallback_show_slug: Optional[str] = None,
    fallback_date: Optional[str] = None,
) -> str:
    """Assemble the listening status, description, and transcript sections."""

    metadata = metadata or ItemMetadata()
    if metadata.show_title and metadata.show_title != "unknown show":
        show_name = metadata.show_title
    else:
        show_name = format_slug_as_title(fallback_show_slug or metadata.show_slug) or "Unknown show"
    if metadata.pub_date and metadata.pub_date != UNKNOWN_DATE:
        date_segment = metadata.pub_date
    else:
        date_segment = fallback_date or UNKNOWN_DATE

    sections = []
    if metadata.listening_status is not None:
        sections.append(_status_section(metadata.listening_status))
    sections.append(
        "\n".join(
            [
                "### Episode description",
                f"Show name: {show_name}",
                f"Episode date: {date_segment}",
                "Episode description:",
                _description_markdown(metadata) or NOT_AVAILABLE,
            ]
        )
    )
    sections.append("## Episode transcript")
    sections.append(transcript_text.strip() or NOT_AVAILABLE)
    return "\n\n".join(section for section in sections if section.strip()).rstrip() + "\n"


def convert_ttml_to_markdown(
    ttml: str,
    metadata: Optional[ItemMetadata] = None,
    *,
    include_timestamps: bool = False,
    fallback_show_slug: Optional[str] = None,
    fallback_date: Optional[str] = None,
) -> str:
    """Parse ``ttml`` and render the complete Markdown document."""

    paragraphs = parse_ttml_paragraphs(ttml, include_timestamps=include_timestamps)
    return build_episode_markdown(
        "\n\n".join(paragraphs),
        metadata,
        fallback_show_slug=fallback_show_slug,
        fallback_date=fallback_date,
    )
