"""Terminal driver for the interactive selector."""

from __future__ import annotations

import logging
import shutil
import signal
import sys
from typing import Callable, Optional, Protocol, Sequence, TextIO

import click

from src.transcript_archive.models import CatalogEntry
from src.transcript_archive.selector import (
    Cancel,
    Event,
    Resize,
    SelectorState,
    initial_state,
    key_to_event,
    render_lines,
    transition,
)

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\x1b[2J\x1b[H"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"

__all__ = [
    "ClickTerminal",
    "SelectorSession",
    "Terminal",
    "run_interactive_selector",
]


class Terminal(Protocol):
    def read_key(self) -> Optional[str]:
        """Block for the next key; ``None`` means the window was resized."""
        ...

    def rows(self) -> Optional[int]: ...

    def columns(self) -> int: ...

    def write(self, text: str) -> None: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...


class _Resized(Exception):
    pass


class ClickTerminal:
    """
    Real terminal backed by ``click.getchar`` and ANSI escape sequences.

    On platforms with ``SIGWINCH`` a resize interrupts a pending key read so
    the picker can redraw immediately.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self._reading = False
        self._resize_pending = False
        self._previous_handler = None
        self._cursor_hidden = False
        if hasattr(signal, "SIGWINCH"):
            try:
                self._previous_handler = signal.signal(signal.SIGWINCH, self._on_resize)
            except ValueError:
                logger.debug("Resize signal unavailable outside the main thread")

    def _on_resize(self, signum, frame) -> None:  # noqa: ARG002
        self._resize_pending = True
        if self._reading:
            raise _Resized()

    def read_key(self) -> Optional[str]:
        if self._resize_pending:
            self._resize_pending = False
            return None
        self._reading = True
        try:
            return click.getchar()
        except _Resized:
            self._resize_pending = False
            return None
        finally:
            self._reading = False

    def rows(self) -> Optional[int]:
        size = shutil.get_terminal_size(fallback=(0, 0))
        return size.lines or None

    def columns(self) -> int:
        return shutil.get_terminal_size(fallback=(80, 24)).columns or 80

    def write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def hide_cursor(self) -> None:
        if not self._cursor_hidden:
            self.write(HIDE_CURSOR)
            self._cursor_hidden = True

    def show_cursor(self) -> None:
        if self._cursor_hidden:
            self.write(SHOW_CURSOR)
            self._cursor_hidden = False

    def clear(self) -> None:
        self.write(CLEAR_SCREEN)

    def close(self) -> None:
        if hasattr(signal, "SIGWINCH") and self._previous_handler is not None:
            try:
                signal.signal(signal.SIGWINCH, self._previous_handler)
            except ValueError:
                pass
            self._previous_handler = None


class SelectorSession:
    """
    Drive :func:`transition` from terminal input until the state resolves.

    ``on_resolve`` is called exactly once with the chosen entry, or ``None``
    when the user cancels. Rejected selections never reach it.
    """

    def __init__(
        self,
        terminal: Terminal,
        entries: Sequence[CatalogEntry],
        *,
        page_size: object = None,
        filter_summary: str = "",
        on_resolve: Optional[Callable[[Optional[CatalogEntry]], None]] = None,
    ) -> None:
        self.terminal = terminal
        self.filter_summary = filter_summary
        self.on_resolve = on_resolve
        self.state: SelectorState = initial_state(entries, page_size, terminal.rows())
        self._resolved = False

    def render(self) -> None:
        lines = render_lines(
            self.state,
            width=self.terminal.columns(),
            filter_summary=self.filter_summary,
        )
        self.terminal.clear()
        self.terminal.write("\n".join(lines) + "\n")

    def dispatch(self, event: Event) -> None:
        if self._resolved:
            return
        self.state = transition(self.state, event)
        if self.state.resolved:
            self._resolved = True
            if self.on_resolve is not None:
                self.on_resolve(self.state.result)
            return
        self.render()

    def _next_event(self) -> Optional[Event]:
        try:
            key = self.terminal.read_key()
        except (KeyboardInterrupt, EOFError):
            return Cancel()
        if key is None:
            return Resize(self.terminal.rows())
        return key_to_event(key)

    def run(self) -> Optional[CatalogEntry]:
        self.terminal.hide_cursor()
        try:
            self.render()
            while not self._resolved:
                event = self._next_event()
                if event is not None:
                    self.dispatch(event)
        except KeyboardInterrupt:
            self.dispatch(Cancel())
        finally:
            self.terminal.show_cursor()
            self.terminal.write("\n")
            self.terminal.close()
        return self.state.result


def run_interactive_selector(
    entries: Sequence[CatalogEntry],
    *,
    page_size: object = None,
    filter_summary: str = "",
    terminal: Terminal | None = None,
) -> Optional[CatalogEntry]:
    """Run the picker on a real terminal and return the chosen entry or ``None``."""

    session = SelectorSession(
        terminal or ClickTerminal(),
        entries,
        page_size=page_size,
        filter_summary=filter_summary,
    )
    return session.run()
