"""Shared CLI runtime types: errors, option messages, and console output."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

__all__ = [
    "CLIAppError",
    "CliOutput",
    "OptionMessages",
    "TranscriptNotMaterializedError",
]


class CLIAppError(RuntimeError):
    """Raised when the CLI cannot complete its work."""

    def __init__(self, message: str, *, code: int = 1, rich_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code
        self.rich_message = rich_message or message


class TranscriptNotMaterializedError(CLIAppError):
    """Raised when a catalog entry has no Markdown document on disk."""

    def __init__(self, location: str) -> None:
        super().__init__(
            f"Markdown file not found for {location}. Run 'sync' to regenerate it.",
            code=2,
            rich_message=(
                f"[red]Markdown file not found for[/] {escape(location)}. "
                "Run [bold]sync[/] to regenerate it."
            ),
        )
        self.location = location


@dataclass
class OptionMessages:
    """Validation problems collected while reading command options."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def report(self, output: "CliOutput") -> None:
        for warning in self.warnings:
            output.console.print(f"[yellow][WARN][/] {escape(warning)}")
        for error in self.errors:
            output.console.print(f"[red][ERROR][/] {escape(error)}")

    def raise_for_errors(self, output: "CliOutput") -> None:
        """Print every message, then abort if any of them is an error."""

        self.report(output)
        if self.errors:
            raise CLIAppError(
                "Unable to continue. Fix the errors above and try again.",
                code=2,
            )


class CliOutput:
    """Console presentation controller honouring ``--quiet`` and ``--verbose``."""

    def __init__(
        self,
        *,
        quiet: bool = False,
        verbose: bool = False,
        no_color: bool = False,
        console: Console | None = None,
    ) -> None:
        self.quiet = quiet
        self.verbose = verbose and not quiet
        self.no_color = no_color
        self.console = console or Console(no_color=no_color, highlight=False)
        self._warnings: List[str] = []

    @classmethod
    def buffered(cls) -> "CliOutput":
        """Output manager that records into memory, used by tests and automation."""

        console = Console(file=io.StringIO(), no_color=True, highlight=False, width=120)
        return cls(quiet=False, verbose=False, no_color=True, console=console)

    def getvalue(self) -> str:
        file = self.console.file
        return file.getvalue() if isinstance(file, io.StringIO) else ""

    def line(self, text: str) -> None:
        if self.quiet:
            return
        self.console.print(text)

    def plain(self, text: str) -> None:
        """Print ``text`` without interpreting Rich markup."""

        if self.quiet:
            return
        self.console.print(escape(text))

    def verbose_line(self, text: str) -> None:
        if self.quiet or not self.verbose or not text:
            return
        self.console.print(f"[dim]{escape(text)}[/]")

    def warn(self, text: str) -> None:
        self._warnings.append(text)
        self.console.print(f"[yellow][WARN][/] {escape(text)}")

    def get_warnings(self) -> List[str]:
        return list(self._warnings)

    def progress(self, *, transient: bool = True) -> Progress:
        return Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.fields[detail]}", style="dim"),
            console=self.console,
            transient=transient,
            disable=not self.interactive,
        )

    @property
    def interactive(self) -> bool:
        return bool(self.console.is_terminal) and not self.quiet
