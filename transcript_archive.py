"""CLI entry point for syncing, listing, copying, and selecting podcast transcripts."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, NoReturn, Optional, Tuple, cast

import click
from rich import print

import src.transcript_archive.doctor as doctor_module
from src.transcript_archive.browse import load_catalog_view, run_copy, run_list, run_select
from src.transcript_archive.cli_runtime import CLIAppError, CliOutput, OptionMessages
from src.transcript_archive.config_writer import write_default_config
from src.transcript_archive.filters import FilterConfig, RawFilterInput, build_filter_config
from src.transcript_archive.metadata_provider import SqliteMetadataProvider
from src.transcript_archive.pagination import parse_positive_int
from src.transcript_archive.preflight import (
    PreflightResult,
    prepare_preflight,
    resolve_config_path,
    resolve_workspace_root,
)
from src.transcript_archive.sync import convert_single_file, run_sync
from src.transcript_archive.terminal import run_interactive_selector

logger = logging.getLogger(__name__)

_interactive_selector = run_interactive_selector

_STATUS_HELP = "Filter by play state: all, played, unplayed, in-progress."
_SHOW_HELP = "Fuzzy show filter (repeatable, comma-separated)."
_STATION_HELP = "Fuzzy station filter (repeatable, comma-separated)."


def _configure_logging(*, quiet: bool, verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    logging.getLogger().setLevel(level)


def _abort(exc: CLIAppError) -> NoReturn:
    logger.debug("Command failed with exit code %d: %s", exc.code, exc)
    print(exc.rich_message)
    raise click.exceptions.Exit(exc.code) from exc


def _is_interactive_terminal() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _params(ctx: click.Context) -> Dict[str, Any]:
    return cast(Dict[str, Any], ctx.ensure_object(dict))


def _prepare(params: Dict[str, Any], *, strict: bool = True) -> Tuple[PreflightResult, CliOutput]:
    preflight = prepare_preflight(
        cli_root=params.get("root_path"),
        config_override=params.get("config_path"),
        strict=strict,
    )
    output = CliOutput(
        quiet=bool(params.get("quiet", False)),
        verbose=bool(params.get("verbose", False)),
        no_color=bool(params.get("no_color", False)) or preflight.config.cli.no_color,
    )
    for warning in preflight.warnings:
        output.warn(warning)
    return preflight, output


def _build_filters(
    messages: OptionMessages,
    *,
    status: Optional[str],
    shows: Tuple[str, ...],
    stations: Tuple[str, ...],
    default_status: Optional[str] = None,
) -> FilterConfig:
    return build_filter_config(
        RawFilterInput(status=status or default_status, shows=shows, stations=stations),
        messages.errors,
    )


def _positive_option(value: Optional[str], flag: str, messages: OptionMessages) -> Optional[int]:
    if value is None:
        return None
    parsed = parse_positive_int(value)
    if parsed is None:
        messages.warnings.append(f"Ignoring invalid {flag} value {value!r}; expected a positive integer.")
    return parsed


@click.group(invoke_without_command=True)
@click.option(
    "--root",
    "root_path",
    default=None,
    help="Archive root (defaults to $TRANSCRIPT_ARCHIVE_ROOT or the current directory).",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    help="Path to config.toml (defaults to ROOT/config/config.toml).",
)
@click.option("--quiet", is_flag=True, help="Only print errors and requested output.")
@click.option("--verbose", is_flag=True, help="Show additional diagnostic output.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colour output.")
@click.pass_context
def main(
    ctx: click.Context,
    root_path: str | None,
    config_path: str | None,
    *,
    quiet: bool,
    verbose: bool,
    no_color: bool,
) -> None:
    """Manage Markdown transcripts converted from the Apple Podcasts cache.

    Without a subcommand the interactive picker (``select``) runs.
    """

    params = _params(ctx)
    params.update(
        {
            "root_path": root_path,
            "config_path": config_path,
            "quiet": quiet,
            "verbose": verbose,
            "no_color": no_color,
        }
    )
    ctx.obj = params
    _configure_logging(quiet=quiet, verbose=verbose)

    if ctx.invoked_subcommand is None:
        ctx.invoke(select_command)


@main.command("sync")
@click.argument("input_path", required=False, type=click.Path(path_type=Path, dir_okay=False))
@click.argument("output_path", required=False, type=click.Path(path_type=Path, dir_okay=False))
@click.option("--show", "shows", multiple=True, help=_SHOW_HELP)
@click.option("--station", "stations", multiple=True, help=_STATION_HELP)
@click.option("--no-timestamps", is_flag=True, help="Omit paragraph timestamps from the Markdown.")
@click.pass_context
def sync_command(
    ctx: click.Context,
    input_path: Optional[Path],
    output_path: Optional[Path],
    shows: Tuple[str, ...],
    stations: Tuple[str, ...],
    no_timestamps: bool,
) -> None:
    """Convert cached TTML transcripts and update the listening status manifest.

    With INPUT and OUTPUT, convert a single TTML file without touching the manifest.
    """

    try:
        preflight, output = _prepare(_params(ctx))
        include_timestamps = preflight.config.sync.include_timestamps and not no_timestamps

        if input_path is not None or output_path is not None:
            if input_path is None or output_path is None:
                raise CLIAppError(
                    "Single-file mode needs both INPUT and OUTPUT.",
                    code=2,
                    rich_message="[red]Single-file mode needs both[/] INPUT [red]and[/] OUTPUT.",
                )
            written = convert_single_file(input_path, output_path, include_timestamps=include_timestamps)
            output.plain(f"Converted {input_path} -> {written}")
            return

        messages = OptionMessages()
        filters = _build_filters(messages, status=None, shows=shows, stations=stations)
        messages.raise_for_errors(output)
        try:
            summary = run_sync(
                transcripts_dir=preflight.transcripts_dir,
                ttml_cache_dir=preflight.ttml_cache_dir,
                provider=SqliteMetadataProvider(preflight.metadata_db),
                filters=filters,
                include_timestamps=include_timestamps,
                output=output,
            )
        except OSError as exc:
            raise CLIAppError(f"Unable to write transcripts: {exc}") from exc
    except CLIAppError as exc:
        _abort(exc)

    for message in summary.messages:
        output.plain(message)
    output.plain(f"Sync complete: {summary.describe()}")


@main.command("list")
@click.option("--status", default=None, help=_STATUS_HELP)
@click.option("--show", "shows", multiple=True, help=_SHOW_HELP)
@click.option("--station", "stations", multiple=True, help=_STATION_HELP)
@click.option("--limit", default=None, help="Entries per page.")
@click.option("--page", default=None, help="Page number (clamped to the last page).")
@click.option("--json", "json_mode", is_flag=True, help="Emit machine-readable JSON.")
@click.pass_context
def list_command(
    ctx: click.Context,
    status: Optional[str],
    shows: Tuple[str, ...],
    stations: Tuple[str, ...],
    limit: Optional[str],
    page: Optional[str],
    json_mode: bool,
) -> None:
    """List archived transcripts, newest first."""

    try:
        preflight, output = _prepare(_params(ctx))
        messages = OptionMessages()
        parsed_limit = _positive_option(limit, "--limit", messages)
        parsed_page = _positive_option(page, "--page", messages)
        filters = _build_filters(messages, status=status, shows=shows, stations=stations)
        messages.raise_for_errors(output)
        view = load_catalog_view(
            preflight.transcripts_dir,
            filters,
            provider=SqliteMetadataProvider(preflight.metadata_db),
        )
        run_list(
            view,
            output,
            page=parsed_page or 1,
            limit=parsed_limit,
            default_limit=preflight.config.catalog.list_limit,
            json_mode=json_mode,
            json_indent=preflight.config.cli.json_indent,
        )
    except CLIAppError as exc:
        _abort(exc)


@main.command("copy")
@click.argument("key")
@click.option("--print", "print_content", is_flag=True, help="Also write the Markdown to stdout.")
@click.pass_context
def copy_command(ctx: click.Context, key: str, print_content: bool) -> None:
    """Copy one transcript to the clipboard by identifier, path, or file name."""

    try:
        preflight, output = _prepare(_params(ctx))
        view = load_catalog_view(preflight.transcripts_dir, FilterConfig())
        run_copy(view, key, output, print_content=print_content)
    except CLIAppError as exc:
        _abort(exc)


@main.command("select")
@click.option("--status", default=None, help=f"{_STATUS_HELP} Defaults to [catalog].default_select_status.")
@click.option("--show", "shows", multiple=True, help=_SHOW_HELP)
@click.option("--station", "stations", multiple=True, help=_STATION_HELP)
@click.option("--page-size", default=None, help="Entries per picker page before terminal fitting.")
@click.pass_context
def select_command(
    ctx: click.Context,
    status: Optional[str] = None,
    shows: Tuple[str, ...] = (),
    stations: Tuple[str, ...] = (),
    page_size: Optional[str] = None,
) -> None:
    """Pick a transcript interactively and copy it to the clipboard."""

    def confirm_print() -> bool:
        return click.confirm("Print the transcript instead?", default=False)

    try:
        preflight, output = _prepare(_params(ctx))
        if not _is_interactive_terminal():
            raise CLIAppError(
                "select requires an interactive terminal. Use 'list' and 'copy KEY' instead.",
                code=2,
                rich_message=(
                    "[red]select requires an interactive terminal.[/] "
                    "Use [bold]list[/] and [bold]copy KEY[/] instead."
                ),
            )
        messages = OptionMessages()
        parsed_page_size = _positive_option(page_size, "--page-size", messages)
        filters = _build_filters(
            messages,
            status=status,
            shows=shows,
            stations=stations,
            default_status=preflight.config.catalog.default_select_status,
        )
        messages.raise_for_errors(output)
        view = load_catalog_view(
            preflight.transcripts_dir,
            filters,
            provider=SqliteMetadataProvider(preflight.metadata_db),
        )
        run_select(
            view,
            output,
            page_size=parsed_page_size or preflight.config.catalog.select_page_size,
            selector=_interactive_selector,
            confirm_print=confirm_print,
        )
    except CLIAppError as exc:
        _abort(exc)


@main.command("doctor")
@click.option("--json", "json_mode", is_flag=True, help="Emit machine-readable diagnostics.")
@click.pass_context
def doctor(ctx: click.Context, json_mode: bool) -> None:
    """Summarise readiness of the cache, database, manifest, and clipboard."""

    try:
        preflight, _output = _prepare(_params(ctx), strict=False)
    except CLIAppError as exc:
        _abort(exc)

    checks, notes = doctor_module.collect_checks(preflight)
    doctor_module.emit_results(
        checks,
        notes,
        json_mode=json_mode,
        workspace_root=preflight.workspace_root,
        config_path=preflight.config_path,
    )


@main.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init_config(ctx: click.Context, force: bool) -> None:
    """Write the commented default config to ROOT/config/config.toml."""

    params = _params(ctx)
    try:
        root = resolve_workspace_root(params.get("root_path"))
    except CLIAppError as exc:
        _abort(exc)
    config_path = resolve_config_path(root, params.get("config_path"))
    try:
        written = write_default_config(config_path, overwrite=force)
    except OSError as exc:
        _abort(CLIAppError(f"Unable to write {config_path}: {exc}"))
    if written:
        click.echo(f"Wrote config to {config_path}")
    else:
        click.echo(f"Config already exists at {config_path}; use --force to overwrite.")


if __name__ == "__main__":
    _entry_point = cast(Callable[[], None], main)
    _entry_point()
