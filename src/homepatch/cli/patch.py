"""Apply, revert and inspect patch archives against an installation directory."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ..backup import BackupStore
from ..batch import BatchCoordinator, BatchReport, collect_archives
from ..cli_utils import get_settings_from_context, resolve_target_root_from_context
from ..errors import ManifestInvalidError
from ..events import EventKind, ProgressEvent
from ..filesystem.report import write_batch_report
from .common import handle_cli_errors

ARCHIVES_ARGUMENT = typer.Argument(
    ..., help="Patch archives or directories searched recursively for patch*.zip"
)
HOME_OPTION = typer.Option(
    None,
    "--home",
    help="Installation directory (defaults to HOMEPATCH_TARGET_ROOT or `homepatch home set`)",
)
PATTERN_OPTION = typer.Option(
    None, "--pattern", help="Archive glob used inside directories (default: patch*.zip)"
)
REPORT_OPTION = typer.Option(None, "--report", help="Write a YAML report to this path")
ARCHIVE_NAME_OPTION = typer.Option(
    None, "--archive", help="Only show records for this archive name (file name without .zip)"
)

_EVENT_STYLES = {
    EventKind.ARCHIVE_STARTED: "cyan",
    EventKind.ARCHIVE_FAILED: "red",
    EventKind.ENTRY_SKIPPED: "yellow",
    EventKind.ENTRY_FAILED: "red",
}


def register(app: typer.Typer) -> None:
    app.command("apply")(apply_archives)
    app.command("revert")(revert_archives)
    app.command("history")(history)


def _render_event(event: ProgressEvent) -> None:
    if event.kind is EventKind.ARCHIVE_FINISHED:
        print(f"  [green]{escape(event.message)}[/green]")
        return
    style = _EVENT_STYLES.get(event.kind)
    indent = "" if event.kind is EventKind.ARCHIVE_STARTED else "  "
    if style:
        print(f"{indent}[{style}]{escape(event.message)}[/{style}]")
    else:
        print(f"{indent}{escape(event.message)}")


def _prepare(
    ctx: typer.Context, paths: list[Path], home: str | None, pattern: str | None
) -> tuple[Path, list[Path], BatchCoordinator]:
    settings = get_settings_from_context(ctx)
    root = resolve_target_root_from_context(ctx, home)
    glob = pattern or settings.archive_pattern
    archives = collect_archives(paths, pattern=glob, excluded_dirs=settings.excluded_dirs)
    if not archives:
        raise typer.BadParameter(f"No archives matching {glob} found in the given paths.")
    coordinator = BatchCoordinator(
        backup_dir_name=settings.backup_dir_name,
        pattern=glob,
        excluded_dirs=settings.excluded_dirs,
        on_progress=_render_event,
    )
    return root, archives, coordinator


def _finish(report: BatchReport, report_path: Path | None) -> None:
    verb = "Applied" if report.operation == "apply" else "Reverted"
    colour = "green" if report.ok else "yellow"
    print(f"[{colour}]{verb}: {report.succeeded} succeeded, {report.failed} failed[/{colour}]")
    messages = report.error_messages
    if messages:
        print("[red]Problems:[/red]")
        for line in messages:
            print(f"- {escape(line)}")
    if report_path is not None:
        write_batch_report(report, report_path)
        print(f"Report written to {report_path}")
    if not report.ok:
        raise typer.Exit(1)


@handle_cli_errors
def apply_archives(
    ctx: typer.Context,
    paths: list[Path] = ARCHIVES_ARGUMENT,
    home: str | None = HOME_OPTION,
    pattern: str | None = PATTERN_OPTION,
    report: Path | None = REPORT_OPTION,
) -> None:
    """Install the replacement/ content of each archive into the home directory.

    Every overwritten file is backed up first so `homepatch revert` can undo it.
    Files named manifest.json or manifest.tmp directly under the home directory
    cannot be backed up and are skipped with a BackupFailed error.
    """

    root, archives, coordinator = _prepare(ctx, paths, home, pattern)
    print(f"Applying {len(archives)} archive(s) to {root}")
    _finish(coordinator.apply_all(archives, root), report)


@handle_cli_errors
def revert_archives(
    ctx: typer.Context,
    paths: list[Path] = ARCHIVES_ARGUMENT,
    home: str | None = HOME_OPTION,
    pattern: str | None = PATTERN_OPTION,
    report: Path | None = REPORT_OPTION,
) -> None:
    """Undo the latest apply of each archive.

    Files edited since the apply are left untouched and reported.
    """

    root, archives, coordinator = _prepare(ctx, paths, home, pattern)
    print(f"Reverting {len(archives)} archive(s) in {root}")
    _finish(coordinator.revert_all(archives, root), report)


@handle_cli_errors
def history(
    ctx: typer.Context,
    archive: str | None = ARCHIVE_NAME_OPTION,
    home: str | None = HOME_OPTION,
) -> None:
    """List recorded applies, oldest first."""

    settings = get_settings_from_context(ctx)
    root = resolve_target_root_from_context(ctx, home)
    store = BackupStore.for_target_root(root, settings.backup_dir_name)
    sessions = store.sessions(archive)
    if not sessions:
        print("[yellow]No apply records found.[/yellow]")
        return
    for session in sessions:
        stamp = session.applied_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        if not session.is_complete:
            print(f"{session.archive_name}  {stamp}  [yellow]incomplete[/yellow]")
            continue
        try:
            manifest = session.read_manifest()
        except ManifestInvalidError:
            print(f"{session.archive_name}  {stamp}  [red]unreadable manifest[/red]")
            continue
        print(f"{session.archive_name}  {stamp}  {len(manifest.entries)} file(s)")


__all__ = ["apply_archives", "history", "register", "revert_archives"]
