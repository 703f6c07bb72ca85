"""Commands for inspecting and storing the default installation directory."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print

from ..archive.paths import ensure_target_root
from ..config import ConfigStore
from .common import handle_cli_errors

app = typer.Typer(help="Default installation directory")


@app.command("set")
@handle_cli_errors
def home_set(
    path: Path = typer.Argument(..., help="Installation directory patches apply to"),
) -> None:
    """Persist the directory used when --home is omitted."""

    root = ensure_target_root(path)
    store = ConfigStore()
    store.set_home_path(root)
    print(f"Default home set to {root}")


@app.command("show")
@handle_cli_errors
def home_show() -> None:
    """Display the stored home directory."""

    store = ConfigStore()
    cfg = store.load()
    if not cfg.home_path:
        print("[yellow]No home directory configured.[/yellow]")
        raise typer.Exit(1)
    print(cfg.home_path)
    if not Path(cfg.home_path).is_dir():
        print("[yellow]Warning:[/yellow] the directory no longer exists.")


__all__ = ["app", "home_set", "home_show"]
