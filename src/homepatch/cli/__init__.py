from __future__ import annotations

import typer

from ..cli_utils import get_settings_from_context
from ..logging_utils import configure_logging
from . import home, patch

app = typer.Typer(help="Apply and revert patch archives on an installation directory")


def _register_sub_app(name: str, sub_app: typer.Typer) -> None:
    app.add_typer(sub_app, name=name)


_register_sub_app("home", home.app)
patch.register(app)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (default: HOMEPATCH_LOG_LEVEL or WARNING)"
    ),
) -> None:
    """Initialize shared Typer context state."""

    ctx.ensure_object(dict)
    settings = get_settings_from_context(ctx)
    configure_logging(log_level or settings.log_level)


__all__ = ["app", "home", "patch"]
