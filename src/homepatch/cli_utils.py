from __future__ import annotations

from pathlib import Path

import typer

from .config import ConfigData, ConfigStore
from .settings import Settings, get_settings


def resolve_target_root(
    option_value: str | None,
    *,
    settings: Settings | None = None,
    config: ConfigData | None = None,
) -> Path:
    """Return the installation directory a command operates on.

    Resolution order is the ``--home`` option, ``HOMEPATCH_TARGET_ROOT`` and
    finally the home path stored with ``homepatch home set``.
    """

    if option_value:
        return Path(option_value)

    env_root = (settings or get_settings()).target_root
    if env_root:
        return Path(env_root)

    cfg = config or ConfigStore().load()
    if cfg.home_path:
        return Path(cfg.home_path)

    raise typer.BadParameter(
        "Home directory is not configured. Pass --home, export HOMEPATCH_TARGET_ROOT, or run "
        "`homepatch home set <dir>`."
    )


def get_settings_from_context(ctx: typer.Context) -> Settings:
    """Return a cached :class:`Settings` instance stored on ``ctx``."""

    ctx.ensure_object(dict)
    existing = ctx.obj.get("settings")
    if isinstance(existing, Settings):
        return existing
    settings = get_settings()
    ctx.obj["settings"] = settings
    return settings


def resolve_target_root_from_context(ctx: typer.Context, option_value: str | None) -> Path:
    return resolve_target_root(option_value, settings=get_settings_from_context(ctx))
