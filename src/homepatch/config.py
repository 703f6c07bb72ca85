from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_HOME_ENV = "HOMEPATCH_CONFIG_HOME"
DEFAULT_CONFIG_HOME = "~/.homepatch"
CONFIG_FILE_NAME = "config.json"


class ConfigFileError(RuntimeError):
    """Raised when the stored configuration cannot be parsed."""


def default_config_path() -> Path:
    base = os.path.expanduser(os.getenv(CONFIG_HOME_ENV, DEFAULT_CONFIG_HOME))
    return Path(base) / CONFIG_FILE_NAME


def _secure_path(path: Path) -> None:
    if not path.exists():
        return

    try:
        if os.name == "nt":
            os.chmod(path, stat.S_IREAD | stat.S_IWRITE)
        else:
            mode = stat.S_IMODE(path.stat().st_mode)
            if mode & (stat.S_IRWXG | stat.S_IRWXO):
                logger.debug("Adjusted permissions for %s to 0o600", path)
            path.chmod(0o600)
    except PermissionError as exc:
        logger.warning("Unable to enforce secure permissions for %s: %s", path, exc)


@dataclass
class ConfigData:
    home_path: str | None = None


class ConfigStore:
    """JSON-backed store for the user's default installation directory."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path else default_config_path()

    def _ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigFileError(f"Config file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigFileError(f"Config file {self.path} must contain a JSON object")
        return raw

    def _write(self, data: dict[str, Any]) -> None:
        self._ensure()
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
        tmp.replace(self.path)
        _secure_path(self.path)

    def load(self) -> ConfigData:
        raw = self._read()
        home_path = raw.get("home_path")
        return ConfigData(home_path=home_path if isinstance(home_path, str) else None)

    def save(self, cfg: ConfigData) -> None:
        data = self._read()
        data["home_path"] = cfg.home_path
        self._write(data)

    def set_home_path(self, home_path: str | os.PathLike[str]) -> ConfigData:
        """Persist ``home_path`` as the default target root."""

        cfg = self.load()
        cfg.home_path = os.path.abspath(home_path)
        self.save(cfg)
        return cfg


__all__ = [
    "CONFIG_HOME_ENV",
    "ConfigData",
    "ConfigFileError",
    "ConfigStore",
    "default_config_path",
]
