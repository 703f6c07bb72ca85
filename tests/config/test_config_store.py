from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from homepatch.config import ConfigFileError, ConfigStore, default_config_path


def test_missing_config_loads_empty(tmp_path: Path) -> None:
    cfg = ConfigStore(path=tmp_path / "config.json").load()

    assert cfg.home_path is None


def test_set_home_path_persists_absolute_path(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "store" / "config.json"
    store = ConfigStore(path=path)

    store.set_home_path("install")

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "home_path": str(tmp_path / "install")
    }
    assert ConfigStore(path=path).load().home_path == str(tmp_path / "install")
    assert not path.with_suffix(".tmp").exists()


def test_unknown_keys_are_preserved(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"other": 1}), encoding="utf-8")

    ConfigStore(path=path).set_home_path(tmp_path)

    assert json.loads(path.read_text(encoding="utf-8"))["other"] == 1


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigFileError):
        ConfigStore(path=path).load()


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions only")
def test_config_file_is_owner_only(tmp_path: Path) -> None:
    path = tmp_path / "config.json"

    ConfigStore(path=path).set_home_path(tmp_path)

    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_default_path_honours_config_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HOMEPATCH_CONFIG_HOME", str(tmp_path))

    assert default_config_path() == tmp_path / "config.json"
    assert ConfigStore().path == tmp_path / "config.json"
