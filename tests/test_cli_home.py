from __future__ import annotations

import json
import os

from homepatch.cli import app


def test_home_set_and_show(cli_runner, tmp_path, target_root):
    result = cli_runner.invoke(app, ["home", "set", str(target_root)])

    assert result.exit_code == 0, result.stdout
    stored = json.loads((tmp_path / "config-home" / "config.json").read_text(encoding="utf-8"))
    assert stored["home_path"] == os.path.abspath(target_root)

    result = cli_runner.invoke(app, ["home", "show"])
    assert result.exit_code == 0
    assert target_root.name in result.stdout


def test_stored_home_is_used_by_apply(cli_runner, target_root, make_archive):
    archive = make_archive("patch-1.zip", {"replacement/x.txt": "x"})
    cli_runner.invoke(app, ["home", "set", str(target_root)])

    result = cli_runner.invoke(app, ["apply", str(archive)])

    assert result.exit_code == 0, result.stdout
    assert (target_root / "x.txt").exists()


def test_home_set_rejects_missing_directory(cli_runner, tmp_path):
    result = cli_runner.invoke(app, ["home", "set", str(tmp_path / "nope")])

    assert result.exit_code == 1
    assert "Error:" in result.stdout
    assert not (tmp_path / "config-home" / "config.json").exists()


def test_home_show_without_config(cli_runner):
    result = cli_runner.invoke(app, ["home", "show"])

    assert result.exit_code == 1
    assert "No home directory configured." in result.stdout


def test_corrupt_config_is_reported(cli_runner, tmp_path):
    config_file = tmp_path / "config-home" / "config.json"
    config_file.parent.mkdir(parents=True)
    config_file.write_text("{oops", encoding="utf-8")

    result = cli_runner.invoke(app, ["home", "show"])

    assert result.exit_code == 1
    assert "Fix or remove the file" in result.stdout
