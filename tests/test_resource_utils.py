from __future__ import annotations

from pathlib import Path

import pytest

from obscore_pipe.resource_utils import (
    default_aliases_path,
    default_fields_path,
    packaged_resource,
    resolve_resource,
)


def test_packaged_defaults_exist():
    assert default_fields_path().name == "obscore-fields.txt"
    assert default_aliases_path().is_file()


def test_resolution_order(tmp_path: Path, monkeypatch):
    cfg_dir = tmp_path / "cfg"
    cfg_dir.mkdir()
    (cfg_dir / "jwst-aliases.txt").write_text("A, b\n", encoding="utf-8")

    monkeypatch.chdir(tmp_path)
    res = resolve_resource("jwst-aliases.txt", config_dir=cfg_dir)
    assert res.source == "config_dir"
    assert res.path == (cfg_dir / "jwst-aliases.txt").resolve()

    (tmp_path / "jwst-aliases.txt").write_text("A, c\n", encoding="utf-8")
    assert resolve_resource("jwst-aliases.txt", config_dir=cfg_dir).source == "cwd"

    res = resolve_resource("obscore-fields.txt", config_dir=cfg_dir)
    assert res.source == "package"

    absolute = resolve_resource(cfg_dir / "jwst-aliases.txt")
    assert absolute.source == "absolute"


def test_missing_resources(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        resolve_resource(tmp_path / "nope.txt")
    with pytest.raises(FileNotFoundError):
        resolve_resource("nope.txt", config_dir=tmp_path)
    with pytest.raises(FileNotFoundError):
        resolve_resource("obscore-fields.txt", allow_package=False)
    with pytest.raises(FileNotFoundError):
        packaged_resource("nope.txt")


def test_relative_path_with_directory_never_falls_back_to_package(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        resolve_resource("typo_dir/jwst-aliases.txt")
    with pytest.raises(FileNotFoundError):
        resolve_resource(Path("conf") / "obscore-fields.txt", config_dir=tmp_path)
    assert resolve_resource("jwst-aliases.txt").source == "package"
