"""
Shared fixtures and helpers for the Hymn Mod Manager test suite.
"""

import json
import zipfile
from pathlib import Path

import pytest

from install_locations import ManagerContext
from mod_manager import ModManager


def make_zip(path: Path, members: dict) -> Path:
    """Write a zip whose members map name -> str/bytes content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return path


def manifest_json(name: str, group: str | None = None, **extra) -> str:
    data = {"Name": name}
    if group:
        data["Group"] = group
    data.update(extra)
    return json.dumps(data)


def make_folder_mod(root: Path, folder: str, name: str, group: str | None = None, **extra) -> Path:
    mod = root / folder
    mod.mkdir(parents=True)
    (mod / "manifest.json").write_text(manifest_json(name, group, **extra), encoding="utf-8")
    return mod


def make_world(install: Path, world: str, mods: dict | None = None, **extra) -> Path:
    folder = install / "UserData" / "Saves" / world
    folder.mkdir(parents=True, exist_ok=True)
    config = {"Mods": mods or {}}
    config.update(extra)
    config_path = folder / "config.json"
    config_path.write_text(json.dumps(config), encoding="utf-8")
    return config_path


def make_manager(app_data: Path, install: Path | None) -> ModManager:
    context = ManagerContext(
        app_data_dir=app_data,
        default_install_path=install if install is not None else app_data / "no-install",
    )
    return ModManager(context, log_callback=lambda _: None)


@pytest.fixture
def install(tmp_path):
    """A minimal Hytale install: UserData/Mods and earlyplugins."""
    root = tmp_path / "Hytale"
    (root / "UserData" / "Mods").mkdir(parents=True)
    (root / "earlyplugins").mkdir()
    return root


@pytest.fixture
def mods_dir(install):
    return install / "UserData" / "Mods"


@pytest.fixture
def app_data(tmp_path):
    return tmp_path / "appdata"


@pytest.fixture
def manager(app_data, install):
    m = make_manager(app_data, install)
    yield m
    m.profiles.close()
