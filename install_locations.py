"""
Well-known Hytale and manager locations.

The install-dependent paths (Mods, earlyplugins, UserData) are only reported
when they exist on disk; a missing install is an expected state and is
described through ``InstallInfo.issues`` rather than raised.  The disabled
mirror and the deleted-mod backups live under the manager's own app data
directory and do not depend on the install.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

ModLocation = Literal["mods", "earlyplugins", "packs"]

INSTALL_FOLDER_NAME = "Hytale"
DISABLED_FOLDER = "disabled"
DELETED_MODS_FOLDER = "deleted-mods"


def default_app_data_dir() -> Path:
    env = os.environ.get("HYMN_APP_DATA")
    if env:
        return Path(env)
    return Path(os.environ.get("APPDATA", "~")).expanduser() / "HymnModManager"


def default_install_path() -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / INSTALL_FOLDER_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / INSTALL_FOLDER_NAME
    xdg_data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(xdg_data_home) / INSTALL_FOLDER_NAME


@dataclass
class ManagerContext:
    """Per-process state handed to every operation.

    ``install_path_override`` takes precedence over the stored setting for
    the lifetime of this context (e.g. a ``--install-path`` flag).
    """

    app_data_dir: Path = field(default_factory=default_app_data_dir)
    default_install_path: Path = field(default_factory=default_install_path)
    install_path_override: Path | None = None

    def __post_init__(self):
        self.app_data_dir = Path(self.app_data_dir)
        self.default_install_path = Path(self.default_install_path)
        if self.install_path_override is not None:
            self.install_path_override = Path(self.install_path_override)

    @property
    def disabled_root(self) -> Path:
        return self.app_data_dir / DISABLED_FOLDER

    @property
    def deleted_mods_root(self) -> Path:
        return self.app_data_dir / DELETED_MODS_FOLDER

    def disabled_location_path(self, location: ModLocation) -> Path:
        return self.disabled_root / location


@dataclass
class InstallInfo:
    default_path: Path
    detected_path: Path | None
    active_path: Path | None
    user_data_path: Path | None
    mods_path: Path | None
    early_plugins_path: Path | None
    issues: list[str] = field(default_factory=list)


def resolve_install_info(
    context: ManagerContext, install_path_override: str | Path | None = None
) -> InstallInfo:
    """Work out where the install lives and which of its folders exist."""
    default_path = context.default_install_path
    detected_path = default_path if default_path.exists() else None

    override = context.install_path_override or install_path_override
    active_path = Path(override) if override else detected_path
    user_data_path = active_path / "UserData" if active_path else None
    mods_path = user_data_path / "Mods" if user_data_path else None
    early_plugins_path = active_path / "earlyplugins" if active_path else None

    issues: list[str] = []
    if active_path and not active_path.exists():
        issues.append("Install path does not exist.")
    if user_data_path and not user_data_path.exists():
        issues.append("UserData folder not found.")

    return InstallInfo(
        default_path=default_path,
        detected_path=detected_path,
        active_path=active_path,
        user_data_path=user_data_path,
        mods_path=mods_path if mods_path and mods_path.is_dir() else None,
        early_plugins_path=(
            early_plugins_path if early_plugins_path and early_plugins_path.is_dir() else None
        ),
        issues=issues,
    )


def location_path(info: InstallInfo, location: ModLocation) -> Path | None:
    """Active root folder for a logical mod location.

    Packs share the Mods folder with regular mods.  The folder is returned
    even if it does not exist yet, as long as an install is configured.
    """
    if location == "earlyplugins":
        if info.early_plugins_path:
            return info.early_plugins_path
        return info.active_path / "earlyplugins" if info.active_path else None

    user_data = info.user_data_path or (info.active_path / "UserData" if info.active_path else None)
    if user_data is None:
        return None
    return info.mods_path or user_data / "Mods"
