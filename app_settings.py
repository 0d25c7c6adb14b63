"""
Persistent application settings.

Backed by ``QSettings`` in INI format so the file lives next to the rest of
the manager's data instead of the platform registry.
"""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import QSettings

SETTINGS_FILENAME = "settings.ini"

INSTALL_PATH_KEY = "install_path_override"
SELECTED_WORLD_KEY = "selected_world_id"
ACTIVE_PROFILE_KEY = "active_profile_id"
PROFILES_SEEDED_KEY = "profiles_seeded"


class AppSettings:
    def __init__(self, app_data_dir: str | Path):
        self.path = Path(app_data_dir) / SETTINGS_FILENAME
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._settings = QSettings(str(self.path), QSettings.Format.IniFormat)

    def read(self, key: str) -> str | None:
        value = self._settings.value(key)
        if value is None or value == "":
            return None
        return str(value)

    def write(self, key: str, value: str | None):
        if value is None:
            self._settings.remove(key)
        else:
            self._settings.setValue(key, value)
        self._settings.sync()

    # ── Typed accessors ───────────────────────────────────────────────

    @property
    def install_path_override(self) -> str | None:
        return self.read(INSTALL_PATH_KEY)

    @install_path_override.setter
    def install_path_override(self, value: str | None):
        self.write(INSTALL_PATH_KEY, value)

    @property
    def selected_world_id(self) -> str | None:
        return self.read(SELECTED_WORLD_KEY)

    @selected_world_id.setter
    def selected_world_id(self, value: str | None):
        self.write(SELECTED_WORLD_KEY, value)

    @property
    def active_profile_id(self) -> str | None:
        return self.read(ACTIVE_PROFILE_KEY)

    @active_profile_id.setter
    def active_profile_id(self, value: str | None):
        self.write(ACTIVE_PROFILE_KEY, value)

    @property
    def profiles_seeded(self) -> bool:
        return self.read(PROFILES_SEEDED_KEY) == "true"

    @profiles_seeded.setter
    def profiles_seeded(self, value: bool):
        self.write(PROFILES_SEEDED_KEY, "true" if value else None)
