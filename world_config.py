"""
Per-world mod overrides stored in ``UserData/Saves/<world>/config.json``.

The game keeps a ``Mods`` object in each world's config:

    "Mods": {
        "Example:CoolSwords": {"Enabled": true, "SomeOtherKey": 3},
        "PlainPack": {"Enabled": false}
    }

Only ``Enabled`` is ever written.  Every other key, on the mod entries and
at the top level of the config, is round-tripped untouched.  Reading is
forgiving: a missing or corrupt config simply means "no overrides".
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from errors import ConfigCorrupt, NotFound
from fs_utils import ensure_within

if TYPE_CHECKING:
    from mod_scanner import ModEntry

_log = logging.getLogger(__name__)

SAVES_FOLDER = "Saves"
WORLD_CONFIG_FILENAME = "config.json"
WORLD_PREVIEW_FILENAME = "preview.png"


@dataclass
class WorldInfo:
    id: str
    name: str
    path: Path
    config_path: Path
    preview_path: Path | None
    last_modified: str


# ── Config document I/O ───────────────────────────────────────────────


def load_world_config(config_path: Path) -> dict:
    """Read a world config.  Raises ``ConfigCorrupt`` if it is not a JSON object."""
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigCorrupt(f"{config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigCorrupt(f"{config_path}: top level is not an object")
    return data


def save_world_config(config_path: Path, config: dict):
    config_path.write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")


def read_world_mod_overrides(config: dict) -> dict[str, bool]:
    """Extract ``{mod_id: Enabled}`` for entries whose Enabled is a real boolean."""
    overrides: dict[str, bool] = {}
    mods = config.get("Mods")
    if not isinstance(mods, dict):
        return overrides
    for mod_id, value in mods.items():
        if isinstance(value, dict) and isinstance(value.get("Enabled"), bool):
            overrides[mod_id] = value["Enabled"]
    return overrides


def read_overrides(config_path: Path) -> dict[str, bool]:
    """Overrides for one world.  Missing or corrupt configs yield ``{}``."""
    if not config_path.is_file():
        return {}
    try:
        return read_world_mod_overrides(load_world_config(config_path))
    except ConfigCorrupt as exc:
        _log.warning("Ignoring unreadable world config: %s", exc)
        return {}


def write_overrides(config_path: Path, enabled_ids: set[str], entries: Iterable[ModEntry]):
    """Set ``Mods[id].Enabled`` for every known entry, preserving everything else."""
    try:
        config = load_world_config(config_path)
    except ConfigCorrupt as exc:
        _log.warning("Rewriting unreadable world config from scratch: %s", exc)
        config = {}

    existing = config.get("Mods")
    mods = dict(existing) if isinstance(existing, dict) else {}
    for entry in entries:
        current = mods.get(entry.id)
        updated = dict(current) if isinstance(current, dict) else {}
        updated["Enabled"] = entry.id in enabled_ids
        mods[entry.id] = updated

    config["Mods"] = mods
    save_world_config(config_path, config)


# ── Active world ──────────────────────────────────────────────────────


def saves_root(user_data_path: Path) -> Path:
    return user_data_path / SAVES_FOLDER


def world_config_paths(user_data_path: Path | None) -> list[Path]:
    if user_data_path is None:
        return []
    root = saves_root(user_data_path)
    if not root.is_dir():
        return []
    return [
        world / WORLD_CONFIG_FILENAME
        for world in sorted(root.iterdir())
        if world.is_dir() and (world / WORLD_CONFIG_FILENAME).is_file()
    ]


def active_world_config_path(user_data_path: Path | None) -> Path | None:
    """The world whose config.json was modified most recently."""
    latest: tuple[float, Path] | None = None
    for config_path in world_config_paths(user_data_path):
        mtime = config_path.stat().st_mtime
        if latest is None or mtime > latest[0]:
            latest = (mtime, config_path)
    return latest[1] if latest else None


def read_active_world_overrides(user_data_path: Path | None) -> dict[str, bool] | None:
    config_path = active_world_config_path(user_data_path)
    if config_path is None:
        return None
    return read_overrides(config_path)


def sync_active_world_mod_config(
    user_data_path: Path | None, enabled_ids: set[str], entries: Iterable[ModEntry]
) -> Path | None:
    """Write the enabled set into the active world.  Returns the config touched.

    No world means nothing to do.  A failed write is logged and reported as
    ``None``; the files on disk are already in their final places by then.
    """
    config_path = active_world_config_path(user_data_path)
    if config_path is None:
        return None
    try:
        write_overrides(config_path, enabled_ids, entries)
    except OSError as exc:
        _log.warning("Failed to sync mod settings into %s: %s", config_path, exc)
        return None
    return config_path


# ── Worlds ────────────────────────────────────────────────────────────


def world_config_path(user_data_path: Path, world_id: str) -> Path:
    """Config path for a world id, refusing ids that climb out of Saves."""
    root = saves_root(user_data_path)
    return ensure_within(root, root / world_id / WORLD_CONFIG_FILENAME)


def list_worlds(user_data_path: Path | None) -> list[WorldInfo]:
    worlds: list[WorldInfo] = []
    for config_path in world_config_paths(user_data_path):
        world = config_path.parent
        preview = world / WORLD_PREVIEW_FILENAME
        mtime = datetime.fromtimestamp(world.stat().st_mtime, tz=timezone.utc)
        worlds.append(
            WorldInfo(
                id=world.name,
                name=world.name,
                path=world,
                config_path=config_path,
                preview_path=preview if preview.is_file() else None,
                last_modified=mtime.isoformat(),
            )
        )
    worlds.sort(key=lambda w: w.last_modified, reverse=True)
    return worlds


def get_world_config(user_data_path: Path, world_id: str) -> dict | None:
    config_path = world_config_path(user_data_path, world_id)
    if not config_path.is_file():
        return None
    try:
        return load_world_config(config_path)
    except ConfigCorrupt as exc:
        _log.warning("Could not read world config: %s", exc)
        return None


def set_mod_enabled(user_data_path: Path, world_id: str, mod_id: str, enabled: bool):
    """Flip a single mod's Enabled flag in one world."""
    config_path = world_config_path(user_data_path, world_id)
    if not config_path.is_file():
        raise NotFound(f"World config.json not found for '{world_id}'")

    try:
        config = load_world_config(config_path)
    except ConfigCorrupt as exc:
        _log.warning("Starting a fresh Mods section: %s", exc)
        config = {}

    mods = config.get("Mods")
    if not isinstance(mods, dict):
        mods = {}
        config["Mods"] = mods
    entry = mods.get(mod_id)
    if isinstance(entry, dict):
        entry["Enabled"] = enabled
    else:
        mods[mod_id] = {"Enabled": enabled}

    save_world_config(config_path, config)
