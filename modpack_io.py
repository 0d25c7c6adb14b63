"""
Sharing mod setups as files.

Two formats, both plain zip archives:

``.hymnpack``   a profile only: ``modpack.json`` with the profile name and
                its enabled mod ids.  No mod files are included.
``.hymnmods``   everything a world needs: ``worldmods.json`` listing the
                world's enabled mods plus the mods themselves under
                ``mods/<location>/<file or folder name>``.
"""

from __future__ import annotations

import json
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from deleted_mods import format_timestamp
from errors import InstallNotConfigured, IOFailure, ModManagerError, NotFound
from fs_utils import ensure_dir, ensure_within, remove_path
from install_locations import location_path
from profile_store import Profile

if TYPE_CHECKING:
    from mod_manager import ModManager

_log = logging.getLogger(__name__)

MODPACK_EXTENSION = ".hymnpack"
WORLD_MODS_EXTENSION = ".hymnmods"
MODPACK_MANIFEST = "modpack.json"
WORLD_MODS_MANIFEST = "worldmods.json"
DEFAULT_IMPORT_NAME = "Imported Profile"
LOCATIONS = ("mods", "packs", "earlyplugins")


@dataclass
class ExportResult:
    output_path: Path
    mod_count: int


@dataclass
class ImportModpackResult:
    profile: Profile
    mod_count: int


@dataclass
class ImportWorldModsResult:
    imported: int
    skipped: int


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


# ── Profiles ──────────────────────────────────────────────────────────


def export_modpack(manager: ModManager, profile_id: str, output_path: Path) -> ExportResult:
    profile = manager.profiles.get(profile_id)
    if profile is None:
        raise NotFound(f"Profile not found: {profile_id}")

    scan = manager.scan()
    enabled = [entry for entry in scan.entries if entry.id in profile.enabled_mods]
    meta = {
        "name": profile.name,
        "profileId": profile.id,
        "enabledMods": sorted(profile.enabled_mods),
        "exportedAt": _now(),
        "modCount": len(enabled),
    }

    ensure_dir(output_path.parent)
    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(MODPACK_MANIFEST, json.dumps(meta, indent=2))

    manager.log(f"Exported profile '{profile.name}' to {output_path}")
    return ExportResult(output_path=output_path, mod_count=len(enabled))


def import_modpack(manager: ModManager, pack_path: Path) -> ImportModpackResult:
    """Create a profile from a .hymnpack, keeping only mods that are installed."""
    with zipfile.ZipFile(pack_path, "r") as zf:
        if MODPACK_MANIFEST not in zf.namelist():
            raise ModManagerError(f"Invalid modpack: missing {MODPACK_MANIFEST}")
        meta = json.loads(zf.read(MODPACK_MANIFEST))

    wanted = [mod_id for mod_id in meta.get("enabledMods", []) if isinstance(mod_id, str)]
    known = {entry.id for entry in manager.scan().entries}
    valid = {mod_id for mod_id in wanted if mod_id in known}

    profile = manager.create_profile(meta.get("name") or DEFAULT_IMPORT_NAME)
    profile.enabled_mods = valid
    manager.update_profile(profile)

    if len(valid) < len(wanted):
        manager.log(f"  {len(wanted) - len(valid)} mod(s) from the pack are not installed")
    return ImportModpackResult(profile=profile, mod_count=len(valid))


# ── Worlds ────────────────────────────────────────────────────────────


def _add_to_zip(zf: zipfile.ZipFile, source: Path, arc_root: str):
    if source.is_dir():
        for child in sorted(source.rglob("*")):
            if child.is_file():
                zf.write(child, f"{arc_root}/{child.relative_to(source).as_posix()}")
    else:
        zf.write(source, arc_root)


def export_world_mods(manager: ModManager, world_id: str, output_path: Path) -> ExportResult:
    config = manager.get_world_config(world_id)
    if config is None:
        raise NotFound(f"World not found: {world_id}")

    mods = config.get("Mods") if isinstance(config.get("Mods"), dict) else {}
    enabled_ids = {
        mod_id for mod_id, value in mods.items()
        if isinstance(value, dict) and value.get("Enabled") is True
    }
    enabled = [entry for entry in manager.scan().entries if entry.id in enabled_ids]
    if not enabled:
        raise ModManagerError(f"No mods are enabled for world '{world_id}'.")

    meta = {
        "worldId": world_id,
        "exportedAt": _now(),
        "mods": [
            {
                "id": entry.id,
                "name": entry.name,
                "version": entry.version,
                "type": entry.type,
                "format": entry.format,
                "location": entry.location,
                "fileName": entry.path.name,
            }
            for entry in enabled
        ],
    }

    ensure_dir(output_path.parent)
    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(WORLD_MODS_MANIFEST, json.dumps(meta, indent=2))
        for entry in enabled:
            _add_to_zip(zf, entry.path, f"mods/{entry.location}/{entry.path.name}")

    manager.log(f"Exported {len(enabled)} mod(s) from world '{world_id}' to {output_path}")
    return ExportResult(output_path=output_path, mod_count=len(enabled))


def _group_members(names: list[str]) -> dict[tuple[str, str], list[str]]:
    """``(location, top-level name) -> members`` for everything under mods/."""
    groups: dict[tuple[str, str], list[str]] = {}
    for name in names:
        parts = PurePosixPath(name).parts
        if len(parts) < 3 or parts[0] != "mods" or parts[1] not in LOCATIONS:
            continue
        if name.endswith("/"):
            continue
        groups.setdefault((parts[1], parts[2]), []).append(name)
    return groups


def import_world_mods(manager: ModManager, bundle_path: Path) -> ImportWorldModsResult:
    """Unpack a .hymnmods bundle into the install, skipping mods already present.

    A member path that would land outside its mod's folder aborts the
    import with ``PathEscape`` before any file of that mod is written.
    """
    info = manager.get_install_info()
    if info.active_path is None:
        raise InstallNotConfigured("Hytale install path not configured.")

    imported = skipped = 0
    with zipfile.ZipFile(bundle_path, "r") as zf:
        names = zf.namelist()
        if WORLD_MODS_MANIFEST not in names:
            raise ModManagerError(f"Invalid world mods file: missing {WORLD_MODS_MANIFEST}")

        for (location, mod_name), members in _group_members(names).items():
            target_root = location_path(info, location)
            target = ensure_within(target_root, target_root / mod_name)
            if target.exists():
                skipped += 1
                continue

            # every member is checked before anything of this mod is written
            prefix = f"mods/{location}/"
            plan = []
            for member in members:
                relative = member[len(prefix):]
                if relative == mod_name:
                    plan.append((member, target))
                else:
                    plan.append((member, ensure_within(target, target_root / relative)))
            try:
                for member, dest in plan:
                    ensure_dir(dest.parent)
                    dest.write_bytes(zf.read(member))
            except (OSError, zipfile.BadZipFile) as exc:
                if target.exists():
                    remove_path(target)
                raise IOFailure(f"Could not import {mod_name}: {exc}") from exc
            imported += 1
            manager.log(f"  Imported {mod_name} into {target_root}")

    _log.info("World mods import: %d imported, %d skipped", imported, skipped)
    return ImportWorldModsResult(imported=imported, skipped=skipped)
