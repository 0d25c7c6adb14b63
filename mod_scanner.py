"""
Mod discovery.

Walks the Mods and earlyplugins folders (and their disabled mirrors) and
builds one ``ModEntry`` per mod found.  A broken manifest never drops an
entry from the scan: the entry falls back to its filename and records the
problem in ``warnings``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Mapping

from fs_utils import path_size
from install_locations import InstallInfo, ModLocation
from manifest_reader import ManifestResult, read_manifest_from_archive, read_manifest_from_folder
from manifest_schema import HytaleManifest

_log = logging.getLogger(__name__)

ModFormat = Literal["directory", "zip", "jar"]
ModType = Literal["plugin", "early-plugin", "pack", "unknown"]

ARCHIVE_EXTENSIONS = {".zip", ".jar"}
EARLY_PLUGIN_EXTENSIONS = {".jar"}


@dataclass
class ModEntry:
    """One discovered mod, pack or plugin."""

    id: str
    name: str
    format: ModFormat
    location: ModLocation
    path: Path
    type: ModType
    enabled: bool = False
    group: str | None = None
    version: str | None = None
    description: str | None = None
    entry_point: str | None = None
    includes_asset_pack: bool = False
    dependencies: list[str] = field(default_factory=list)
    optional_dependencies: list[str] = field(default_factory=list)
    size: int | None = None
    warnings: list[str] = field(default_factory=list)


def resolve_mod_type(
    location: ModLocation,
    manifest: HytaleManifest | None,
    format: ModFormat,
    has_classes: bool = False,
) -> ModType:
    if location == "earlyplugins":
        return "early-plugin"
    if manifest is not None and manifest.declares_entry_point:
        return "plugin"
    if has_classes:
        return "plugin"
    if manifest is not None:
        return "pack"
    if location == "packs" or format == "directory":
        return "pack"
    return "unknown"


def create_mod_entry(
    result: ManifestResult,
    fallback_name: str,
    format: ModFormat,
    location: ModLocation,
    path: Path,
    enabled_override: bool | None = None,
    world_overrides: Mapping[str, bool] | None = None,
    size: int | None = None,
) -> ModEntry:
    """Build a ModEntry from a manifest read, applying enablement priority.

    Priority: ``enabled_override`` > ``world_overrides[id]`` > disabled.
    Mods the game has never been told about start out disabled.
    """
    manifest = result.manifest
    name = manifest.name if manifest and manifest.name else fallback_name
    group = manifest.group if manifest else None
    mod_id = f"{group}:{name}" if group else name

    if enabled_override is not None:
        enabled = enabled_override
    elif world_overrides is not None and mod_id in world_overrides:
        enabled = world_overrides[mod_id]
    else:
        enabled = False

    warnings = []
    if not result.ok:
        warnings.append(f"Manifest could not be read: {result.error}")

    return ModEntry(
        id=mod_id,
        name=name,
        group=group,
        version=manifest.version if manifest else None,
        description=manifest.description if manifest else None,
        format=format,
        location=location,
        path=path,
        type=resolve_mod_type(location, manifest, format, result.has_classes),
        entry_point=manifest.main if manifest else None,
        includes_asset_pack=manifest.includes_asset_pack if manifest else False,
        enabled=enabled,
        dependencies=list(manifest.dependencies) if manifest else [],
        optional_dependencies=list(manifest.optional_dependencies) if manifest else [],
        size=size,
        warnings=warnings,
    )


# ── Folder scanning ───────────────────────────────────────────────────


def scan_single_mod(path: Path, format: ModFormat, location: ModLocation) -> ModEntry | None:
    """Scan one mod or project folder/archive.  ``None`` if it is gone."""
    if not path.exists():
        return None
    if format == "directory":
        result = read_manifest_from_folder(path)
    else:
        result = read_manifest_from_archive(path)
    return create_mod_entry(
        result,
        fallback_name=path.name,
        format=format,
        location=location,
        path=path,
        size=path_size(path),
    )


def scan_mods_folder(
    mods_path: Path,
    enabled_override: bool | None = None,
    world_overrides: Mapping[str, bool] | None = None,
    location: ModLocation = "mods",
) -> list[ModEntry]:
    """Folders are loose mods, .zip/.jar files are archive mods, the rest is ignored."""
    entries: list[ModEntry] = []
    for child in sorted(mods_path.iterdir()):
        if child.is_dir():
            result = read_manifest_from_folder(child)
            format: ModFormat = "directory"
        elif child.is_file() and child.suffix.lower() in ARCHIVE_EXTENSIONS:
            result = read_manifest_from_archive(child)
            format = "jar" if child.suffix.lower() == ".jar" else "zip"
        else:
            continue

        entry = create_mod_entry(
            result,
            fallback_name=child.name,
            format=format,
            location=location,
            path=child,
            enabled_override=enabled_override,
            world_overrides=world_overrides,
            size=path_size(child),
        )
        if entry.warnings:
            _log.info("  %s: %s", child.name, "; ".join(entry.warnings))
        entries.append(entry)
    return entries


def scan_early_plugins_folder(
    early_plugins_path: Path,
    enabled_override: bool | None = None,
    world_overrides: Mapping[str, bool] | None = None,
) -> list[ModEntry]:
    """Early plugins are only ever .jar files."""
    entries: list[ModEntry] = []
    for child in sorted(early_plugins_path.iterdir()):
        if not child.is_file() or child.suffix.lower() not in EARLY_PLUGIN_EXTENSIONS:
            continue
        entries.append(
            create_mod_entry(
                read_manifest_from_archive(child),
                fallback_name=child.name,
                format="jar",
                location="earlyplugins",
                path=child,
                enabled_override=enabled_override,
                world_overrides=world_overrides,
                size=path_size(child),
            )
        )
    return entries


def scan_library(
    info: InstallInfo,
    disabled_root: Path,
    world_overrides: Mapping[str, bool] | None = None,
) -> list[ModEntry]:
    """Union of the active folders and their disabled mirrors, sorted by name.

    Anything sitting in a disabled mirror is reported disabled regardless of
    world overrides, because the game cannot load it from there.
    """
    entries: list[ModEntry] = []

    if info.mods_path:
        entries.extend(scan_mods_folder(info.mods_path, None, world_overrides))

    disabled_mods = disabled_root / "mods"
    if disabled_mods.is_dir():
        entries.extend(scan_mods_folder(disabled_mods, False, world_overrides))

    disabled_packs = disabled_root / "packs"
    if disabled_packs.is_dir():
        entries.extend(scan_mods_folder(disabled_packs, False, world_overrides, location="packs"))

    if info.early_plugins_path:
        entries.extend(scan_early_plugins_folder(info.early_plugins_path, None, world_overrides))

    disabled_early = disabled_root / "earlyplugins"
    if disabled_early.is_dir():
        entries.extend(scan_early_plugins_folder(disabled_early, False, world_overrides))

    # ordinal, case-sensitive
    entries.sort(key=lambda entry: entry.name)
    return entries
