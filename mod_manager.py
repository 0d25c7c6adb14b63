"""
Hymn Mod Manager - Core Logic

Scans the mod library, applies profiles by moving mods between the game's
folders and the disabled mirror, keeps the active world's overrides in step,
and backs up mods before deleting them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Literal, Optional

from app_settings import AppSettings
from deleted_mods import DeletedModEntry, DeletedModsArchive, format_timestamp
from dependency_validation import ValidationResult, validate_mod_dependencies
from errors import InstallNotConfigured, NameCollision, NotFound
from fs_utils import copy_path, ensure_dir, is_within_path, move_path
from install_locations import InstallInfo, ManagerContext, location_path, resolve_install_info
from mod_scanner import ModEntry, scan_library
from profile_store import DB_FILENAME, Profile, ProfileStore
import world_config

_log = logging.getLogger("hymnmodmanager")

ApplyWarningKind = Literal["name_collision", "io_failure", "no_target"]


@dataclass
class ScanResult:
    install_path: Path | None
    entries: list[ModEntry] = field(default_factory=list)
    validation: ValidationResult | None = None


@dataclass
class ApplyWarning:
    """A mod that could not be moved during ``apply_profile``."""

    mod_id: str
    kind: ApplyWarningKind
    path: Path
    message: str


@dataclass
class ApplyResult:
    profile_id: str
    applied_at: str
    moved: list[tuple[str, Path, Path]] = field(default_factory=list)
    warnings: list[ApplyWarning] = field(default_factory=list)
    world_config: Path | None = None


@dataclass
class DeleteModResult:
    success: bool
    backup_path: Path


@dataclass
class AddModsResult:
    added_paths: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class ProfilesState:
    active_profile_id: str | None
    profiles: list[Profile] = field(default_factory=list)


class ModManager:
    """
    Main mod manager controller.

    Workflow:
        1. scan() to discover mods and their enabled state
        2. create_profile() / update_profile() to describe a desired state
        3. apply_profile() to move mods into place
        4. delete_mod() / restore_deleted_mod() to manage removals

    Mutating calls are not serialised here; callers run one at a time.
    """

    def __init__(
        self,
        context: ManagerContext,
        settings: AppSettings | None = None,
        profiles: ProfileStore | None = None,
        log_callback: Optional[Callable[[str], None]] = None,
    ):
        self.context = context
        self.settings = settings or AppSettings(context.app_data_dir)
        self.profiles = profiles or ProfileStore(context.app_data_dir / DB_FILENAME)
        self.deleted = DeletedModsArchive(context.deleted_mods_root)
        self._log_cb = log_callback or _log.info

    # ── Logging ───────────────────────────────────────────────────────

    def log(self, msg: str):
        self._log_cb(msg)

    # ── Install paths ─────────────────────────────────────────────────

    def get_install_info(self) -> InstallInfo:
        return resolve_install_info(self.context, self.settings.install_path_override)

    def set_install_path(self, path: str | Path | None) -> InstallInfo:
        self.settings.install_path_override = str(path) if path else None
        return self.get_install_info()

    def _require_install(self) -> InstallInfo:
        info = self.get_install_info()
        if info.active_path is None:
            raise InstallNotConfigured("Hytale install path not configured.")
        return info

    def validate_paths(self) -> list[str]:
        info = self.get_install_info()
        if info.active_path is None:
            return ["Hytale install path not configured and not detected."]
        issues = list(info.issues)
        if info.user_data_path and info.user_data_path.exists() and info.mods_path is None:
            issues.append(f"Mods folder not found: {info.user_data_path / 'Mods'}")
        return issues

    # ── Scanning ──────────────────────────────────────────────────────

    def _world_overrides(self, info: InstallInfo, world_id: str | None) -> dict[str, bool] | None:
        if info.user_data_path is None:
            return None
        if world_id:
            config_path = world_config.world_config_path(info.user_data_path, world_id)
            return world_config.read_overrides(config_path)
        return world_config.read_active_world_overrides(info.user_data_path)

    def _scan_entries(self, info: InstallInfo, world_id: str | None = None) -> list[ModEntry]:
        entries = scan_library(
            info, self.context.disabled_root, self._world_overrides(info, world_id)
        )
        if not self.settings.profiles_seeded:
            if self.profiles.seed_from_scan(entries) is not None:
                self.settings.active_profile_id = self.profiles.get_default().id
            self.settings.profiles_seeded = True
        if self.profiles.sync_default_from_scan(entries):
            _log.debug("Default profile synced to %d mod(s)", sum(e.enabled for e in entries))
        return entries

    def scan(self, world_id: str | None = None) -> ScanResult:
        """Scan the whole library, optionally with a specific world's overrides.

        Without a world id the most recently played world is used.
        """
        info = self.get_install_info()
        if info.active_path is None:
            return ScanResult(install_path=None)

        entries = self._scan_entries(info, world_id)
        validation = validate_mod_dependencies(entries)
        self.log(
            f"Scan complete: {len(entries)} mod(s), "
            f"{sum(entry.enabled for entry in entries)} enabled"
        )
        if validation.has_errors:
            self.log(f"  {len(validation.issues)} dependency issue(s) found")
        return ScanResult(install_path=info.active_path, entries=entries, validation=validation)

    # ── Profile application ───────────────────────────────────────────

    def _move_entry(
        self, entry: ModEntry, target_root: Path, result: ApplyResult
    ):
        target = target_root / entry.path.name
        if target.exists():
            message = f"Skipped {entry.path.name}: {target} already exists"
            self.log(f"  {message}")
            result.warnings.append(
                ApplyWarning(mod_id=entry.id, kind="name_collision", path=target, message=message)
            )
            return
        try:
            ensure_dir(target_root)
            move_path(entry.path, target)
        except OSError as exc:
            message = f"Could not move {entry.path.name}: {exc}"
            self.log(f"  {message}")
            result.warnings.append(
                ApplyWarning(mod_id=entry.id, kind="io_failure", path=entry.path, message=message)
            )
            return
        self.log(f"  Moved {entry.path.name} -> {target_root}")
        result.moved.append((entry.id, entry.path, target))

    def apply_profile(self, profile_id: str) -> ApplyResult:
        """Move every mod to the folder matching the profile's desired state.

        One mod failing to move never stops the rest; failures and name
        collisions come back as ``ApplyResult.warnings``.
        """
        info = self._require_install()
        profile = self.profiles.get(profile_id)
        if profile is None:
            raise NotFound(f"Profile not found: {profile_id}")

        self.log(f"Applying profile '{profile.name}'...")
        entries = self._scan_entries(info)
        known_ids = {entry.id for entry in entries}
        desired = profile.enabled_mods & known_ids
        stale = profile.enabled_mods - known_ids
        if stale:
            _log.debug("Ignoring %d stale mod id(s): %s", len(stale), sorted(stale))

        disabled_root = self.context.disabled_root
        result = ApplyResult(
            profile_id=profile.id,
            applied_at=format_timestamp(datetime.now(timezone.utc)),
        )

        for entry in entries:
            should_enable = entry.id in desired
            currently_disabled = is_within_path(entry.path, disabled_root)

            if should_enable and currently_disabled:
                target_root = location_path(info, entry.location)
                if target_root is None:
                    result.warnings.append(
                        ApplyWarning(
                            mod_id=entry.id,
                            kind="no_target",
                            path=entry.path,
                            message=f"No active folder for location '{entry.location}'",
                        )
                    )
                    continue
                self._move_entry(entry, target_root, result)
            elif not should_enable and not currently_disabled:
                self._move_entry(entry, self.context.disabled_location_path(entry.location), result)

        result.world_config = world_config.sync_active_world_mod_config(
            info.user_data_path, desired, entries
        )
        self.log(
            f"Applied '{profile.name}': {len(result.moved)} move(s), "
            f"{len(result.warnings)} warning(s)"
        )
        return result

    # ── Profiles ──────────────────────────────────────────────────────

    def get_profiles_state(self) -> ProfilesState:
        profiles = self.profiles.list()
        active = self.settings.active_profile_id
        if not profiles:
            if active is not None:
                self.settings.active_profile_id = None
            return ProfilesState(active_profile_id=None, profiles=[])
        if active is None or not any(profile.id == active for profile in profiles):
            active = profiles[0].id
            self.settings.active_profile_id = active
        return ProfilesState(active_profile_id=active, profiles=profiles)

    def create_profile(self, name: str) -> Profile:
        profile = self.profiles.create(name)
        self.settings.active_profile_id = profile.id
        self.log(f"Created profile '{profile.name}' ({profile.id})")
        return profile

    def update_profile(self, profile: Profile) -> Profile:
        return self.profiles.update(profile)

    def delete_profile(self, profile_id: str) -> ProfilesState:
        self.profiles.delete(profile_id)
        self.log(f"Deleted profile {profile_id}")
        return self.get_profiles_state()

    def set_active_profile(self, profile_id: str) -> ProfilesState:
        if not self.profiles.exists(profile_id):
            raise NotFound(f"Profile not found: {profile_id}")
        self.settings.active_profile_id = profile_id
        return self.get_profiles_state()

    # ── Worlds ────────────────────────────────────────────────────────

    def get_worlds(self) -> tuple[list[world_config.WorldInfo], str | None]:
        """All worlds, newest first, plus the selected world id."""
        info = self.get_install_info()
        worlds = world_config.list_worlds(info.user_data_path)
        selected = self.settings.selected_world_id
        if selected is None and worlds:
            selected = worlds[0].id
        return worlds, selected

    def get_world_config(self, world_id: str) -> dict | None:
        info = self.get_install_info()
        if info.user_data_path is None:
            return None
        return world_config.get_world_config(info.user_data_path, world_id)

    def set_selected_world(self, world_id: str | None):
        self.settings.selected_world_id = world_id

    def set_mod_enabled(self, world_id: str, mod_id: str, enabled: bool) -> bool:
        info = self.get_install_info()
        if info.user_data_path is None:
            raise InstallNotConfigured("Hytale UserData path not found.")
        world_config.set_mod_enabled(info.user_data_path, world_id, mod_id, enabled)
        self.log(f"{'Enabled' if enabled else 'Disabled'} {mod_id} in world '{world_id}'")
        return True

    # ── Adding / deleting mods ────────────────────────────────────────

    def add_mods(self, sources: Iterable[str | Path]) -> AddModsResult:
        """Copy mod files or folders into the Mods folder, never overwriting."""
        info = self._require_install()
        mods_path = location_path(info, "mods")
        ensure_dir(mods_path)

        result = AddModsResult()
        for source in map(Path, sources):
            if not source.exists():
                result.skipped.append(f"Skipped {source.name}: file not found.")
                continue
            target = mods_path / source.name
            if target.exists():
                result.skipped.append(f"Skipped {source.name}: already exists in Mods folder.")
                continue
            copy_path(source, target)
            result.added_paths.append(target)
            self.log(f"  Added {source.name}")

        if not result.added_paths and result.skipped:
            raise NameCollision("No mods were added. " + " ".join(result.skipped))
        return result

    def _allowed_mod_roots(self, info: InstallInfo) -> list[Path | None]:
        return [info.mods_path, info.early_plugins_path, self.context.disabled_root]

    def delete_mod(self, mod_id: str, mod_path: str | Path) -> DeleteModResult:
        info = self._require_install()
        self.log(f"Deleting {mod_id}...")
        backup = self.deleted.backup_and_remove(mod_path, self._allowed_mod_roots(info))
        return DeleteModResult(success=True, backup_path=backup)

    # ── Deleted mods ──────────────────────────────────────────────────

    def list_deleted_mods(self) -> list[DeletedModEntry]:
        return self.deleted.list()

    def restore_deleted_mod(self, backup_id: str) -> Path:
        info = self._require_install()
        if info.mods_path is None:
            raise NotFound("Mods folder not found.")
        restored = self.deleted.restore(backup_id, info.mods_path)
        self.log(f"Restored {restored.name}")
        return restored

    def permanently_delete_mod(self, backup_id: str) -> bool:
        self.deleted.permanently_delete(backup_id)
        return True

    def clear_deleted_mods(self) -> int:
        return self.deleted.clear()
