"""
Tests for ModManager: scanning, profile application, worlds and deletion.
"""

import json
import os
from unittest.mock import patch

import pytest

from errors import InstallNotConfigured, NameCollision, NotFound, PathEscape, ReadonlyProfile
from profile_store import DEFAULT_PROFILE_ID
from tests.conftest import make_folder_mod, make_manager, make_world, make_zip, manifest_json


# ── helpers ──────────────────────────────────────────────────────────────────

def populate(mods_dir):
    """CoolSwords (folder) and Armory (zip), both in the Example group."""
    make_folder_mod(mods_dir, "CoolSwords", "CoolSwords", "Example", Version="1.2.0")
    make_zip(mods_dir / "Armory.zip", {"manifest.json": manifest_json("Armory", "Example")})


def profile_with(manager, name, mod_ids):
    profile = manager.create_profile(name)
    profile.enabled_mods = set(mod_ids)
    return manager.update_profile(profile)


def by_id(entries):
    return {entry.id: entry for entry in entries}


# ── scanning ─────────────────────────────────────────────────────────────────

def test_scan_discovers_every_format(manager, install, mods_dir):
    populate(mods_dir)
    make_zip(mods_dir / "Compiled.jar", {"com/example/Main.class": b"\xca\xfe"})
    make_zip(install / "earlyplugins" / "Boot.jar", {"manifest.json": manifest_json("Boot")})
    (mods_dir / "readme.txt").write_text("not a mod", encoding="utf-8")

    result = manager.scan()
    entries = by_id(result.entries)

    assert set(entries) == {"Example:CoolSwords", "Example:Armory", "Compiled.jar", "Boot"}
    assert entries["Example:CoolSwords"].format == "directory"
    assert entries["Example:CoolSwords"].type == "pack"
    assert entries["Example:CoolSwords"].version == "1.2.0"
    assert entries["Example:Armory"].format == "zip"
    assert entries["Compiled.jar"].type == "plugin"
    assert entries["Boot"].type == "early-plugin"
    assert entries["Boot"].location == "earlyplugins"


def test_scan_sorted_by_name(manager, mods_dir):
    populate(mods_dir)
    names = [entry.name for entry in manager.scan().entries]
    assert names == sorted(names)


def test_scan_defaults_to_disabled_without_world(manager, mods_dir):
    populate(mods_dir)
    assert all(not entry.enabled for entry in manager.scan().entries)


def test_scan_uses_active_world_overrides(manager, install, mods_dir):
    populate(mods_dir)
    make_world(install, "MyWorld", {"Example:CoolSwords": {"Enabled": True}})

    entries = by_id(manager.scan().entries)

    assert entries["Example:CoolSwords"].enabled is True
    assert entries["Example:Armory"].enabled is False


def test_scan_with_explicit_world(manager, install, mods_dir):
    populate(mods_dir)
    make_world(install, "A", {"Example:Armory": {"Enabled": True}})
    make_world(install, "B", {"Example:CoolSwords": {"Enabled": True}})

    entries = by_id(manager.scan("A").entries)

    assert entries["Example:Armory"].enabled is True
    assert entries["Example:CoolSwords"].enabled is False


def test_disabled_mirror_always_reported_disabled(manager, app_data, install, mods_dir):
    make_zip(
        app_data / "disabled" / "mods" / "Armory.zip",
        {"manifest.json": manifest_json("Armory", "Example")},
    )
    make_world(install, "MyWorld", {"Example:Armory": {"Enabled": True}})

    (entry,) = manager.scan().entries

    assert entry.enabled is False
    assert entry.path.parent == app_data / "disabled" / "mods"


def test_scan_keeps_mod_with_broken_manifest(manager, mods_dir):
    make_zip(mods_dir / "Broken.zip", {"manifest.json": "{not json"})

    (entry,) = manager.scan().entries

    assert entry.id == "Broken.zip"
    assert entry.warnings


def test_scan_without_install(app_data):
    manager = make_manager(app_data, None)
    try:
        result = manager.scan()
    finally:
        manager.profiles.close()
    assert result.install_path is None
    assert result.entries == []


def test_scan_reports_dependency_issues(manager, install, mods_dir):
    make_folder_mod(
        mods_dir, "Addon", "Addon", "Example", Dependencies={"Example:Core": "*"}
    )
    make_world(install, "MyWorld", {"Example:Addon": {"Enabled": True}})

    result = manager.scan()

    assert result.validation.has_errors
    (issue,) = result.validation.issues
    assert issue.type == "missing_dependency"
    assert issue.dependency_id == "Example:Core"


def test_first_scan_seeds_readonly_default_profile(manager, install, mods_dir):
    populate(mods_dir)
    make_world(install, "MyWorld", {"Example:CoolSwords": {"Enabled": True}})

    manager.scan()
    state = manager.get_profiles_state()

    assert state.active_profile_id == DEFAULT_PROFILE_ID
    default = state.profiles[0]
    assert default.readonly
    assert default.enabled_mods == {"Example:CoolSwords"}


# ── applying profiles ────────────────────────────────────────────────────────

def test_apply_moves_disabled_mods_to_mirror(manager, app_data, install, mods_dir):
    populate(mods_dir)
    config_path = make_world(install, "MyWorld", Seed=42)
    profile = profile_with(manager, "Swords only", ["Example:CoolSwords"])

    result = manager.apply_profile(profile.id)

    assert (mods_dir / "CoolSwords").is_dir()
    assert not (mods_dir / "Armory.zip").exists()
    assert (app_data / "disabled" / "mods" / "Armory.zip").is_file()
    assert [moved[0] for moved in result.moved] == ["Example:Armory"]
    assert result.warnings == []

    config = json.loads(config_path.read_text(encoding="utf-8"))
    assert config["Seed"] == 42
    assert config["Mods"]["Example:CoolSwords"] == {"Enabled": True}
    assert config["Mods"]["Example:Armory"] == {"Enabled": False}
    assert result.world_config == config_path


def test_apply_is_idempotent(manager, install, mods_dir):
    populate(mods_dir)
    make_world(install, "MyWorld")
    profile = profile_with(manager, "Swords only", ["Example:CoolSwords"])

    manager.apply_profile(profile.id)
    before = sorted((e.id, str(e.path), e.enabled) for e in manager.scan().entries)
    second = manager.apply_profile(profile.id)
    after = sorted((e.id, str(e.path), e.enabled) for e in manager.scan().entries)

    assert second.moved == []
    assert before == after


def test_apply_enables_mod_from_mirror(manager, app_data, install, mods_dir):
    populate(mods_dir)
    make_world(install, "MyWorld")
    manager.apply_profile(profile_with(manager, "None", []).id)
    assert not (mods_dir / "Armory.zip").exists()

    manager.apply_profile(profile_with(manager, "Armory", ["Example:Armory"]).id)

    assert (mods_dir / "Armory.zip").is_file()
    assert not (app_data / "disabled" / "mods" / "Armory.zip").exists()
    entries = by_id(manager.scan().entries)
    assert entries["Example:Armory"].enabled is True
    assert entries["Example:CoolSwords"].enabled is False


def test_apply_round_trips_early_plugin(manager, app_data, install):
    make_zip(install / "earlyplugins" / "Boot.jar", {"manifest.json": manifest_json("Boot", "Core")})
    make_world(install, "MyWorld")

    manager.apply_profile(profile_with(manager, "None", []).id)

    assert not (install / "earlyplugins" / "Boot.jar").exists()
    assert (app_data / "disabled" / "earlyplugins" / "Boot.jar").is_file()

    manager.apply_profile(profile_with(manager, "Boot", ["Core:Boot"]).id)

    assert (install / "earlyplugins" / "Boot.jar").is_file()
    assert not (app_data / "disabled" / "earlyplugins" / "Boot.jar").exists()
    (entry,) = manager.scan().entries
    assert (entry.location, entry.enabled) == ("earlyplugins", True)


def test_apply_enables_pack_from_packs_mirror(manager, app_data, install, mods_dir):
    make_zip(app_data / "disabled" / "packs" / "Textures.zip", {"manifest.json": manifest_json("Textures", "Art")})
    make_world(install, "MyWorld")

    (entry,) = manager.scan().entries
    assert (entry.id, entry.location, entry.enabled) == ("Art:Textures", "packs", False)

    manager.apply_profile(profile_with(manager, "Textures", ["Art:Textures"]).id)

    assert (mods_dir / "Textures.zip").is_file()
    assert not (app_data / "disabled" / "packs" / "Textures.zip").exists()


def test_apply_moves_symlinked_mod_both_ways(manager, app_data, tmp_path, install, mods_dir):
    project = make_folder_mod(tmp_path / "projects", "MyPlugin", "MyPlugin", "Dev")
    os.symlink(project, mods_dir / "MyPlugin", target_is_directory=True)
    make_world(install, "MyWorld")

    manager.apply_profile(profile_with(manager, "None", []).id)

    assert (app_data / "disabled" / "mods" / "MyPlugin").is_symlink()
    assert not (mods_dir / "MyPlugin").exists()

    result = manager.apply_profile(profile_with(manager, "Dev", ["Dev:MyPlugin"]).id)

    assert result.warnings == []
    assert (mods_dir / "MyPlugin").is_symlink()
    assert not (app_data / "disabled" / "mods" / "MyPlugin").exists()
    assert (project / "manifest.json").is_file()


def test_apply_keeps_one_copy_per_mod(manager, install, mods_dir):
    populate(mods_dir)
    make_world(install, "MyWorld")
    for mods in (["Example:Armory"], [], ["Example:CoolSwords", "Example:Armory"]):
        manager.apply_profile(profile_with(manager, "p", mods).id)
        ids = [entry.id for entry in manager.scan().entries]
        assert len(ids) == len(set(ids)) == 2


def test_apply_never_overwrites_on_collision(manager, app_data, mods_dir):
    mirrored = make_zip(
        app_data / "disabled" / "mods" / "Armory.zip",
        {"manifest.json": manifest_json("Armory", "Example")},
    )
    occupant = make_zip(mods_dir / "Armory.zip", {"manifest.json": manifest_json("Other")})
    profile = profile_with(manager, "Both", ["Example:Armory", "Other"])

    result = manager.apply_profile(profile.id)

    (warning,) = result.warnings
    assert warning.kind == "name_collision"
    assert warning.mod_id == "Example:Armory"
    assert mirrored.is_file()
    assert "Other" in occupant.read_bytes().decode("latin-1")


def test_apply_ignores_stale_mod_ids(manager, install, mods_dir):
    populate(mods_dir)
    config_path = make_world(install, "MyWorld")
    profile = profile_with(manager, "Stale", ["Example:CoolSwords", "Ghost:Mod"])

    result = manager.apply_profile(profile.id)

    assert result.warnings == []
    config = json.loads(config_path.read_text(encoding="utf-8"))
    assert "Ghost:Mod" not in config["Mods"]
    assert config["Mods"]["Example:CoolSwords"]["Enabled"] is True


def test_apply_reports_io_failure_and_continues(manager, mods_dir):
    populate(mods_dir)
    profile = profile_with(manager, "None", [])

    with patch("mod_manager.move_path", side_effect=OSError("file is locked")):
        result = manager.apply_profile(profile.id)

    assert {w.kind for w in result.warnings} == {"io_failure"}
    assert len(result.warnings) == 2
    assert (mods_dir / "Armory.zip").is_file()
    assert (mods_dir / "CoolSwords").is_dir()


def test_apply_unknown_profile(manager):
    with pytest.raises(NotFound):
        manager.apply_profile("nope")


def test_apply_without_install(app_data):
    manager = make_manager(app_data, None)
    try:
        with pytest.raises(InstallNotConfigured):
            manager.apply_profile(DEFAULT_PROFILE_ID)
    finally:
        manager.profiles.close()


# ── profiles ─────────────────────────────────────────────────────────────────

def test_default_profile_is_readonly(manager, mods_dir):
    populate(mods_dir)
    manager.scan()
    default = manager.profiles.get(DEFAULT_PROFILE_ID)

    default.enabled_mods = {"Example:Armory"}
    with pytest.raises(ReadonlyProfile):
        manager.update_profile(default)
    with pytest.raises(ReadonlyProfile):
        manager.delete_profile(DEFAULT_PROFILE_ID)


def test_create_profile_becomes_active(manager):
    profile = manager.create_profile("Adventure")
    assert manager.get_profiles_state().active_profile_id == profile.id


def test_delete_active_profile_falls_back(manager, mods_dir):
    populate(mods_dir)
    manager.scan()
    profile = manager.create_profile("Adventure")

    state = manager.delete_profile(profile.id)

    assert state.active_profile_id == DEFAULT_PROFILE_ID
    assert [p.id for p in state.profiles] == [DEFAULT_PROFILE_ID]


def test_set_active_profile_unknown(manager):
    with pytest.raises(NotFound):
        manager.set_active_profile("nope")


# ── worlds ───────────────────────────────────────────────────────────────────

def test_get_worlds_selects_newest_by_default(manager, install):
    make_world(install, "Alpha")
    make_world(install, "Beta")

    worlds, selected = manager.get_worlds()

    assert {w.id for w in worlds} == {"Alpha", "Beta"}
    assert selected == worlds[0].id

    manager.set_selected_world("Alpha")
    assert manager.get_worlds()[1] == "Alpha"


def test_set_mod_enabled_preserves_other_keys(manager, install):
    config_path = make_world(
        install, "MyWorld", {"Example:Armory": {"Enabled": False, "Priority": 3}}, Seed=7
    )

    manager.set_mod_enabled("MyWorld", "Example:Armory", True)
    manager.set_mod_enabled("MyWorld", "Example:New", False)

    config = json.loads(config_path.read_text(encoding="utf-8"))
    assert config["Seed"] == 7
    assert config["Mods"]["Example:Armory"] == {"Enabled": True, "Priority": 3}
    assert config["Mods"]["Example:New"] == {"Enabled": False}


def test_set_mod_enabled_unknown_world(manager, install):
    with pytest.raises(NotFound):
        manager.set_mod_enabled("Missing", "Example:Armory", True)


def test_world_id_cannot_escape_saves(manager, install):
    make_world(install, "MyWorld")
    with pytest.raises(PathEscape):
        manager.set_mod_enabled("../..", "Example:Armory", True)


# ── adding mods ──────────────────────────────────────────────────────────────

def test_add_mods_copies_into_mods_folder(manager, tmp_path, mods_dir):
    source = make_zip(tmp_path / "downloads" / "Armory.zip", {"manifest.json": manifest_json("Armory")})

    result = manager.add_mods([source])

    assert result.added_paths == [mods_dir / "Armory.zip"]
    assert source.is_file()
    assert (mods_dir / "Armory.zip").is_file()


def test_add_mods_never_overwrites(manager, tmp_path, mods_dir):
    source = make_zip(tmp_path / "downloads" / "Armory.zip", {"manifest.json": manifest_json("Armory")})
    manager.add_mods([source])

    with pytest.raises(NameCollision):
        manager.add_mods([source])


# ── deleting and restoring ───────────────────────────────────────────────────

def test_delete_and_restore_round_trip(manager, app_data, mods_dir):
    populate(mods_dir)

    deleted = manager.delete_mod("Example:Armory", mods_dir / "Armory.zip")

    assert deleted.success
    assert not (mods_dir / "Armory.zip").exists()
    assert deleted.backup_path.parent == app_data / "deleted-mods"
    (entry,) = manager.list_deleted_mods()
    assert entry.original_name == "Armory.zip"
    assert entry.format == "zip"

    restored = manager.restore_deleted_mod(entry.id)

    assert restored == mods_dir / "Armory.zip"
    assert restored.is_file()
    assert manager.list_deleted_mods() == []


def test_delete_folder_mod_from_mirror(manager, app_data, mods_dir):
    mod = make_folder_mod(app_data / "disabled" / "mods", "CoolSwords", "CoolSwords")

    manager.delete_mod("CoolSwords", mod)

    (entry,) = manager.list_deleted_mods()
    assert entry.format == "directory"
    assert not mod.exists()


def test_restore_collision_keeps_backup(manager, mods_dir):
    populate(mods_dir)
    manager.delete_mod("Example:Armory", mods_dir / "Armory.zip")
    make_zip(mods_dir / "Armory.zip", {"manifest.json": manifest_json("Replacement")})
    (entry,) = manager.list_deleted_mods()

    with pytest.raises(NameCollision):
        manager.restore_deleted_mod(entry.id)

    assert entry.backup_path.exists()
    assert len(manager.list_deleted_mods()) == 1


def test_delete_outside_mod_folders_is_refused(manager, tmp_path, mods_dir):
    outsider = make_zip(tmp_path / "elsewhere" / "Armory.zip", {"a.txt": "x"})

    with pytest.raises(PathEscape):
        manager.delete_mod("Armory.zip", outsider)
    with pytest.raises(PathEscape):
        manager.delete_mod("Mods", mods_dir)

    assert outsider.exists()
    assert mods_dir.is_dir()


def test_delete_symlinked_mod_keeps_link_target(manager, tmp_path, mods_dir):
    project = make_folder_mod(tmp_path / "projects", "MyPlugin", "MyPlugin", "Dev")
    os.symlink(project, mods_dir / "MyPlugin", target_is_directory=True)

    deleted = manager.delete_mod("Dev:MyPlugin", mods_dir / "MyPlugin")

    assert deleted.success
    assert not (mods_dir / "MyPlugin").is_symlink()
    assert (project / "manifest.json").is_file()
    assert (deleted.backup_path / "manifest.json").is_file()


def test_delete_missing_mod(manager, mods_dir):
    with pytest.raises(NotFound):
        manager.delete_mod("Ghost", mods_dir / "Ghost.zip")


def test_purge_and_clear_backups(manager, mods_dir):
    populate(mods_dir)
    manager.delete_mod("Example:Armory", mods_dir / "Armory.zip")
    manager.delete_mod("Example:CoolSwords", mods_dir / "CoolSwords")
    first, second = manager.list_deleted_mods()

    assert manager.permanently_delete_mod(first.id)
    assert [e.id for e in manager.list_deleted_mods()] == [second.id]
    assert manager.clear_deleted_mods() == 1
    assert manager.list_deleted_mods() == []


def test_backup_ids_cannot_escape_archive(manager):
    with pytest.raises(PathEscape):
        manager.permanently_delete_mod("../settings.ini")
