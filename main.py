#!/usr/bin/env python3
"""Hymn Mod Manager - Entry Point"""

import argparse
import faulthandler
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

from errors import ModManagerError
from install_locations import ManagerContext, default_app_data_dir

_installed_handlers: list[logging.Handler] = []
_crash_file = None


def setup_logging(app_data_dir: Path, verbose: bool = False) -> tuple[logging.Logger, Path]:
    log_dir = app_data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "hymnmodmanager.log"

    handler = RotatingFileHandler(
        log_file,
        maxBytes=1 * 1024 * 1024,  # 1 MB
        backupCount=2,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"))

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(message)s"))

    # module loggers propagate here; a second call replaces the first call's handlers
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in _installed_handlers:
        root.removeHandler(old)
        old.close()
    _installed_handlers[:] = [handler, console]
    for new in _installed_handlers:
        root.addHandler(new)
    return logging.getLogger("hymnmodmanager"), log_dir


def install_crash_handler(logger: logging.Logger, log_dir: Path):
    def handle_exception(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = handle_exception

    # faulthandler cannot go through logging after a hard crash
    global _crash_file
    if _crash_file is not None:
        faulthandler.disable()
        _crash_file.close()
    _crash_file = open(log_dir / "crash.log", "w")
    faulthandler.enable(_crash_file, all_threads=True)


# ── Commands ──────────────────────────────────────────────────────────


def cmd_info(manager, args):
    info = manager.get_install_info()
    print(f"App data:      {manager.context.app_data_dir}")
    print(f"Default path:  {info.default_path}")
    print(f"Detected path: {info.detected_path or '-'}")
    print(f"Active path:   {info.active_path or '-'}")
    print(f"UserData:      {info.user_data_path or '-'}")
    print(f"Mods:          {info.mods_path or '-'}")
    print(f"Early plugins: {info.early_plugins_path or '-'}")
    for issue in manager.validate_paths():
        print(f"  ! {issue}")


def cmd_scan(manager, args):
    result = manager.scan(args.world)
    if result.install_path is None:
        print("Hytale install not found. Use --install-path.")
        return
    for entry in result.entries:
        state = "on " if entry.enabled else "off"
        version = f" {entry.version}" if entry.version else ""
        print(f"[{state}] {entry.id}{version}  ({entry.type}, {entry.format}, {entry.location})")
        for warning in entry.warnings:
            print(f"        ! {warning}")
    if result.validation:
        for issue in result.validation.issues:
            print(f"  {issue.type}: {issue.message}")


def cmd_profiles(manager, args):
    state = manager.get_profiles_state()
    for profile in state.profiles:
        marker = "*" if profile.id == state.active_profile_id else " "
        flags = " (readonly)" if profile.readonly else ""
        print(f"{marker} {profile.id}: {profile.name}{flags}, {len(profile.enabled_mods)} mod(s)")


def cmd_profile_create(manager, args):
    profile = manager.create_profile(args.name)
    if args.mods:
        profile.enabled_mods = set(args.mods)
        manager.update_profile(profile)
    print(profile.id)


def cmd_profile_delete(manager, args):
    manager.delete_profile(args.profile_id)


def cmd_apply(manager, args):
    result = manager.apply_profile(args.profile_id)
    for warning in result.warnings:
        print(f"  ! {warning.kind}: {warning.message}")
    if result.world_config:
        print(f"Updated {result.world_config}")


def cmd_enable(manager, args):
    manager.set_mod_enabled(args.world, args.mod_id, True)


def cmd_disable(manager, args):
    manager.set_mod_enabled(args.world, args.mod_id, False)


def cmd_delete(manager, args):
    result = manager.delete_mod(args.mod_id, args.path)
    print(f"Backup: {result.backup_path}")


def cmd_deleted(manager, args):
    for entry in manager.list_deleted_mods():
        print(f"{entry.id}  {entry.original_name}  {entry.deleted_at}  {entry.size} bytes")


def cmd_restore(manager, args):
    print(manager.restore_deleted_mod(args.backup_id))


def cmd_purge(manager, args):
    manager.permanently_delete_mod(args.backup_id)


def cmd_purge_all(manager, args):
    print(f"Removed {manager.clear_deleted_mods()} backup(s)")


def _pick_mod_files() -> list[str]:
    from PySide6.QtWidgets import QApplication, QFileDialog

    app = QApplication.instance() or QApplication(sys.argv)
    paths, _ = QFileDialog.getOpenFileNames(
        None, "Add mods", "", "Hytale mods (*.zip *.jar);;All files (*)"
    )
    del app
    return paths


def cmd_add(manager, args):
    sources = list(args.paths)
    if args.dialog:
        sources.extend(_pick_mod_files())
    if not sources:
        print("Nothing to add.")
        return
    result = manager.add_mods(sources)
    for path in result.added_paths:
        print(f"Added {path}")
    for message in result.skipped:
        print(f"  ! {message}")


def cmd_worlds(manager, args):
    if args.select:
        manager.set_selected_world(args.select)
    worlds, selected = manager.get_worlds()
    for world in worlds:
        marker = "*" if world.id == selected else " "
        print(f"{marker} {world.id}  (last played {world.last_modified})")


def cmd_export_modpack(manager, args):
    from modpack_io import export_modpack

    result = export_modpack(manager, args.profile_id, Path(args.output))
    print(f"Exported {result.mod_count} mod(s) to {result.output_path}")


def cmd_import_modpack(manager, args):
    from modpack_io import import_modpack

    result = import_modpack(manager, Path(args.path))
    print(f"Created profile {result.profile.id} with {result.mod_count} mod(s)")


def cmd_export_world_mods(manager, args):
    from modpack_io import export_world_mods

    result = export_world_mods(manager, args.world, Path(args.output))
    print(f"Exported {result.mod_count} mod(s) to {result.output_path}")


def cmd_import_world_mods(manager, args):
    from modpack_io import import_world_mods

    result = import_world_mods(manager, Path(args.path))
    print(f"Imported {result.imported} mod(s), skipped {result.skipped}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hymn Mod Manager")
    parser.add_argument("--app-data-dir")
    parser.add_argument("--install-path")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info").set_defaults(func=cmd_info)

    p = sub.add_parser("scan")
    p.add_argument("--world")
    p.set_defaults(func=cmd_scan)

    sub.add_parser("profiles").set_defaults(func=cmd_profiles)

    p = sub.add_parser("profile-create")
    p.add_argument("name")
    p.add_argument("--mods", nargs="*")
    p.set_defaults(func=cmd_profile_create)

    p = sub.add_parser("profile-delete")
    p.add_argument("profile_id")
    p.set_defaults(func=cmd_profile_delete)

    p = sub.add_parser("apply")
    p.add_argument("profile_id")
    p.set_defaults(func=cmd_apply)

    for name, func in (("enable", cmd_enable), ("disable", cmd_disable)):
        p = sub.add_parser(name)
        p.add_argument("world")
        p.add_argument("mod_id")
        p.set_defaults(func=func)

    p = sub.add_parser("delete")
    p.add_argument("mod_id")
    p.add_argument("path")
    p.set_defaults(func=cmd_delete)

    sub.add_parser("deleted").set_defaults(func=cmd_deleted)

    p = sub.add_parser("restore")
    p.add_argument("backup_id")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("purge")
    p.add_argument("backup_id")
    p.set_defaults(func=cmd_purge)

    sub.add_parser("purge-all").set_defaults(func=cmd_purge_all)

    p = sub.add_parser("add")
    p.add_argument("paths", nargs="*")
    p.add_argument("--dialog", action="store_true")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("worlds")
    p.add_argument("--select")
    p.set_defaults(func=cmd_worlds)

    p = sub.add_parser("export-modpack")
    p.add_argument("profile_id")
    p.add_argument("output")
    p.set_defaults(func=cmd_export_modpack)

    p = sub.add_parser("import-modpack")
    p.add_argument("path")
    p.set_defaults(func=cmd_import_modpack)

    p = sub.add_parser("export-world-mods")
    p.add_argument("world")
    p.add_argument("output")
    p.set_defaults(func=cmd_export_world_mods)

    p = sub.add_parser("import-world-mods")
    p.add_argument("path")
    p.set_defaults(func=cmd_import_world_mods)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    app_data_dir = Path(args.app_data_dir) if args.app_data_dir else default_app_data_dir()

    logger, log_dir = setup_logging(app_data_dir, args.verbose)
    install_crash_handler(logger, log_dir)
    logger.debug("Starting Hymn Mod Manager (%s)", args.command)

    from mod_manager import ModManager

    context = ManagerContext(
        app_data_dir=app_data_dir,
        install_path_override=Path(args.install_path) if args.install_path else None,
    )
    manager = ModManager(context)
    try:
        args.func(manager, args)
    except ModManagerError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        manager.profiles.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
