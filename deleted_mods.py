"""
Backups of deleted mods.

Deleting a mod first copies it to ``<app data>/deleted-mods`` under a name
that records when it happened:

    CoolSwords.jar_2024-01-15T12-34-56-789Z

i.e. ``<original name>_<UTC ISO-8601 timestamp with ':' and '.' as '-'>``.
The name is the only metadata: listing parses it back, restoring copies
the backup into the Mods folder under the original name.  Entries that do
not follow the pattern are not managed backups and are left alone by
``list``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from errors import IOFailure, NameCollision, NotFound
from fs_utils import copy_path, ensure_dir, ensure_within, path_size, remove_path

_log = logging.getLogger(__name__)

BACKUP_NAME_RE = re.compile(r"^(.+)_(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)$")
_STAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z$")


@dataclass
class DeletedModEntry:
    id: str
    original_name: str
    deleted_at: str
    backup_path: Path
    size: int
    format: str


def format_timestamp(moment: datetime) -> str:
    """``2024-01-15T12:34:56.789Z``, millisecond precision, always UTC."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def backup_name(original_name: str, moment: datetime) -> str:
    stamp = format_timestamp(moment).replace(":", "-").replace(".", "-")
    return f"{original_name}_{stamp}"


def parse_backup_name(name: str) -> tuple[str, str] | None:
    """Split a backup name into ``(original_name, iso_timestamp)``."""
    match = BACKUP_NAME_RE.match(name)
    if not match:
        return None
    date, hours, minutes, seconds, millis = _STAMP_RE.match(match.group(2)).groups()
    return match.group(1), f"{date}T{hours}:{minutes}:{seconds}.{millis}Z"


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def _backup_format(path: Path, original_name: str) -> str:
    if path.is_file():
        suffix = Path(original_name).suffix.lower()
        if suffix == ".zip":
            return "zip"
        if suffix == ".jar":
            return "jar"
    return "directory"


class DeletedModsArchive:
    def __init__(self, deleted_root: str | Path):
        self.deleted_root = Path(deleted_root)

    def _backup_path(self, backup_id: str) -> Path:
        path = ensure_within(self.deleted_root, self.deleted_root / backup_id)
        if not path.exists():
            raise NotFound(f"Backup not found: {backup_id}")
        return path

    # ── Backup ────────────────────────────────────────────────────────

    def backup_and_remove(
        self,
        mod_path: str | Path,
        allowed_roots: Iterable[Path | None],
        now: datetime | None = None,
    ) -> Path:
        """Copy a mod into the archive, then delete the original.

        If the original cannot be removed the fresh backup copy is cleaned up
        again so a failed delete does not leave a stray backup behind.
        """
        source = ensure_within(allowed_roots, mod_path)
        if not source.exists():
            raise NotFound(f"Mod not found at {mod_path}")

        target = self.deleted_root / backup_name(source.name, now or datetime.now(timezone.utc))
        ensure_dir(self.deleted_root)
        try:
            copy_path(source, target)
        except OSError as exc:
            if target.exists():
                remove_path(target)
            raise IOFailure(f"Could not back up {source.name}: {exc}") from exc

        try:
            remove_path(source)
        except OSError as exc:
            try:
                remove_path(target)
            except OSError as cleanup_exc:
                _log.warning("Could not remove backup %s: %s", target, cleanup_exc)
            raise IOFailure(f"Could not delete {source.name}: {exc}") from exc

        _log.info("Deleted %s (backup: %s)", source, target.name)
        return target

    # ── Listing ───────────────────────────────────────────────────────

    def list(self) -> list[DeletedModEntry]:
        if not self.deleted_root.is_dir():
            return []

        entries: list[DeletedModEntry] = []
        for item in self.deleted_root.iterdir():
            parsed = parse_backup_name(item.name)
            if parsed is None:
                continue
            original_name, deleted_at = parsed
            entries.append(
                DeletedModEntry(
                    id=item.name,
                    original_name=original_name,
                    deleted_at=deleted_at,
                    backup_path=item,
                    size=path_size(item) or 0,
                    format=_backup_format(item, original_name),
                )
            )

        # fixed-width ISO strings sort chronologically
        entries.sort(key=lambda entry: entry.deleted_at, reverse=True)
        return entries

    # ── Restore / purge ───────────────────────────────────────────────

    def restore(self, backup_id: str, mods_path: Path) -> Path:
        backup_path = self._backup_path(backup_id)
        parsed = parse_backup_name(backup_id)
        if parsed is None:
            raise NotFound(f"Not a mod backup: {backup_id}")
        original_name = parsed[0]

        restore_path = mods_path / original_name
        if restore_path.exists():
            raise NameCollision(
                f'A mod named "{original_name}" already exists in the Mods folder.'
            )

        ensure_dir(mods_path)
        try:
            copy_path(backup_path, restore_path)
        except OSError as exc:
            if restore_path.exists():
                remove_path(restore_path)
            raise IOFailure(f"Could not restore {original_name}: {exc}") from exc
        remove_path(backup_path)

        _log.info("Restored %s to %s", backup_id, restore_path)
        return restore_path

    def permanently_delete(self, backup_id: str):
        remove_path(self._backup_path(backup_id))
        _log.info("Permanently deleted backup %s", backup_id)

    def clear(self) -> int:
        if not self.deleted_root.is_dir():
            return 0
        count = 0
        for item in list(self.deleted_root.iterdir()):
            remove_path(item)
            count += 1
        _log.info("Cleared %d deleted mod backup(s)", count)
        return count
