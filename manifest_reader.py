"""
Locate and read mod manifests from loose folders and zip/jar archives.

Nothing in here raises for a bad manifest.  A ``ManifestResult`` carries
either the parsed manifest or the reason it could not be read, and the
scanner decides what to do with it.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from errors import ManifestUnreadable
from manifest_schema import (
    ARCHIVE_MANIFEST_NAMES,
    FOLDER_MANIFEST_LOCATIONS,
    HytaleManifest,
    parse_manifest,
)

_log = logging.getLogger(__name__)


@dataclass
class ManifestResult:
    manifest: HytaleManifest | None = None
    has_classes: bool = False
    manifest_path: str | None = None
    error: ManifestUnreadable | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def find_manifest_path(folder: Path) -> Path | None:
    """First manifest.json found in the folder's well-known locations."""
    for parts in FOLDER_MANIFEST_LOCATIONS:
        candidate = folder.joinpath(*parts)
        if candidate.is_file():
            return candidate
    return None


def read_manifest_from_folder(folder: Path) -> ManifestResult:
    manifest_path = find_manifest_path(folder)
    if manifest_path is None:
        return ManifestResult()

    try:
        manifest = parse_manifest(manifest_path.read_bytes())
    except (OSError, ValueError, ValidationError) as exc:
        # json.JSONDecodeError is a ValueError
        _log.warning("Could not read %s: %s", manifest_path, exc)
        return ManifestResult(
            manifest_path=str(manifest_path), error=ManifestUnreadable(str(exc))
        )

    return ManifestResult(manifest=manifest, manifest_path=str(manifest_path))


def _find_archive_manifest(names: list[str]) -> str | None:
    lowered = {}
    for name in names:
        lowered.setdefault(name.replace("\\", "/").lower(), name)
    for wanted in ARCHIVE_MANIFEST_NAMES:
        if wanted in lowered:
            return lowered[wanted]
    return None


def read_manifest_from_archive(archive_path: Path) -> ManifestResult:
    """Read manifest.json out of a zip/jar without extracting it to disk.

    ``has_classes`` is reported even when the manifest is missing or broken,
    since compiled classes alone mark an archive as a plugin.
    """
    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            names = zf.namelist()
            has_classes = any(name.lower().endswith(".class") for name in names)
            member = _find_archive_manifest(names)
            if member is None:
                return ManifestResult(has_classes=has_classes)
            data = zf.read(member)
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        _log.warning("Could not open archive %s: %s", archive_path.name, exc)
        return ManifestResult(error=ManifestUnreadable(str(exc)))

    try:
        manifest = parse_manifest(data)
    except (ValueError, ValidationError) as exc:
        _log.warning("Could not parse %s in %s: %s", member, archive_path.name, exc)
        return ManifestResult(
            has_classes=has_classes,
            manifest_path=member,
            error=ManifestUnreadable(str(exc)),
        )

    return ManifestResult(manifest=manifest, has_classes=has_classes, manifest_path=member)

