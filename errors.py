"""
Exception types raised by the Hymn Mod Manager core.

Only identity and safety violations are raised.  Manifest, world-config and
dependency problems are absorbed into return values by the callers that hit
them; ``ManifestUnreadable`` and ``ConfigCorrupt`` exist so those callers can
name the condition when they record it.
"""

from __future__ import annotations


class ModManagerError(Exception):
    """Base class for every error the core raises."""


class NotFound(ModManagerError):
    """A profile, backup, world or mod path does not exist."""


class PathEscape(ModManagerError):
    """A resolved path lies outside every allowed root."""


class NameCollision(ModManagerError):
    """The destination of an install, restore or move is already occupied."""


class ManifestUnreadable(ModManagerError):
    """A manifest.json (or the archive holding it) could not be parsed."""


class ConfigCorrupt(ModManagerError):
    """A world config.json is not a valid JSON object."""


class IOFailure(ModManagerError):
    """A filesystem operation failed (permissions, locked files, ...)."""


class ReadonlyProfile(ModManagerError):
    """Attempted to modify or delete a read-only profile."""


class InstallNotConfigured(ModManagerError):
    """No Hytale install path is configured or detected."""
