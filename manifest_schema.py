"""
Manifest schema for Hytale mods.

Every pack or plugin may ship a ``manifest.json`` describing its identity:

{
    "Group": "Example",
    "Name": "CoolSwords",
    "Version": "1.2.0",
    "Description": "Adds some swords",
    "Main": "com.example.coolswords.CoolSwordsPlugin",
    "IncludesAssetPack": true,
    "Dependencies": {"Hytale:Core": "*"},
    "OptionalDependencies": ["Example:Armory"]
}

Only ``Name`` is needed to identify a mod; every other key is optional and
unknown keys are kept on the model untouched.  Dependency lists are written
by mod authors in two shapes, either an array of ids or an object whose keys
are the ids (values are version constraints this manager does not
interpret).  Both are normalised here into a plain ``list[str]``.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MANIFEST_FILENAME = "manifest.json"

# Lookup order inside a loose mod folder.  The last entry is the layout of a
# plugin source project (Gradle resources folder).
FOLDER_MANIFEST_LOCATIONS = (
    ("manifest.json",),
    ("Server", "manifest.json"),
    ("src", "main", "resources", "manifest.json"),
)

# Archive member names, compared case-insensitively.
ARCHIVE_MANIFEST_NAMES = ("manifest.json", "server/manifest.json")


def normalize_dependencies(value: Any) -> list[str]:
    """Collapse the array/object dependency shapes into a list of ids."""
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    if isinstance(value, dict):
        return [str(key) for key in value]
    return []


class HytaleManifest(BaseModel):
    """Parsed contents of a mod's manifest.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = Field(default=None, alias="Name")
    group: str | None = Field(default=None, alias="Group")
    version: str | None = Field(default=None, alias="Version")
    description: str | None = Field(default=None, alias="Description")
    main: str | None = Field(default=None, alias="Main")
    includes_asset_pack: bool = Field(default=False, alias="IncludesAssetPack")
    dependencies: list[str] = Field(default_factory=list, alias="Dependencies")
    optional_dependencies: list[str] = Field(
        default_factory=list, alias="OptionalDependencies"
    )

    @field_validator("name", "group", "version", "description", "main", mode="before")
    @classmethod
    def _strings_only(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("includes_asset_pack", mode="before")
    @classmethod
    def _strict_true(cls, v: Any) -> bool:
        # Only a literal JSON true counts; "yes", 1 and friends do not.
        return v is True

    @field_validator("dependencies", "optional_dependencies", mode="before")
    @classmethod
    def _normalize_dependencies(cls, v: Any) -> list[str]:
        return normalize_dependencies(v)

    @property
    def declares_entry_point(self) -> bool:
        return self.main is not None


def parse_manifest(data: bytes | str) -> HytaleManifest:
    """Parse raw JSON into a HytaleManifest.

    Raises ``json.JSONDecodeError`` if the data is not valid JSON and
    ``ValueError`` if the document is not a JSON object.
    """
    raw = json.loads(data)
    if not isinstance(raw, dict):
        raise ValueError(f"manifest must be a JSON object, got {type(raw).__name__}")
    return HytaleManifest.model_validate(raw)
