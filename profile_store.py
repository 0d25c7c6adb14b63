"""
Profile persistence.

Profiles live in a small SQLite database next to the manager's settings.
``enabled_mods`` and ``load_order`` are stored as JSON text so the table
stays readable with any SQLite browser.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import Boolean, Column, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from errors import NotFound, ReadonlyProfile

if TYPE_CHECKING:
    from mod_scanner import ModEntry

_log = logging.getLogger(__name__)

DB_FILENAME = "hymn.sqlite"
DEFAULT_PROFILE_ID = "default"
DEFAULT_PROFILE_NAME = "Default"
NEW_PROFILE_NAME = "New Profile"

Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    enabled_mods = Column(Text, nullable=False, default="[]")
    load_order = Column(Text, nullable=False, default="[]")
    notes = Column(Text, nullable=True)
    readonly = Column(Boolean, default=False)


@dataclass
class Profile:
    id: str
    name: str
    enabled_mods: set[str] = field(default_factory=set)
    load_order: list[str] = field(default_factory=list)
    notes: str | None = None
    readonly: bool = False


def _decode_string_list(value: str | None) -> list[str]:
    try:
        parsed = json.loads(value or "[]")
    except ValueError:
        return []
    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, str)]


def _to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=row.id,
        name=row.name,
        enabled_mods=set(_decode_string_list(row.enabled_mods)),
        load_order=_decode_string_list(row.load_order),
        notes=row.notes,
        readonly=bool(row.readonly),
    )


def slugify_profile_id(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class ProfileStore:
    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}", connect_args={"check_same_thread": False}
        )
        Base.metadata.create_all(self.engine)
        self._session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def close(self):
        self.engine.dispose()

    # ── Queries ───────────────────────────────────────────────────────

    def list(self) -> list[Profile]:
        with self._session() as db:
            rows = db.query(ProfileRow).order_by(ProfileRow.readonly.desc(), ProfileRow.name).all()
            return [_to_profile(row) for row in rows]

    def get(self, profile_id: str) -> Profile | None:
        with self._session() as db:
            row = db.get(ProfileRow, profile_id)
            return _to_profile(row) if row else None

    def exists(self, profile_id: str) -> bool:
        return self.get(profile_id) is not None

    # ── Mutations ─────────────────────────────────────────────────────

    def save(self, profile: Profile) -> Profile:
        """Insert or overwrite a profile.  Bypasses the readonly check."""
        with self._session() as db:
            row = db.get(ProfileRow, profile.id) or ProfileRow(id=profile.id)
            row.name = profile.name
            row.enabled_mods = json.dumps(sorted(profile.enabled_mods))
            row.load_order = json.dumps(list(profile.load_order))
            row.notes = profile.notes
            row.readonly = profile.readonly
            db.add(row)
            db.commit()
        return profile

    def create(self, name: str) -> Profile:
        profile_name = name.strip() or NEW_PROFILE_NAME
        base_id = slugify_profile_id(profile_name) or f"profile-{uuid.uuid4().hex[:8]}"
        profile_id = base_id
        suffix = 2
        while self.exists(profile_id):
            profile_id = f"{base_id}-{suffix}"
            suffix += 1
        _log.debug("Creating profile %s (%s)", profile_id, profile_name)
        return self.save(Profile(id=profile_id, name=profile_name))

    def update(self, profile: Profile) -> Profile:
        existing = self.get(profile.id)
        if existing is None:
            raise NotFound(f"Profile not found: {profile.id}")
        if existing.readonly:
            raise ReadonlyProfile(f"Cannot modify readonly profile '{existing.name}'")
        return self.save(replace(profile, readonly=False))

    def delete(self, profile_id: str):
        with self._session() as db:
            row = db.get(ProfileRow, profile_id)
            if row is None:
                raise NotFound(f"Profile not found: {profile_id}")
            if row.readonly:
                raise ReadonlyProfile(f"Cannot delete readonly profile '{row.name}'")
            db.delete(row)
            db.commit()

    # ── Default profile ───────────────────────────────────────────────

    def get_default(self) -> Profile | None:
        profile = self.get(DEFAULT_PROFILE_ID)
        return profile if profile and profile.readonly else None

    def seed_from_scan(self, entries: Iterable[ModEntry]) -> Profile | None:
        """Create the readonly Default profile from the current enabled set.

        Returns the new profile, or ``None`` if one already existed.
        """
        if self.get_default() is not None:
            return None
        enabled = {entry.id for entry in entries if entry.enabled}
        _log.info("Seeding default profile with %d enabled mod(s)", len(enabled))
        return self.save(
            Profile(
                id=DEFAULT_PROFILE_ID,
                name=DEFAULT_PROFILE_NAME,
                enabled_mods=enabled,
                readonly=True,
            )
        )

    def sync_default_from_scan(self, entries: Iterable[ModEntry]) -> bool:
        """Make the Default profile mirror the enabled set.  True if it changed."""
        profile = self.get_default()
        if profile is None:
            return False
        enabled = {entry.id for entry in entries if entry.enabled}
        if enabled == profile.enabled_mods:
            return False
        self.save(replace(profile, enabled_mods=enabled))
        return True
