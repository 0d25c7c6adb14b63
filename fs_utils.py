"""
Filesystem helpers shared by the scanner, the profile applicator and the
deleted-mod archive.

Every mutating operation that accepts a caller-supplied path goes through
``ensure_within`` before touching the disk.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Iterable

from errors import PathEscape

_log = logging.getLogger(__name__)


# ── Containment ───────────────────────────────────────────────────────


def _normalized(path: str | Path) -> Path:
    # lexical only; a symlinked mod is judged by where the link sits
    return Path(os.path.normpath(os.path.abspath(Path(path).expanduser())))


def is_within_path(target: str | Path, root: str | Path) -> bool:
    """True if *target* is *root* itself or lies somewhere beneath it."""
    target_path = _normalized(target)
    root_path = _normalized(root)
    return target_path == root_path or target_path.is_relative_to(root_path)


def ensure_within(
    roots: str | Path | Iterable[str | Path | None], candidate: str | Path
) -> Path:
    """Return the normalised *candidate* if it lies strictly inside one of *roots*.

    ``None`` entries in *roots* are ignored so callers can pass optional
    install paths straight through.  The roots themselves are never accepted
    as candidates.  Raises ``PathEscape`` otherwise.
    """
    if isinstance(roots, (str, Path)):
        roots = [roots]
    normalized = _normalized(candidate)
    for root in roots:
        if root is None:
            continue
        root_path = _normalized(root)
        if normalized != root_path and normalized.is_relative_to(root_path):
            return normalized
    raise PathEscape(f"Path is outside the allowed mod folders: {candidate}")


# ── Size ──────────────────────────────────────────────────────────────


def path_size(target: Path) -> int | None:
    """File size, or the recursive size of a folder.  ``None`` if unreadable."""
    try:
        if target.is_file():
            return target.stat().st_size
        if target.is_dir():
            total = 0
            for child in target.iterdir():
                size = path_size(child)
                if size is not None:
                    total += size
            return total
    except OSError as exc:
        _log.debug("Could not size %s: %s", target, exc)
    return None


# ── Copy / remove / move ──────────────────────────────────────────────


def ensure_dir(target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)


def copy_path(source: Path, destination: Path) -> None:
    """Copy a file or a folder tree to *destination*."""
    if source.is_dir():
        shutil.copytree(source, destination)
        return
    ensure_dir(destination.parent)
    shutil.copy2(source, destination)


def remove_path(target: Path) -> None:
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    elif target.exists() or target.is_symlink():
        target.unlink()


def move_path(source: Path, destination: Path) -> None:
    """Rename *source* to *destination*, copying across devices if needed.

    On the copy fallback the source is only removed once the copy finished;
    a failed copy removes whatever part of the destination was written and
    re-raises, leaving the source untouched.
    """
    ensure_dir(destination.parent)
    try:
        os.rename(source, destination)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise

    _log.debug("Cross-device move, copying %s -> %s", source, destination)
    try:
        copy_path(source, destination)
    except OSError:
        if destination.exists():
            remove_path(destination)
        raise
    remove_path(source)
