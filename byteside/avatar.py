"""Avatar discovery across the configured search paths."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .exceptions import AvatarNotFoundError, record_error
from .manifest import MANIFEST_FILENAME, parse_manifest

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "default"


@dataclass
class DiscoveredAvatar:
    """An avatar directory with a valid manifest."""

    name: str
    author: str
    version: str
    path: Path


def get_user_avatars_dir() -> Path:
    """Return ``~/.byteside/avatars``."""
    return Path.home() / ".byteside" / "avatars"


def get_bundled_avatars_dir() -> Path:
    """Return the avatars directory shipped inside the package."""
    return Path(__file__).resolve().parent / "avatars"


def expand_avatar_paths(paths: Iterable[str | Path]) -> list[Path]:
    """Expand ``~`` and make every search path absolute."""
    return [Path(p).expanduser().resolve() for p in paths]


def ensure_user_avatars() -> Path:
    """Create the user avatars directory and seed it with the bundled default.

    Returns:
        The user avatars directory.
    """
    user_dir = get_user_avatars_dir()
    user_dir.mkdir(parents=True, exist_ok=True)

    dest = user_dir / DEFAULT_AVATAR
    source = get_bundled_avatars_dir() / DEFAULT_AVATAR
    if not dest.exists() and source.exists():
        shutil.copytree(source, dest)
        logger.info("Installed default avatar to %s", dest)

    return user_dir


def discover_avatars(paths: Iterable[str | Path]) -> list[DiscoveredAvatar]:
    """Scan search paths for directories holding a valid manifest.

    Directories without a valid manifest are skipped. When two directories
    declare the same avatar name, the one on the earlier path wins.

    Returns:
        Avatars sorted by name.
    """
    found: dict[str, DiscoveredAvatar] = {}

    for base in expand_avatar_paths(paths):
        if not base.is_dir():
            continue

        try:
            entries = sorted(base.iterdir())
        except OSError as e:
            logger.debug("Cannot scan %s: %s", base, e)
            continue

        for entry in entries:
            manifest_path = entry / MANIFEST_FILENAME
            if not manifest_path.is_file():
                continue

            try:
                result = parse_manifest(manifest_path.read_text(encoding="utf-8"))
            except OSError as e:
                logger.debug("Cannot read %s: %s", manifest_path, e)
                continue

            manifest = result.manifest
            if not result.valid or manifest is None or manifest.name in found:
                continue

            found[manifest.name] = DiscoveredAvatar(
                name=manifest.name,
                author=manifest.author,
                version=manifest.version,
                path=entry,
            )

    return sorted(found.values(), key=lambda a: a.name)


def resolve_avatar_path(name: str, paths: Iterable[str | Path]) -> Path | None:
    """Find the directory of the avatar called ``name`` on the search paths."""
    for avatar in discover_avatars(paths):
        if avatar.name == name:
            return avatar.path
    return None


def find_avatar(name: str, paths: Iterable[str | Path]) -> Path:
    """Resolve an avatar on the search paths, then among the bundled avatars.

    Raises:
        AvatarNotFoundError: If no avatar with that name exists anywhere.
    """
    path = resolve_avatar_path(name, paths)
    if path is not None:
        return path

    bundled = get_bundled_avatars_dir() / name
    if (bundled / MANIFEST_FILENAME).is_file():
        return bundled

    error = AvatarNotFoundError(name)
    record_error(error)
    raise error
