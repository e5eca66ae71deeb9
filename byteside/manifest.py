"""Avatar manifest parsing and validation.

A manifest is the ``manifest.json`` at the root of an avatar directory. It
declares one display asset per state, optional auto-transitions and an
optional terminal rendering section. Validation collects every problem it
finds instead of stopping at the first one; problems that do not prevent use
of the avatar are reported as warnings.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import dacite

from .exceptions import ManifestError
from .models import CANONICAL_STATES, AvatarManifest, AvatarStateConfig, model_from_dict

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"

KEBAB_CASE_RE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")
SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.-]+)?(\+[a-zA-Z0-9.-]+)?$")

PALETTE_FIELDS = ("primary", "secondary", "success", "error", "background")


@dataclass
class ManifestValidationResult:
    """Outcome of validating a manifest."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    manifest: AvatarManifest | None = None
    missing_files: list[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive(value: Any) -> bool:
    return _is_number(value) and value > 0


def _is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def _validate_state_config(
    name: str, config: Any, defined: set[str], errors: list[str]
) -> None:
    if not isinstance(config, dict):
        errors.append(f'State "{name}" must be an object')
        return

    if not _is_nonempty_str(config.get("file")):
        errors.append(f'State "{name}" must have a "file" property (string)')
        return

    if "duration" in config and not _is_number(config["duration"]):
        errors.append(f'State "{name}.duration" must be a number')
        return

    if "transition_to" in config:
        target = config["transition_to"]
        if not isinstance(target, str):
            errors.append(f'State "{name}.transition_to" must be a string')
        elif target not in defined:
            errors.append(
                f'State "{name}.transition_to" references undefined state "{target}"'
            )


def _validate_terminal(terminal: Any, errors: list[str]) -> None:
    if not isinstance(terminal, dict):
        errors.append('"terminal" must be an object')
        return

    if not isinstance(terminal.get("enabled"), bool):
        errors.append('"terminal.enabled" must be a boolean')

    if terminal.get("mode") not in ("ascii", "image"):
        errors.append('"terminal.mode" must be "ascii" or "image"')

    if "framerate" in terminal and not _is_positive(terminal["framerate"]):
        errors.append('"terminal.framerate" must be a positive number')

    if "size" in terminal:
        size = terminal["size"]
        if not isinstance(size, dict):
            errors.append('"terminal.size" must be an object')
        else:
            for dim in ("width", "height"):
                if not _is_positive(size.get(dim)):
                    errors.append(f'"terminal.size.{dim}" must be a positive number')

    states = terminal.get("states")
    if not isinstance(states, dict):
        errors.append('"terminal.states" must be an object')
        return

    for name, config in states.items():
        prefix = f'"terminal.states.{name}'
        if not isinstance(config, dict):
            errors.append(f'{prefix}" must be an object')
            continue

        has_frames = "frames" in config
        has_image = "image" in config
        if not has_frames and not has_image:
            errors.append(
                f'{prefix}" must have "frames" (for ascii) or "image" (for image mode)'
            )

        if has_frames:
            frames = config["frames"]
            if not isinstance(frames, list):
                errors.append(f'{prefix}.frames" must be an array')
            else:
                for i, frame in enumerate(frames):
                    if not isinstance(frame, str):
                        errors.append(f'{prefix}.frames[{i}]" must be a string')

        if has_image and not isinstance(config["image"], str):
            errors.append(f'{prefix}.image" must be a string')


def validate_manifest(data: Any) -> ManifestValidationResult:
    """Validate a decoded manifest object.

    Args:
        data: The decoded JSON value.

    Returns:
        Result with ``manifest`` populated only when there are no errors.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(data, dict):
        return ManifestValidationResult(valid=False, errors=["Manifest must be an object"])

    name = data.get("name")
    if not _is_nonempty_str(name):
        errors.append('Missing or invalid required field: "name" (string)')
    elif not KEBAB_CASE_RE.match(name):
        errors.append('"name" must be kebab-case (e.g., "my-avatar")')

    if not _is_nonempty_str(data.get("author")):
        errors.append('Missing or invalid required field: "author" (string)')

    version = data.get("version")
    if not _is_nonempty_str(version):
        errors.append('Missing or invalid required field: "version" (string)')
    elif not SEMVER_RE.match(version):
        warnings.append(
            f'"version" should follow semver format (e.g., "1.0.0"), got "{version}"'
        )

    if not _is_nonempty_str(data.get("format")):
        errors.append('Missing or invalid required field: "format" (string)')

    if "resolution" in data and not isinstance(data["resolution"], str):
        errors.append('"resolution" must be a string')
    if "framerate" in data and not _is_number(data["framerate"]):
        errors.append('"framerate" must be a number')
    if "loop" in data and not isinstance(data["loop"], bool):
        errors.append('"loop" must be a boolean')

    states = data.get("states")
    if not isinstance(states, dict):
        errors.append('Missing or invalid required field: "states" (object)')
    elif not states:
        errors.append('"states" must contain at least one state')
    else:
        defined = set(states)
        for state_name, config in states.items():
            _validate_state_config(state_name, config, defined, errors)
        for required in CANONICAL_STATES:
            if required not in defined:
                warnings.append(f'Missing recommended state: "{required}"')

    if "palette" in data:
        palette = data["palette"]
        if not isinstance(palette, dict):
            errors.append('"palette" must be an object')
        else:
            for key in PALETTE_FIELDS:
                if key in palette and not isinstance(palette[key], str):
                    errors.append(f'"palette.{key}" must be a string')

    if "terminal" in data:
        _validate_terminal(data["terminal"], errors)

    if errors:
        return ManifestValidationResult(valid=False, errors=errors, warnings=warnings)

    try:
        manifest = model_from_dict(AvatarManifest, data)
    except dacite.DaciteError as e:
        logger.debug("Manifest passed validation but failed to load: %s", e)
        return ManifestValidationResult(valid=False, errors=[str(e)], warnings=warnings)

    return ManifestValidationResult(
        valid=True,
        warnings=warnings,
        manifest=manifest,  # type: ignore[arg-type]
    )


def parse_manifest(source: str | bytes | Any) -> ManifestValidationResult:
    """Parse JSON text (or an already-decoded object) and validate it."""
    if isinstance(source, (str, bytes)):
        try:
            source = json.loads(source)
        except ValueError:
            return ManifestValidationResult(
                valid=False, errors=["Invalid JSON: failed to parse"]
            )
    return validate_manifest(source)


def get_state_config(manifest: AvatarManifest, state: str) -> AvatarStateConfig | None:
    """Return the config for ``state``, falling back to ``idle``."""
    if state in manifest.states:
        return manifest.states[state]
    return manifest.states.get("idle")


def validate_avatar_files(
    manifest: AvatarManifest, avatar_dir: str | Path
) -> ManifestValidationResult:
    """Check that every file a manifest references exists under ``avatar_dir``."""
    base = Path(avatar_dir)
    missing = [
        f'State "{name}": missing file "{config.file}"'
        for name, config in manifest.states.items()
        if not (base / config.file).exists()
    ]
    return ManifestValidationResult(
        valid=not missing,
        errors=list(missing),
        manifest=manifest,
        missing_files=missing,
    )


def validate_avatar(avatar_dir: str | Path) -> ManifestValidationResult:
    """Fully validate an avatar directory: manifest schema, then referenced files."""
    manifest_path = Path(avatar_dir) / MANIFEST_FILENAME
    if not manifest_path.exists():
        return ManifestValidationResult(valid=False, errors=["manifest.json not found"])

    try:
        content = manifest_path.read_text(encoding="utf-8")
    except OSError as e:
        return ManifestValidationResult(
            valid=False, errors=[f"Failed to read manifest.json: {e}"]
        )

    result = parse_manifest(content)
    if not result.valid or result.manifest is None:
        return result

    files = validate_avatar_files(result.manifest, avatar_dir)
    files.warnings = result.warnings
    return files


def load_manifest(avatar_dir: str | Path) -> AvatarManifest:
    """Load a valid manifest from an avatar directory.

    Raises:
        ManifestError: If the manifest is missing, unreadable or invalid.
    """
    manifest_path = Path(avatar_dir) / MANIFEST_FILENAME
    try:
        content = manifest_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(
            "Failed to read manifest.json",
            file_path=str(manifest_path),
            cause=e,
        ) from e

    result = parse_manifest(content)
    if not result.valid or result.manifest is None:
        raise ManifestError(
            f"Invalid manifest: {'; '.join(result.errors)}",
            errors=result.errors,
            file_path=str(manifest_path),
        )

    for warning in result.warnings:
        logger.debug("Manifest %s: %s", manifest_path, warning)
    return result.manifest
