"""Install agent hooks that call ``byteside trigger``.

The agent reads hooks from a ``settings.json`` (``~/.claude/settings.json``
globally, ``.claude/settings.json`` per project). Each hook event runs a
shell command; ours report the matching avatar state. Hooks that belong to
other tools are left untouched.
"""

from __future__ import annotations

import copy
import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .exceptions import HookSettingsError, record_error

logger = logging.getLogger(__name__)

TRIGGER_PREFIX = "byteside trigger"

WRITING_TOOLS = "Edit|Write|MultiEdit|NotebookEdit"
BASH_TOOLS = "Bash"

HOOK_EVENTS = ("UserPromptSubmit", "PreToolUse", "PostToolUse", "Notification", "Stop")

Settings = dict[str, Any]


@dataclass
class HookResult:
    success: bool
    message: str
    backup_path: Path | None = None


@dataclass
class HookStatus:
    installed: bool
    hook_count: int
    path: Path
    exists: bool


def get_global_settings_path() -> Path:
    return Path.home() / ".claude" / "settings.json"


def get_project_settings_path(project_path: str | Path | None = None) -> Path:
    base = Path(project_path) if project_path is not None else Path.cwd()
    return base / ".claude" / "settings.json"


def is_byteside_hook(command: str) -> bool:
    return command.startswith(TRIGGER_PREFIX)


def _entry(state: str, matcher: str | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    if matcher is not None:
        entry["matcher"] = matcher
    entry["hooks"] = [{"type": "command", "command": f"{TRIGGER_PREFIX} {state}"}]
    return entry


def generate_hook_config() -> dict[str, list[dict[str, Any]]]:
    """Hook entries mapping agent events to avatar states."""
    return {
        "UserPromptSubmit": [_entry("thinking")],
        "PreToolUse": [
            _entry("writing", WRITING_TOOLS),
            _entry("bash", BASH_TOOLS),
        ],
        "PostToolUse": [_entry("thinking", "*")],
        "Notification": [_entry("waiting")],
        "Stop": [_entry("success")],
    }


def read_settings(path: Path) -> Settings | None:
    """Read a settings file. Returns None if it does not exist.

    Raises:
        HookSettingsError: If the file is unreadable or not valid JSON.
    """
    if not path.exists():
        return None

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise HookSettingsError(
            f"Invalid JSON in {path}. Please fix the file manually.",
            file_path=str(path),
            cause=e,
        ) from e
    except OSError as e:
        raise HookSettingsError(
            f"Failed to read {path}: {e}", file_path=str(path), cause=e
        ) from e

    if not isinstance(data, dict):
        raise HookSettingsError(
            f"Invalid JSON in {path}. Please fix the file manually.",
            file_path=str(path),
        )
    return data


def write_settings(path: Path, settings: Settings) -> None:
    """Write settings as tab-indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent="\t")


def create_backup(path: Path) -> Path | None:
    """Copy ``path`` to ``<stem>.backup-<timestamp>.json`` beside it."""
    if not path.exists():
        return None

    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    backup = path.with_name(f"{path.stem}.backup-{stamp}{path.suffix}")
    shutil.copy2(path, backup)
    logger.info("Backed up %s to %s", path, backup)
    return backup


def _strip_entries(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    kept = []
    for entry in entries:
        hooks = [h for h in entry.get("hooks", []) if not is_byteside_hook(h.get("command", ""))]
        if hooks:
            kept.append({**entry, "hooks": hooks})
    return kept


def remove_byteside_hooks(settings: Settings) -> Settings:
    """Return a copy of ``settings`` without any byteside hook commands.

    Entries left with no hooks are dropped, then events with no entries,
    then the ``hooks`` key itself if nothing remains.
    """
    result = copy.deepcopy(settings)
    hooks = result.get("hooks")
    if not isinstance(hooks, dict):
        return result

    cleaned = {}
    for event, entries in hooks.items():
        if event in HOOK_EVENTS and isinstance(entries, list):
            entries = _strip_entries(entries)
            if not entries:
                continue
        cleaned[event] = entries

    if cleaned:
        result["hooks"] = cleaned
    else:
        result.pop("hooks", None)
    return result


def merge_hooks(existing: Settings | None, byteside_hooks: dict[str, list]) -> Settings:
    """Add ``byteside_hooks`` after any foreign hooks already present."""
    base = remove_byteside_hooks(existing) if existing else {}
    merged = dict(base.get("hooks", {}))
    for event, entries in byteside_hooks.items():
        merged[event] = [*merged.get(event, []), *copy.deepcopy(entries)]
    base["hooks"] = merged
    return base


def count_byteside_hooks(settings: Settings | None) -> int:
    if not settings or not isinstance(settings.get("hooks"), dict):
        return 0

    count = 0
    for event in HOOK_EVENTS:
        for entry in settings["hooks"].get(event) or []:
            for hook in entry.get("hooks", []):
                if is_byteside_hook(hook.get("command", "")):
                    count += 1
    return count


def has_byteside_hooks(settings: Settings | None) -> bool:
    return count_byteside_hooks(settings) > 0


def install_hooks(path: Path, *, force: bool = False, no_backup: bool = False) -> HookResult:
    """Install byteside hooks into the settings file at ``path``."""
    try:
        existing = read_settings(path)

        if existing and has_byteside_hooks(existing) and not force:
            return HookResult(
                success=False,
                message="Byteside hooks already installed. Use --force to overwrite.",
            )

        backup = None
        if existing is not None and not no_backup:
            backup = create_backup(path)

        merged = merge_hooks(existing, generate_hook_config())
        write_settings(path, merged)
    except HookSettingsError as e:
        record_error(e)
        return HookResult(success=False, message=e.message)
    except OSError as e:
        logger.error("Failed to install hooks into %s: %s", path, e)
        record_error(e)
        return HookResult(success=False, message=f"Failed to install hooks: {e}")

    count = count_byteside_hooks(merged)
    logger.info("Installed %d hooks to %s", count, path)
    return HookResult(
        success=True,
        message=f"Installed {count} byteside hooks to {path}",
        backup_path=backup,
    )


def uninstall_hooks(path: Path, *, no_backup: bool = False) -> HookResult:
    """Remove byteside hooks from the settings file at ``path``."""
    try:
        existing = read_settings(path)
        if existing is None:
            return HookResult(success=True, message=f"No settings file found at {path}")

        if not has_byteside_hooks(existing):
            return HookResult(success=True, message="No byteside hooks found to remove")

        backup = None if no_backup else create_backup(path)
        write_settings(path, remove_byteside_hooks(existing))
    except HookSettingsError as e:
        record_error(e)
        return HookResult(success=False, message=e.message)
    except OSError as e:
        logger.error("Failed to uninstall hooks from %s: %s", path, e)
        record_error(e)
        return HookResult(success=False, message=f"Failed to uninstall hooks: {e}")

    return HookResult(
        success=True,
        message=f"Removed byteside hooks from {path}",
        backup_path=backup,
    )


def get_hook_status(path: Path) -> HookStatus:
    if not path.exists():
        return HookStatus(installed=False, hook_count=0, path=path, exists=False)

    try:
        count = count_byteside_hooks(read_settings(path))
    except HookSettingsError as e:
        logger.debug("Cannot read hook status: %s", e)
        count = 0
    return HookStatus(installed=count > 0, hook_count=count, path=path, exists=True)
