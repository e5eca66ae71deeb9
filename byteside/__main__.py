"""Entry point for ``byteside`` and ``python -m byteside``.

Usage:
    # Start the server and open the viewer (or animate in the terminal)
    byteside
    byteside serve --port 4000 --avatar my-avatar --no-open

    # Avatars
    byteside list
    byteside validate ./avatars/my-avatar

    # Agent hooks
    byteside init [--global] [--force] [--no-backup]
    byteside hooks status|uninstall|show

    # Report a state (what the hooks run)
    byteside trigger thinking
"""

from __future__ import annotations

import argparse
import asyncio
import json
import subprocess
import sys
import webbrowser
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from byteside.models import BytesideConfig

console = Console()
err_console = Console(stderr=True)

# Viewer popup size (256px avatar plus padding and state label)
VIEWER_WIDTH = 340
VIEWER_HEIGHT = 390

TERMINAL_RENDER_ROW = 12

CHROME_PATHS = {
    "darwin": ["/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"],
    "win32": [
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
    ],
}


def _setup_logging(args: argparse.Namespace) -> None:
    """Configure logging based on command-line arguments."""
    from byteside.logging_config import setup_logging

    if args.debug:
        setup_logging(
            level="DEBUG",
            log_to_console=True,
            log_to_file=True,
        )
    else:
        setup_logging(
            level=args.log_level,
            log_to_console=False,
            # Hooks run trigger on every agent event; keep it off the disk.
            log_to_file=not args.no_log_file and args.command != "trigger",
        )


def _print_json(data: Any) -> None:
    """Print data as tab-indented JSON to stdout."""
    print(json.dumps(data, indent="\t", default=str))


def _status(message: str, kind: str = "info") -> None:
    icon = {
        "success": "[green]✓[/green]",
        "warn": "[yellow]![/yellow]",
        "error": "[red]✗[/red]",
    }.get(kind, "[cyan]→[/cyan]")
    console.print(f"  {icon} {message}", highlight=False)


def _print_banner() -> None:
    console.print("[bold cyan]byteside[/bold cyan] [dim]- animated avatar companion[/dim]")
    console.print("[dim]" + "─" * 40 + "[/dim]")


def _find_chrome() -> str | None:
    for path in CHROME_PATHS.get(sys.platform, []):
        if Path(path).exists():
            return path
    return None


def _open_viewer(url: str) -> str:
    """Open the viewer, preferring a chromeless Chrome app window.

    Returns:
        "app" if opened in Chrome app mode, otherwise "browser".
    """
    chrome = _find_chrome()
    if chrome:
        profile = Path.home() / ".byteside" / "chrome-profile"
        try:
            subprocess.Popen(
                [
                    chrome,
                    f"--app={url}",
                    f"--window-size={VIEWER_WIDTH},{VIEWER_HEIGHT}",
                    f"--user-data-dir={profile}",
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            return "app"
        except OSError:
            pass

    webbrowser.open(url)
    return "browser"


def _settings_path(args: argparse.Namespace) -> Path:
    from byteside.hooks import get_global_settings_path, get_project_settings_path

    if getattr(args, "global_", False):
        return get_global_settings_path()
    return get_project_settings_path()


def _first_run_setup() -> None:
    """Create the global config file and seed the user avatars directory."""
    from byteside.avatar import ensure_user_avatars
    from byteside.config import ensure_global_config
    from byteside.exceptions import ConfigLoadError

    try:
        ensure_global_config()
        ensure_user_avatars()
    except (ConfigLoadError, OSError) as e:
        err_console.print(f"[yellow]Warning:[/yellow] first-run setup failed: {e}")


def _load_config(overrides: dict | None = None) -> BytesideConfig:
    from byteside.config import load_config

    return load_config(overrides=overrides)


# =============================================================================
# CLI Command Handlers
# =============================================================================


async def cmd_serve(args: argparse.Namespace) -> int:
    """Handle the default/serve command."""
    from byteside.client import server_url
    from byteside.exceptions import ConfigError, TerminalRendererError
    from byteside.server import BytesideServer, run_server
    from byteside.terminal import create_terminal_renderer, is_terminal_capable

    overrides: dict[str, Any] = {}
    if getattr(args, "port", None) is not None:
        overrides["server"] = {"port": args.port}
    if getattr(args, "avatar", None) is not None:
        overrides["avatar"] = args.avatar

    try:
        config = _load_config(overrides)
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        return 1

    server = BytesideServer.from_config(config)
    url = server_url(config.server.host, config.server.port)

    manifest = server.manifest
    use_terminal = (
        not getattr(args, "no_terminal", False)
        and manifest is not None
        and manifest.terminal is not None
        and manifest.terminal.enabled
        and server.avatar_path is not None
        and is_terminal_capable()
    )
    should_open = not getattr(args, "no_open", False) and config.viewer.auto_open

    _print_banner()
    _status(f"Starting server on port {config.server.port}...")
    _status(f"Avatar: {config.avatar}")
    if use_terminal:
        _status("Terminal mode enabled")

    renderer = None
    stop_tasks: list[asyncio.Future] = []

    def on_exit() -> None:
        console.print()
        _status("Shutting down...", "warn")
        # Restore the terminal before the server goes down.
        if renderer is not None:
            stop_tasks.append(asyncio.ensure_future(renderer.stop()))

    async def on_started(uv_server: Any) -> None:
        nonlocal renderer
        uv_server.exit_callbacks.append(on_exit)
        _status(f"Server running at {url}", "success")

        if use_terminal:
            renderer = create_terminal_renderer(
                manifest, server.avatar_path, TERMINAL_RENDER_ROW
            )
            if renderer is not None:
                try:
                    renderer.init()
                    await renderer.start(url)
                    _status("Terminal renderer started", "success")
                except TerminalRendererError as e:
                    renderer = None
                    _status(f"Failed to start terminal renderer: {e}", "error")
        elif should_open:
            _status("Opening viewer...")
            mode = _open_viewer(url)
            _status("Viewer opened" + (" (app mode)" if mode == "app" else ""), "success")

        console.print()
        console.print("  [dim]Press Ctrl+C to stop[/dim]")
        console.print()

    try:
        await run_server(server, on_started=on_started)
    finally:
        if renderer is not None:
            await renderer.stop()
        for task in stop_tasks:
            await task

    _status("Goodbye!", "success")
    return 0


async def cmd_list(args: argparse.Namespace) -> int:
    """Handle list command."""
    from byteside.avatar import discover_avatars
    from byteside.exceptions import ConfigError

    try:
        config = _load_config()
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        return 1

    avatars = discover_avatars(config.avatar_paths)

    if args.json:
        _print_json([
            {"name": a.name, "author": a.author, "version": a.version, "path": str(a.path)}
            for a in avatars
        ])
        return 0

    if not avatars:
        console.print("[yellow]No avatars found.[/yellow]")
        console.print("[dim]Run 'byteside' once to install the default avatar.[/dim]")
        return 0

    table = Table(box=None, header_style="bold")
    table.add_column("Name", min_width=20)
    table.add_column("Author", min_width=20)
    table.add_column("Version")
    for avatar in avatars:
        table.add_row(avatar.name, avatar.author, avatar.version)
    console.print(table)
    return 0


async def cmd_validate(args: argparse.Namespace) -> int:
    """Handle validate command."""
    from byteside.manifest import validate_avatar

    result = validate_avatar(Path(args.path).resolve())

    if not result.valid:
        _status("Validation failed", "error")
        console.print()
        for error in result.errors:
            console.print(f"  [red]✗[/red] {error}", highlight=False)
        for warning in result.warnings:
            console.print(f"  [yellow]![/yellow] {warning}", highlight=False)
        return 1

    _status("Validation passed", "success")
    console.print()

    manifest = result.manifest
    if manifest is not None:
        console.print(f"  [bold]Name:[/bold]     {manifest.name}")
        console.print(f"  [bold]Author:[/bold]   {manifest.author}")
        console.print(f"  [bold]Version:[/bold]  {manifest.version}")
        console.print(f"  [bold]Format:[/bold]   {manifest.format}")
        console.print(f"  [bold]States:[/bold]   {', '.join(manifest.state_names)}")

    if result.warnings:
        console.print()
        console.print("  [bold]Warnings:[/bold]")
        for warning in result.warnings:
            console.print(f"  [yellow]![/yellow] {warning}", highlight=False)

    return 0


async def cmd_init(args: argparse.Namespace) -> int:
    """Handle init command: install agent hooks."""
    from byteside.hooks import install_hooks

    result = install_hooks(_settings_path(args), force=args.force, no_backup=args.no_backup)

    if not result.success:
        _status(result.message, "error")
        return 1

    _status(result.message, "success")
    if result.backup_path:
        _status(f"Backup created: {result.backup_path}")
    return 0


async def cmd_trigger(args: argparse.Namespace) -> int:
    """Handle trigger command.

    Runs from agent hooks, so it stays quiet: an unreachable server is not an
    error. Only a rejection by the server exits non-zero.
    """
    from byteside.client import post_state, server_url
    from byteside.exceptions import ConfigError
    from byteside.models import BytesideConfig

    try:
        config = _load_config()
    except ConfigError:
        config = BytesideConfig()

    result = await post_state(server_url(config.server.host, config.server.port), args.state)
    if not result.ok:
        err_console.print(f"[red]Error:[/red] {result.error}", highlight=False)
        return 1
    return 0


async def cmd_hooks_status(args: argparse.Namespace) -> int:
    """Handle hooks status command."""
    from byteside.hooks import get_hook_status

    status = get_hook_status(_settings_path(args))

    console.print("[bold]Hooks Status[/bold]")
    console.print("[dim]" + "─" * 40 + "[/dim]")
    console.print(f"  [bold]Path:[/bold] {status.path}", highlight=False)
    exists = "[green]yes[/green]" if status.exists else "[yellow]no[/yellow]"
    console.print(f"  [bold]File exists:[/bold] {exists}")

    if status.installed:
        console.print(f"  [green]✓[/green] {status.hook_count} byteside hooks installed")
    else:
        console.print("  [yellow]![/yellow] No byteside hooks found")
        console.print()
        console.print("  [dim]Run 'byteside init' to install hooks[/dim]")
    return 0


async def cmd_hooks_uninstall(args: argparse.Namespace) -> int:
    """Handle hooks uninstall command."""
    from byteside.hooks import (
        get_global_settings_path,
        get_project_settings_path,
        uninstall_hooks,
    )

    if args.all:
        paths = [get_global_settings_path(), get_project_settings_path()]
    else:
        paths = [_settings_path(args)]

    exit_code = 0
    for path in paths:
        result = uninstall_hooks(path, no_backup=args.no_backup)
        if result.success:
            _status(result.message, "success")
            if result.backup_path:
                _status(f"Backup created: {result.backup_path}")
        else:
            _status(result.message, "error")
            exit_code = 1
    return exit_code


async def cmd_hooks_show(args: argparse.Namespace) -> int:
    """Handle hooks show command."""
    from byteside.hooks import generate_hook_config

    _print_json({"hooks": generate_hook_config()})
    return 0


def _run_async(coro: Any) -> int:
    """Run an async coroutine and return exit code."""
    return asyncio.run(coro)


# =============================================================================
# Argument Parser Setup
# =============================================================================


def _add_serve_args(parser: argparse.ArgumentParser, default: Any = None) -> None:
    """Add server options. Subparsers pass SUPPRESS so they don't reset values."""
    parser.add_argument("-p", "--port", type=int, default=default, help="Port to run server on")
    parser.add_argument("-a", "--avatar", default=default, help="Avatar to use")
    parser.add_argument(
        "--no-open",
        action="store_true",
        default=default if default is not None else False,
        help="Don't auto-open browser",
    )
    parser.add_argument(
        "--no-terminal",
        action="store_true",
        default=default if default is not None else False,
        help="Disable terminal avatar rendering",
    )


def _add_scope_args(parser: argparse.ArgumentParser, verb: str) -> None:
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "-g",
        "--global",
        dest="global_",
        action="store_true",
        help=f"{verb} global settings (~/.claude/settings.json)",
    )
    scope.add_argument(
        "-p",
        "--project",
        dest="global_",
        action="store_false",
        help=f"{verb} project settings (.claude/settings.json, default)",
    )


def _create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    from byteside import __version__

    parser = argparse.ArgumentParser(
        prog="byteside",
        description="Animated avatar companion for AI coding agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server with the configured avatar
  byteside

  # Install agent hooks for this project
  byteside init

  # Report a state change
  byteside trigger thinking
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Global arguments
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to console",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set log level (default: INFO)",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable logging to file",
    )
    _add_serve_args(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the avatar server (default)")
    _add_serve_args(serve_parser, default=argparse.SUPPRESS)

    list_parser = subparsers.add_parser("list", help="List installed avatars")
    list_parser.add_argument("--json", action="store_true", help="Output in JSON format")

    validate_parser = subparsers.add_parser("validate", help="Validate an avatar package")
    validate_parser.add_argument("path", help="Avatar directory")

    init_parser = subparsers.add_parser("init", help="Install agent hooks for avatar state changes")
    _add_scope_args(init_parser, "Install to")
    init_parser.add_argument("-f", "--force", action="store_true", help="Overwrite existing hooks")
    init_parser.add_argument("--no-backup", action="store_true", help="Skip backup creation")

    trigger_parser = subparsers.add_parser("trigger", help="Set avatar state (used by agent hooks)")
    trigger_parser.add_argument("state", help="State to report")

    hooks_parser = subparsers.add_parser("hooks", help="Manage agent hooks")
    hooks_sub = hooks_parser.add_subparsers(dest="hooks_command", help="Hooks commands")

    status_parser = hooks_sub.add_parser("status", help="Show hooks installation status")
    _add_scope_args(status_parser, "Check")

    uninstall_parser = hooks_sub.add_parser("uninstall", help="Remove byteside hooks")
    _add_scope_args(uninstall_parser, "Remove from")
    uninstall_parser.add_argument(
        "--all", action="store_true", help="Remove from both global and project settings"
    )
    uninstall_parser.add_argument("--no-backup", action="store_true", help="Skip backup creation")

    hooks_sub.add_parser("show", help="Preview generated hook configuration")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the byteside CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    _setup_logging(args)

    if args.command != "trigger":
        _first_run_setup()

    try:
        if args.command == "trigger":
            return _run_async(cmd_trigger(args))

        if args.command == "list":
            return _run_async(cmd_list(args))

        if args.command == "validate":
            return _run_async(cmd_validate(args))

        if args.command == "init":
            return _run_async(cmd_init(args))

        if args.command == "hooks":
            if args.hooks_command == "status":
                return _run_async(cmd_hooks_status(args))
            if args.hooks_command == "uninstall":
                return _run_async(cmd_hooks_uninstall(args))
            if args.hooks_command == "show":
                return _run_async(cmd_hooks_show(args))
            parser.parse_args(["hooks", "--help"])
            return 1

        # No subcommand or "serve"
        return _run_async(cmd_serve(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
