"""Tests for CLI subcommands."""

from __future__ import annotations

import argparse
import json
from unittest import mock

import pytest

from byteside.__main__ import (
    _create_parser,
    _print_json,
    cmd_hooks_show,
    cmd_hooks_status,
    cmd_init,
    cmd_list,
    cmd_trigger,
    cmd_validate,
    main,
)
from byteside.avatar import get_bundled_avatars_dir
from byteside.client import TriggerOutcome, TriggerResult
from byteside.models import BytesideConfig


class TestArgumentParser:
    """Test argument parser configuration."""

    def test_no_subcommand_defaults(self) -> None:
        """Bare invocation starts the server with no overrides."""
        args = _create_parser().parse_args([])
        assert args.command is None
        assert args.port is None
        assert args.avatar is None
        assert args.no_open is False
        assert args.log_level == "INFO"

    def test_top_level_serve_options(self) -> None:
        args = _create_parser().parse_args(["--port", "4000", "--no-terminal"])
        assert args.port == 4000
        assert args.no_terminal is True

    def test_serve_subcommand(self) -> None:
        """Options after 'serve' are honoured."""
        args = _create_parser().parse_args(["serve", "-p", "4000", "-a", "robot", "--no-open"])
        assert args.command == "serve"
        assert args.port == 4000
        assert args.avatar == "robot"
        assert args.no_open is True

    def test_serve_does_not_reset_top_level(self) -> None:
        """Options before 'serve' survive subcommand parsing."""
        args = _create_parser().parse_args(["--port", "4000", "serve"])
        assert args.port == 4000

    def test_init_scope(self) -> None:
        parser = _create_parser()
        assert parser.parse_args(["init"]).global_ is False
        assert parser.parse_args(["init", "--global"]).global_ is True
        assert parser.parse_args(["init", "-g", "--force"]).force is True

    def test_init_scope_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args(["init", "--global", "--project"])

    def test_trigger(self) -> None:
        args = _create_parser().parse_args(["trigger", "thinking"])
        assert args.command == "trigger"
        assert args.state == "thinking"

    def test_hooks_uninstall_all(self) -> None:
        args = _create_parser().parse_args(["hooks", "uninstall", "--all", "--no-backup"])
        assert args.hooks_command == "uninstall"
        assert args.all is True
        assert args.no_backup is True

    def test_version(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args(["--version"])


class TestPrintJson:
    """Test JSON output helper."""

    def test_tab_indented(self, capsys) -> None:
        _print_json({"a": 1})
        assert capsys.readouterr().out == '{\n\t"a": 1\n}\n'


class TestValidateCommand:
    """Test cmd_validate."""

    @pytest.mark.asyncio
    async def test_bundled_default_passes(self, capsys) -> None:
        args = argparse.Namespace(path=str(get_bundled_avatars_dir() / "default"))

        assert await cmd_validate(args) == 0
        output = capsys.readouterr().out
        assert "Validation passed" in output
        assert "default" in output

    @pytest.mark.asyncio
    async def test_missing_manifest_fails(self, tmp_path, capsys) -> None:
        assert await cmd_validate(argparse.Namespace(path=str(tmp_path))) == 1
        assert "manifest.json not found" in capsys.readouterr().out


class TestListCommand:
    """Test cmd_list."""

    @pytest.mark.asyncio
    async def test_json_output(self, tmp_path, capsys) -> None:
        config = BytesideConfig(avatar_paths=[str(get_bundled_avatars_dir())])
        with mock.patch("byteside.__main__._load_config", return_value=config):
            assert await cmd_list(argparse.Namespace(json=True)) == 0

        data = json.loads(capsys.readouterr().out)
        assert [a["name"] for a in data] == ["default"]

    @pytest.mark.asyncio
    async def test_empty(self, tmp_path, capsys) -> None:
        config = BytesideConfig(avatar_paths=[str(tmp_path)])
        with mock.patch("byteside.__main__._load_config", return_value=config):
            assert await cmd_list(argparse.Namespace(json=False)) == 0

        assert "No avatars found." in capsys.readouterr().out


class TestHookCommands:
    """Test init and hooks subcommands."""

    @pytest.mark.asyncio
    async def test_init_project(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        args = argparse.Namespace(global_=False, force=False, no_backup=False)

        assert await cmd_init(args) == 0
        assert (tmp_path / ".claude" / "settings.json").is_file()

        assert await cmd_init(args) == 1

    @pytest.mark.asyncio
    async def test_status(self, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.chdir(tmp_path)

        await cmd_hooks_status(argparse.Namespace(global_=False))

        assert "No byteside hooks found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_show(self, capsys) -> None:
        assert await cmd_hooks_show(argparse.Namespace()) == 0
        data = json.loads(capsys.readouterr().out)
        assert set(data["hooks"]) == {
            "UserPromptSubmit",
            "PreToolUse",
            "PostToolUse",
            "Notification",
            "Stop",
        }


class TestTriggerCommand:
    """Test cmd_trigger exit codes."""

    @pytest.fixture(autouse=True)
    def default_config(self):
        with mock.patch("byteside.__main__._load_config", return_value=BytesideConfig()):
            yield

    @pytest.mark.asyncio
    async def test_accepted(self) -> None:
        result = TriggerResult(outcome=TriggerOutcome.ACCEPTED, previous="idle")
        with mock.patch("byteside.client.post_state", mock.AsyncMock(return_value=result)) as post:
            assert await cmd_trigger(argparse.Namespace(state="thinking")) == 0

        post.assert_awaited_once_with("http://localhost:3333", "thinking")

    @pytest.mark.asyncio
    async def test_unreachable_is_success(self) -> None:
        result = TriggerResult(outcome=TriggerOutcome.UNREACHABLE)
        with mock.patch("byteside.client.post_state", mock.AsyncMock(return_value=result)):
            assert await cmd_trigger(argparse.Namespace(state="thinking")) == 0

    @pytest.mark.asyncio
    async def test_rejected_fails(self, capsys) -> None:
        result = TriggerResult(
            outcome=TriggerOutcome.REJECTED,
            error="Invalid state. Must be one of: idle",
            valid_states=["idle"],
        )
        with mock.patch("byteside.client.post_state", mock.AsyncMock(return_value=result)):
            assert await cmd_trigger(argparse.Namespace(state="bogus")) == 1

        assert "Invalid state" in capsys.readouterr().err


class TestMain:
    """Test main dispatch."""

    def test_trigger_skips_first_run_setup(self) -> None:
        result = TriggerResult(outcome=TriggerOutcome.UNREACHABLE)
        with mock.patch("byteside.__main__._setup_logging"), \
                mock.patch("byteside.__main__._first_run_setup") as setup, \
                mock.patch("byteside.__main__._load_config", return_value=BytesideConfig()), \
                mock.patch("byteside.client.post_state", mock.AsyncMock(return_value=result)):
            assert main(["trigger", "idle"]) == 0

        setup.assert_not_called()

    def test_hooks_show_dispatch(self, capsys) -> None:
        with mock.patch("byteside.__main__._setup_logging"), \
                mock.patch("byteside.__main__._first_run_setup") as setup:
            assert main(["hooks", "show"]) == 0

        setup.assert_called_once()
        assert "byteside trigger" in capsys.readouterr().out

    def test_keyboard_interrupt(self) -> None:
        with mock.patch("byteside.__main__._setup_logging"), \
                mock.patch("byteside.__main__._first_run_setup"), \
                mock.patch("byteside.__main__._run_async", side_effect=KeyboardInterrupt):
            assert main(["list"]) == 130
