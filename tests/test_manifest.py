"""Tests for avatar manifest validation."""

import copy
import json

import pytest

from byteside.exceptions import ManifestError
from byteside.manifest import (
    get_state_config,
    load_manifest,
    parse_manifest,
    validate_avatar,
    validate_manifest,
)
from byteside.models import TerminalMode

STATES = ["idle", "thinking", "writing", "bash", "error", "success", "waiting"]

VALID = {
    "name": "my-avatar",
    "author": "someone",
    "version": "1.0.0",
    "format": "webm",
    "states": {
        **{state: {"file": f"{state}.webm"} for state in STATES},
        "error": {"file": "error.webm", "duration": 3000, "transition_to": "idle"},
    },
}


def manifest(**changes):
    data = copy.deepcopy(VALID)
    for key, value in changes.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
    return data


class TestValidateManifest:
    """Test validate_manifest."""

    def test_valid(self):
        result = validate_manifest(VALID)

        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.manifest.name == "my-avatar"
        assert result.manifest.states["error"].duration == 3000
        assert result.manifest.states["error"].transition_to == "idle"

    def test_not_an_object(self):
        result = validate_manifest([])
        assert result.errors == ["Manifest must be an object"]

    @pytest.mark.parametrize("field", ["name", "author", "version", "format"])
    def test_missing_required_field(self, field):
        result = validate_manifest(manifest(**{field: None}))

        assert not result.valid
        assert any(f'"{field}"' in e for e in result.errors)
        assert result.manifest is None

    def test_name_must_be_kebab_case(self):
        result = validate_manifest(manifest(name="My_Avatar"))
        assert result.errors == ['"name" must be kebab-case (e.g., "my-avatar")']

    def test_non_semver_is_warning(self):
        result = validate_manifest(manifest(version="v1"))

        assert result.valid
        assert result.warnings == [
            '"version" should follow semver format (e.g., "1.0.0"), got "v1"'
        ]

    def test_missing_canonical_state_is_warning(self):
        result = validate_manifest(manifest(states={"idle": {"file": "idle.webm"}}))

        assert result.valid
        assert 'Missing recommended state: "thinking"' in result.warnings
        assert len(result.warnings) == 6

    def test_empty_states(self):
        result = validate_manifest(manifest(states={}))
        assert result.errors == ['"states" must contain at least one state']

    def test_state_without_file(self):
        result = validate_manifest(manifest(states={"idle": {}}))
        assert result.errors == ['State "idle" must have a "file" property (string)']

    def test_duration_must_be_number(self):
        result = validate_manifest(
            manifest(states={"idle": {"file": "idle.webm", "duration": "3s"}})
        )
        assert result.errors == ['State "idle.duration" must be a number']

    def test_transition_to_undefined_state(self):
        result = validate_manifest(
            manifest(states={"idle": {"file": "idle.webm", "transition_to": "nowhere"}})
        )
        assert result.errors == [
            'State "idle.transition_to" references undefined state "nowhere"'
        ]

    def test_collects_all_errors(self):
        result = validate_manifest({"states": "nope"})
        assert len(result.errors) == 5

    def test_palette_values_must_be_strings(self):
        result = validate_manifest(manifest(palette={"primary": 1}))
        assert result.errors == ['"palette.primary" must be a string']

    def test_custom_state_kept(self):
        data = manifest()
        data["states"]["dancing"] = {"file": "dancing.webm"}

        result = validate_manifest(data)

        assert result.manifest.state_names[-1] == "dancing"


class TestTerminalSection:
    """Test validation of the terminal section."""

    def test_valid_terminal(self):
        terminal = {
            "enabled": True,
            "mode": "ascii",
            "framerate": 4,
            "size": {"width": 20, "height": 6},
            "states": {"idle": {"frames": ["frames/idle-1.txt"]}},
        }

        result = validate_manifest(manifest(terminal=terminal))

        assert result.valid
        assert result.manifest.terminal.mode is TerminalMode.ASCII
        assert result.manifest.terminal.size.width == 20

    def test_bad_terminal(self):
        terminal = {"enabled": "yes", "mode": "video", "states": {"idle": {}}}

        result = validate_manifest(manifest(terminal=terminal))

        assert result.errors == [
            '"terminal.enabled" must be a boolean',
            '"terminal.mode" must be "ascii" or "image"',
            '"terminal.states.idle" must have "frames" (for ascii) or "image" (for image mode)',
        ]

    def test_frames_must_be_strings(self):
        terminal = {"enabled": True, "mode": "ascii", "states": {"idle": {"frames": [1]}}}

        result = validate_manifest(manifest(terminal=terminal))

        assert result.errors == ['"terminal.states.idle.frames[0]" must be a string']

    def test_size_and_framerate_must_be_positive(self):
        terminal = {
            "enabled": True,
            "mode": "image",
            "framerate": -2,
            "size": {"width": 0, "height": 4},
            "states": {"idle": {"image": "idle.png"}},
        }

        result = validate_manifest(manifest(terminal=terminal))

        assert result.errors == [
            '"terminal.framerate" must be a positive number',
            '"terminal.size.width" must be a positive number',
        ]


class TestParseManifest:
    """Test parse_manifest."""

    def test_json_text(self):
        assert parse_manifest(json.dumps(VALID)).valid

    def test_invalid_json(self):
        result = parse_manifest("{oops")
        assert result.errors == ["Invalid JSON: failed to parse"]


class TestGetStateConfig:
    """Test get_state_config."""

    def test_known_state(self):
        config = get_state_config(validate_manifest(VALID).manifest, "bash")
        assert config.file == "bash.webm"

    def test_unknown_falls_back_to_idle(self):
        config = get_state_config(validate_manifest(VALID).manifest, "dancing")
        assert config.file == "idle.webm"


class TestAvatarDirectory:
    """Test validate_avatar and load_manifest on directories."""

    def test_missing_manifest(self, tmp_path):
        result = validate_avatar(tmp_path)
        assert result.errors == ["manifest.json not found"]

    def test_missing_files_reported(self, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps(VALID), encoding="utf-8")
        (tmp_path / "idle.webm").write_bytes(b"")

        result = validate_avatar(tmp_path)

        assert not result.valid
        assert 'State "thinking": missing file "thinking.webm"' in result.missing_files
        assert len(result.missing_files) == 6

    def test_complete_avatar(self, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps(VALID), encoding="utf-8")
        for state in STATES:
            (tmp_path / f"{state}.webm").write_bytes(b"")

        assert validate_avatar(tmp_path).valid

    def test_load_manifest(self, tmp_path):
        (tmp_path / "manifest.json").write_text(json.dumps(VALID), encoding="utf-8")
        assert load_manifest(tmp_path).name == "my-avatar"

    def test_load_manifest_missing(self, tmp_path):
        with pytest.raises(ManifestError):
            load_manifest(tmp_path)

    def test_load_manifest_invalid(self, tmp_path):
        (tmp_path / "manifest.json").write_text('{"name": "x"}', encoding="utf-8")

        with pytest.raises(ManifestError) as exc_info:
            load_manifest(tmp_path)

        assert exc_info.value.errors

    def test_bundled_default_is_valid(self):
        from byteside.avatar import get_bundled_avatars_dir

        result = validate_avatar(get_bundled_avatars_dir() / "default")

        assert result.valid, result.errors
        assert result.manifest.terminal.enabled
