"""Tests for custom exception hierarchy."""

import pytest

from byteside.exceptions import (
    AvatarError,
    AvatarNotFoundError,
    BytesideError,
    ChannelLostError,
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
    ErrorStats,
    HookSettingsError,
    InvalidStateError,
    ListenerError,
    ManifestError,
    SendError,
    StateError,
    TerminalRendererError,
    TransportError,
    error_stats,
    record_error,
)
from byteside.models import CANONICAL_STATES


class TestExceptionHierarchy:
    """Test that exceptions are properly organized in hierarchy."""

    @pytest.mark.parametrize(
        "exc_class,parent",
        [
            (StateError, BytesideError),
            (InvalidStateError, StateError),
            (ListenerError, StateError),
            (TransportError, BytesideError),
            (SendError, TransportError),
            (ChannelLostError, TransportError),
            (ConfigError, BytesideError),
            (ConfigLoadError, ConfigError),
            (ConfigValidationError, ConfigError),
            (AvatarError, BytesideError),
            (ManifestError, AvatarError),
            (AvatarNotFoundError, AvatarError),
            (HookSettingsError, BytesideError),
            (TerminalRendererError, BytesideError),
        ],
    )
    def test_subclass(self, exc_class, parent):
        """Each exception derives from its category base."""
        assert issubclass(exc_class, parent)

    def test_base_is_exception(self):
        """BytesideError is a plain Exception."""
        assert issubclass(BytesideError, Exception)


class TestBytesideError:
    """Test base exception behavior."""

    def test_message_only(self):
        """str() is the message when there is no context."""
        error = BytesideError("Something broke")
        assert str(error) == "Something broke"
        assert error.context == {}
        assert error.cause is None

    def test_context_in_str(self):
        """Context is rendered after the message."""
        error = BytesideError("Something broke", context={"key": "value"})
        assert str(error) == "Something broke (key=value)"

    def test_cause_is_kept(self):
        """The underlying exception is stored."""
        cause = OSError("disk")
        error = BytesideError("Wrapped", cause=cause)
        assert error.cause is cause


class TestInvalidStateError:
    """Test InvalidStateError."""

    def test_message_lists_valid_states(self):
        """Message names every legal state in order."""
        error = InvalidStateError("bogus", CANONICAL_STATES)

        assert error.message == (
            "Invalid state. Must be one of: "
            "idle, thinking, writing, bash, error, success, waiting"
        )
        assert error.valid_states == list(CANONICAL_STATES)
        assert error.state == "bogus"

    def test_non_string_state(self):
        """Non-string candidates are accepted and shown by repr."""
        error = InvalidStateError(42, ["idle"])
        assert error.context["state"] == "42"


class TestContextKeywords:
    """Test keyword arguments that land in the context dict."""

    def test_send_error_connection_id(self):
        assert SendError(connection_id="abc").context["connection_id"] == "abc"

    def test_channel_lost_url(self):
        assert ChannelLostError(url="ws://x/_ws").context["url"] == "ws://x/_ws"

    def test_config_load_file_path(self):
        assert ConfigLoadError(file_path="/tmp/c.json").context["file_path"] == "/tmp/c.json"

    def test_config_validation_field_value(self):
        error = ConfigValidationError(field="server.port", value="x" * 200)
        assert error.context["field"] == "server.port"
        assert len(error.context["value"]) == 100

    def test_manifest_errors(self):
        error = ManifestError(errors=["a", "b"], file_path="/a/manifest.json")
        assert error.errors == ["a", "b"]
        assert error.context["file_path"] == "/a/manifest.json"

    def test_avatar_not_found(self):
        error = AvatarNotFoundError("ghost")
        assert error.message == "Avatar not found: ghost"
        assert error.context["avatar"] == "ghost"

    def test_listener_name(self):
        assert ListenerError(listener="on_change").context["listener"] == "on_change"


class TestErrorStats:
    """Test error statistics tracking."""

    def test_record_counts_by_type(self):
        """Errors are counted in total and by type name."""
        stats = ErrorStats()
        stats.record(SendError())
        stats.record(SendError())
        stats.record(ValueError("x"))

        assert stats.total_count == 3
        assert stats.by_type == {"SendError": 2, "ValueError": 1}

    def test_recent_errors_bounded(self):
        """Only max_recent entries are kept."""
        stats = ErrorStats(max_recent=2)
        for i in range(5):
            stats.record(ValueError(str(i)))

        assert len(stats.recent_errors) == 2
        assert stats.recent_errors[-1][2] == "4"

    def test_reset(self):
        """reset clears everything."""
        stats = ErrorStats()
        stats.record(ValueError("x"))
        stats.reset()

        assert stats.total_count == 0
        assert stats.by_type == {}
        assert stats.recent_errors == []

    def test_global_record_error(self):
        """record_error feeds the global tracker."""
        before = error_stats.by_type.get("ChannelLostError", 0)
        record_error(ChannelLostError())
        assert error_stats.by_type["ChannelLostError"] == before + 1
