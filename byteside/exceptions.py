"""Custom exception hierarchy for byteside.

Every failure in the state broadcast path is local and recoverable, so most
of these exceptions are raised and caught inside the package; they exist to
give each failure a name, a context dict for logging and a cause chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence


class BytesideError(Exception):
    """Base exception for all byteside errors.

    Attributes:
        message: Human-readable error description.
        context: Additional context for debugging.
        timestamp: When the error occurred.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# State Errors
# =============================================================================


class StateError(BytesideError):
    """Base class for avatar state errors."""

    pass


class InvalidStateError(StateError):
    """Raised when a proposed state label is not in the legal set."""

    def __init__(
        self,
        state: object,
        valid_states: Sequence[str],
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.state = state
        self.valid_states = list(valid_states)
        ctx = context or {}
        ctx["state"] = repr(state)[:100]
        super().__init__(
            f"Invalid state. Must be one of: {', '.join(self.valid_states)}",
            context=ctx,
        )


class ListenerError(StateError):
    """Raised (and recorded, never propagated) when a state listener fails."""

    def __init__(
        self,
        message: str = "State listener failed",
        *,
        listener: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if listener:
            ctx["listener"] = listener
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(BytesideError):
    """Base class for real-time channel errors."""

    pass


class SendError(TransportError):
    """Raised when a message cannot be pushed to a viewer connection."""

    def __init__(
        self,
        message: str = "Failed to send to connection",
        *,
        connection_id: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if connection_id:
            ctx["connection_id"] = connection_id
        super().__init__(message, context=ctx, cause=cause)


class ChannelLostError(TransportError):
    """Raised when the terminal renderer loses its server channel."""

    def __init__(
        self,
        message: str = "State channel lost",
        *,
        url: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if url:
            ctx["url"] = url
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(BytesideError):
    """Base class for configuration-related errors."""

    pass


class ConfigLoadError(ConfigError):
    """Raised when a configuration file fails to load."""

    def __init__(
        self,
        message: str = "Failed to load configuration",
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str = "Configuration validation failed",
        *,
        field: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = str(value)[:100]
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Avatar Errors
# =============================================================================


class AvatarError(BytesideError):
    """Base class for avatar package errors."""

    pass


class ManifestError(AvatarError):
    """Raised when an avatar manifest is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid avatar manifest",
        *,
        errors: Sequence[str] | None = None,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.errors = list(errors or [])
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class AvatarNotFoundError(AvatarError):
    """Raised when an avatar name cannot be resolved on any search path."""

    def __init__(
        self,
        name: str,
        *,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["avatar"] = name
        super().__init__(f"Avatar not found: {name}", context=ctx)


# =============================================================================
# Hook Errors
# =============================================================================


class HookSettingsError(BytesideError):
    """Raised when an agent settings file cannot be read or written."""

    def __init__(
        self,
        message: str = "Failed to update hook settings",
        *,
        file_path: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


# =============================================================================
# Terminal Errors
# =============================================================================


class TerminalRendererError(BytesideError):
    """Raised when the terminal renderer cannot be built or initialized."""

    pass


# =============================================================================
# Error Registry for Categorization
# =============================================================================


@dataclass
class ErrorStats:
    """Track error statistics for monitoring."""

    total_count: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    recent_errors: list[tuple[datetime, str, str]] = field(default_factory=list)
    max_recent: int = 100

    def record(self, error: Exception) -> None:
        """Record an error occurrence."""
        self.total_count += 1
        type_name = type(error).__name__
        self.by_type[type_name] = self.by_type.get(type_name, 0) + 1

        self.recent_errors.append((datetime.now(), type_name, str(error)[:200]))
        if len(self.recent_errors) > self.max_recent:
            self.recent_errors.pop(0)

    def reset(self) -> None:
        """Clear all recorded statistics."""
        self.total_count = 0
        self.by_type.clear()
        self.recent_errors.clear()


# Global error stats tracker
error_stats = ErrorStats()


def record_error(error: Exception) -> None:
    """Record an error to global stats."""
    error_stats.record(error)
