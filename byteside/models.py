"""Core dataclasses for avatar state, configuration and manifests.

Configuration and manifest models are loaded from JSON with dacite.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

import dacite


# =============================================================================
# State Models
# =============================================================================


class AvatarState(str, Enum):
    """Canonical activity labels driving what the avatar displays."""

    IDLE = "idle"  # Universal fallback, always defined
    THINKING = "thinking"
    WRITING = "writing"
    BASH = "bash"
    ERROR = "error"
    SUCCESS = "success"
    WAITING = "waiting"

    @classmethod
    def values(cls) -> list[str]:
        """Return the canonical labels in declaration order."""
        return [member.value for member in cls]


CANONICAL_STATES: tuple[str, ...] = tuple(AvatarState.values())
DEFAULT_STATE = AvatarState.IDLE.value


@dataclass(frozen=True)
class StateRecord:
    """The current state and the epoch-millisecond instant it was written."""

    state: str
    timestamp: int

    def to_dict(self) -> dict[str, str | int]:
        return {"state": self.state, "timestamp": self.timestamp}


# =============================================================================
# Configuration Models
# =============================================================================


@dataclass
class ServerConfig:
    """HTTP/WebSocket server settings."""

    port: int = 3333
    host: str = "localhost"


@dataclass
class ViewerConfig:
    """Browser viewer settings."""

    auto_open: bool = True
    show_debug: bool = False


@dataclass
class BytesideConfig:
    """Complete resolved configuration."""

    avatar: str = "default"
    server: ServerConfig = field(default_factory=ServerConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    avatar_paths: list[str] = field(
        default_factory=lambda: ["~/.byteside/avatars", "./avatars"]
    )


# =============================================================================
# Avatar Manifest Models
# =============================================================================


@dataclass
class AvatarStateConfig:
    """Display asset for one state, with optional one-shot transition."""

    file: str
    duration: float | None = None  # Milliseconds before auto-transition
    transition_to: str | None = None


@dataclass
class AvatarPalette:
    """UI color palette for avatar theming."""

    primary: str | None = None
    secondary: str | None = None
    success: str | None = None
    error: str | None = None
    background: str | None = None


@dataclass
class TerminalStateConfig:
    """Terminal frames for one state."""

    frames: list[str] | None = None  # ASCII frame files (mode "ascii")
    image: str | None = None  # Single image file (mode "image")


@dataclass
class TerminalSize:
    """Render region size in character cells."""

    width: int = 40
    height: int = 20


class TerminalMode(str, Enum):
    """How terminal frames are stored and drawn."""

    ASCII = "ascii"
    IMAGE = "image"


@dataclass
class TerminalConfig:
    """Terminal rendering configuration from a manifest."""

    enabled: bool
    mode: TerminalMode
    states: dict[str, TerminalStateConfig] = field(default_factory=dict)
    framerate: float | None = None
    size: TerminalSize | None = None


@dataclass
class AvatarManifest:
    """Full avatar manifest (``manifest.json``)."""

    name: str
    author: str
    version: str
    format: str
    states: dict[str, AvatarStateConfig]
    resolution: str | None = None
    framerate: float | None = None
    loop: bool | None = None
    palette: AvatarPalette | None = None
    terminal: TerminalConfig | None = None

    @property
    def state_names(self) -> list[str]:
        return list(self.states)


# =============================================================================
# Serialization Helpers
# =============================================================================


def _convert_enums(obj: object) -> object:
    """Recursively convert Enum values to their string values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _convert_enums(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_enums(item) for item in obj]
    return obj


def model_to_dict(obj: object) -> dict:
    """Convert a dataclass model to a dictionary for JSON serialization."""
    data = asdict(obj)  # type: ignore[arg-type]
    return _convert_enums(data)  # type: ignore[return-value]


def model_from_dict(data_class: type, data: dict) -> object:
    """Load a dataclass model from a dictionary."""
    return dacite.from_dict(
        data_class=data_class,
        data=data,
        config=dacite.Config(cast=[Enum, float]),
    )
