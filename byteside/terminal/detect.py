"""Terminal capability detection from environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, TextIO


class TerminalProtocol(str, Enum):
    """Inline image protocol spoken by the terminal."""

    ITERM = "iterm"
    KITTY = "kitty"
    ANSI = "ansi"


@dataclass(frozen=True)
class TerminalCapabilities:
    protocol: TerminalProtocol
    supports_images: bool
    supports_true_color: bool


def detect_capabilities(env: Mapping[str, str] | None = None) -> TerminalCapabilities:
    """Work out what the terminal supports.

    Args:
        env: Environment to inspect (defaults to ``os.environ``).
    """
    env = os.environ if env is None else env

    protocol = TerminalProtocol.ANSI
    if env.get("TERM_PROGRAM") == "iTerm.app":
        protocol = TerminalProtocol.ITERM
    elif env.get("TERM") == "xterm-kitty":
        protocol = TerminalProtocol.KITTY
    elif env.get("TERM_PROGRAM") == "WezTerm":
        # WezTerm speaks the kitty graphics protocol
        protocol = TerminalProtocol.KITTY

    return TerminalCapabilities(
        protocol=protocol,
        supports_images=protocol is not TerminalProtocol.ANSI,
        supports_true_color=env.get("COLORTERM") in ("truecolor", "24bit"),
    )


def is_terminal_capable(stream: TextIO | None = None) -> bool:
    """True when ``stream`` (stdout by default) is an interactive terminal."""
    stream = sys.stdout if stream is None else stream
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())
