"""Terminal avatar rendering."""

from byteside.terminal.channel import StateChannel
from byteside.terminal.detect import (
    TerminalCapabilities,
    TerminalProtocol,
    detect_capabilities,
    is_terminal_capable,
)
from byteside.terminal.frames import (
    FrameCache,
    StateFrames,
    clear_frame_cache,
    load_state_frames,
    preload_all_frames,
)
from byteside.terminal.renderer import (
    RendererOptions,
    TerminalRenderer,
    create_terminal_renderer,
)

__all__ = [
    "FrameCache",
    "RendererOptions",
    "StateChannel",
    "StateFrames",
    "TerminalCapabilities",
    "TerminalProtocol",
    "TerminalRenderer",
    "clear_frame_cache",
    "create_terminal_renderer",
    "detect_capabilities",
    "is_terminal_capable",
    "load_state_frames",
    "preload_all_frames",
]
