"""Terminal avatar animation.

The renderer draws the current state's frames into a fixed region of the
terminal at a constant frame rate and follows state changes pushed by the
server over a :class:`~byteside.terminal.channel.StateChannel`. Manifest
states with ``duration`` and ``transition_to`` switch on their own once the
duration elapses.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol, TextIO

from byteside.exceptions import TerminalRendererError
from byteside.logging_config import log_failure
from byteside.models import DEFAULT_STATE, AvatarManifest, TerminalSize
from byteside.protocol import parse_message, state_from_message
from byteside.terminal.channel import MessageHandler, StateChannel
from byteside.terminal.frames import StateFrames, preload_all_frames
from byteside.terminal.image import render_image_file

logger = logging.getLogger(__name__)

DEFAULT_FRAMERATE = 8.0
DEFAULT_RENDER_ROW = 12

# ANSI escape codes
ESC = "\x1b"
SAVE_CURSOR = f"{ESC}[s"
RESTORE_CURSOR = f"{ESC}[u"
CLEAR_LINE = f"{ESC}[K"
HIDE_CURSOR = f"{ESC}[?25l"
SHOW_CURSOR = f"{ESC}[?25h"


def move_to(row: int, col: int) -> str:
    return f"{ESC}[{row};{col}H"


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Channel(Protocol):
    def start(self) -> None: ...

    async def close(self) -> None: ...


# scheduler(delay_seconds, callback) -> handle with cancel()
Scheduler = Callable[[float, Callable[[], None]], Cancellable]
ChannelFactory = Callable[[str, MessageHandler], Channel]
ImageRenderer = Callable[[str, int, int], list[str]]


def _call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class RendererOptions:
    """Where and how fast to draw."""

    avatar_path: Path
    framerate: float = DEFAULT_FRAMERATE
    size: TerminalSize = field(default_factory=TerminalSize)
    render_row: int = DEFAULT_RENDER_ROW


class TerminalRenderer:
    """Animates an avatar in a fixed terminal region.

    Args:
        manifest: Avatar manifest; must carry a ``terminal`` section.
        options: Render region, frame rate and avatar directory.
        stream: Output stream (stdout by default).
        scheduler: One-shot timer factory used for auto-transitions.
        channel_factory: Builds the state channel from the server URL and a
            message handler.
        image_renderer: Turns an image path into terminal lines (image mode).

    Raises:
        TerminalRendererError: If the manifest has no terminal config.
    """

    def __init__(
        self,
        manifest: AvatarManifest,
        options: RendererOptions,
        *,
        stream: TextIO | None = None,
        scheduler: Scheduler = _call_later,
        channel_factory: ChannelFactory = StateChannel,
        image_renderer: ImageRenderer = render_image_file,
    ) -> None:
        if manifest.terminal is None:
            raise TerminalRendererError("Terminal config is required")

        self.manifest = manifest
        self.terminal_config = manifest.terminal
        self.options = options
        self.stream = stream if stream is not None else sys.stdout
        self._schedule = scheduler
        self._channel_factory = channel_factory
        self._image_renderer = image_renderer

        self.state_frames: dict[str, StateFrames] = {}
        self.current_state = DEFAULT_STATE
        self.frame_index = 0
        self.is_running = False

        self._render_task: asyncio.Task[None] | None = None
        self._transition: Cancellable | None = None
        self._channel: Channel | None = None
        self._resize_signal: int | None = None
        self._image_lines: dict[str, list[str]] = {}
        self.tick_failures = 0

    @property
    def has_pending_transition(self) -> bool:
        return self._transition is not None

    def init(self) -> None:
        """Load every state's frames before animation starts."""
        try:
            self.state_frames = preload_all_frames(
                self.terminal_config, self.options.avatar_path
            )
        except (OSError, ValueError) as e:
            raise TerminalRendererError(
                "Failed to load terminal frames",
                context={"avatar_path": str(self.options.avatar_path)},
                cause=e,
            ) from e

    async def start(self, server_url: str) -> None:
        """Hide the cursor, connect to the server and start animating."""
        if self.is_running:
            return
        self.is_running = True

        self._write(HIDE_CURSOR)

        self._channel = self._channel_factory(server_url, self.handle_message)
        self._channel.start()

        self._render_task = asyncio.create_task(
            self._render_loop(), name="byteside-terminal-render"
        )
        self._install_resize_handler()
        logger.debug("Terminal renderer started at %.1f fps", self.options.framerate)

    async def stop(self) -> None:
        """Stop animating and restore the terminal. Safe to call twice."""
        if not self.is_running:
            return
        self.is_running = False

        try:
            if self._render_task is not None:
                self._render_task.cancel()
                try:
                    await self._render_task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    log_failure(logger, e, "Render task failed")
                self._render_task = None

            self._cancel_transition()

            if self._channel is not None:
                channel, self._channel = self._channel, None
                await channel.close()
        finally:
            self._remove_resize_handler()
            self.clear_render_area()
            self._write(SHOW_CURSOR)
            logger.debug("Terminal renderer stopped")

    def set_state(self, state: str) -> None:
        """Switch to ``state`` if it differs and has frames.

        Unknown states are ignored. Switching cancels any pending
        auto-transition, restarts the animation at frame 0 and arms a new
        transition when the manifest declares one for ``state``.
        """
        if state == self.current_state or state not in self.state_frames:
            return

        self._cancel_transition()
        self.current_state = state
        self.frame_index = 0

        config = self.manifest.states.get(state)
        if config is not None and config.duration and config.transition_to:
            target = config.transition_to
            self._transition = self._schedule(
                config.duration / 1000, lambda: self._fire_transition(target)
            )

    def handle_message(self, raw: str | bytes) -> None:
        """Apply a ``welcome`` or ``state`` message; ignore everything else."""
        state = state_from_message(parse_message(raw))
        if state is not None:
            self.set_state(state)

    def tick(self) -> None:
        self.render_current_frame()
        self.advance_frame()

    def render_current_frame(self) -> None:
        data = self.state_frames.get(self.current_state)
        if data is None or not data.frames or self.frame_index >= len(data.frames):
            return

        frame = data.frames[self.frame_index]
        if not frame:
            return

        if data.is_image:
            self._render_image_frame(frame)
        else:
            self._render_ascii_frame(frame)

    def advance_frame(self) -> None:
        data = self.state_frames.get(self.current_state)
        if data is None or not data.frames:
            return
        self.frame_index = (self.frame_index + 1) % len(data.frames)

    def clear_render_area(self) -> None:
        row = self.options.render_row
        parts = [SAVE_CURSOR]
        parts.extend(move_to(row + i, 1) + CLEAR_LINE for i in range(self.options.size.height))
        parts.append(RESTORE_CURSOR)
        self._write("".join(parts))

    def _render_lines(self, lines: list[str], pad: bool) -> None:
        width = self.options.size.width
        row = self.options.render_row
        parts = [SAVE_CURSOR]
        for i in range(self.options.size.height):
            line = lines[i] if i < len(lines) else ""
            if pad:
                line = line[:width].ljust(width)
            parts.append(move_to(row + i, 1) + line + CLEAR_LINE)
        parts.append(RESTORE_CURSOR)
        self._write("".join(parts))

    def _render_ascii_frame(self, frame: str) -> None:
        self._render_lines(frame.split("\n"), pad=True)

    def _render_image_frame(self, image_path: str) -> None:
        lines = self._image_lines.get(image_path)
        if lines is None:
            size = self.options.size
            try:
                lines = self._image_renderer(image_path, size.width, size.height)
            except OSError as e:
                logger.debug("Cannot render image %s: %s", image_path, e)
                lines = []
            self._image_lines[image_path] = lines
        if lines:
            self._render_lines(lines, pad=False)

    async def _render_loop(self) -> None:
        period = 1 / self.options.framerate
        while True:
            try:
                self.tick()
            except Exception as e:
                self.tick_failures += 1
                # Warn once; repeats go to debug.
                level = logging.WARNING if self.tick_failures == 1 else logging.DEBUG
                log_failure(logger, e, f"Cannot draw {self.current_state} frame", level=level)
            await asyncio.sleep(period)

    def _fire_transition(self, target: str) -> None:
        self._transition = None
        self.set_state(target)

    def _cancel_transition(self) -> None:
        if self._transition is not None:
            self._transition.cancel()
            self._transition = None

    def _handle_resize(self) -> None:
        self.render_current_frame()

    def _install_resize_handler(self) -> None:
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is None:
            return
        try:
            asyncio.get_running_loop().add_signal_handler(sigwinch, self._handle_resize)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.debug("Resize handler not installed: %s", e)
            return
        self._resize_signal = sigwinch

    def _remove_resize_handler(self) -> None:
        if self._resize_signal is None:
            return
        try:
            asyncio.get_running_loop().remove_signal_handler(self._resize_signal)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.debug("Resize handler not removed: %s", e)
        self._resize_signal = None

    def _write(self, data: str) -> None:
        self.stream.write(data)
        self.stream.flush()


def create_terminal_renderer(
    manifest: AvatarManifest,
    avatar_path: str | Path,
    render_row: int = DEFAULT_RENDER_ROW,
    **kwargs: Any,
) -> TerminalRenderer | None:
    """Build a renderer for ``manifest``, or None if terminal mode is off.

    Extra keyword arguments go to :class:`TerminalRenderer`.
    """
    terminal = manifest.terminal
    if terminal is None or not terminal.enabled:
        return None

    options = RendererOptions(
        avatar_path=Path(avatar_path),
        framerate=terminal.framerate or DEFAULT_FRAMERATE,
        size=terminal.size or TerminalSize(),
        render_row=render_row,
    )
    return TerminalRenderer(manifest, options, **kwargs)
