"""Loading terminal frames from an avatar directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from byteside.models import TerminalConfig, TerminalMode, TerminalStateConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateFrames:
    """Frames for one state.

    ``frames`` holds ASCII art text, or resolved image paths when
    ``is_image`` is set.
    """

    frames: list[str] = field(default_factory=list)
    is_image: bool = False


class FrameCache:
    """ASCII frame contents keyed by full file path."""

    def __init__(self) -> None:
        self._frames: dict[Path, str] = {}

    def load(self, path: Path) -> str:
        """Return the file's text, reading it from disk only once.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not UTF-8.
        """
        cached = self._frames.get(path)
        if cached is not None:
            return cached

        content = path.read_text(encoding="utf-8")
        self._frames[path] = content
        return content

    def clear(self) -> None:
        self._frames.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._frames

    def __len__(self) -> int:
        return len(self._frames)


_frame_cache = FrameCache()


def get_frame_cache() -> FrameCache:
    return _frame_cache


def clear_frame_cache() -> None:
    """Drop every cached ASCII frame."""
    _frame_cache.clear()


def load_state_frames(
    state_config: TerminalStateConfig,
    avatar_dir: str | Path,
    mode: TerminalMode | str,
    cache: FrameCache | None = None,
) -> StateFrames:
    """Load the frames declared for one state.

    ASCII mode reads every listed frame file. Image mode resolves the single
    image path. A state with nothing usable for the mode gets one empty
    ASCII frame.

    Raises:
        OSError: If an ASCII frame file cannot be read.
    """
    base = Path(avatar_dir)
    mode = TerminalMode(mode)
    cache = cache if cache is not None else _frame_cache

    if mode is TerminalMode.ASCII and state_config.frames:
        return StateFrames(
            frames=[cache.load(base / frame) for frame in state_config.frames],
            is_image=False,
        )

    if mode is TerminalMode.IMAGE and state_config.image:
        return StateFrames(frames=[str(base / state_config.image)], is_image=True)

    return StateFrames(frames=[""], is_image=False)


def preload_all_frames(
    terminal_config: TerminalConfig,
    avatar_dir: str | Path,
    cache: FrameCache | None = None,
) -> dict[str, StateFrames]:
    """Load frames for every state the terminal config declares."""
    frames = {
        name: load_state_frames(config, avatar_dir, terminal_config.mode, cache)
        for name, config in terminal_config.states.items()
    }
    logger.debug("Preloaded terminal frames for %d states", len(frames))
    return frames
