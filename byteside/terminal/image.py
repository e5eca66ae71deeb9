"""Render image files as truecolor half-block text.

Each character cell shows two vertically stacked pixels: the upper one as
the foreground colour of ``▀`` and the lower one as the background colour.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

logger = logging.getLogger(__name__)

UPPER_HALF_BLOCK = "▀"
RESET = "\x1b[0m"


def _fg(r: int, g: int, b: int) -> str:
    return f"\x1b[38;2;{r};{g};{b}m"


def _bg(r: int, g: int, b: int) -> str:
    return f"\x1b[48;2;{r};{g};{b}m"


def image_to_lines(image: Image.Image, width: int, height: int) -> list[str]:
    """Scale ``image`` into a ``width`` x ``height`` cell box and encode it.

    The aspect ratio is preserved, so the result may be narrower or shorter
    than the box.

    Returns:
        One string per terminal row, each ending with an attribute reset.
    """
    if width <= 0 or height <= 0:
        return []

    img = image.convert("RGB")
    img.thumbnail((width, height * 2), Image.Resampling.LANCZOS)

    # Pad to an even pixel height so rows pair up.
    if img.height % 2:
        padded = Image.new("RGB", (img.width, img.height + 1))
        padded.paste(img, (0, 0))
        img = padded

    pixels = img.load()
    lines = []
    for y in range(0, img.height, 2):
        cells = [
            _fg(*pixels[x, y]) + _bg(*pixels[x, y + 1]) + UPPER_HALF_BLOCK
            for x in range(img.width)
        ]
        lines.append("".join(cells) + RESET)
    return lines


def render_image_file(path: str | Path, width: int, height: int) -> list[str]:
    """Load an image from disk and encode it with :func:`image_to_lines`.

    Raises:
        OSError: If the file cannot be opened or decoded.
    """
    with Image.open(path) as image:
        return image_to_lines(image, width, height)
