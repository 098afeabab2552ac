"""Loading and saving RGBA PNG images."""

import enum
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError


class Origin(enum.Enum):
    """Which image row comes first in pixel data."""

    LOWER_LEFT = "lower_left"
    UPPER_LEFT = "upper_left"


def load_png(path, origin: Origin) -> Tuple[Tuple[int, int], np.ndarray]:
    """Load a PNG as 8-bit RGBA.

    Returns ``((width, height), pixels)`` where ``pixels`` has shape
    ``(height, width, 4)``; with ``Origin.LOWER_LEFT`` row 0 is the bottom row.
    Palette and grey images are expanded and a missing alpha channel is
    filled with 255.
    """
    with open(path, "rb") as handle:
        try:
            with Image.open(handle) as image:
                if image.format != "PNG":
                    raise ValueError(f"Failed to read PNG image from '{path}'.")
                rgba = image.convert("RGBA")
                pixels = np.array(rgba, dtype=np.uint8)
        except (UnidentifiedImageError, SyntaxError, EOFError, OSError) as exc:
            raise ValueError(f"Failed to read PNG image from '{path}'.") from exc
    if origin is Origin.LOWER_LEFT:
        pixels = pixels[::-1].copy()
    height, width = pixels.shape[:2]
    return (width, height), pixels


def save_png(path, size: Tuple[int, int], data, origin: Origin) -> None:
    """Save RGBA pixel data of the given ``(width, height)`` as a PNG.

    ``data`` may be any array-like of ``width * height`` RGBA pixels, rows
    ordered as ``origin`` says.
    """
    width, height = size
    pixels = np.asarray(data, dtype=np.uint8)
    if pixels.size != width * height * 4:
        raise ValueError(
            f"expected {width}x{height} RGBA pixels, got {pixels.size} values"
        )
    pixels = pixels.reshape(height, width, 4)
    if origin is Origin.LOWER_LEFT:
        pixels = pixels[::-1]
    Image.fromarray(np.ascontiguousarray(pixels)).save(path, format="PNG")