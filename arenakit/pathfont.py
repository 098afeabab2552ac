"""Line-based font tables used for drawing text as line segments."""

import warnings
from typing import Dict, Sequence


class PathFont:
    """A font whose glyphs are polylines, built from flat lookup tables.

    ``glyph_char_starts`` indexes into ``chars`` (UTF-8 bytes naming each
    glyph) and ``glyph_coord_starts`` indexes into ``coords``; both hold one
    more entry than there are glyphs.
    """

    def __init__(
        self,
        glyph_widths: Sequence[float],
        glyph_char_starts: Sequence[int],
        chars: bytes,
        glyph_coord_starts: Sequence[int],
        coords: Sequence[float],
    ):
        self.glyphs = len(glyph_widths)
        if len(glyph_char_starts) < self.glyphs + 1:
            raise ValueError("glyph_char_starts needs one entry per glyph plus one")
        if len(glyph_coord_starts) < self.glyphs + 1:
            raise ValueError("glyph_coord_starts needs one entry per glyph plus one")
        self.glyph_widths = tuple(glyph_widths)
        self.glyph_char_starts = tuple(glyph_char_starts)
        self.chars = bytes(chars)
        self.glyph_coord_starts = tuple(glyph_coord_starts)
        self.coords = tuple(coords)

        self.glyph_map: Dict[str, int] = {}
        starts = self.glyph_char_starts[: self.glyphs + 1]
        for index, (begin, end) in enumerate(zip(starts, starts[1:])):
            name = self.chars[begin:end].decode("utf-8", errors="replace")
            if name in self.glyph_map:
                warnings.warn(f"ignoring duplicate glyph for '{name}'.", stacklevel=2)
                continue
            self.glyph_map[name] = index

    def lookup(self, text: str) -> int:
        """Return the glyph index for ``text``; raise KeyError if absent."""
        return self.glyph_map[text]