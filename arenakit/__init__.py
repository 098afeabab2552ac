"""Chunked binary I/O, scene files, audio mixing, WAV/PNG loading, path fonts and orbit cameras."""

__version__ = "0.1.0"

__all__ = ["chunks", "datapath", "hexdump", "orbit", "pathfont", "pngio", "scene", "sound"]