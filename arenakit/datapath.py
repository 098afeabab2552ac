"""Paths to data files that sit beside the running program."""

import functools
import os
import sys


@functools.lru_cache(maxsize=None)
def _program_dir() -> str:
    if getattr(sys, "frozen", False):
        program = sys.executable
    else:
        program = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if not program:
        return os.getcwd()
    return os.path.dirname(os.path.realpath(program))


def data_path(suffix: str) -> str:
    """Return ``suffix`` joined to the directory of the running program."""
    return _program_dir() + "/" + suffix