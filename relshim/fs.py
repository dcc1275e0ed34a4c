import os
import stat
import tempfile
from contextlib import contextmanager

EXECUTABLE_MODE = 0o755


def isfile(path: str):
    return os.path.isfile(path)


def make_executable(path: str):
    mode = os.stat(path).st_mode
    os.chmod(path, stat.S_IMODE(mode) | EXECUTABLE_MODE)


@contextmanager
def temporary_file(dir: str, prefix: str = ".", suffix="_relshim"):
    """Create a temporary file in `dir`, removed on exit unless it was moved.

    Creating it beside its destination keeps the final rename on one filesystem.
    """
    fd, path = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=dir)
    os.close(fd)
    try:
        yield path
    finally:
        if isfile(path):
            os.remove(path)


def atomic_replace(src: str, dest: str):
    """Move `src` over `dest`, which is never seen partially written."""
    os.replace(src, dest)
