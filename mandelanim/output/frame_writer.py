"""Numbered PNG frames, written atomically.

A frame is encoded into a temporary ``*.partial`` file next to its target and
renamed into place only once complete, so an interrupted run never leaves a
truncated file under a final ``frame_NNNNNN.png`` name.
"""

from __future__ import annotations

import glob
import os
import re
import tempfile
import time
from typing import Optional

from PIL import Image

from mandelanim.util.logging_setup import get_logger

PARTIAL_SUFFIX = ".partial"
STALE_PARTIAL_AGE = 300.0

_PARTIAL_RE = re.compile(r"^\.frame_\d+\.png\.(\d+)\.[^.]*\.partial$")


class FrameWriteError(OSError):
    def __init__(self, index: int, path: str, reason: BaseException):
        super().__init__(f"Failed to write frame {index} to {path}: {reason}")
        self.index = index
        self.path = path


def frame_name(index: int) -> str:
    return f"frame_{index:06d}.png"


def frame_path(out_dir: str, index: int) -> str:
    return os.path.join(out_dir, frame_name(index))


def frame_exists(out_dir: str, index: int) -> bool:
    path = frame_path(out_dir, index)
    return os.path.isfile(path) and os.path.getsize(path) > 0


def _discard(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        os.remove(path)


def _file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_frame(img: Image.Image, out_dir: str, index: int) -> str:
    path = frame_path(out_dir, index)
    tmp: Optional[str] = None
    try:
        # Owner pid is part of the name, see remove_stale_partials.
        fd, tmp = tempfile.mkstemp(
            prefix=f".{frame_name(index)}.{os.getpid()}.", suffix=PARTIAL_SUFFIX, dir=out_dir
        )
        with os.fdopen(fd, "wb") as f:
            img.save(f, format="PNG", optimize=True)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; frames get the usual umask-derived mode.
        os.chmod(tmp, _file_mode())
        os.replace(tmp, path)
    except (OSError, ValueError) as e:
        _discard(tmp)
        raise FrameWriteError(index, path, e) from e
    return path


def _partial_owner(path: str) -> Optional[int]:
    m = _PARTIAL_RE.match(os.path.basename(path))
    return int(m.group(1)) if m else None


def _process_alive(pid: int) -> bool:
    if os.name != "posix":
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def remove_stale_partials(out_dir: str, min_age: float = STALE_PARTIAL_AGE) -> int:
    """Delete temp files left behind by an aborted run.

    Several shards may share ``out_dir``, so a partial file is only removed
    once it is older than ``min_age`` seconds and the process named in it is
    no longer running on this host.
    """
    now = time.time()
    removed = 0
    for path in glob.glob(os.path.join(out_dir, f".*{PARTIAL_SUFFIX}")):
        try:
            age = now - os.path.getmtime(path)
        except FileNotFoundError:
            continue
        if age < min_age:
            continue
        owner = _partial_owner(path)
        if owner is not None and _process_alive(owner):
            continue
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        removed += 1
    if removed:
        get_logger().warning("Removed %s partial frame file(s) from %s", removed, out_dir)
    return removed
