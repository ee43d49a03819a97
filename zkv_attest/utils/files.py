"""
zkv_attest.utils.files
======================

Filesystem helpers for the attestation artifact.

The artifact is replaced atomically: data goes to a temp file in the target
directory, is fsynced, then renamed over the destination with `os.replace`.
A reader sees either the previous file or the complete new one.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Union

PathLike = Union[str, Path]


def ensure_dir(path: PathLike) -> Path:
    """Create `path` and its parents if needed; return it resolved."""
    d = Path(path).expanduser().resolve()
    d.mkdir(parents=True, exist_ok=True)
    return d


def _fsync_dir(directory: Path) -> None:
    # Not every platform can open a directory for fsync
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        with contextlib.suppress(OSError):
            os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: PathLike, data: bytes, *, mode: int = 0o644) -> Path:
    """
    Replace `path` with `data` in one step and return the resolved path.

    Missing parent directories are created. Raises OSError on failure, in
    which case the destination is left as it was.
    """
    dest = Path(path).expanduser().resolve()
    directory = ensure_dir(dest.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".part", dir=str(directory))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, dest)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    _fsync_dir(directory)
    return dest


def write_json_atomic(path: PathLike, obj: Any, *, indent: int = 2) -> Path:
    """Pretty-print `obj` as UTF-8 JSON with a trailing newline via `atomic_write`."""
    text = json.dumps(obj, indent=indent, ensure_ascii=False) + "\n"
    return atomic_write(path, text.encode("utf-8"))


def read_json(path: PathLike) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


__all__ = ["ensure_dir", "atomic_write", "write_json_atomic", "read_json"]
