"""Filesystem helpers for emitting capture artefacts."""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, IO


def _as_fs_path(path: str | os.PathLike[str]) -> str:
    return os.fspath(path)


def _ensure_directory(path: str) -> str:
    directory = os.path.dirname(path)
    if not directory:
        directory = "."
    os.makedirs(directory, exist_ok=True)
    return directory


def _atomic_write(
    path: str | os.PathLike[str],
    writer: Callable[[IO[Any]], None],
    *,
    mode: str = "w",
    encoding: str | None = "utf-8",
) -> None:
    target = _as_fs_path(path)
    directory = _ensure_directory(target)
    fd, temp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".partial", dir=directory)
    try:
        with os.fdopen(fd, mode, encoding=encoding) as handle:
            writer(handle)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise

__all__ = [
    "ensure_out",
    "safe_filename",
    "write_bytes",
    "write_json",
]


def ensure_out(*paths: str | os.PathLike[str]) -> str:
    """Ensure that the output directory ``paths`` exists and return it."""

    if paths:
        fs_path = os.path.join(*(os.fspath(p) for p in paths))
    else:
        fs_path = "out"
    os.makedirs(fs_path, exist_ok=True)
    return fs_path


def safe_filename(name: str) -> str:
    """Return ``name`` reduced to a single path component."""

    base = os.path.basename(name.replace("\\", "/"))
    if base in ("", ".", ".."):
        raise ValueError(f"unusable file name {name!r}")
    return base


def write_bytes(path: str | os.PathLike[str], raw: bytes) -> None:
    """Write ``raw`` to ``path`` without leaving partial files behind."""

    def _writer(handle) -> None:
        handle.write(raw)

    _atomic_write(path, _writer, mode="wb", encoding=None)


def write_json(
    path: str | os.PathLike[str],
    obj,
    *,
    encoding: str = "utf-8",
    sort_keys: bool = False,
) -> None:
    """Serialise ``obj`` as pretty JSON at ``path``."""

    def _writer(handle) -> None:
        json.dump(obj, handle, ensure_ascii=False, indent=2, sort_keys=sort_keys)

    _atomic_write(path, _writer, encoding=encoding)
