"""File helpers whose errors name the file involved."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["write", "read_to_string"]


def write(path: str | os.PathLike, contents: str | bytes) -> None:
    """Write ``contents`` as the entire contents of ``path``."""
    data = contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)
    try:
        Path(path).write_bytes(data)
    except OSError as exc:
        raise OSError(f"failed to write to file `{os.fspath(path)}`: {exc}") from exc


def read_to_string(path: str | os.PathLike) -> str:
    """Read the entire contents of ``path`` as UTF-8 text."""
    try:
        return Path(path).read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise OSError(f"failed to read from file `{os.fspath(path)}`: {exc}") from exc