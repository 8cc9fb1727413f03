"""Detection of the cargo version."""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["CargoVersionError", "ToolVersion", "parse_verbose_version", "cargo_version"]


class CargoVersionError(Exception):
    """The cargo version could not be determined."""


@dataclass(frozen=True, order=True)
class ToolVersion:
    """A ``major.minor[.patch]`` toolchain version."""

    major: int
    minor: int
    patch: int | None = None

    @classmethod
    def parse(cls, text: str) -> ToolVersion:
        parts = text.strip().split(".")
        if not 2 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
            raise ValueError(f"invalid version `{text}`")
        numbers = [int(p) for p in parts]
        return cls(numbers[0], numbers[1], numbers[2] if len(numbers) == 3 else None)

    def __str__(self) -> str:
        if self.patch is None:
            return f"{self.major}.{self.minor}"
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_verbose_version(output: str, command: str) -> ToolVersion:
    """Extract the version from ``-vV`` output; ``command`` is used in error messages."""
    error = CargoVersionError(f"unexpected output from {command}: {output}")
    release = next(
        (line[len("release: "):] for line in output.splitlines() if line.startswith("release: ")),
        None,
    )
    if release is None:
        raise error
    version_text = release.split("-", 1)[0]
    try:
        version = ToolVersion.parse(version_text)
    except ValueError as exc:
        raise CargoVersionError(str(exc)) from exc
    if version.major != 1 or version.patch is None:
        raise error
    return version


def cargo_version(cargo: str | os.PathLike | Sequence[str]) -> ToolVersion:
    """Run ``cargo -vV`` and return its version.

    ``cargo`` is a program path or a command prefix given as a sequence.
    """
    if isinstance(cargo, (str, os.PathLike)):
        args = [os.fspath(cargo)]
    else:
        args = [os.fspath(a) for a in cargo]
    args.append("-vV")
    shown = f"`{shlex.join(args)}`"
    try:
        proc = subprocess.run(args, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CargoVersionError(f"could not execute process {shown}: {exc}") from exc
    if proc.returncode != 0:
        raise CargoVersionError(
            f"process didn't exit successfully: {shown} (exit status: {proc.returncode})"
        )
    return parse_verbose_version(proc.stdout, shown)