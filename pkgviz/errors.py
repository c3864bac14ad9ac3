from __future__ import annotations

from pathlib import Path
from typing import Optional

__all__ = [
    "PkgvizError",
    "ResolutionError",
    "ParseError",
    "RenderError",
]


class PkgvizError(Exception):
    """Base class for every error raised by pkgviz."""


class ResolutionError(PkgvizError):
    """
    A package (or one of its source files) could not be located or read.

    Always fatal: the run is aborted and nothing is written.
    """

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class ParseError(PkgvizError):
    """Go source text could not be parsed. Always fatal."""

    def __init__(self, message: str, file: Optional[Path] = None, lineno: Optional[int] = None) -> None:
        self.file = file
        self.lineno = lineno
        if file is not None:
            where = f"{file}:{lineno}" if lineno is not None else str(file)
            message = f"{where}: {message}"
        super().__init__(message)


class RenderError(PkgvizError):
    """The external layout program failed to turn DOT text into an image."""

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.stderr = stderr
