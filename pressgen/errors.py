from __future__ import annotations

from pathlib import Path
from typing import Optional


class PressgenError(Exception):
    """Base class for every error the build reports."""


class ConfigError(PressgenError):
    pass


class ParseError(PressgenError):
    """Front-matter of a single document could not be read."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class RenderError(PressgenError):
    """The Markdown engine failed on a single document."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class RouteConflictError(PressgenError):
    def __init__(self, url: str, first: str, second: str):
        super().__init__(f"Route conflict on '{url}': {first} and {second}")
        self.url = url
        self.first = first
        self.second = second


class BuildIOError(PressgenError):
    def __init__(self, path: Optional[Path], exc: OSError):
        target = path.as_posix() if path is not None else "<unknown>"
        super().__init__(f"I/O error on {target}: {exc}")
        self.path = path
        self.__cause__ = exc
