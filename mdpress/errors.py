from __future__ import annotations

from pathlib import Path
from typing import Optional


class SiteError(Exception):
    """Base class for every error raised by the generator."""


class ParseError(SiteError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(SiteError):
    pass


class SourceError(SiteError):
    """The source tree cannot be read at all."""


class TemplateError(SiteError):
    pass


class OutputError(SiteError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidPageError(SiteError):
    def __init__(self, page: int, total_pages: int, prefix: Optional[str] = None) -> None:
        where = f" in '{prefix}'" if prefix else ""
        super().__init__(f"invalid page {page}{where}: expected 1..{total_pages}")
        self.page = page
        self.total_pages = total_pages
