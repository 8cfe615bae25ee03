"""Reverse pagination for the home, tag and category listings.

Items arrive newest first. Pages are numbered from the oldest end, so
page 1 holds the oldest ``per_page`` items and page ``total_pages``
holds the newest ones plus the remainder. Adding content therefore only
touches the highest page and may append new page numbers; existing
lower pages keep their number, size and file name.

The newest page is written to ``index.html`` inside its collection
directory and every other page ``n`` to ``index{n}.html``. Readers see
the numbering reversed (the newest page reads "page 1 of T").
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Iterator, Optional, Sequence, TypeVar

from .errors import InvalidPageError

T = TypeVar("T")

CANONICAL_NAME = "index.html"
NUMBERED_RE = re.compile(r"^index(\d+)\.html$")


def total_pages(count: int, per_page: int) -> int:
    if per_page < 1:
        raise ValueError(f"per_page must be >= 1, got {per_page}")
    return max(1, math.ceil(count / per_page))


def page_filename(page: int, pages: int) -> str:
    return CANONICAL_NAME if page == pages else f"index{page}.html"


def page_rel_path(prefix: str, page: int, pages: int) -> str:
    name = page_filename(page, pages)
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def page_bounds(count: int, per_page: int, page: int) -> tuple[int, int]:
    """Slice bounds of ``page`` within the newest-first sequence."""
    pages = total_pages(count, per_page)
    if page < 1 or page > pages:
        raise InvalidPageError(page, pages)
    start = max(0, count - page * per_page)
    end = count - (page - 1) * per_page
    return start, end


def page_of(index: int, count: int, per_page: int) -> int:
    """Page number holding the item at ``index`` of the newest-first sequence."""
    if index < 0 or index >= count:
        raise IndexError(f"item index {index} out of range for {count} items")
    position = count - 1 - index
    return position // per_page + 1


@dataclass(frozen=True)
class Page(Generic[T]):
    number: int
    total_pages: int
    items: Sequence[T]
    prefix: str = ""

    @property
    def is_canonical(self) -> bool:
        return self.number == self.total_pages

    @property
    def display_number(self) -> int:
        return self.total_pages - self.number + 1

    @property
    def filename(self) -> str:
        return page_filename(self.number, self.total_pages)

    @property
    def rel_path(self) -> str:
        return page_rel_path(self.prefix, self.number, self.total_pages)

    @property
    def url(self) -> str:
        return "/" + self.rel_path

    @property
    def newer(self) -> Optional[int]:
        return self.number + 1 if self.number < self.total_pages else None

    @property
    def older(self) -> Optional[int]:
        return self.number - 1 if self.number > 1 else None

    def filename_for(self, number: int) -> str:
        return page_filename(number, self.total_pages)


def paginate(items: Sequence[T], per_page: int, page: int, prefix: str = "") -> Page[T]:
    pages = total_pages(len(items), per_page)
    if page < 1 or page > pages:
        raise InvalidPageError(page, pages, prefix or None)
    start, end = page_bounds(len(items), per_page, page)
    return Page(number=page, total_pages=pages, items=list(items[start:end]), prefix=prefix.strip("/"))


def iter_pages(items: Sequence[T], per_page: int, prefix: str = "") -> Iterator[Page[T]]:
    for number in range(1, total_pages(len(items), per_page) + 1):
        yield paginate(items, per_page, number, prefix)


def existing_max_page(directory: Path) -> int:
    """Highest ``index{n}.html`` number already present in ``directory`` (0 if none)."""
    highest = 0
    if not directory.is_dir():
        return highest
    for entry in directory.iterdir():
        match = NUMBERED_RE.match(entry.name)
        if match and entry.is_file():
            highest = max(highest, int(match.group(1)))
    return highest
