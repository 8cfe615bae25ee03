from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .content import Post
from .paginate import existing_max_page, page_of, total_pages
from .taxonomy import CategoryPath, prefixes


def classify(posts: Sequence[Post], last_build_time: int) -> tuple[list[Post], list[Post]]:
    """Split posts into (changed, unchanged) by modification time.

    A zero ``last_build_time`` means there is no usable previous build,
    so everything counts as changed.
    """
    if last_build_time <= 0:
        return list(posts), []
    changed: list[Post] = []
    unchanged: list[Post] = []
    for post in posts:
        if post.modified_epoch > last_build_time:
            changed.append(post)
        else:
            unchanged.append(post)
    return changed, unchanged


@dataclass
class AffectedSet:
    posts: list[Post] = field(default_factory=list)
    home_pages: set[int] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    category_paths: set[CategoryPath] = field(default_factory=set)
    years: set[str] = field(default_factory=set)
    tags_overview: bool = False
    categories_overview: bool = False
    archives_overview: bool = False


def affected_home_pages(
    posts: Sequence[Post], changed: Sequence[Post], per_page: int, output_dir: Path
) -> set[int]:
    count = len(posts)
    pages = total_pages(count, per_page)
    positions = {id(post): index for index, post in enumerate(posts)}
    affected: set[int] = set()
    for post in changed:
        index = positions.get(id(post))
        if index is None:
            affected.add(pages)
        else:
            affected.add(page_of(index, count, per_page))

    # pages that were never written before: the newest page is index.html,
    # so numbered files only go up to pages - 1
    existing = existing_max_page(output_dir)
    affected.update(range(existing + 1, pages))
    return affected


def compute_affected(
    posts: Sequence[Post], changed: Sequence[Post], per_page: int, output_dir: Path
) -> AffectedSet:
    """Work out which derived pages depend on ``changed``.

    Only metadata already held by the posts is used; unchanged documents
    are never re-read.
    """
    affected = AffectedSet(posts=list(changed))
    if not changed:
        return affected
    affected.home_pages = affected_home_pages(posts, changed, per_page, output_dir)
    for post in changed:
        affected.tags.update(post.tags)
        affected.category_paths.update(prefixes(post.category_path))
        if post.year:
            affected.years.add(post.year)

    affected.tags_overview = any(not (output_dir / "tags" / tag).is_dir() for tag in affected.tags)
    affected.categories_overview = any(
        not output_dir.joinpath(*path).is_dir() for path in affected.category_paths
    )
    affected.archives_overview = any(
        not (output_dir / "archives" / f"{year}.html").is_file() for year in affected.years
    )
    return affected
