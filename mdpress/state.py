from __future__ import annotations

import json
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .content import Post
from .errors import ConfigError, OutputError
from .utils import format_build_time, parse_build_time

HOT_POSTS_LIMIT = 10
HOT_TAGS_LIMIT = 20
HOT_CATEGORIES_LIMIT = 8
KNOWN_KEYS = ("last_build_time", "sidebar")
FULL_MODES = {"full", "normal", "all"}


@dataclass
class BuildState:
    last_build_time: int = 0
    sidebar: Optional[dict] = None
    extra: dict = field(default_factory=dict)

    def incremental_requested(self) -> bool:
        for key in ("compile_mode", "build_mode"):
            value = self.extra.get(key)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                return value.strip().lower() not in FULL_MODES
        value = self.extra.get("incremental")
        if isinstance(value, bool):
            return value
        return True


def compute_sidebar(posts: Sequence[Post]) -> dict:
    newest = sorted(posts, key=lambda post: post.date, reverse=True)
    hot_posts = [
        {
            "slug": post.slug,
            "title": post.title,
            "date_ymd": post.date,
            "categories": list(post.category_path),
        }
        for post in newest[:HOT_POSTS_LIMIT]
    ]

    tag_counts: dict[str, int] = {}
    top_counts: dict[str, int] = {}
    for post in posts:
        for tag in post.tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + 1
        if post.category_path:
            top = post.category_path[0]
            top_counts[top] = top_counts.get(top, 0) + 1

    def ranked(counts: dict[str, int], limit: int) -> list[dict]:
        items = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"name": name, "count": count} for name, count in items[:limit]]

    return {
        "hot_posts": hot_posts,
        "hot_tags": ranked(tag_counts, HOT_TAGS_LIMIT),
        "hot_categories": ranked(top_counts, HOT_CATEGORIES_LIMIT),
    }


class StateStore:
    """Build state kept in a small JSON file next to the site config.

    The file is shared with hand edits (notably the sidebar), so saving
    merges into whatever is on disk and keeps keys it does not know.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_raw(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read build state {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Build state must be a JSON object: {self.path}")
        return data

    def load(self) -> BuildState:
        try:
            data = self._read_raw()
        except ConfigError as exc:
            print(f"Warning: {exc}; starting from an empty build state.", file=sys.stderr)
            return BuildState()

        last_build_time = 0
        raw_time = data.get("last_build_time")
        if isinstance(raw_time, str) and raw_time.strip():
            try:
                last_build_time = parse_build_time(raw_time)
            except (ValueError, OverflowError):
                print(
                    f"Warning: unparsable last_build_time {raw_time!r} in {self.path}; doing a full build.",
                    file=sys.stderr,
                )
        sidebar = data.get("sidebar")
        extra = {key: value for key, value in data.items() if key not in KNOWN_KEYS}
        return BuildState(last_build_time=last_build_time, sidebar=sidebar, extra=extra)

    def save(self, state: BuildState, replace_sidebar: bool = False) -> bool:
        """Merge ``state`` into the file on disk. Failures are reported, not raised."""
        try:
            data = self._read_raw()
        except ConfigError:
            data = {}
        merged = dict(state.extra)
        merged.update(data)
        if state.last_build_time > 0:
            merged["last_build_time"] = format_build_time(state.last_build_time)
        else:
            merged.pop("last_build_time", None)
        if state.sidebar is not None and (replace_sidebar or data.get("sidebar") is None):
            merged["sidebar"] = state.sidebar
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(merged, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        except OSError as exc:
            print(f"Warning: {OutputError(self.path, str(exc))}", file=sys.stderr)
            return False
        return True

    def ensure_sidebar(self, state: BuildState, posts: Sequence[Post]) -> bool:
        """Compute and persist the sidebar snapshot unless one already exists."""
        if state.sidebar is not None:
            return False
        state.sidebar = compute_sidebar(posts)
        if self.save(state):
            print(f"Sidebar data written to {self.path} (safe to edit by hand).")
        return True

    def regenerate_sidebar(self, state: BuildState, posts: Sequence[Post]) -> bool:
        state.sidebar = compute_sidebar(posts)
        return self.save(state, replace_sidebar=True)

    def mark_built(self, state: BuildState, now: Optional[float] = None) -> bool:
        state.last_build_time = int(now if now is not None else time.time())
        return self.save(state)
