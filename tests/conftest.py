from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

import pytest

from mdpress.content import Post


def make_post(
    slug: str,
    date: str = "2024-01-01",
    tags: Sequence[str] = (),
    categories: Sequence[str] = (),
    modified: int = 0,
) -> Post:
    return Post(
        slug=slug,
        title=slug.replace("-", " ").title(),
        date=date,
        modified_epoch=modified,
        tags=tuple(tags),
        category_path=tuple(categories),
        body=f"<p>{slug} body</p>",
        summary=f"{slug} body",
        source=f"{slug}.md",
    )


def write_post(
    root: Path,
    rel: str,
    title: str,
    date: str,
    tags: Sequence[str] = (),
    body: str = "Some text.",
    mtime: Optional[float] = None,
    extra: str = "",
) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["---", f"title: {title}", f"date: {date}"]
    if tags:
        lines.append(f"tags: [{', '.join(tags)}]")
    if extra:
        lines.append(extra)
    lines.extend(["---", "", body, ""])
    path.write_text("\n".join(lines), encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def project(tmp_path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "source").mkdir()
    return tmp_path
