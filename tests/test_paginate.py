from __future__ import annotations

import pytest

from mdpress.errors import InvalidPageError
from mdpress.paginate import (
    existing_max_page,
    iter_pages,
    page_of,
    page_rel_path,
    paginate,
    total_pages,
)


def newest_first(count: int) -> list[int]:
    # item value = age rank, 0 is the newest
    return list(range(count))


@pytest.mark.parametrize("count", [0, 1, 9, 10, 11, 22, 30, 31])
@pytest.mark.parametrize("per_page", [1, 3, 10])
def test_pages_cover_every_item_once(count: int, per_page: int) -> None:
    items = newest_first(count)
    pages = list(iter_pages(items, per_page))
    assert len(pages) == total_pages(count, per_page)
    assert sum(len(page.items) for page in pages) == count
    for page in pages[:-1]:
        assert len(page.items) == per_page
    seen = [item for page in reversed(pages) for item in page.items]
    assert seen == items


@pytest.mark.parametrize("count", [1, 5, 10, 22])
def test_canonical_page_holds_newest_item(count: int) -> None:
    items = newest_first(count)
    pages = total_pages(count, 10)
    canonical = paginate(items, 10, pages)
    assert canonical.is_canonical
    assert canonical.items[0] == 0
    assert canonical.filename == "index.html"


def test_total_pages_is_at_least_one() -> None:
    assert total_pages(0, 10) == 1
    page = paginate([], 10, 1)
    assert page.items == []
    assert page.rel_path == "index.html"


def test_twenty_two_items_at_ten_per_page() -> None:
    items = newest_first(22)
    assert total_pages(22, 10) == 3

    oldest = paginate(items, 10, 1)
    assert oldest.rel_path == "index1.html"
    assert oldest.items == list(range(12, 22))
    assert oldest.display_number == 3

    middle = paginate(items, 10, 2)
    assert middle.rel_path == "index2.html"
    assert middle.items == list(range(2, 12))

    newest = paginate(items, 10, 3)
    assert newest.rel_path == "index.html"
    assert newest.items == [0, 1]
    assert newest.display_number == 1


def test_navigation_links() -> None:
    items = newest_first(22)
    newest = paginate(items, 10, 3)
    assert newest.newer is None
    assert newest.older == 2
    middle = paginate(items, 10, 2)
    assert middle.newer == 3
    assert middle.older == 1
    assert middle.filename_for(middle.newer) == "index.html"
    oldest = paginate(items, 10, 1)
    assert oldest.older is None


@pytest.mark.parametrize("page", [0, -1, 4])
def test_out_of_range_page_raises(page: int) -> None:
    with pytest.raises(InvalidPageError):
        paginate(newest_first(22), 10, page)


def test_prefixes_namespace_urls() -> None:
    page = paginate(newest_first(3), 2, 1, prefix="tags/python")
    assert page.rel_path == "tags/python/index1.html"
    assert page.url == "/tags/python/index1.html"
    assert page_rel_path("A/B", 2, 2) == "A/B/index.html"


def test_page_of_matches_paginate() -> None:
    items = newest_first(22)
    for page in iter_pages(items, 10):
        for item in page.items:
            assert page_of(item, len(items), 10) == page.number
    assert page_of(21, 22, 10) == 1


def test_growth_keeps_lower_pages_stable() -> None:
    per_page = 10
    for count in range(0, 35):
        before = {page.number: (page.rel_path, page.items) for page in iter_pages(list(range(count)), per_page)}
        # a new newest item shifts every existing item one position back
        after = {
            page.number: (page.rel_path, [item - 1 for item in page.items])
            for page in iter_pages(list(range(count + 1)), per_page)
        }
        old_total = total_pages(count, per_page)
        new_total = total_pages(count + 1, per_page)
        assert new_total in (old_total, old_total + 1)
        for number in range(1, old_total):
            assert after[number] == before[number]


def test_existing_max_page(tmp_path) -> None:
    assert existing_max_page(tmp_path / "missing") == 0
    for name in ("index.html", "index1.html", "index7.html", "index12.txt", "indexx.html"):
        (tmp_path / name).write_text("", encoding="utf-8")
    assert existing_max_page(tmp_path) == 7
