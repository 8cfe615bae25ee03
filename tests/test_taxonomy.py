from __future__ import annotations

from conftest import make_post

from mdpress.taxonomy import (
    build_category_tree,
    category_paths,
    collect_tags,
    collect_years,
    posts_in_category,
    posts_with_tag,
)


def sample() -> list:
    return [
        make_post("one", "2024-05-01", tags=["python", "web"], categories=["dev", "backend", "api"]),
        make_post("two", "2024-02-01", tags=["python"], categories=["dev", "backend"]),
        make_post("three", "2023-07-01", tags=["life"], categories=["dev"]),
        make_post("four", "2022-01-01", tags=["books", "life"], categories=["notes"]),
        make_post("five", "", tags=[], categories=[]),
    ]


def test_collect_tags_sorted_by_name() -> None:
    assert collect_tags(sample()) == [("books", 1), ("life", 2), ("python", 2), ("web", 1)]


def test_collect_years_skips_undated() -> None:
    assert collect_years(sample()) == [("2022", 1), ("2023", 1), ("2024", 2)]


def test_category_prefix_closure() -> None:
    paths = category_paths(sample())
    assert ("dev",) in paths
    assert ("dev", "backend") in paths
    assert ("dev", "backend", "api") in paths
    assert ("notes",) in paths
    assert () not in paths


def test_category_tree_counts_and_order() -> None:
    tree = build_category_tree(sample())
    assert [tree.nodes[index].name for index in tree.roots] == ["dev", "notes"]
    counts = {node.key: node.count for _, node in tree.walk()}
    assert counts == {"dev": 3, "dev/backend": 2, "dev/backend/api": 1, "notes": 1}
    assert [(depth, node.key) for depth, node in tree.walk()] == [
        (0, "dev"),
        (1, "dev/backend"),
        (2, "dev/backend/api"),
        (0, "notes"),
    ]


def test_children_sorted_by_name() -> None:
    posts = [
        make_post("a", categories=["top", "zeta"]),
        make_post("b", categories=["top", "alpha"]),
        make_post("c", categories=["top", "mid"]),
    ]
    tree = build_category_tree(posts)
    assert [node.key for _, node in tree.walk()] == ["top", "top/alpha", "top/mid", "top/zeta"]


def test_filters() -> None:
    posts = sample()
    assert [post.slug for post in posts_with_tag(posts, "python")] == ["one", "two"]
    assert [post.slug for post in posts_in_category(posts, ("dev", "backend"))] == ["one", "two"]
    assert posts_in_category(posts, ()) == []
