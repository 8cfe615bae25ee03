from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .content import Post

CategoryPath = tuple[str, ...]


@dataclass
class CategoryNode:
    name: str
    path: CategoryPath
    count: int = 0
    children: list[int] = field(default_factory=list)

    @property
    def key(self) -> str:
        return "/".join(self.path)


@dataclass
class CategoryTree:
    """Category hierarchy stored as a flat list of nodes addressed by index.

    A node's count is the number of posts whose category path starts
    with the node's path, so ancestors never count less than descendants.
    """

    nodes: list[CategoryNode] = field(default_factory=list)
    roots: list[int] = field(default_factory=list)

    def walk(self) -> Iterator[tuple[int, CategoryNode]]:
        """Depth-first (depth, node) pairs, siblings in name order."""
        stack = [(0, index) for index in reversed(self.roots)]
        while stack:
            depth, index = stack.pop()
            node = self.nodes[index]
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))


def collect_tags(posts: Iterable[Post]) -> list[tuple[str, int]]:
    counts: dict[str, int] = {}
    for post in posts:
        for tag in post.tags:
            counts[tag] = counts.get(tag, 0) + 1
    return sorted(counts.items())


def collect_years(posts: Iterable[Post]) -> list[tuple[str, int]]:
    counts: dict[str, int] = {}
    for post in posts:
        if post.year:
            counts[post.year] = counts.get(post.year, 0) + 1
    return sorted(counts.items())


def build_category_tree(posts: Iterable[Post]) -> CategoryTree:
    tree = CategoryTree()
    index_by_path: dict[CategoryPath, int] = {}
    for post in posts:
        for depth in range(1, len(post.category_path) + 1):
            path = post.category_path[:depth]
            index = index_by_path.get(path)
            if index is None:
                index = len(tree.nodes)
                tree.nodes.append(CategoryNode(name=path[-1], path=path))
                index_by_path[path] = index
                if depth == 1:
                    tree.roots.append(index)
                else:
                    tree.nodes[index_by_path[path[:-1]]].children.append(index)
            tree.nodes[index].count += 1

    def by_name(index: int) -> str:
        return tree.nodes[index].name

    tree.roots.sort(key=by_name)
    for node in tree.nodes:
        node.children.sort(key=by_name)
    return tree


def prefixes(path: CategoryPath) -> list[CategoryPath]:
    return [tuple(path[:depth]) for depth in range(1, len(path) + 1)]


def category_paths(posts: Iterable[Post]) -> set[CategoryPath]:
    paths: set[CategoryPath] = set()
    for post in posts:
        paths.update(prefixes(post.category_path))
    return paths


def posts_with_tag(posts: Iterable[Post], tag: str) -> list[Post]:
    return [post for post in posts if post.has_tag(tag)]


def posts_in_category(posts: Iterable[Post], path: CategoryPath) -> list[Post]:
    return [post for post in posts if post.in_category(path)]


def posts_in_year(posts: Iterable[Post], year: str) -> list[Post]:
    return [post for post in posts if post.year == year]
