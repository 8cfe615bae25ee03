from __future__ import annotations

import html
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import quote

from .content import Post, extract_title, parse_front_matter, render_markdown
from .errors import ParseError
from .paginate import Page, iter_pages
from .render import render_template, strip_tags
from .taxonomy import CategoryPath, CategoryTree, category_paths, posts_in_category, posts_with_tag
from .utils import join_url, parse_day, relative_root, rfc822_date


@dataclass
class Site:
    base_template: str
    posts: list[Post]
    tags: list[tuple[str, int]]
    years: list[tuple[str, int]]
    categories: CategoryTree
    site_name: str = "mdpress"
    site_description: str = ""
    site_url: str = ""
    about_html: str = ""
    sidebar: dict = field(default_factory=dict)
    home_per_page: int = 10
    tag_per_page: int = 10
    category_per_page: int = 10
    footer_year: str = ""


def href(root: str, rel_path: str) -> str:
    return f"{root}/{quote(rel_path)}"


def post_rel_path(slug: str, categories: Sequence[str]) -> str:
    return "/".join(list(categories) + [f"{slug}.html"])


def tag_prefix(tag: str) -> str:
    return f"tags/{tag}"


def category_prefix(path: CategoryPath) -> str:
    return "/".join(path)


def build_sidebar(sidebar: dict, root: str, about_html: str, toc_html: str = "") -> str:
    panels = [
        '<div class="panel">'
        "<h3>About</h3>"
        f"{about_html}"
        "</div>"
    ]
    if toc_html and "<li" in toc_html:
        panels.append(
            '<div class="panel">'
            "<h3>Contents</h3>"
            f"{toc_html}"
            "</div>"
        )

    rows = []
    for item in sidebar.get("hot_posts") or []:
        if not isinstance(item, dict) or not item.get("slug"):
            continue
        url = href(root, post_rel_path(str(item["slug"]), item.get("categories") or []))
        title = html.escape(str(item.get("title") or item["slug"]))
        rows.append(
            f'<li><a href="{url}">{title}</a>'
            f'<span class="sidebar-date">{html.escape(str(item.get("date_ymd") or ""))}</span></li>'
        )
    if rows:
        panels.append(
            '<div class="panel">'
            "<h3>Recent posts</h3>"
            f'<ul class="sidebar-posts">{"".join(rows)}</ul>'
            "</div>"
        )

    chips = []
    for item in sidebar.get("hot_tags") or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        name = str(item["name"])
        chips.append(
            f'<a class="chip" href="{href(root, tag_prefix(name) + "/index.html")}">'
            f'{html.escape(name)}<span class="count">{item.get("count", 0)}</span></a>'
        )
    if chips:
        panels.append(
            '<div class="panel">'
            "<h3>Tags</h3>"
            f'<div class="tag-cloud">{"".join(chips)}</div>'
            "</div>"
        )

    categories = []
    for item in sidebar.get("hot_categories") or []:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        name = str(item["name"])
        categories.append(
            f'<li><a href="{href(root, name + "/index.html")}">{html.escape(name)}</a>'
            f'<span class="count">{item.get("count", 0)}</span></li>'
        )
    if categories:
        panels.append(
            '<div class="panel">'
            "<h3>Categories</h3>"
            f'<ul class="category-list">{"".join(categories)}</ul>'
            "</div>"
        )
    return "".join(panels)


def render_page(
    site: Site, rel_path: str, title: str, content: str, extra_head: str = "", toc_html: str = ""
) -> str:
    root = relative_root(rel_path)
    return render_template(
        site.base_template,
        title=html.escape(title),
        root=root,
        content=content,
        sidebar=build_sidebar(site.sidebar, root, site.about_html, toc_html),
        site_name=html.escape(site.site_name),
        site_description=html.escape(site.site_description),
        year=site.footer_year,
        extra_head=extra_head,
    )


def build_post_cards(posts: Sequence[Post], root: str) -> str:
    cards = []
    for post in posts:
        title = html.escape(post.title)
        summary = html.escape(post.summary)
        url = href(root, post.rel_path)
        tag_links = " ".join(
            f'<a class="chip" href="{href(root, tag_prefix(tag) + "/index.html")}">{html.escape(tag)}</a>'
            for tag in post.tags
        )
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta"><div class="post-meta-left">'
            f'<span class="post-date">{html.escape(post.date)}</span>'
            f'<span class="post-words">{post.words} words</span>'
            "</div>"
            f'<div class="post-tags">{tag_links}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{title}</a></h2>'
            f'<p class="post-summary">{summary}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_pagination(page: Page) -> str:
    if page.total_pages <= 1:
        return ""
    items = []
    if page.newer is not None:
        items.append(f'<a class="page-link" href="./{page.filename_for(page.newer)}">Newer</a>')
    else:
        items.append('<span class="page-link is-disabled">Newer</span>')
    numbers = []
    for display in range(1, page.total_pages + 1):
        number = page.total_pages - display + 1
        if number == page.number:
            numbers.append(f'<span class="page-number is-active">{display}</span>')
        else:
            numbers.append(f'<a class="page-number" href="./{page.filename_for(number)}">{display}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page.older is not None:
        items.append(f'<a class="page-link" href="./{page.filename_for(page.older)}">Older</a>')
    else:
        items.append('<span class="page-link is-disabled">Older</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def render_listing(site: Site, page: Page, heading: str, description: str, title: str) -> str:
    root = relative_root(page.rel_path)
    content = (
        '<div class="section-head">'
        f"<h2>{html.escape(heading)}</h2>"
        f"<p>{html.escape(description)}</p>"
        f'<p class="page-count">Page {page.display_number} of {page.total_pages}</p>'
        "</div>"
        f'<div class="post-grid">{build_post_cards(page.items, root)}</div>'
        f"{build_pagination(page)}"
    )
    return render_page(site, page.rel_path, title, content)


def render_home_page(site: Site, page: Page) -> str:
    title = f"{site.site_name} | Home"
    if not page.is_canonical:
        title = f"{site.site_name} | Page {page.display_number}"
    return render_listing(site, page, "Latest posts", site.site_description, title)


def render_tag_page(site: Site, tag: str, page: Page) -> str:
    return render_listing(
        site, page, f"Tag: {tag}", "Posts carrying this tag.", f"{tag} | {site.site_name}"
    )


def render_category_page(site: Site, path: CategoryPath, page: Page) -> str:
    name = " / ".join(path)
    return render_listing(
        site, page, name, "Posts filed in this category.", f"{name} | {site.site_name}"
    )


def render_post(site: Site, post: Post) -> str:
    root = relative_root(post.rel_path)
    crumbs = []
    for depth in range(1, len(post.category_path) + 1):
        path = post.category_path[:depth]
        crumbs.append(
            f'<a href="{href(root, category_prefix(path) + "/index.html")}">{html.escape(path[-1])}</a>'
        )
    tag_links = " ".join(
        f'<a class="chip" href="{href(root, tag_prefix(tag) + "/index.html")}">{html.escape(tag)}</a>'
        for tag in post.tags
    )
    content = (
        '<article class="post">'
        '<div class="post-meta"><div class="post-meta-left">'
        f'<span class="post-date">{html.escape(post.date)}</span>'
        f'<span class="post-words">{post.words} words</span>'
        f'<span class="post-categories">{" / ".join(crumbs)}</span>'
        "</div>"
        f'<div class="post-tags">{tag_links}</div></div>'
        f'<h1 class="post-title">{html.escape(post.title)}</h1>'
        f'<div class="post-body">{post.body}</div>'
        f'<div class="post-footer"><a href="{root}/index.html">Back to home</a></div>'
        "</article>"
    )
    return render_page(
        site, post.rel_path, f"{post.title} | {site.site_name}", content, toc_html=post.toc
    )


def render_tags_overview(site: Site) -> str:
    root = "."
    chips = [
        f'<a class="chip" href="{href(root, tag_prefix(name) + "/index.html")}">'
        f'{html.escape(name)}<span class="count">{count}</span></a>'
        for name, count in site.tags
    ]
    body = "".join(chips) if chips else "<p>No tags yet.</p>"
    content = (
        '<div class="section-head">'
        "<h2>Tags</h2>"
        f"<p>{len(site.tags)} tags in total.</p>"
        "</div>"
        f'<div class="tag-cloud">{body}</div>'
    )
    return render_page(site, "tags.html", f"Tags | {site.site_name}", content)


def render_categories_overview(site: Site) -> str:
    root = "."
    rows = []
    for depth, node in site.categories.walk():
        rows.append(
            f'<li class="category-depth-{depth}">'
            f'<a href="{href(root, node.key + "/index.html")}">{html.escape(node.name)}</a>'
            f'<span class="count">{node.count}</span></li>'
        )
    body = "".join(rows) if rows else "<li>No categories yet.</li>"
    content = (
        '<div class="section-head">'
        "<h2>Categories</h2>"
        "<p>Posts grouped by folder.</p>"
        "</div>"
        f'<ul class="category-tree">{body}</ul>'
    )
    return render_page(site, "categories.html", f"Categories | {site.site_name}", content)


def render_archives_overview(site: Site) -> str:
    root = "."
    rows = [
        f'<li><a class="archive-year" href="{root}/archives/{year}.html">{year}</a>'
        f'<span class="archive-count">{count}</span></li>'
        for year, count in sorted(site.years, reverse=True)
    ]
    content = (
        '<div class="section-head">'
        "<h2>Archive</h2>"
        f"<p>Total {len(site.posts)} posts.</p>"
        "</div>"
        f'<ul class="archive-year-list">{"".join(rows)}</ul>'
    )
    return render_page(site, "archives.html", f"Archive | {site.site_name}", content)


def render_year_archive(site: Site, year: str, posts: Sequence[Post]) -> str:
    rel_path = f"archives/{year}.html"
    root = relative_root(rel_path)
    rows = []
    for post in posts:
        rows.append(
            f'<li><span class="archive-date">{html.escape(post.date)}</span>'
            f'<a href="{href(root, post.rel_path)}">{html.escape(post.title)}</a></li>'
        )
    content = (
        '<div class="section-head">'
        f"<h2>{year}</h2>"
        f"<p>{len(posts)} posts.</p>"
        "</div>"
        f'<ul class="archive-list">{"".join(rows)}</ul>'
    )
    return render_page(site, rel_path, f"{year} | {site.site_name}", content)


def render_search(site: Site) -> str:
    root = "."
    content = (
        '<div class="section-head">'
        "<h2>Search</h2>"
        "<p>Filter posts by title, content, tag or category.</p>"
        "</div>"
        '<div class="search-bar">'
        '<input id="search-input" class="search-input" type="search" placeholder="Type to search..." />'
        '<div id="search-status" class="search-status">Type to filter posts.</div>'
        "</div>"
        '<div id="search-results" class="post-grid"></div>'
    )
    extra_head = f'<script src="{root}/js/search.js" defer></script>'
    return render_page(site, "search.html", f"{site.site_name} | Search", content, extra_head)


def render_search_index(posts: Sequence[Post]) -> str:
    index = []
    for i, post in enumerate(posts):
        index.append(
            {
                "id": i,
                "title": post.title,
                "content": " ".join(strip_tags(post.body.replace("<", " <").replace(">", "> ")).split()),
                "tags": list(post.tags),
                "categories": list(post.category_path),
                "slug": post.slug,
                "date": post.date,
                "url": post.url,
            }
        )
    return json.dumps(index, indent=2, ensure_ascii=False)


def render_about(site: Site, about_path: Path, toc_depth: str) -> str:
    try:
        raw_text = about_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(about_path, f"cannot read: {exc}") from exc
    meta, body = parse_front_matter(raw_text, about_path)
    title, body = extract_title(meta, body, "About")
    html_content, toc_html = render_markdown(body, toc_depth)
    content = (
        '<article class="post">'
        f'<h1 class="post-title">{html.escape(title)}</h1>'
        f'<div class="post-body">{html_content}</div>'
        "</article>"
    )
    return render_page(site, "about.html", f"{title} | {site.site_name}", content, toc_html=toc_html)


def render_404(site: Site) -> str:
    root = "."
    content = (
        '<div class="section-head">'
        "<h2>404</h2>"
        "<p>Page not found. Try heading back to the homepage.</p>"
        "</div>"
        '<div class="post-card">'
        '<p class="post-summary">The page you requested does not exist.</p>'
        f'<a class="post-more" href="{root}/index.html">Back to home</a>'
        "</div>"
    )
    return render_page(site, "404.html", f"404 | {site.site_name}", content)


def render_rss(site: Site, feed_limit: int) -> Optional[str]:
    if not site.site_url:
        return None
    site_url = site.site_url.rstrip("/")
    items = []
    for post in site.posts[:feed_limit]:
        link = join_url(site_url, quote(post.rel_path))
        lines = [
            "<item>",
            f"<title>{html.escape(post.title)}</title>",
            f"<link>{link}</link>",
            f'<guid isPermaLink="true">{link}</guid>',
        ]
        published = parse_day(post.date)
        if published:
            lines.append(f"<pubDate>{rfc822_date(published)}</pubDate>")
        lines.append(f"<description>{html.escape(post.summary)}</description>")
        lines.append("</item>")
        items.append("\n".join(lines))
    newest = next((parse_day(post.date) for post in site.posts if parse_day(post.date)), None)
    channel = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{html.escape(site.site_name)}</title>",
        f"<link>{site_url}/</link>",
        f"<description>{html.escape(site.site_description)}</description>",
    ]
    if newest:
        channel.append(f"<lastBuildDate>{rfc822_date(newest)}</lastBuildDate>")
    channel.extend(["\n".join(items), "</channel>", "</rss>"])
    return "\n".join(channel)


def listing_urls(prefix: str, count: int, per_page: int) -> list[str]:
    return [page.rel_path for page in iter_pages(range(count), per_page, prefix)]


def render_sitemap(site: Site) -> Optional[str]:
    if not site.site_url:
        return None
    site_url = site.site_url.rstrip("/")
    entries: list[tuple[str, str]] = []
    entries.extend((rel, "") for rel in listing_urls("", len(site.posts), site.home_per_page))
    for post in site.posts:
        entries.append((post.rel_path, post.date if parse_day(post.date) else ""))
    for tag, _count in site.tags:
        count = len(posts_with_tag(site.posts, tag))
        entries.extend((rel, "") for rel in listing_urls(tag_prefix(tag), count, site.tag_per_page))
    for path in sorted(category_paths(site.posts)):
        count = len(posts_in_category(site.posts, path))
        entries.extend(
            (rel, "") for rel in listing_urls(category_prefix(path), count, site.category_per_page)
        )
    for year, _count in site.years:
        entries.append((f"archives/{year}.html", ""))
    for name in ("tags.html", "categories.html", "archives.html", "search.html"):
        entries.append((name, ""))

    items = []
    for rel, lastmod in entries:
        lines = ["<url>", f"<loc>{join_url(site_url, quote(rel))}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{lastmod}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )