from __future__ import annotations

import datetime as dt
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from .changes import AffectedSet, classify, compute_affected
from .content import Post, scan, walk_source
from .errors import OutputError, ParseError, TemplateError
from .pages import (
    Site,
    category_prefix,
    render_404,
    render_about,
    render_archives_overview,
    render_categories_overview,
    render_category_page,
    render_home_page,
    render_post,
    render_rss,
    render_search,
    render_search_index,
    render_sitemap,
    render_tag_page,
    render_tags_overview,
    render_year_archive,
    tag_prefix,
)
from .paginate import iter_pages
from .render import THEME_DIR, copy_files, copy_static, read_template, write_text
from .state import BuildState, StateStore
from .taxonomy import (
    CategoryPath,
    build_category_tree,
    category_paths,
    collect_tags,
    collect_years,
    posts_in_category,
    posts_in_year,
    posts_with_tag,
)
from .utils import clean_output_dir, format_build_time


@dataclass
class BuildOptions:
    source_dir: Path = Path("source")
    output_dir: Path = Path("public")
    static_dir: Path = Path("static")
    templates_dir: Path = Path("templates")
    pages_dir: Path = Path("pages")
    state_path: Path = Path("build.json")
    project_root: Path = field(default_factory=Path.cwd)
    site_name: str = "mdpress"
    site_description: str = ""
    site_url: str = ""
    about_html: str = ""
    posts_per_page: int = 10
    tag_posts_per_page: int = 0
    category_posts_per_page: int = 0
    feed_limit: int = 20
    toc_depth: str = "2-4"
    enable_rss: bool = True
    enable_sitemap: bool = True
    enable_404: bool = True
    incremental: Optional[bool] = None

    @property
    def tag_per_page(self) -> int:
        return self.tag_posts_per_page or self.posts_per_page

    @property
    def category_per_page(self) -> int:
        return self.category_posts_per_page or self.posts_per_page


@dataclass
class BuildReport:
    mode: str
    posts: int = 0
    changed: int = 0
    written: list[str] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class Generator:
    """Runs full and incremental builds for one project.

    The build state is loaded once per build and handed down explicitly;
    it is saved only after every artifact has been attempted.
    """

    def __init__(self, options: BuildOptions, store: Optional[StateStore] = None) -> None:
        self.options = options
        self.store = store or StateStore(options.state_path)

    def build(self, incremental: Optional[bool] = None) -> BuildReport:
        started = time.time()
        opts = self.options
        posts = scan(opts.source_dir, opts.toc_depth)
        base_template = read_template("base.html", opts.templates_dir)

        state = self.store.load()
        self.store.ensure_sidebar(state, posts)
        site = self.site_for(posts, state, base_template)

        if self.use_incremental(state, incremental):
            report = self.build_incremental(site, state)
        else:
            report = self.build_full(site)
        if report.ok:
            self.store.mark_built(state, started)
            return report

        # failed artifacts must be retried: an incremental build keeps the old
        # stamp, a failed full build clears it so the next build is full again
        if report.mode == "full":
            state.last_build_time = 0
        self.store.save(state)
        print(
            f"Warning: {len(report.failures)} artifact(s) failed; last build time not advanced.",
            file=sys.stderr,
        )
        return report

    def use_incremental(self, state: BuildState, requested: Optional[bool] = None) -> bool:
        if requested is None:
            requested = self.options.incremental
        if requested is None:
            requested = state.incremental_requested()
        if not requested:
            return False
        output_dir = self.options.output_dir
        if not output_dir.is_dir() or not any(output_dir.iterdir()):
            return False
        return state.last_build_time > 0

    def site_for(self, posts: list[Post], state: BuildState, base_template: str) -> Site:
        opts = self.options
        return Site(
            base_template=base_template,
            posts=posts,
            tags=collect_tags(posts),
            years=collect_years(posts),
            categories=build_category_tree(posts),
            site_name=opts.site_name,
            site_description=opts.site_description,
            site_url=opts.site_url.strip(),
            about_html=opts.about_html,
            sidebar=state.sidebar if isinstance(state.sidebar, dict) else {},
            home_per_page=opts.posts_per_page,
            tag_per_page=opts.tag_per_page,
            category_per_page=opts.category_per_page,
            footer_year=str(dt.date.today().year),
        )

    def regenerate_sidebar(self) -> bool:
        posts = scan(self.options.source_dir, self.options.toc_depth)
        state = self.store.load()
        saved = self.store.regenerate_sidebar(state, posts)
        if saved:
            print(f"Sidebar regenerated from {len(posts)} posts: {self.store.path}")
        return saved

    def emit(self, report: BuildReport, rel_path: str, render: Callable[[], Optional[str]]) -> None:
        try:
            text = render()
            if text is None:
                return
            write_text(self.options.output_dir / rel_path, text)
        except (OutputError, TemplateError, ParseError) as exc:
            print(f"Warning: failed to write {rel_path}: {exc}", file=sys.stderr)
            report.failures.append((rel_path, str(exc)))
            return
        report.written.append(rel_path)

    def copy_assets(self, report: BuildReport, sources: Iterable[tuple[str, Callable[[], object]]]) -> None:
        for label, copy in sources:
            try:
                copy()
            except OutputError as exc:
                print(f"Warning: failed to copy {label}: {exc}", file=sys.stderr)
                report.failures.append((label, str(exc)))

    def source_assets(self, newer_than: int = 0) -> list[Path]:
        source_dir = self.options.source_dir
        return [
            path
            for path in walk_source(source_dir)
            if path.suffix.lower() != ".md" and int(path.stat().st_mtime) > newer_than
        ]

    def build_full(self, site: Site) -> BuildReport:
        opts = self.options
        report = BuildReport(mode="full", posts=len(site.posts), changed=len(site.posts))
        clean_output_dir(opts.output_dir, opts.project_root)
        opts.output_dir.mkdir(parents=True, exist_ok=True)
        self.copy_assets(
            report,
            [
                ("theme assets", lambda: copy_static(THEME_DIR / "static", opts.output_dir)),
                ("static assets", lambda: copy_static(opts.static_dir, opts.output_dir)),
                (
                    "source assets",
                    lambda: copy_files(self.source_assets(), opts.source_dir, opts.output_dir),
                ),
            ],
        )

        for post in site.posts:
            self.emit(report, post.rel_path, lambda post=post: render_post(site, post))
        for page in iter_pages(site.posts, opts.posts_per_page):
            self.emit(report, page.rel_path, lambda page=page: render_home_page(site, page))
        for tag, _count in site.tags:
            self.write_tag(report, site, tag)
        for path in sorted(category_paths(site.posts)):
            self.write_category(report, site, path)
        for year, _count in site.years:
            self.write_year(report, site, year)
        self.emit(report, "tags.html", lambda: render_tags_overview(site))
        self.emit(report, "categories.html", lambda: render_categories_overview(site))
        self.emit(report, "archives.html", lambda: render_archives_overview(site))
        self.emit(report, "search.html", lambda: render_search(site))
        self.write_about(report, site)
        if opts.enable_404:
            self.emit(report, "404.html", lambda: render_404(site))
        self.write_feeds(report, site)
        print(f"Full build: {len(site.posts)} posts, {len(report.written)} files written.")
        return report

    def build_incremental(self, site: Site, state: BuildState) -> BuildReport:
        opts = self.options
        changed, _unchanged = classify(site.posts, state.last_build_time)
        report = BuildReport(mode="incremental", posts=len(site.posts), changed=len(changed))
        since = format_build_time(state.last_build_time) if state.last_build_time else "initial build"
        print(f"Incremental build: {len(changed)} of {len(site.posts)} posts changed since {since}.")

        self.copy_assets(
            report,
            [
                (
                    "source assets",
                    lambda: copy_files(
                        self.source_assets(state.last_build_time), opts.source_dir, opts.output_dir
                    ),
                )
            ],
        )
        affected = compute_affected(site.posts, changed, opts.posts_per_page, opts.output_dir)
        self.write_affected(report, site, affected)
        self.write_feeds(report, site)
        return report

    def write_affected(self, report: BuildReport, site: Site, affected: AffectedSet) -> None:
        opts = self.options
        for post in affected.posts:
            self.emit(report, post.rel_path, lambda post=post: render_post(site, post))

        home_urls = []
        for page in iter_pages(site.posts, opts.posts_per_page):
            if page.number in affected.home_pages:
                self.emit(report, page.rel_path, lambda page=page: render_home_page(site, page))
                home_urls.append(page.url)
        if home_urls:
            print(f"  home pages: {', '.join(home_urls)}")

        for tag in sorted(affected.tags):
            self.write_tag(report, site, tag)
        if affected.tags:
            print(f"  tags: {', '.join(sorted(affected.tags))}")
        for path in sorted(affected.category_paths):
            self.write_category(report, site, path)
        if affected.category_paths:
            print(f"  categories: {', '.join(category_prefix(path) for path in sorted(affected.category_paths))}")
        for year in sorted(affected.years):
            self.write_year(report, site, year)
        if affected.years:
            print(f"  years: {', '.join(sorted(affected.years))}")

        if affected.tags_overview:
            self.emit(report, "tags.html", lambda: render_tags_overview(site))
        if affected.categories_overview:
            self.emit(report, "categories.html", lambda: render_categories_overview(site))
        if affected.archives_overview:
            self.emit(report, "archives.html", lambda: render_archives_overview(site))

    def write_tag(self, report: BuildReport, site: Site, tag: str) -> None:
        tagged = posts_with_tag(site.posts, tag)
        for page in iter_pages(tagged, site.tag_per_page, tag_prefix(tag)):
            self.emit(report, page.rel_path, lambda page=page: render_tag_page(site, tag, page))

    def write_category(self, report: BuildReport, site: Site, path: CategoryPath) -> None:
        filed = posts_in_category(site.posts, path)
        for page in iter_pages(filed, site.category_per_page, category_prefix(path)):
            self.emit(report, page.rel_path, lambda page=page: render_category_page(site, path, page))

    def write_year(self, report: BuildReport, site: Site, year: str) -> None:
        dated = posts_in_year(site.posts, year)
        self.emit(report, f"archives/{year}.html", lambda: render_year_archive(site, year, dated))

    def write_about(self, report: BuildReport, site: Site) -> None:
        about_path = self.options.pages_dir / "about.md"
        if about_path.is_file():
            self.emit(report, "about.html", lambda: render_about(site, about_path, self.options.toc_depth))

    def write_feeds(self, report: BuildReport, site: Site) -> None:
        opts = self.options
        self.emit(report, "search.json", lambda: render_search_index(site.posts))
        if opts.enable_rss:
            self.emit(report, "rss.xml", lambda: render_rss(site, opts.feed_limit))
        if opts.enable_sitemap:
            self.emit(report, "sitemap.xml", lambda: render_sitemap(site))
