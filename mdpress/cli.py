from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .config import load_config, resolve_about_html, resolve_path
from .errors import ConfigError, SiteError
from .generator import BuildOptions, BuildReport, Generator
from .server import serve, watch_and_serve
from .utils import parse_bool, parse_int

DEFAULT_CONFIG = "site.toml"
DEFAULT_PORT = 1111


def read_config(path: Path) -> dict:
    try:
        return load_config(path)
    except ConfigError as exc:
        print(f"Warning: {exc}; using defaults.", file=sys.stderr)
        return {}


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        value = cfg_value(key, default)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: Optional[bool]) -> Optional[bool]:
        value = cfg_value(key, default)
        return parse_bool(value) if value is not None else default

    def cfg_int(key: str, default: int) -> int:
        value = cfg_value(key, default)
        return parse_int(value, default)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    common.add_argument("--source", default=cfg_str("source", "source"), help="Directory containing Markdown sources.")
    common.add_argument("--output", default=cfg_str("output", "public"), help="Output directory for the site.")
    common.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    common.add_argument("--templates", default=cfg_str("templates", "templates"), help="Directory overriding theme templates.")
    common.add_argument("--pages", default=cfg_str("pages", "pages"), help="Directory containing standalone pages (about.md).")
    common.add_argument("--site-name", default=cfg_str("site_name", "mdpress"), help="Site title.")
    common.add_argument(
        "--site-description",
        default=cfg_str("site_description", "A static blog built from Markdown."),
        help="Site description.",
    )
    common.add_argument("--site-url", default=cfg_str("site_url", ""), help="Public site URL used for RSS and sitemap.")
    common.add_argument(
        "--posts-per-page",
        default=cfg_int("posts_per_page", 10),
        type=int,
        help="Number of posts per home page.",
    )
    common.add_argument(
        "--tag-posts-per-page",
        default=cfg_int("tag_posts_per_page", 0),
        type=int,
        help="Number of posts per tag page (0 = same as home).",
    )
    common.add_argument(
        "--category-posts-per-page",
        default=cfg_int("category_posts_per_page", 0),
        type=int,
        help="Number of posts per category page (0 = same as home).",
    )
    common.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", 20),
        type=int,
        help="Maximum number of posts in the RSS feed.",
    )
    common.add_argument("--toc-depth", default=cfg_str("toc_depth", "2-4"), help="Heading depth range for TOC (e.g. 2-4).")
    common.add_argument(
        "--enable-rss",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_rss", True),
        help="Generate rss.xml.",
    )
    common.add_argument(
        "--enable-sitemap",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_sitemap", True),
        help="Generate sitemap.xml.",
    )
    common.add_argument(
        "--enable-404",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_404", True),
        help="Generate 404.html.",
    )
    common.add_argument(
        "--incremental",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("incremental", None),
        help="Force an incremental or full build (default: build_mode from the state file).",
    )
    common.add_argument("--state-file", default=cfg_str("state_file", "build.json"), help="Path to build state JSON.")
    common.add_argument("--about-text", default=cfg_str("about_text", ""), help="Text content for the sidebar About panel.")
    common.add_argument("--about-html", default=cfg_str("about_html", ""), help="HTML content for the sidebar About panel.")
    common.add_argument("--about-file", default=cfg_str("about_file", ""), help="Path to file used for the sidebar About panel.")

    parser = argparse.ArgumentParser(description="Markdown static site generator with incremental builds.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("build", parents=[common], help="Build the site.")
    serve_parser = commands.add_parser("serve", parents=[common], help="Build, then serve the output directory.")
    serve_parser.add_argument("--port", default=cfg_int("port", DEFAULT_PORT), type=int, help="Port to listen on.")
    dev_parser = commands.add_parser("dev", parents=[common], help="Build, serve and rebuild on changes.")
    dev_parser.add_argument("--port", default=cfg_int("port", DEFAULT_PORT), type=int, help="Port to listen on.")
    dev_parser.add_argument(
        "--watch",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Watch sources, templates and static files.",
    )
    commands.add_parser("sidebar", parents=[common], help="Regenerate the sidebar snapshot in the state file.")
    return parser


def options_from_args(args: argparse.Namespace) -> BuildOptions:
    config_path = Path(args.config)
    return BuildOptions(
        source_dir=Path(args.source),
        output_dir=Path(args.output),
        static_dir=Path(args.static),
        templates_dir=Path(args.templates),
        pages_dir=Path(args.pages),
        state_path=resolve_path(args.state_file, config_path),
        project_root=Path.cwd(),
        site_name=args.site_name,
        site_description=args.site_description,
        site_url=args.site_url,
        about_html=resolve_about_html(args),
        posts_per_page=max(1, args.posts_per_page),
        tag_posts_per_page=max(0, args.tag_posts_per_page),
        category_posts_per_page=max(0, args.category_posts_per_page),
        feed_limit=max(0, args.feed_limit),
        toc_depth=args.toc_depth,
        enable_rss=args.enable_rss,
        enable_sitemap=args.enable_sitemap,
        enable_404=args.enable_404,
        incremental=args.incremental,
    )


def run_build(generator: Generator, incremental: Optional[bool] = None) -> BuildReport:
    start = time.perf_counter()
    report = generator.build(incremental)
    elapsed = time.perf_counter() - start
    if report.failures:
        print(f"{len(report.failures)} artifact(s) failed; see warnings above.", file=sys.stderr)
    print(f"Build completed in {elapsed:.2f}s.")
    return report


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=DEFAULT_CONFIG)
    pre_args, _ = pre_parser.parse_known_args(argv)
    config = read_config(Path(pre_args.config))

    args = build_parser(config, pre_args.config).parse_args(argv)
    options = options_from_args(args)
    generator = Generator(options)

    try:
        if args.command == "sidebar":
            return 0 if generator.regenerate_sidebar() else 1
        report = run_build(generator)
        if args.command == "build":
            print(f"Site generated in: {options.output_dir} ({report.mode} build)")
        elif args.command == "serve":
            serve(options.output_dir, args.port)
        elif args.command == "dev":
            if args.watch:
                watch_and_serve(
                    options.output_dir,
                    args.port,
                    [options.source_dir, options.templates_dir, options.static_dir, options.pages_dir],
                    options.source_dir,
                    lambda incremental: run_build(generator, incremental),
                )
            else:
                serve(options.output_dir, args.port)
    except SiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
