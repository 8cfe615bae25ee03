from __future__ import annotations

import dataclasses
import datetime as dt
import html as html_lib
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import markdown
import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .errors import ParseError, SourceError
from .render import strip_tags
from .utils import parse_bool

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
FRONT_MATTER_FENCES = {"---": "yaml", "+++": "toml"}
SUMMARY_LENGTH = 200


@dataclass(frozen=True)
class Post:
    """One parsed source document. Immutable once the scan has finished."""

    slug: str
    title: str
    date: str
    modified_epoch: int
    tags: tuple[str, ...] = ()
    category_path: tuple[str, ...] = ()
    body: str = ""
    summary: str = ""
    toc: str = ""
    words: int = 0
    source: str = ""

    @property
    def year(self) -> str:
        year = self.date[:4]
        return year if len(year) == 4 and year.isdigit() else ""

    @property
    def rel_path(self) -> str:
        return "/".join(self.category_path + (f"{self.slug}.html",))

    @property
    def url(self) -> str:
        return "/" + self.rel_path

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def in_category(self, path: tuple[str, ...]) -> bool:
        return bool(path) and self.category_path[: len(path)] == tuple(path)


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        value = str(value).strip()
        if value.startswith("[") and value.endswith("]"):
            inner = value[1:-1]
            items = [item.strip().strip("'\"") for item in inner.split(",")]
        else:
            items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def unique(items: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def path_segments(items: list[str], path: Path, kind: str) -> list[str]:
    """Tags and categories become output directories; each must be one plain segment."""
    for item in items:
        if item in {".", ".."} or any(char in item for char in "/\\\0"):
            raise ParseError(path, f"invalid {kind} {item!r}")
    return items


def parse_front_matter(text: str, path: Path) -> tuple[dict, str]:
    """Split ``text`` into (metadata, body).

    YAML sits between ``---`` fences, TOML between ``+++`` fences. Text
    without an opening fence has no metadata. Raises ParseError for an
    unterminated block, malformed syntax or a non-mapping document.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() not in FRONT_MATTER_FENCES:
        return {}, clean_text

    fence = lines[0].strip()
    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == fence:
            end = i
            break
    if end is None:
        raise ParseError(path, "unterminated front matter")

    raw = "\n".join(lines[1:end])
    try:
        if FRONT_MATTER_FENCES[fence] == "yaml":
            meta = yaml.safe_load(raw)
        else:
            meta = toml.loads(raw)
    except (yaml.YAMLError, toml.TOMLDecodeError) as exc:
        raise ParseError(path, f"invalid front matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ParseError(path, "front matter must be a mapping")
    meta = {str(key).strip().lower(): value for key, value in meta.items()}
    body = "\n".join(lines[end + 1 :])
    return meta, body


def extract_title(meta: dict, body: str, default: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or default
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return default, body


def date_ymd(meta: dict) -> str:
    value = meta.get("date")
    if value is None or value == "":
        value = meta.get("createtime")
    if value is None:
        return ""
    return str(value).strip()[:10]


def to_epoch(value: object) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, dt.datetime):
        return int(value.timestamp())
    if isinstance(value, dt.date):
        return int(dt.datetime.combine(value, dt.time()).timestamp())
    try:
        return int(dt.datetime.fromisoformat(str(value).strip()).timestamp())
    except ValueError:
        return None


def modified_epoch(meta: dict, file_path: Path) -> int:
    for key in ("updated", "modified"):
        epoch = to_epoch(meta.get(key))
        if epoch is not None:
            return epoch
    return int(file_path.stat().st_mtime)


def category_path_for(meta: dict, file_path: Path, source_root: Path) -> tuple[str, ...]:
    if meta.get("categories"):
        return tuple(path_segments(parse_list(meta["categories"]), file_path, "category"))
    rel = file_path.relative_to(source_root)
    return tuple(rel.parent.parts)


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count


def render_markdown(body: str, toc_depth: str = "2-4") -> tuple[str, str]:
    md = markdown.Markdown(
        extensions=["fenced_code", "tables", "footnotes", "toc", "codehilite"],
        extension_configs={
            "toc": {"toc_depth": toc_depth},
            "codehilite": {"guess_lang": False},
        },
    )
    html_content = md.convert(normalize_list_spacing(body))
    toc_html = md.toc
    md.reset()
    return html_content, toc_html


def make_summary(meta: dict, html_content: str) -> str:
    summary = meta.get("summary") or meta.get("description")
    if summary:
        return str(summary)
    text = " ".join(strip_tags(html_content).split())
    return text[:SUMMARY_LENGTH] + ("..." if len(text) > SUMMARY_LENGTH else "")


def is_hidden(rel: Path) -> bool:
    return any(part.startswith(".") for part in rel.parts)


def walk_source(source_root: Path) -> Iterator[Path]:
    """Yield every non-hidden file under ``source_root`` in path order."""
    for path in sorted(source_root.rglob("*"), key=lambda p: p.as_posix()):
        if path.is_file() and not is_hidden(path.relative_to(source_root)):
            yield path


def parse_post(file_path: Path, source_root: Path, toc_depth: str = "2-4") -> Optional[Post]:
    """Parse one document; returns None for drafts."""
    try:
        raw_text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(file_path, f"cannot read: {exc}") from exc
    meta, body = parse_front_matter(raw_text, file_path)
    if parse_bool(meta.get("draft")):
        return None

    explicit_slug = str(meta.get("slug") or "").strip()
    slug = slugify(explicit_slug or file_path.stem)
    title, body = extract_title(meta, body, slug)
    html_content, toc_html = render_markdown(body, toc_depth)
    return Post(
        slug=slug,
        title=title,
        date=date_ymd(meta),
        modified_epoch=modified_epoch(meta, file_path),
        tags=unique(path_segments(parse_list(meta.get("tags")), file_path, "tag")),
        category_path=category_path_for(meta, file_path, source_root),
        body=html_content,
        summary=make_summary(meta, html_content),
        toc=toc_html,
        words=count_words(strip_tags(html_content)),
        source=file_path.relative_to(source_root).as_posix(),
    )


def sort_posts(posts: list[Post]) -> list[Post]:
    # sorted() stays stable with reverse=True, so equal dates keep input order
    return sorted(posts, key=lambda post: post.date, reverse=True)


def scan(source_root: Path, toc_depth: str = "2-4") -> list[Post]:
    """Build the content index: every publishable document, newest first.

    A malformed document is reported and skipped; only an unreadable
    source root aborts the scan.
    """
    if not source_root.is_dir():
        raise SourceError(f"Source directory not found: {source_root}")
    try:
        md_files = [path for path in walk_source(source_root) if path.suffix.lower() == ".md"]
    except OSError as exc:
        raise SourceError(f"Cannot read source directory {source_root}: {exc}") from exc

    posts: list[Post] = []
    used_slugs: dict[tuple[str, ...], set[str]] = {}
    for md_file in md_files:
        try:
            post = parse_post(md_file, source_root, toc_depth)
        except ParseError as exc:
            print(f"Warning: skipped {exc.path}: {exc.reason}", file=sys.stderr)
            continue
        if post is None:
            continue
        taken = used_slugs.setdefault(post.category_path, set())
        slug = post.slug
        counter = 2
        while slug in taken:
            slug = f"{post.slug}-{counter}"
            counter += 1
        taken.add(slug)
        if slug != post.slug:
            post = dataclasses.replace(post, slug=slug)
        posts.append(post)
    return sort_posts(posts)
