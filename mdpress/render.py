from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Iterable, Optional

from .errors import OutputError, TemplateError

TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
THEME_DIR = Path(__file__).resolve().parent / "theme"
LATE_KEYS = ("sidebar", "content")


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def read_template(name: str, templates_dir: Optional[Path] = None) -> str:
    """Load ``name`` from the project templates dir, falling back to the bundled theme."""
    candidates = []
    if templates_dir is not None:
        candidates.append(templates_dir / name)
    candidates.append(THEME_DIR / "templates" / name)
    for path in candidates:
        if path.is_file():
            try:
                return path.read_text(encoding="utf-8")
            except OSError as exc:
                raise TemplateError(f"Cannot read template {path}: {exc}") from exc
    raise TemplateError(f"Template not found: {name}")


def render_template(template: str, **context: str) -> str:
    missing = sorted(set(PLACEHOLDER_RE.findall(template)) - set(context))
    if missing:
        raise TemplateError(f"Undefined template variable(s): {', '.join(missing)}")
    output = template
    # sidebar and content go last so placeholders inside post bodies stay literal
    for key, value in context.items():
        if key in LATE_KEYS:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in LATE_KEYS:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputError(path, str(exc)) from exc


def copy_static(static_dir: Path, output_dir: Path) -> None:
    if not static_dir.is_dir():
        return
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        for item in static_dir.iterdir():
            dest = output_dir / item.name
            if item.is_dir():
                shutil.copytree(item, dest, dirs_exist_ok=True)
            else:
                shutil.copy2(item, dest)
    except OSError as exc:
        raise OutputError(static_dir, f"cannot copy static files: {exc}") from exc


def copy_files(files: Iterable[Path], source_root: Path, output_dir: Path) -> int:
    copied = 0
    for path in files:
        dest = output_dir / path.relative_to(source_root)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, dest)
        except OSError as exc:
            raise OutputError(dest, str(exc)) from exc
        copied += 1
    return copied
