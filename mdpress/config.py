from __future__ import annotations

import html
import json
import sys
from pathlib import Path
from typing import Optional

import markdown
import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .errors import ConfigError


def load_config(path: Path) -> dict:
    """Read a TOML, YAML or JSON site config; a missing file is an empty config."""
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    suffix = path.suffix.lower()
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def resolve_path(value: str, config_path: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = config_path.resolve().parent / path
    return path


def plain_text_html(text: str) -> str:
    return "<p>" + html.escape(text).replace("\n", "<br>") + "</p>"


def markdown_html(text: str) -> str:
    return markdown.Markdown(extensions=["fenced_code", "tables"]).convert(text)


ABOUT_RENDERERS = {
    ".html": str,
    ".htm": str,
    ".md": markdown_html,
}


def read_about_file(path: Path) -> Optional[str]:
    """Render an about file by suffix, or return None when it cannot be used."""
    if not path.is_file():
        print(f"Warning: about file not found: {path}", file=sys.stderr)
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Warning: cannot read about file {path}: {exc}", file=sys.stderr)
        return None
    render = ABOUT_RENDERERS.get(path.suffix.lower(), plain_text_html)
    return render(text)


def resolve_about_html(args: object) -> str:
    # about_html, then about_file, then about_text, then the site description
    inline = (getattr(args, "about_html", "") or "").strip()
    if inline:
        return inline

    about_file = (getattr(args, "about_file", "") or "").strip()
    if about_file:
        rendered = read_about_file(resolve_path(about_file, Path(getattr(args, "config", "site.toml"))))
        if rendered is not None:
            return rendered

    about_text = (getattr(args, "about_text", "") or "").strip()
    if about_text:
        return plain_text_html(about_text)
    return f"<p>{html.escape(getattr(args, 'site_description', ''))}</p>"
