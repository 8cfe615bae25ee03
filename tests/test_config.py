from __future__ import annotations

import argparse

import pytest

from mdpress.config import load_config, resolve_about_html
from mdpress.errors import ConfigError


def test_missing_config_is_empty(tmp_path) -> None:
    assert load_config(tmp_path / "site.toml") == {}


def test_toml_yaml_and_json(tmp_path) -> None:
    toml_path = tmp_path / "site.toml"
    toml_path.write_text('site_name = "Blog"\nposts_per_page = 5\n', encoding="utf-8")
    assert load_config(toml_path) == {"site_name": "Blog", "posts_per_page": 5}

    yaml_path = tmp_path / "site.yml"
    yaml_path.write_text("site_name: Blog\n", encoding="utf-8")
    assert load_config(yaml_path) == {"site_name": "Blog"}

    json_path = tmp_path / "site.json"
    json_path.write_text('{"site_name": "Blog"}', encoding="utf-8")
    assert load_config(json_path) == {"site_name": "Blog"}


@pytest.mark.parametrize(
    "name, text",
    [("site.toml", "site_name = "), ("site.yml", "a: [b"), ("site.json", "{"), ("site.json", "[1, 2]")],
)
def test_malformed_config_raises(tmp_path, name: str, text: str) -> None:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_about_html_precedence(tmp_path) -> None:
    about = tmp_path / "about.md"
    about.write_text("**hi**", encoding="utf-8")
    args = argparse.Namespace(
        config=str(tmp_path / "site.toml"),
        about_html="",
        about_file="about.md",
        about_text="ignored",
        site_description="desc",
    )
    assert "<strong>hi</strong>" in resolve_about_html(args)
    args.about_file = ""
    assert resolve_about_html(args) == "<p>ignored</p>"
    args.about_text = ""
    assert resolve_about_html(args) == "<p>desc</p>"


def test_unreadable_about_file_falls_back(tmp_path, capsys) -> None:
    (tmp_path / "about.md").write_bytes(b"\xff\xfe\xfa")
    args = argparse.Namespace(
        config=str(tmp_path / "site.toml"),
        about_html="",
        about_file="about.md",
        about_text="fallback",
        site_description="desc",
    )
    assert resolve_about_html(args) == "<p>fallback</p>"
    assert "cannot read about file" in capsys.readouterr().err


def test_about_file_rendered_by_suffix(tmp_path) -> None:
    (tmp_path / "about.html").write_text("<b>raw</b>", encoding="utf-8")
    (tmp_path / "about.txt").write_text("a < b\nc", encoding="utf-8")
    args = argparse.Namespace(config=str(tmp_path / "site.toml"), about_file="about.html")
    assert resolve_about_html(args) == "<b>raw</b>"
    args.about_file = "about.txt"
    assert resolve_about_html(args) == "<p>a &lt; b<br>c</p>"
