from __future__ import annotations

import json

from conftest import write_post

from mdpress.cli import main


def test_build_command(project, capsys) -> None:
    write_post(project / "source", "hello.md", "Hello", "2024-01-01")
    (project / "site.toml").write_text('site_name = "My Notes"\noutput = "site"\n', encoding="utf-8")
    assert main(["build"]) == 0
    out = capsys.readouterr().out
    assert "Build completed in" in out
    index = (project / "site" / "index.html").read_text(encoding="utf-8")
    assert "My Notes" in index
    assert (project / "build.json").is_file()


def test_cli_flags_override_config(project) -> None:
    write_post(project / "source", "hello.md", "Hello", "2024-01-01")
    (project / "site.toml").write_text('output = "site"\n', encoding="utf-8")
    assert main(["build", "--output", "dist", "--no-enable-404"]) == 0
    assert (project / "dist" / "index.html").is_file()
    assert not (project / "dist" / "404.html").exists()


def test_malformed_config_falls_back_to_defaults(project, capsys) -> None:
    write_post(project / "source", "hello.md", "Hello", "2024-01-01")
    (project / "site.toml").write_text("output = ", encoding="utf-8")
    assert main(["build"]) == 0
    assert "Warning" in capsys.readouterr().err
    assert (project / "public" / "index.html").is_file()


def test_missing_source_exits_non_zero(project, capsys) -> None:
    assert main(["build", "--source", "missing"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_sidebar_command_regenerates_snapshot(project) -> None:
    write_post(project / "source", "hello.md", "Hello", "2024-01-01", tags=["greeting"])
    (project / "build.json").write_text(json.dumps({"sidebar": {"hot_tags": []}}), encoding="utf-8")
    assert main(["sidebar"]) == 0
    state = json.loads((project / "build.json").read_text(encoding="utf-8"))
    assert state["sidebar"]["hot_tags"] == [{"name": "greeting", "count": 1}]


def test_undecodable_about_file_does_not_stop_the_build(project, capsys) -> None:
    write_post(project / "source", "hello.md", "Hello", "2024-01-01")
    (project / "about.md").write_bytes(b"\xff\xfe\xfa")
    (project / "site.toml").write_text('about_file = "about.md"\n', encoding="utf-8")
    assert main(["build"]) == 0
    assert "cannot read about file" in capsys.readouterr().err
    assert (project / "public" / "index.html").is_file()
