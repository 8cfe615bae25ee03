from __future__ import annotations

import json
import time

from conftest import make_post

from mdpress.state import BuildState, StateStore, compute_sidebar
from mdpress.utils import format_build_time, parse_build_time


def test_load_missing_file_gives_zero_state(tmp_path) -> None:
    state = StateStore(tmp_path / "build.json").load()
    assert state.last_build_time == 0
    assert state.sidebar is None


def test_load_unparsable_file_warns_and_falls_back(tmp_path, capsys) -> None:
    path = tmp_path / "build.json"
    path.write_text("{not json", encoding="utf-8")
    state = StateStore(path).load()
    assert state.last_build_time == 0
    assert "Warning" in capsys.readouterr().err


def test_load_bad_timestamp_gives_zero(tmp_path, capsys) -> None:
    path = tmp_path / "build.json"
    path.write_text(json.dumps({"last_build_time": "yesterday"}), encoding="utf-8")
    assert StateStore(path).load().last_build_time == 0
    assert "last_build_time" in capsys.readouterr().err


def test_build_time_round_trip_uses_local_format(tmp_path) -> None:
    store = StateStore(tmp_path / "build.json")
    now = int(time.time())
    store.mark_built(BuildState(), now)
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["last_build_time"] == format_build_time(now)
    assert len(raw["last_build_time"]) == len("2024-01-01 00:00:00")
    assert store.load().last_build_time == parse_build_time(raw["last_build_time"]) == now


def test_save_preserves_unknown_keys(tmp_path) -> None:
    path = tmp_path / "build.json"
    path.write_text(
        json.dumps({"build_mode": "full", "theme": {"accent": "red"}, "last_build_time": "2020-01-01 00:00:00"}),
        encoding="utf-8",
    )
    store = StateStore(path)
    state = store.load()
    assert not state.incremental_requested()
    store.mark_built(state, time.time())
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["build_mode"] == "full"
    assert raw["theme"] == {"accent": "red"}
    assert raw["last_build_time"] != "2020-01-01 00:00:00"


def test_ensure_sidebar_is_idempotent_and_keeps_hand_edits(tmp_path) -> None:
    store = StateStore(tmp_path / "build.json")
    posts = [make_post("a", "2024-01-02", tags=["x"], categories=["dev"])]
    state = store.load()
    assert store.ensure_sidebar(state, posts)

    raw = json.loads(store.path.read_text(encoding="utf-8"))
    raw["sidebar"]["hot_tags"] = [{"name": "pinned", "count": 99}]
    store.path.write_text(json.dumps(raw), encoding="utf-8")

    state = store.load()
    more = posts + [make_post("b", "2024-02-01", tags=["y"])]
    assert not store.ensure_sidebar(state, more)
    store.mark_built(state, time.time())
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["sidebar"]["hot_tags"] == [{"name": "pinned", "count": 99}]


def test_null_sidebar_is_filled_in(tmp_path) -> None:
    store = StateStore(tmp_path / "build.json")
    store.path.write_text(json.dumps({"sidebar": None, "note": "keep"}), encoding="utf-8")
    state = store.load()
    assert store.ensure_sidebar(state, [make_post("a", tags=["x"])])
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["sidebar"]["hot_posts"][0]["slug"] == "a"
    assert raw["note"] == "keep"
    assert store.load().sidebar == raw["sidebar"]


def test_regenerate_sidebar_replaces_snapshot(tmp_path) -> None:
    store = StateStore(tmp_path / "build.json")
    store.path.write_text(json.dumps({"sidebar": {"hot_tags": []}, "note": "keep"}), encoding="utf-8")
    state = store.load()
    assert store.regenerate_sidebar(state, [make_post("a", tags=["x"])])
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["sidebar"]["hot_tags"] == [{"name": "x", "count": 1}]
    assert raw["note"] == "keep"


def test_compute_sidebar_limits_and_ordering() -> None:
    posts = [
        make_post(f"p{i}", f"2024-01-{i + 1:02d}", tags=[f"t{i % 3}", "common"], categories=[f"c{i % 10}", "sub"])
        for i in range(25)
    ]
    sidebar = compute_sidebar(posts)
    assert len(sidebar["hot_posts"]) == 10
    assert sidebar["hot_posts"][0] == {"slug": "p24", "title": "P24", "date_ymd": "2024-01-25", "categories": ["c4", "sub"]}
    assert [tag["name"] for tag in sidebar["hot_tags"]] == ["common", "t0", "t1", "t2"]
    assert sidebar["hot_tags"][0]["count"] == 25
    assert len(sidebar["hot_categories"]) == 8
    assert all(not item["name"].startswith("sub") for item in sidebar["hot_categories"])
    assert sidebar["hot_categories"][0] == {"name": "c0", "count": 3}


def test_build_mode_keys() -> None:
    assert BuildState().incremental_requested()
    assert not BuildState(extra={"build_mode": "normal"}).incremental_requested()
    assert BuildState(extra={"build_mode": "incremental"}).incremental_requested()
    assert not BuildState(extra={"incremental": False}).incremental_requested()


def test_save_failure_is_reported_not_raised(tmp_path, capsys) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    store = StateStore(blocker / "build.json")
    assert store.mark_built(BuildState(), time.time()) is False
    assert "Warning" in capsys.readouterr().err
