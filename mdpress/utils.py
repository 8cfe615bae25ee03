from __future__ import annotations

import datetime as dt
import shutil
import time
from pathlib import Path, PurePosixPath

from .errors import OutputError

BUILD_TIME_FMT = "%Y-%m-%d %H:%M:%S"


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def relative_root(rel_path: str) -> str:
    """Return the "." / ".." prefix leading from an output file back to the site root."""
    depth = len(PurePosixPath(rel_path).parts) - 1
    if depth <= 0:
        return "."
    return "/".join([".."] * depth)


def rfc822_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%a, %d %b %Y %H:%M:%S %z")


def format_build_time(epoch: float) -> str:
    return time.strftime(BUILD_TIME_FMT, time.localtime(epoch))


def parse_build_time(value: str) -> int:
    """Parse a local ``YYYY-MM-DD HH:MM:SS`` stamp to epoch seconds; raises ValueError."""
    parsed = time.strptime(value.strip(), BUILD_TIME_FMT)
    return int(time.mktime(parsed))


def parse_day(value: str) -> dt.datetime | None:
    try:
        return dt.datetime.strptime(value[:10], "%Y-%m-%d")
    except ValueError:
        return None


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise OutputError(output_dir, "refusing to clean project root")
    if not output_resolved.is_relative_to(root_resolved):
        raise OutputError(output_dir, "refusing to clean output directory outside project root")
    shutil.rmtree(output_dir)
