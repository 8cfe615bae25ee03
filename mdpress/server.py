from __future__ import annotations

import functools
import os
import queue
import sys
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import SiteError

DEBOUNCE_SECONDS = 0.15
HOST = "127.0.0.1"
WRITE_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        pass


def make_server(output_dir: Path, port: int, host: str = HOST) -> ThreadingHTTPServer:
    handler = functools.partial(QuietHandler, directory=str(output_dir))
    return ThreadingHTTPServer((host, port), handler)


def serve(output_dir: Path, port: int, host: str = HOST) -> None:
    server = make_server(output_dir, port, host)
    print(f"Serving {output_dir} at http://{host}:{port}/ (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("Stopping server.")
    finally:
        server.server_close()


class RebuildQueue:
    """Coalesces change notifications into rebuilds run by a single consumer.

    Producers (watcher threads) only enqueue paths. The consumer waits for
    a first event, then keeps draining until no new event has arrived for
    ``debounce`` seconds, and runs one rebuild for the whole batch. A batch
    made only of Markdown files under ``source_dir`` rebuilds
    incrementally; anything else asks for a full build.
    """

    def __init__(
        self,
        rebuild: Callable[[bool], object],
        source_dir: Path,
        debounce: float = DEBOUNCE_SECONDS,
    ) -> None:
        self.rebuild = rebuild
        self.source_dir = source_dir.resolve()
        self.debounce = debounce
        self._events: queue.Queue = queue.Queue()

    def notify(self, path: Path) -> None:
        self._events.put(Path(path))

    def is_content_change(self, path: Path) -> bool:
        if path.suffix.lower() != ".md":
            return False
        try:
            path.resolve().relative_to(self.source_dir)
        except ValueError:
            return False
        return True

    def collect(self, timeout: Optional[float] = None) -> list[Path]:
        try:
            batch = [self._events.get(timeout=timeout)]
        except queue.Empty:
            return []
        while True:
            try:
                batch.append(self._events.get(timeout=self.debounce))
            except queue.Empty:
                return batch

    def run_once(self, timeout: Optional[float] = None) -> bool:
        batch = self.collect(timeout)
        if not batch:
            return False
        incremental = all(self.is_content_change(path) for path in batch)
        kind = "incremental" if incremental else "full"
        print(f"{len(batch)} change(s) detected, running {kind} rebuild...")
        start = time.perf_counter()
        try:
            self.rebuild(incremental)
        except SiteError as exc:
            print(f"Rebuild failed: {exc}", file=sys.stderr)
            return True
        print(f"Rebuild completed in {time.perf_counter() - start:.2f}s.")
        return True

    def run(self, stop: threading.Event, poll: float = 0.5) -> None:
        while not stop.is_set():
            self.run_once(timeout=poll)


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, rebuilds: RebuildQueue, ignore: Iterable[Path] = ()) -> None:
        super().__init__()
        self.rebuilds = rebuilds
        self.ignore = [path.resolve() for path in ignore]

    def wanted(self, raw_path: object) -> Optional[Path]:
        path = Path(os.fsdecode(raw_path))
        if path.name.startswith("."):
            return None
        resolved = path.resolve()
        for ignored in self.ignore:
            if resolved == ignored or ignored in resolved.parents:
                return None
        return path

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WRITE_EVENTS:
            return
        paths = [event.src_path]
        if event.event_type == EVENT_TYPE_MOVED:
            paths.append(event.dest_path)
        for raw_path in paths:
            path = self.wanted(raw_path)
            if path is not None:
                self.rebuilds.notify(path)


def watch_and_serve(
    output_dir: Path,
    port: int,
    watch_dirs: Iterable[Path],
    source_dir: Path,
    rebuild: Callable[[bool], object],
    ignore: Iterable[Path] = (),
) -> None:
    """Serve ``output_dir`` on a daemon thread and rebuild on the calling thread."""
    server = make_server(output_dir, port)
    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()
    print(f"Serving {output_dir} at http://{HOST}:{port}/ (watching for changes, Ctrl+C to stop)")

    rebuilds = RebuildQueue(rebuild, source_dir)
    handler = ChangeHandler(rebuilds, ignore=[output_dir, *ignore])
    observer = Observer()
    for directory in watch_dirs:
        if directory.is_dir():
            observer.schedule(handler, str(directory), recursive=True)
    observer.start()

    stop = threading.Event()
    try:
        rebuilds.run(stop)
    except KeyboardInterrupt:
        print("Stopping server.")
    finally:
        stop.set()
        observer.stop()
        observer.join()
        server.shutdown()
        server.server_close()
