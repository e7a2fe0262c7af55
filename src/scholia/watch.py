"""Watch a project directory and report changed Markdown files."""

from __future__ import annotations

import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

SKIP_DIRS = {
    ".git", "node_modules", "vendor", ".next", ".nuxt", "dist", "build", "target",
    ".venv", "venv", "__pycache__", ".pytest_cache", ".idea", ".vscode", ".mypy_cache",
    ".ruff_cache", ".direnv",
}

BatchCallback = Callable[[set[str], set[str]], None]


class DebounceHandler(FileSystemEventHandler):
    """Collect Markdown changes and flush them as one batch after a quiet period."""

    def __init__(self, root: Path, on_batch: BatchCallback, debounce_ms: int = 150):
        super().__init__()
        self.root = root
        self.on_batch = on_batch
        self.debounce_ms = debounce_ms

        # Pending changes by path relative to root
        self.changed: set[str] = set()
        self.deleted: set[str] = set()
        self.last_event_time = 0.0
        self._lock = threading.Lock()

    def _relative(self, path: Path) -> str | None:
        """Project-relative path of a Markdown file worth reporting, else None."""
        name = path.name
        if name.startswith(".") or name.endswith("~") or name.endswith(".swp"):
            return None
        if not name.lower().endswith(".md"):
            return None
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            return None
        if any(part in SKIP_DIRS for part in rel.parts[:-1]):
            return None
        return rel.as_posix()

    def _note(self, event: FileSystemEvent, deleted: bool = False) -> None:
        if event.is_directory:
            return
        rel = self._relative(Path(str(event.src_path)))
        if rel is None:
            return
        with self._lock:
            if deleted:
                self.changed.discard(rel)
                self.deleted.add(rel)
            else:
                self.deleted.discard(rel)
                self.changed.add(rel)
            self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        self._note(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._note(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._note(event, deleted=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._note(event, deleted=True)
        dest = getattr(event, "dest_path", None)
        if dest:
            rel = self._relative(Path(str(dest)))
            if rel is not None:
                with self._lock:
                    self.changed.add(rel)
                    self.last_event_time = time.time()

    def check_and_flush(self) -> None:
        """Flush if the debounce period has elapsed since the last event."""
        if not (self.changed or self.deleted):
            return
        elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        with self._lock:
            if not (self.changed or self.deleted):
                return
            changed, deleted = set(self.changed), set(self.deleted)
            self.changed.clear()
            self.deleted.clear()
        if self.on_batch:
            self.on_batch(changed, deleted)


class ProjectWatcher:
    """Background observer plus a flush thread, for use inside the server."""

    def __init__(self, root: Path, on_batch: BatchCallback, debounce_ms: int = 150):
        self.handler = DebounceHandler(root, on_batch, debounce_ms)
        self.observer = Observer()
        self.observer.schedule(self.handler, str(root), recursive=True)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="scholia-watch", daemon=True)

    def start(self) -> None:
        self.observer.start()
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1)
        self.handler.flush()
        self.observer.stop()
        self.observer.join()

    def _run(self) -> None:
        while not self._stop.wait(0.1):
            self.handler.check_and_flush()


def watch_project(
    root: Path,
    debounce_ms: int = 150,
    quiet: bool = False,
    json_output: bool = False,
) -> int:
    """
    Watch a project directory and print one line per batch of changes.

    Returns:
        Exit code
    """
    if not root.exists():
        print(f"Error: Project not found: {root}", file=sys.stderr)
        return 1

    running = True

    def handle_batch(changed: set[str], deleted: set[str]) -> None:
        if json_output:
            event = {"type": "batch", "changed": sorted(changed), "deleted": sorted(deleted)}
            print(json.dumps(event), flush=True)
        elif not quiet:
            for path in sorted(changed):
                print(f"file_updated {path}", flush=True)
            for path in sorted(deleted):
                print(f"file_deleted {path}", flush=True)

    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet and not json_output:
            print("\nShutting down...", flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(root, handle_batch, debounce_ms)
    observer = Observer()
    observer.schedule(handler, str(root), recursive=True)

    if not quiet and not json_output:
        print(f"Watching {root} (debounce: {debounce_ms}ms)", flush=True)
        print("Press Ctrl+C to stop", flush=True)

    observer.start()
    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet and not json_output:
        print("Watch stopped", flush=True)

    return 0
