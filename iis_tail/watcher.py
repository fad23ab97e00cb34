"""Keeps one FileFollower per log file matching the configured patterns."""

import glob
import logging
import os
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from iis_tail.config import Config
from iis_tail.follower import FileFollower, FollowerState
from iis_tail.metrics import Metrics
from iis_tail.position import Position, PositionStore
from iis_tail.scheduler import TaskHandle, TaskScheduler
from iis_tail.sink import Sink

logger = logging.getLogger(__name__)


def split_patterns(path: str) -> list[str]:
    """Split a comma separated pattern string. Falls back to the raw string."""
    patterns = [p.strip() for p in path.split(",") if p.strip()]
    return patterns or [path]


def resolve_paths(path: str) -> list[str]:
    """Expand every pattern and keep existing, readable regular files."""
    matched: list[str] = []
    seen: set[str] = set()
    for pattern in split_patterns(path):
        for candidate in sorted(glob.glob(pattern, recursive=True)):
            if candidate in seen:
                continue
            if os.path.isfile(candidate) and os.access(candidate, os.R_OK):
                seen.add(candidate)
                matched.append(candidate)
    return matched


class WatchSetManager:
    """Owns the map of watched files and the refresh / position write tasks."""

    def __init__(self, config: Config, scheduler: TaskScheduler, sink: Sink,
                 store: PositionStore | None = None, metrics: Metrics | None = None):
        self._config = config
        self._scheduler = scheduler
        self._sink = sink
        self._store = store
        self._metrics = metrics or Metrics()
        self._lock = threading.RLock()
        self._followers: dict[str, FileFollower] = {}
        self._refresh_task: TaskHandle | None = None
        self._write_task: TaskHandle | None = None
        self._observer = None

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def watched(self) -> list[str]:
        with self._lock:
            return list(self._followers)

    def follower(self, path: str) -> FileFollower | None:
        with self._lock:
            return self._followers.get(path)

    def start(self):
        """Do an initial refresh and schedule the periodic tasks."""
        self.refresh()
        self._refresh_task = self._scheduler.call_every(
            self._config.refresh_interval, self.refresh, name="refresh-watchers")
        if self._store is not None:
            self._write_task = self._scheduler.call_every(
                self._config.position_write_interval, self.write_positions,
                name="write-positions")
        if self._config.watch_events:
            self._start_observer()

    def refresh(self):
        """Start following new matches and stop following files that are gone."""
        paths = resolve_paths(self._config.path)
        matched = set(paths)
        with self._lock:
            watched = set(self._followers)
            new_files = [p for p in paths if p not in watched]
            dead_files = sorted(watched - matched)
            self.start_watches(new_files)
            self.stop_watches(dead_files, delete_pos=True)

    def _position_for(self, path: str) -> Position:
        if self._store is None:
            return Position(path)
        if any(c.isspace() for c in path):
            # The position file is whitespace separated and cannot hold this path.
            logger.warning("Path contains whitespace, its position will not be saved: %s", path)
            return Position(path)
        return self._store.get(path)

    def start_watches(self, paths: list[str]):
        with self._lock:
            for path in paths:
                position = self._position_for(path)
                follower = FileFollower(
                    FollowerState(position),
                    self._scheduler,
                    self._sink,
                    tag=self._config.tag,
                    read_interval=self._config.read_interval,
                    read_line_limit=self._config.read_line_limit,
                    process_fields=self._config.process_fields,
                    metrics=self._metrics,
                )
                self._followers[path] = follower
                follower.arm()
                logger.info("Watching %s (directives=%d, read=%d)", path,
                            position.last_directives_pos, position.last_read_pos)

    def stop_watches(self, paths: list[str], delete_pos: bool = False):
        with self._lock:
            for path in paths:
                follower = self._followers.pop(path, None)
                if follower is None:
                    continue
                follower.stop()
                if delete_pos and self._store is not None:
                    self._store.remove(path)
                logger.info("Stopped watching %s", path)

    def write_positions(self):
        """Flush the position store if any log was read since the last write."""
        if self._store is None:
            return
        last_update = self._store.last_modified()
        with self._lock:
            dirty = any(f.state.last_emit > last_update for f in self._followers.values())
        if dirty:
            self._store.flush()

    def shutdown(self):
        """Stop all tasks and followers, then write positions once."""
        self._stop_observer()
        for task in (self._refresh_task, self._write_task):
            if task is not None:
                task.cancel()
        with self._lock:
            self.stop_watches(list(self._followers))
        if self._store is not None:
            self._store.flush()

    def _watched_dirs(self) -> set[str]:
        dirs = set()
        for pattern in split_patterns(self._config.path):
            # Deepest directory of the pattern that has no wildcard in it.
            parts = []
            for part in os.path.dirname(pattern).split(os.sep):
                if glob.has_magic(part):
                    break
                parts.append(part)
            directory = os.sep.join(parts) or "."
            if os.path.isdir(directory):
                dirs.add(directory)
        return dirs

    def _start_observer(self):
        observer = Observer()
        handler = _RefreshOnChange(self)
        for directory in self._watched_dirs():
            observer.schedule(handler, directory, recursive=True)
            logger.info("Watching directory for changes: %s", directory)
        observer.start()
        self._observer = observer

    def _stop_observer(self):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


class _RefreshOnChange(FileSystemEventHandler):
    """Refreshes the watch set as soon as a file appears or disappears."""

    def __init__(self, manager: WatchSetManager):
        super().__init__()
        self._manager = manager

    def _refresh(self, event):
        if event.is_directory:
            return
        try:
            self._manager.refresh()
        except Exception:
            logger.exception("Refresh after %s failed", event.src_path)

    def on_created(self, event):
        self._refresh(event)

    def on_deleted(self, event):
        self._refresh(event)

    def on_moved(self, event):
        self._refresh(event)
