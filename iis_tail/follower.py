"""Per-file read cycle: resumes from the saved position, tracks directive
blocks and emits one record per log line."""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from iis_tail.directives import DirectiveState, is_directive
from iis_tail.metrics import Metrics
from iis_tail.position import Position
from iis_tail.records import build_record
from iis_tail.scheduler import TaskHandle, TaskScheduler
from iis_tail.sink import Sink

logger = logging.getLogger(__name__)

# A directive block is normally 4-6 lines; stop rebuilding after this many.
MAX_DIRECTIVE_LINES = 20


@dataclass
class FollowerState:
    position: Position
    directives: DirectiveState = field(default_factory=DirectiveState)
    last_emit: float = 0.0     # wall clock time of the last completed cycle
    unread_lines: bool = True  # the last cycle stopped at the line limit


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip()


class FileFollower:
    """Reads one log in bounded batches on a self re-arming timer.

    The next cycle is scheduled only once the current one has finished, so
    at most one read of a given file is ever in flight.
    """

    def __init__(self, state: FollowerState, scheduler: TaskScheduler, sink: Sink,
                 tag: str, read_interval: float, read_line_limit: int = 1000,
                 process_fields: bool = False, metrics: Metrics | None = None):
        self.state = state
        self._scheduler = scheduler
        self._sink = sink
        self._tag = tag
        self._read_interval = read_interval
        self._read_line_limit = read_line_limit
        self._process_fields = process_fields
        self._metrics = metrics or Metrics()
        self._task: TaskHandle | None = None
        self._stopped = False
        self._task_lock = threading.Lock()

    @property
    def path(self) -> str:
        return self.state.position.path

    @property
    def task(self) -> TaskHandle | None:
        return self._task

    def arm(self):
        """Schedule the next read cycle."""
        with self._task_lock:
            if self._stopped:
                return
            self._task = self._scheduler.call_later(self._read_interval, self.read_cycle,
                                                    name=f"read:{self.path}")

    def stop(self):
        with self._task_lock:
            self._stopped = True
            if self._task is not None:
                self._task.cancel()

    def read_cycle(self):
        """Read new lines and deliver them as one batch, then re-arm."""
        try:
            self._metrics.increment("cycles")
            records = self._read()
            if records:
                self._sink.emit(self._tag, records)
                self._metrics.increment("records_emitted", len(records))
                self._metrics.increment("batches_emitted")
        except Exception:
            self._metrics.increment("cycle_errors")
            logger.exception("Read cycle failed for %s", self.path)
        finally:
            self.arm()

    def _read(self) -> list[dict[str, Any]]:
        state = self.state
        position = state.position
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            # Dropped from the watch set on the next refresh.
            return []

        if not state.unread_lines and stat.st_mtime <= state.last_emit:
            return []

        if position.last_read_pos > stat.st_size:
            logger.info("File truncated or replaced, reading from start: %s", self.path)
            self._metrics.increment("truncations")
            position.reset()
            state.directives = DirectiveState()

        try:
            f = open(self.path, "rb")
        except (FileNotFoundError, PermissionError) as e:
            logger.debug("Cannot open %s: %s", self.path, e)
            return []

        with f:
            block_end = None
            if position.last_directives_pos >= 0:
                block_end = self._restore_directives(f)
            if position.last_read_pos >= 0:
                f.seek(position.last_read_pos)
            records, offset, block_pos = self._read_lines(f, block_end)

        position.last_read_pos = offset
        if block_pos is not None:
            position.last_directives_pos = block_pos
        state.last_emit = time.time()
        return records

    def _restore_directives(self, f: BinaryIO) -> int:
        """Rebuild the directive state from the last directive block.

        Returns the offset just past the last directive line read.
        """
        self.state.directives = DirectiveState()
        end = self.state.position.last_directives_pos
        f.seek(end)
        for _ in range(MAX_DIRECTIVE_LINES):
            raw = f.readline()
            if not raw:
                break
            line = _decode(raw)
            if not is_directive(line):
                break
            self._process_directive(line)
            end += len(raw)
        return end

    def _process_directive(self, line: str):
        if not self.state.directives.process_line(line):
            self._metrics.increment("unknown_directives")

    def _build(self, line: str, process_fields: bool) -> dict[str, Any]:
        return build_record(line, self.path, self.state.directives, process_fields)

    def _read_lines(self, f: BinaryIO, block_end: int | None = None
                    ) -> tuple[list[dict[str, Any]], int, int | None]:
        """Read up to the line limit.

        *block_end* is where the restored directive block ends; if reading
        starts before it, the first directive lines continue that block.

        Returns the records, the offset to resume from and the start of the
        newest complete directive block (None if no block was completed).
        """
        state = self.state
        records: list[dict[str, Any]] = []
        # Directive lines are held back until their block ends so every line
        # of the block is dated from the block's Date directive.
        pending: list[str] = []
        pending_pos = 0
        new_block_pos = None
        start = offset = f.tell()
        continuing = block_end is not None and block_end > start

        for _ in range(self._read_line_limit):
            raw = f.readline()
            if not raw.endswith(b"\n"):
                # EOF; a partial last line is left until it is complete
                state.unread_lines = False
                break
            line_start = offset
            offset += len(raw)
            line = _decode(raw)
            self._metrics.increment("lines_read")

            if is_directive(line):
                if not pending:
                    if continuing:
                        pending_pos = state.position.last_directives_pos
                    else:
                        pending_pos = line_start
                        state.directives = DirectiveState()
                continuing = False
                self._process_directive(line)
                pending.append(line)
                continue

            if pending:
                records.extend(self._build(d, False) for d in pending)
                new_block_pos = pending_pos
                pending = []
            continuing = False
            records.append(self._build(line, self._process_fields))
        else:
            state.unread_lines = True
            if pending and pending_pos > start:
                # Limit hit mid block: re-read the whole block next cycle.
                offset = pending_pos
                pending = []

        if pending:
            records.extend(self._build(d, False) for d in pending)
            new_block_pos = pending_pos
        return records, offset, new_block_pos
