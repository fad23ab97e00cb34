"""Timer queue that runs scheduled tasks one at a time on a dispatcher thread."""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class TaskHandle:
    """A scheduled task. ``cancel()`` stops it from running (again)."""

    def __init__(self, name: str, callback: Callable[[], None], when: float,
                 interval: float | None = None):
        self.name = name
        self.when = when
        self.interval = interval
        self._callback = callback
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self):
        self._cancelled = True

    def run(self):
        self._callback()


class TaskScheduler:
    """Runs single-shot and repeating tasks in due order.

    Tasks never overlap: they run sequentially on whichever thread calls
    ``run_pending`` (normally the dispatcher started by ``start``).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, TaskHandle]] = []
        self._seq = itertools.count()
        self._stopped = False
        self._thread: threading.Thread | None = None

    def _push(self, handle: TaskHandle):
        with self._cond:
            heapq.heappush(self._heap, (handle.when, next(self._seq), handle))
            self._cond.notify()

    def call_later(self, delay: float, callback: Callable[[], None],
                   name: str = "task") -> TaskHandle:
        handle = TaskHandle(name, callback, self._clock() + delay)
        self._push(handle)
        return handle

    def call_every(self, interval: float, callback: Callable[[], None],
                   name: str = "task") -> TaskHandle:
        """Run *callback* every *interval* seconds, first run one interval from now."""
        handle = TaskHandle(name, callback, self._clock() + interval, interval)
        self._push(handle)
        return handle

    def pending(self) -> int:
        with self._cond:
            return sum(1 for _, _, h in self._heap if not h.cancelled)

    def _pop_due(self) -> TaskHandle | None:
        with self._cond:
            now = self._clock()
            while self._heap:
                when, _, handle = self._heap[0]
                if handle.cancelled:
                    heapq.heappop(self._heap)
                    continue
                if when > now:
                    return None
                heapq.heappop(self._heap)
                return handle
            return None

    def run_pending(self) -> int:
        """Run every task that is due now. Returns the number run."""
        ran = 0
        while True:
            handle = self._pop_due()
            if handle is None:
                return ran
            try:
                handle.run()
            except Exception:
                logger.exception("Task %s failed", handle.name)
            ran += 1
            if handle.repeating and not handle.cancelled and not self._stopped:
                handle.when = self._clock() + handle.interval
                self._push(handle)

    def _next_delay(self) -> float | None:
        with self._cond:
            while self._heap and self._heap[0][2].cancelled:
                heapq.heappop(self._heap)
            if not self._heap:
                return None
            return max(0.0, self._heap[0][0] - self._clock())

    def run_forever(self):
        """Dispatch tasks until ``stop`` is called."""
        while not self._stopped:
            self.run_pending()
            with self._cond:
                if self._stopped:
                    break
                self._cond.wait(timeout=self._next_delay())

    def start(self):
        """Start the dispatcher thread."""
        self._thread = threading.Thread(target=self.run_forever, name="iis-tail-scheduler",
                                        daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        """Cancel all tasks and stop the dispatcher."""
        with self._cond:
            self._stopped = True
            for _, _, handle in self._heap:
                handle.cancel()
            self._heap.clear()
            self._cond.notify_all()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
