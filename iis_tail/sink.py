"""Destinations for emitted record batches."""

import json
import logging
import os
import sys
import tempfile
import threading
from datetime import datetime
from typing import Any, Protocol, TextIO

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def emit(self, tag: str, records: list[dict[str, Any]]) -> None: ...


class StreamSink:
    """Writes each record as one JSON line ``{"tag": ..., "record": ...}``."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()

    def emit(self, tag: str, records: list[dict[str, Any]]) -> None:
        with self._lock:
            for record in records:
                self._stream.write(json.dumps({"tag": tag, "record": record}) + "\n")
            self._stream.flush()


class BatchFileSink:
    """Writes each batch as a JSON array file in *output_dir*."""

    def __init__(self, output_dir: str):
        self._output_dir = output_dir
        self._lock = threading.Lock()
        self._batch_count = 0

    @property
    def batch_count(self) -> int:
        return self._batch_count

    def emit(self, tag: str, records: list[dict[str, Any]]) -> None:
        os.makedirs(self._output_dir, exist_ok=True)
        with self._lock:
            self._batch_count += 1
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"{tag}_{ts}_{self._batch_count:06d}.json"
            target = os.path.join(self._output_dir, filename)

            fd, tmp = tempfile.mkstemp(dir=self._output_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(records, f, indent=2)
                    f.write("\n")
                os.replace(tmp, target)
            except Exception:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        logger.info("Wrote %d record(s) to %s", len(records), filename)
