#!/usr/bin/env python3
"""iis-tail entry point."""

import logging
import signal
import sys
import threading

from iis_tail.config import build_cli_parser, load_config, load_yaml_config
from iis_tail.errors import PositionFileError
from iis_tail.metrics import Metrics
from iis_tail.position import PositionStore
from iis_tail.scheduler import TaskScheduler
from iis_tail.sink import BatchFileSink, StreamSink
from iis_tail.watcher import WatchSetManager

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    args = build_cli_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [IIS-TAIL] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    logger.info("Config: path=%s, tag=%s, pos_file=%s, read_line_limit=%d",
                config.path, config.tag, config.pos_file, config.read_line_limit)

    store = None
    if config.pos_file:
        try:
            store = PositionStore(config.pos_file)
        except PositionFileError as e:
            logger.error("Cannot load position file: %s", e)
            return 1

    sink = BatchFileSink(config.output_dir) if config.output_dir else StreamSink()
    metrics = Metrics()
    scheduler = TaskScheduler()
    manager = WatchSetManager(config, scheduler, sink, store, metrics)

    stop = threading.Event()

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received, stopping...")
        stop.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    manager.start()
    scheduler.start()
    logger.info("iis-tail running, watching %d file(s). Press Ctrl+C to stop.",
                len(manager.watched()))

    while not stop.is_set():
        stop.wait(1)

    logger.info("Shutting down...")
    scheduler.stop()
    manager.shutdown()
    logger.info("Stats: %s", metrics.summary())
    logger.info("iis-tail stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
