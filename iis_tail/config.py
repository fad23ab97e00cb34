"""Configuration loading from CLI args, env vars, and optional YAML file.

Precedence, lowest to highest: defaults, YAML file, IIS_TAIL_* env vars,
command line flags.
"""

import argparse
import logging
import os
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "IIS_TAIL_"


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    path: str = "C:/inetpub/logs/LogFiles/W3SVC*/**/*.log"  # comma separated globs
    tag: str = "iis"
    pos_file: str | None = None       # None keeps positions in memory only
    refresh_interval: float = 60.0    # seconds between watch list refreshes
    position_write_interval: float = 60.0
    read_interval: float = 60.0       # seconds between reads of one log
    read_line_limit: int = 1000
    process_fields: bool = False      # one key per #Fields name instead of "message"
    output_dir: str | None = None     # batch files go here; stdout if None
    watch_events: bool = False        # also refresh on filesystem events

    def __post_init__(self):
        for name in ("refresh_interval", "position_write_interval", "read_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.read_line_limit <= 0:
            raise ValueError(f"read_line_limit must be positive, got {self.read_line_limit}")


_CONVERTERS = {
    "path": str,
    "tag": str,
    "pos_file": str,
    "refresh_interval": float,
    "position_write_interval": float,
    "read_interval": float,
    "read_line_limit": int,
    "process_fields": _parse_bool,
    "output_dir": str,
    "watch_events": _parse_bool,
}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tail IIS W3C logs and emit structured records")
    parser.add_argument("--path", help="Comma separated glob(s) of logs to read")
    parser.add_argument("--tag", help="Tag attached to emitted records")
    parser.add_argument("--pos-file", help="File that keeps read positions across restarts")
    parser.add_argument("--refresh-interval", type=float,
                        help="Seconds between refreshes of the watched log list")
    parser.add_argument("--position-write-interval", type=float,
                        help="Seconds between position file writes")
    parser.add_argument("--read-interval", type=float,
                        help="Seconds between reads of each log")
    parser.add_argument("--read-line-limit", type=int,
                        help="Maximum lines read from one log per cycle")
    parser.add_argument("--process-fields", action="store_const", const=True, default=None,
                        help="Emit one key per #Fields name instead of a message")
    parser.add_argument("--output-dir", help="Write record batches as JSON files here")
    parser.add_argument("--watch-events", action="store_const", const=True, default=None,
                        help="Refresh the log list on filesystem events too")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def load_config(cli_args=None, yaml_data: dict | None = None,
                environ: dict | None = None) -> Config:
    """Build Config from YAML data, env vars and parsed CLI args."""
    environ = os.environ if environ is None else environ
    kwargs: dict = {}

    for key, value in (yaml_data or {}).items():
        key = key.replace("-", "_")
        if key not in _CONVERTERS:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        if value is not None:
            kwargs[key] = _CONVERTERS[key](value)

    for f in fields(Config):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value is not None:
            kwargs[f.name] = _CONVERTERS[f.name](value)

    if cli_args is not None:
        for f in fields(Config):
            value = getattr(cli_args, f.name, None)
            if value is not None:
                kwargs[f.name] = _CONVERTERS[f.name](value)

    return Config(**kwargs)
