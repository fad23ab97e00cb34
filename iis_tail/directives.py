"""W3C extended log directives (the ``#``-prefixed header lines IIS writes)."""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "#"

# Directive name -> DirectiveState attribute.
SCALAR_DIRECTIVES = {
    "#Software:": "software",
    "#Version:": "version",
    "#Date:": "date",
    "#Start-Date:": "start_date",
    "#End-Date:": "end_date",
    "#Remark:": "remark",
}
FIELDS_DIRECTIVE = "#Fields:"


def is_directive(line: str) -> bool:
    return line.startswith(DIRECTIVE_PREFIX)


def _has_name(line: str, name: str) -> bool:
    """True if *line* is directive *name* followed by whitespace or nothing.

    Lines arrive stripped, so an empty ``#Fields: `` shows up as ``#Fields:``.
    """
    if not line.startswith(name):
        return False
    return len(line) == len(name) or line[len(name)].isspace()


def _value(line: str) -> str | None:
    parts = line.strip().split(None, 1)
    if len(parts) < 2:
        return None
    return parts[1].strip() or None


@dataclass
class DirectiveState:
    """Directive values of the block currently in effect for one log.

    ``fields`` is None until a Fields directive is seen; an empty list means
    the directive was present but named no fields.
    """

    software: str | None = None
    version: str | None = None
    date: str | None = None
    fields: list[str] | None = None
    start_date: str | None = None
    end_date: str | None = None
    remark: str | None = None

    def process_line(self, line: str) -> bool:
        """Store the value of a directive line. Returns False if unrecognised."""
        if _has_name(line, FIELDS_DIRECTIVE):
            self.fields = line.strip().split()[1:]
            return True
        for name, attr in SCALAR_DIRECTIVES.items():
            if _has_name(line, name):
                setattr(self, attr, _value(line))
                return True
        logger.info("Unknown log directive: %s", line)
        return False
