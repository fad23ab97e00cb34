"""Exceptions raised by iis-tail."""


class PositionFileError(ValueError):
    """A position file line could not be parsed. Fatal at load time."""

    def __init__(self, pos_file: str, line_number: int, line: str, reason: str):
        self.pos_file = pos_file
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"{pos_file}:{line_number}: {reason}: {line!r}")
