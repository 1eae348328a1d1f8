"""Record model and its CSV serialization."""

import re
from dataclasses import dataclass

CSV_HEADER = "Timestamp,Message\n"

_LINE_BREAKS = re.compile(r"[\r\n]+")


def sanitize_message(text: str) -> str:
    """Collapse any run of CR/LF characters into a single space."""
    return _LINE_BREAKS.sub(" ", text)


@dataclass(frozen=True)
class Record:
    timestamp: str
    message: str

    @classmethod
    def create(cls, timestamp: str, line: str) -> "Record":
        return cls(timestamp=timestamp, message=sanitize_message(line))

    def to_csv_line(self) -> str:
        """Serialize as ``timestamp,message\\n``.

        Commas in the message are written as-is, without quoting. Readers
        should split on the first comma only.
        """
        return f"{self.timestamp},{self.message}\n"

    def render(self) -> str:
        """Text shown in the live display."""
        return f"{self.timestamp},{self.message}"
