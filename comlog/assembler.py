"""LineAssembler: turns arbitrarily split text chunks into completed lines."""

import logging

logger = logging.getLogger(__name__)


class LineAssembler:
    """Splits incoming chunks on newlines and keeps the unterminated tail.

    Completed lines are stripped of surrounding whitespace and lines that are
    empty after stripping are dropped. The tail is only emitted by
    flush_remainder(), which is called once the stream has ended.
    """

    def __init__(self):
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> list[str]:
        """Append a chunk and return the lines it completed, in order."""
        if not chunk:
            return []

        self._pending += chunk
        if "\n" not in self._pending:
            return []

        pieces = self._pending.split("\n")
        # The last piece is unterminated, even when it is empty
        self._pending = pieces[-1]

        lines = []
        for piece in pieces[:-1]:
            stripped = piece.strip()
            if stripped:
                lines.append(stripped)
        logger.debug("Assembled %d line(s), %d char(s) pending", len(lines), len(self._pending))
        return lines

    def flush_remainder(self) -> str | None:
        """Return the pending tail as a final line, or None if nothing is left."""
        remainder = self._pending.strip()
        self._pending = ""
        return remainder or None

    def reset(self):
        self._pending = ""
