"""Terminal surface: prints new display lines, errors and control state."""

import sys

SEPARATOR = "-" * 40


class ConsoleView:
    """Renders DisplayBuffer updates to stdout and notices to stderr.

    Plugs into IngestLoop as its ``surface``: ``state_changed`` and
    ``report_error`` are called by the loop. A resize or clear of the
    display reprints what it still holds below a separator line.
    """

    def __init__(self, display, out=None, err=None):
        self._display = display
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        display.subscribe(self._on_display_change)

    def _on_display_change(self, line):
        if line is None:
            self._out.write(SEPARATOR + "\n")
            self.redraw()
            return
        self._out.write(line + "\n")
        self._out.flush()

    def redraw(self):
        """Print the whole display buffer, oldest first."""
        for line in self._display.contents():
            self._out.write(line + "\n")
        self._out.flush()

    def state_changed(self, loop):
        start = "enabled" if loop.can_start else "disabled"
        stop = "enabled" if loop.can_stop else "disabled"
        self._err.write(f"[{loop.state.value}] start {start}, stop {stop}\n")
        self._err.flush()

    def report_error(self, message: str):
        self._err.write(f"Error: {message}\n")
        self._err.flush()
