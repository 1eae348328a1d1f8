#!/usr/bin/env python3
"""comlog: record a serial device to rotating timestamped CSV files."""

import argparse
import asyncio
import logging
import signal
import sys

from comlog.config import load_config, load_yaml_config
from comlog.console import ConsoleView
from comlog.destination import DirectoryDestination
from comlog.display import DisplayBuffer
from comlog.errors import ComlogError
from comlog.ingest import IngestLoop
from comlog.source import SerialSource

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serial port CSV recorder")
    parser.add_argument("--port", default=None, help="Serial device (e.g. /dev/ttyUSB0, COM3)")
    parser.add_argument("--baud", dest="baudrate", type=int, default=None,
                        help="Baud rate (default: 115200)")
    parser.add_argument("--output-dir", default=None,
                        help="Directory for com_log_*.csv files (default: ./logs)")
    parser.add_argument("--lines", dest="display_lines", type=int, default=None,
                        help="Number of lines kept in the live display (default: 100)")
    parser.add_argument("--interval", dest="rotation_minutes", type=int, default=None,
                        help="Start a new file every N minutes; 0 rotates by line count (default: 20)")
    parser.add_argument("--max-lines", dest="max_lines_per_file", type=int, default=None,
                        help="Lines per file when --interval is 0 (default: 500000)")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--log-level", default=None, help="Internal log level (default: INFO)")
    return parser


LOG_FORMAT = "%(asctime)s [COMLOG] %(levelname)s %(message)s"


def setup_logging(level: str = "INFO"):
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


class StopSignals:
    """Turns SIGINT/SIGTERM into IngestLoop.stop() on the running event loop.

    Uses ``loop.add_signal_handler`` where the event loop supports it and
    falls back to ``signal.signal`` (Windows), handing the stop over to the
    loop thread with ``call_soon_threadsafe``.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, ingest: IngestLoop):
        self._ingest = ingest
        self._event_loop = None
        self._tasks: set[asyncio.Task] = set()
        # (signal, previous handler) for handlers set with signal.signal
        self._fallback: list[tuple] = []
        self._loop_handled: list = []

    @property
    def pending(self) -> set:
        return set(self._tasks)

    def install(self, event_loop):
        self._event_loop = event_loop
        for sig in self.SIGNALS:
            try:
                event_loop.add_signal_handler(sig, self.request_stop)
                self._loop_handled.append(sig)
            except NotImplementedError:
                self._fallback.append((sig, signal.signal(sig, self._on_signal)))

    def uninstall(self):
        for sig in self._loop_handled:
            self._event_loop.remove_signal_handler(sig)
        for sig, previous in self._fallback:
            signal.signal(sig, previous)
        self._loop_handled = []
        self._fallback = []

    def request_stop(self):
        task = asyncio.ensure_future(self._ingest.stop())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_signal(self, sig, frame):
        logger.info("Received signal %d, stopping", sig)
        self._event_loop.call_soon_threadsafe(self.request_stop)


async def record(config) -> IngestLoop:
    display = DisplayBuffer(config.display_lines)
    loop = IngestLoop(
        SerialSource(config.port, config.baudrate, read_timeout=config.read_timeout),
        DirectoryDestination(config.output_dir),
        display,
        rotation_minutes=config.rotation_minutes,
        max_lines_per_file=config.max_lines_per_file,
        max_consecutive_write_errors=config.max_consecutive_write_errors,
        surface=ConsoleView(display),
    )

    signals = StopSignals(loop)
    signals.install(asyncio.get_running_loop())
    try:
        await loop.run()
    finally:
        signals.uninstall()
    return loop


def main(argv=None) -> int:
    """Run one recording session. Exit codes: 0 ok, 1 session failed, 2 bad config."""
    args = build_cli_parser().parse_args(argv)
    setup_logging()

    try:
        yaml_data = load_yaml_config(args.config)
        overrides = {k: v for k, v in vars(args).items() if k not in ("config",)}
        config = load_config(yaml_data, overrides)
    except ComlogError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging.getLogger().setLevel(config.log_level.upper())
    logger.info("Config: %s", config)

    loop = asyncio.run(record(config))
    stats = loop.stats
    outcome = loop.last_outcome
    logger.info("Stopped (%s). %d line(s) received, %d written, %d rotation(s)",
                outcome.value if outcome else "not started",
                stats.lines_received, stats.lines_written, stats.rotations)
    if outcome is None or not outcome.ok:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
