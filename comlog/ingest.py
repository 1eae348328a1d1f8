"""IngestLoop: session state machine that drives source -> records -> sink/display."""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass

from comlog.assembler import LineAssembler
from comlog.display import DisplayBuffer
from comlog.errors import (
    ConfigurationError,
    FileCreationError,
    RecordWriteError,
    SessionActiveError,
    SinkUnavailableError,
    SourceAcquisitionError,
)
from comlog.models import Record
from comlog.rotation import DEFAULT_MAX_LINES_PER_FILE, RotationPolicy
from comlog.sink import RecordSink
from comlog.timestamper import Timestamper

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPING = "stopping"
    FAILED = "failed"


class SessionOutcome(enum.Enum):
    """How the last session ended."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    SOURCE_UNAVAILABLE = "source unavailable"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in (SessionOutcome.COMPLETED, SessionOutcome.STOPPED)


@dataclass
class SessionStats:
    lines_received: int = 0
    lines_written: int = 0
    write_errors: int = 0
    rotations: int = 0


class IngestLoop:
    """Coordinates one recording session at a time.

    Commands: start(), stop(), set_display_limit(n), set_rotation_period(m).
    The session task is the single owner of the sink: the read loop and the
    rotation timer both go through RecordSink, whose lock serializes them.

    The display buffer is kept across sessions; the assembler's pending text,
    the rotation counters and the session stats start fresh on every start().
    """

    def __init__(
        self,
        source,
        destination,
        display: DisplayBuffer | None = None,
        *,
        rotation_minutes: int = 20,
        max_lines_per_file: int = DEFAULT_MAX_LINES_PER_FILE,
        max_consecutive_write_errors: int = 0,
        timestamper: Timestamper | None = None,
        surface=None,
        sleep=asyncio.sleep,
        reopen_retry_seconds: float = 5.0,
        monotonic=time.monotonic,
    ):
        # Validates both values up front
        RotationPolicy(rotation_minutes, max_lines_per_file)
        self._source = source
        self._destination = destination
        self._display = display or DisplayBuffer()
        self._rotation_minutes = rotation_minutes
        self._max_lines_per_file = max_lines_per_file
        self._max_consecutive_write_errors = max_consecutive_write_errors
        self._timestamper = timestamper or Timestamper()
        self._surface = surface
        self._sleep = sleep
        self._reopen_retry_seconds = reopen_retry_seconds
        self._monotonic = monotonic

        self._state = SessionState.IDLE
        self._assembler = LineAssembler()
        self._sink: RecordSink | None = None
        self._policy: RotationPolicy | None = None
        self._stats = SessionStats()
        self._session_task: asyncio.Task | None = None
        self._read_task: asyncio.Future | None = None
        self._timer_task: asyncio.Task | None = None
        self._stop_requested = False
        self._stall_reported = False
        self._consecutive_write_errors = 0
        self._next_reopen_at = 0.0
        self._outcome: SessionOutcome | None = None

    # -- observable state -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def can_start(self) -> bool:
        return self._state is SessionState.IDLE

    @property
    def can_stop(self) -> bool:
        return self._state in (SessionState.CONNECTING, SessionState.STREAMING)

    @property
    def display(self) -> DisplayBuffer:
        return self._display

    @property
    def sink(self) -> RecordSink | None:
        return self._sink

    @property
    def policy(self) -> RotationPolicy | None:
        """Policy snapshot of the running (or last) session."""
        return self._policy

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def rotation_minutes(self) -> int:
        return self._rotation_minutes

    @property
    def last_outcome(self) -> SessionOutcome | None:
        """Outcome of the last finished session; None before the first one ends."""
        return self._outcome

    # -- commands ---------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Begin a session in the background. Must be called from a running loop."""
        if not self.can_start:
            raise SessionActiveError(f"a session is already {self._state.value}")
        self._stop_requested = False
        self._stall_reported = False
        self._consecutive_write_errors = 0
        self._next_reopen_at = 0.0
        self._outcome = None
        self._assembler.reset()
        self._stats = SessionStats()
        self._policy = RotationPolicy(self._rotation_minutes, self._max_lines_per_file)
        self._set_state(SessionState.CONNECTING)
        self._session_task = asyncio.create_task(self._run_session(self._policy))
        return self._session_task

    async def run(self):
        """Start a session and wait until it is back to idle."""
        await self.start()

    async def stop(self):
        """Request a stop and wait for cleanup. A no-op unless a session is active."""
        if not self.can_stop:
            await self.wait_idle()
            return
        logger.info("Stop requested")
        self._stop_requested = True
        self._set_state(SessionState.STOPPING)
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()
        await self.wait_idle()

    async def wait_idle(self):
        task = self._session_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    def set_display_limit(self, limit: int):
        if limit < 1:
            raise ConfigurationError(f"display line limit must be >= 1, got {limit}")
        self._display.set_capacity(limit)
        logger.info("Display line limit set to %d", limit)

    def set_rotation_period(self, minutes: int):
        """Change the rotation period for the next session; the open file is not touched."""
        RotationPolicy(minutes, self._max_lines_per_file)
        self._rotation_minutes = minutes
        if self._state is SessionState.IDLE:
            logger.info("Rotation period set to %d min", minutes)
        else:
            logger.info("Rotation period set to %d min, takes effect next session", minutes)

    # -- session ----------------------------------------------------------

    async def _run_session(self, policy: RotationPolicy):
        sink = None
        try:
            try:
                await self._source.open()
            except SourceAcquisitionError as e:
                self._outcome = SessionOutcome.SOURCE_UNAVAILABLE
                self._report(f"Source unavailable: {e}")
                return

            sink = RecordSink(self._destination, self._timestamper)
            self._sink = sink
            try:
                await sink.open()
            except FileCreationError as e:
                self._stall(f"File creation failed: {e}; persistence stalled")

            if self._stop_requested:
                return

            self._set_state(SessionState.STREAMING)
            logger.info("Streaming from %s, rotation %s",
                        getattr(self._source, "description", "source"), policy.describe())
            if policy.should_rotate_on_tick():
                self._timer_task = asyncio.create_task(self._rotation_timer(sink, policy))

            await self._stream(sink, policy)
        except asyncio.CancelledError:
            self._outcome = SessionOutcome.STOPPED
            raise
        except Exception as e:
            logger.exception("Session failed")
            self._outcome = SessionOutcome.FAILED
            self._set_state(SessionState.FAILED)
            self._report(f"Session failed: {e}")
        finally:
            await self._teardown(sink)
            if self._outcome is None:
                self._outcome = (SessionOutcome.STOPPED if self._stop_requested
                                 else SessionOutcome.COMPLETED)
            logger.info(
                "Session %s: %d received, %d written, %d write error(s), %d rotation(s)",
                self._outcome.value, self._stats.lines_received, self._stats.lines_written,
                self._stats.write_errors, self._stats.rotations,
            )
            self._set_state(SessionState.IDLE)

    async def _stream(self, sink: RecordSink, policy: RotationPolicy):
        while not self._stop_requested:
            self._read_task = asyncio.ensure_future(self._source.read())
            try:
                chunk = await self._read_task
            except asyncio.CancelledError:
                if self._stop_requested:
                    return
                raise
            finally:
                self._read_task = None

            if chunk is None:
                logger.info("Source reached end of stream")
                remainder = self._assembler.flush_remainder()
                if remainder is not None:
                    await self._handle_line(remainder, sink, policy)
                return

            for line in self._assembler.feed(chunk):
                await self._handle_line(line, sink, policy)

    async def _handle_line(self, line: str, sink: RecordSink, policy: RotationPolicy):
        record = Record.create(self._timestamper.now(), line)
        self._stats.lines_received += 1
        self._display.push(record.render())

        if not sink.is_open and self._monotonic() >= self._next_reopen_at:
            await self._reopen(sink)

        try:
            await sink.write(record)
        except SinkUnavailableError as e:
            if not self._stall_reported:
                self._report(f"Write skipped: {e}")
                self._stall_reported = True
            return
        except RecordWriteError as e:
            self._stats.write_errors += 1
            self._consecutive_write_errors += 1
            self._report(f"Write error: {e}")
            limit = self._max_consecutive_write_errors
            if limit and self._consecutive_write_errors >= limit:
                raise RecordWriteError(
                    f"{self._consecutive_write_errors} consecutive write failures"
                ) from e
            return

        self._consecutive_write_errors = 0
        self._stats.lines_written += 1
        if policy.should_rotate_after_write(sink.line_count):
            await self._rotate(sink, "line limit reached")

    async def _rotation_timer(self, sink: RecordSink, policy: RotationPolicy):
        while True:
            await self._sleep(policy.interval_seconds)
            # Shielded so a stop cannot interrupt a rotation halfway
            await asyncio.shield(self._rotate(sink, "rotation period elapsed"))

    async def _rotate(self, sink: RecordSink, reason: str):
        logger.info("Rotating output file: %s", reason)
        try:
            await sink.rotate()
        except FileCreationError as e:
            self._stall(f"File creation failed: {e}; persistence stalled")
            return
        self._stall_reported = False
        self._stats.rotations += 1

    async def _reopen(self, sink: RecordSink):
        """Retry file creation after a stall; failures stay quiet until it succeeds."""
        try:
            path = await sink.ensure_open()
        except FileCreationError as e:
            logger.debug("Reopen attempt failed: %s", e)
            self._next_reopen_at = self._monotonic() + self._reopen_retry_seconds
            return
        logger.info("Persistence resumed in %s", path)
        self._stall_reported = False

    def _stall(self, message: str):
        self._report(message)
        self._stall_reported = True
        self._next_reopen_at = self._monotonic() + self._reopen_retry_seconds

    async def _teardown(self, sink: RecordSink | None):
        """Best-effort cleanup: cancel read, cancel timer, close source, close sink."""
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()

        timer, self._timer_task = self._timer_task, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                logger.debug("Rotation timer cancelled")
            except Exception:
                logger.exception("Rotation timer ended with an error")

        try:
            await self._source.close()
        except asyncio.CancelledError:
            logger.debug("Source close was cancelled")
        except Exception as e:
            logger.warning("Closing source failed: %s", e)

        if sink is not None:
            try:
                await sink.close()
            except Exception as e:
                logger.warning("Closing output file failed: %s", e)
                self._report(f"Closing output file failed: {e}")

    # -- surface ----------------------------------------------------------

    def _set_state(self, state: SessionState):
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._surface is not None:
            self._surface.state_changed(self)

    def _report(self, message: str):
        logger.error("%s", message)
        if self._surface is not None:
            self._surface.report_error(message)
