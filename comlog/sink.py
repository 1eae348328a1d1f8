"""RecordSink: rotation-aware CSV writer that owns the current output file."""

import asyncio
import logging

from comlog.errors import FileCreationError, RecordWriteError, SinkUnavailableError
from comlog.models import CSV_HEADER, Record
from comlog.timestamper import Timestamper

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "com_log_"
FILENAME_SUFFIX = ".csv"


def build_filename(timestamp: str) -> str:
    return f"{FILENAME_PREFIX}{timestamp}{FILENAME_SUFFIX}"


class RecordSink:
    """Single-writer sink. Every mutation goes through one asyncio lock, so a
    rotation never overlaps a write and a write never lands on a file that is
    being closed.
    """

    def __init__(self, destination, timestamper: Timestamper):
        self._destination = destination
        self._timestamper = timestamper
        self._lock = asyncio.Lock()
        self._handle = None
        self._path: str | None = None
        self._line_count = 0
        self._opened_at = None
        self._files_created: list[str] = []

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def current_path(self) -> str | None:
        return self._path

    @property
    def line_count(self) -> int:
        return self._line_count

    @property
    def opened_at(self):
        return self._opened_at

    @property
    def files_created(self) -> list[str]:
        return list(self._files_created)

    async def open(self) -> str:
        """Create the next output file and write the header. Returns its path."""
        async with self._lock:
            await self._close_locked()
            return await self._open_locked()

    async def ensure_open(self) -> str:
        """Open a file only if none is current, e.g. after a failed rotation."""
        async with self._lock:
            if self._handle is not None:
                return self._path
            return await self._open_locked()

    async def write(self, record: Record):
        """Append one record to the current file."""
        async with self._lock:
            if self._handle is None:
                raise SinkUnavailableError("no output file is open, record not persisted")
            try:
                await self._handle.write(record.to_csv_line())
                await self._handle.flush()
            except OSError as e:
                raise RecordWriteError(f"failed to write to {self._path}: {e}") from e
            self._line_count += 1

    async def rotate(self) -> str:
        """Close the current file and open a fresh one. Returns the new path."""
        async with self._lock:
            previous, lines = self._path, self._line_count
            try:
                await self._close_locked()
            except RecordWriteError as e:
                logger.warning("Closing %s during rotation failed: %s", previous, e)
            if previous:
                logger.info("Rotating %s after %d line(s)", previous, lines)
            return await self._open_locked()

    async def close(self):
        async with self._lock:
            await self._close_locked()

    async def _open_locked(self) -> str:
        filename = build_filename(self._timestamper.now())
        try:
            path, handle = await self._destination.create(filename)
        except OSError as e:
            raise FileCreationError(f"could not create {filename}: {e}") from e

        try:
            await handle.write(CSV_HEADER)
            await handle.flush()
        except OSError as e:
            try:
                await handle.close()
            except OSError:
                logger.debug("Close after failed header write also failed for %s", path)
            raise FileCreationError(f"could not write header to {path}: {e}") from e

        self._handle = handle
        self._path = path
        self._line_count = 0
        self._opened_at = self._timestamper.instant()
        self._files_created.append(path)
        logger.info("Opened output file %s", path)
        return path

    async def _close_locked(self):
        if self._handle is None:
            return
        handle, path = self._handle, self._path
        self._handle = None
        self._path = None
        try:
            try:
                await handle.flush()
            finally:
                await handle.close()
        except OSError as e:
            raise RecordWriteError(f"failed to close {path}: {e}") from e
        logger.info("Closed output file %s (%d line(s))", path, self._line_count)
