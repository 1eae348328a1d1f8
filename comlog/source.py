"""Stream sources: a pyserial-backed device reader and an in-memory queue.

A source exposes three coroutines: ``open()``, ``read()`` which returns the
next text chunk or None once the stream has ended, and ``close()``.
"""

import asyncio
import codecs
import logging

import serial

from comlog.errors import SourceAcquisitionError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200


class SerialSource:
    """Reads a serial port in a worker thread and decodes it as UTF-8.

    The incremental decoder keeps multi-byte characters that straddle two
    reads intact. Reads time out every ``read_timeout`` seconds so that a
    cancelled read releases its thread promptly.
    """

    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE, read_timeout: float = 0.5):
        self._port = port
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._serial: serial.Serial | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._closed = False

    @property
    def description(self) -> str:
        return f"{self._port} @ {self._baudrate} baud"

    async def open(self):
        self._closed = False
        self._decoder.reset()
        try:
            self._serial = await asyncio.to_thread(
                serial.Serial, self._port, self._baudrate, timeout=self._read_timeout,
            )
        except (serial.SerialException, ValueError) as e:
            raise SourceAcquisitionError(f"cannot open {self._port}: {e}") from e
        logger.info("Opened serial port %s", self.description)

    async def read(self) -> str | None:
        while not self._closed:
            data = await asyncio.to_thread(self._read_blocking)
            if self._closed:
                break
            if not data:
                continue
            text = self._decoder.decode(data)
            if text:
                return text
        tail = self._decoder.decode(b"", final=True)
        return tail or None

    def _read_blocking(self) -> bytes:
        port = self._serial
        if port is None or not port.is_open:
            return b""
        # Block for at least one byte (bounded by the timeout), then drain what is buffered
        return port.read(max(1, port.in_waiting))

    async def close(self):
        self._closed = True
        port, self._serial = self._serial, None
        if port is None:
            return
        if hasattr(port, "cancel_read"):
            port.cancel_read()
        await asyncio.to_thread(port.close)
        logger.info("Closed serial port %s", self.description)


class MemorySource:
    """Queue-backed source; chunks are supplied with ``put`` and ``finish`` ends the stream."""

    def __init__(self, chunks=None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._open = False
        for chunk in chunks or []:
            self._queue.put_nowait(chunk)

    @property
    def description(self) -> str:
        return "memory"

    @property
    def is_open(self) -> bool:
        return self._open

    def put(self, chunk: str):
        self._queue.put_nowait(chunk)

    def finish(self):
        self._queue.put_nowait(None)

    async def open(self):
        self._open = True

    async def read(self) -> str | None:
        chunk = await self._queue.get()
        if chunk is None:
            self._open = False
        return chunk

    async def close(self):
        self._open = False
