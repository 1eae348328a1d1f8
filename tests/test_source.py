"""Tests for the stream sources."""

import asyncio

import pytest
import serial

from comlog.errors import SourceAcquisitionError
from comlog.source import MemorySource, SerialSource


class FakeSerial:
    """Stands in for serial.Serial; replays canned reads."""

    instances = []
    reads = []

    def __init__(self, port, baudrate, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.is_open = True
        self.cancelled = False
        self._reads = list(self.reads)
        FakeSerial.instances.append(self)

    @property
    def in_waiting(self):
        return len(self._reads[0]) if self._reads else 0

    def read(self, size=1):
        if not self._reads:
            return b""
        return self._reads.pop(0)

    def cancel_read(self):
        self.cancelled = True

    def close(self):
        self.is_open = False


class DeniedSerial:
    def __init__(self, *args, **kwargs):
        raise serial.SerialException("could not open port: access denied")


@pytest.fixture
def fake_serial(monkeypatch):
    FakeSerial.instances = []
    FakeSerial.reads = []
    monkeypatch.setattr(serial, "Serial", FakeSerial)
    return FakeSerial


class TestSerialSource:
    @pytest.mark.asyncio
    async def test_open_passes_settings(self, fake_serial):
        source = SerialSource("/dev/ttyACM0", 9600, read_timeout=0.1)
        await source.open()
        port = fake_serial.instances[0]
        assert (port.port, port.baudrate, port.timeout) == ("/dev/ttyACM0", 9600, 0.1)
        await source.close()

    @pytest.mark.asyncio
    async def test_open_failure_raises_acquisition_error(self, monkeypatch):
        monkeypatch.setattr(serial, "Serial", DeniedSerial)
        source = SerialSource("/dev/missing")
        with pytest.raises(SourceAcquisitionError):
            await source.open()

    @pytest.mark.asyncio
    async def test_decodes_multibyte_split_across_reads(self, fake_serial):
        fake_serial.reads = [b"caf\xc3", b"\xa9\n"]
        source = SerialSource("/dev/ttyUSB0")
        await source.open()
        assert await source.read() == "caf"
        assert await source.read() == "é\n"
        await source.close()

    @pytest.mark.asyncio
    async def test_invalid_bytes_replaced(self, fake_serial):
        fake_serial.reads = [b"ok\xff\n"]
        source = SerialSource("/dev/ttyUSB0")
        await source.open()
        assert await source.read() == "ok�\n"
        await source.close()

    @pytest.mark.asyncio
    async def test_close_cancels_read_and_ends_stream(self, fake_serial):
        source = SerialSource("/dev/ttyUSB0")
        await source.open()
        port = fake_serial.instances[0]
        await source.close()
        assert port.cancelled
        assert not port.is_open
        assert await source.read() is None

    @pytest.mark.asyncio
    async def test_close_without_open(self):
        await SerialSource("/dev/ttyUSB0").close()


class TestMemorySource:
    @pytest.mark.asyncio
    async def test_yields_chunks_then_none(self):
        source = MemorySource(["a", "b"])
        source.finish()
        await source.open()
        assert await source.read() == "a"
        assert await source.read() == "b"
        assert await source.read() is None
        assert not source.is_open

    @pytest.mark.asyncio
    async def test_read_waits_for_put(self):
        source = MemorySource()
        await source.open()
        pending = asyncio.ensure_future(source.read())
        await asyncio.sleep(0.01)
        assert not pending.done()
        source.put("late")
        assert await asyncio.wait_for(pending, 1.0) == "late"
