"""Shared fixtures: a fake clock and a simulated paging transmitter.

FakeTransmitter implements ByteChannel and answers AT commands the way the
firmware does, so executor, transfer and session tests run without a serial
port and without real sleeping.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import pytest

from pagerlink.config.config_models import Config
from pagerlink.core.at_executor import ATExecutor
from pagerlink.core.device_session import DeviceSession
from pagerlink.core.exceptions import ChannelError
from pagerlink.core.serial_handler import ByteChannel


class FakeClock:
    """Monotonic clock advanced only by sleeps and empty polls."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransmitter(ByteChannel):
    """Simulated transmitter firmware on the far end of a channel.

    Replies are queued as soon as a command line completes. script() replaces
    the normal reply for the next occurrences of a command; an empty reply
    simulates silence.
    """

    port = "/dev/ttyFAKE"

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rx: Deque[int] = deque()
        self.written = bytearray()
        self.commands: List[str] = []
        self.messages: List[Tuple[int, str]] = []
        self.payloads: List[bytes] = []
        self.settings: Dict[str, str] = {}
        self.overrides: Dict[str, Deque[bytes]] = {}
        self.completion_replies: Deque[bytes] = deque()
        self.flushes = 0
        self.drains = 0
        self.opened = False
        self.closed = False
        self.fail_io: Optional[ChannelError] = None

        self._line = bytearray()
        self._mode = "command"
        self._capcode: Optional[int] = None
        self._expect = 0
        self._payload = bytearray()

    # Test controls

    def script(self, command: str, *replies: bytes) -> None:
        self.overrides.setdefault(command, deque()).extend(replies)

    def reply(self, data: bytes) -> None:
        self.rx.extend(data)

    def sent_commands(self) -> List[str]:
        """Commands received, liveness probes excluded."""
        return [c for c in self.commands if c != "AT"]

    # ByteChannel

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def write(self, data: bytes) -> int:
        self.written.extend(data)
        for byte in data:
            self._feed(byte)
        return len(data)

    def drain(self) -> None:
        self.drains += 1

    def poll_readable(self, timeout: float) -> bool:
        if self.fail_io is not None:
            raise self.fail_io
        if self.rx:
            return True
        self.clock.now += timeout
        return False

    def read_byte(self) -> Optional[int]:
        return self.rx.popleft() if self.rx else None

    def flush_buffers(self) -> None:
        self.flushes += 1
        self.rx.clear()

    # Firmware behaviour

    def _feed(self, byte: int) -> None:
        if self._mode == "payload":
            self._payload.append(byte)
            if len(self._payload) == self._expect:
                self.payloads.append(bytes(self._payload))
                self._mode = "command"
                self._complete()
            return

        if byte == 0x0A:
            line = self._line.decode('ascii').rstrip('\r')
            self._line.clear()
            self._handle_line(line)
        else:
            self._line.append(byte)

    def _complete(self) -> None:
        if self.completion_replies:
            self.reply(self.completion_replies.popleft())
        else:
            self.reply(b"OK\r\n")

    def _override(self, line: str) -> Optional[bytes]:
        for key in (line, line.split('=', 1)[0]):
            replies = self.overrides.get(key)
            if replies:
                return replies.popleft()
        return None

    def _handle_line(self, line: str) -> None:
        if self._mode == "text":
            self._mode = "command"
            self.messages.append((self._capcode, line))
            self._complete()
            return

        if not line:
            return
        self.commands.append(line)

        scripted = self._override(line)
        if scripted is not None:
            self.reply(scripted)
            return

        if line == "AT":
            self.reply(b"OK\r\n")
        elif line.startswith("AT+MSG="):
            self._capcode = int(line[len("AT+MSG="):])
            self._mode = "text"
            self.reply(b"+MSG: READY\r\n")
        elif line.startswith("AT+SEND="):
            self._expect = int(line[len("AT+SEND="):])
            self._payload = bytearray()
            self._mode = "payload"
            self.reply(b"+SEND: READY\r\n")
        elif line.endswith("?"):
            name = line[3:-1]
            value = self.settings.get(name)
            data = f"+{name}: {value}\r\n".encode('ascii') if value is not None else b""
            self.reply(data + b"OK\r\n")
        elif "=" in line:
            name, value = line[3:].split("=", 1)
            self.settings[name] = value
            self.reply(b"OK\r\n")
        else:
            self.reply(b"OK\r\n")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def device(clock):
    return FakeTransmitter(clock)


@pytest.fixture
def executor(device, clock):
    return ATExecutor(device, sleep=clock.sleep, clock=clock)


@pytest.fixture
def make_session(device, clock):
    """Build a DeviceSession over the fake transmitter."""
    def factory(config: Optional[Config] = None, logger=None) -> DeviceSession:
        return DeviceSession(device, config or Config(), logger=logger,
                             sleep=clock.sleep, clock=clock)
    return factory
