"""Serial port channel for AT command communication.

This module provides the raw byte channel used by the command engine:
write, drain, poll-for-readability, single-byte reads and buffer flushing,
plus port discovery. Opening the port snapshots the terminal line settings
so that closing it restores them on every exit path.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, TYPE_CHECKING
import os
import sys
import time

import serial
from serial.tools import list_ports

from pagerlink.core.exceptions import (
    ChannelError,
    SerialPortBusyError,
    ConnectionTimeoutError
)

if sys.platform != 'win32':
    import termios
else:
    termios = None

# Avoid circular import for type hints
if TYPE_CHECKING:
    from pagerlink.logging.communication_logger import CommunicationLogger


@dataclass
class PortInfo:
    """Serial port information from discovery.

    Attributes:
        device: Port device path (e.g., '/dev/ttyUSB0', 'COM3')
        description: Human-readable port description
        hwid: Hardware identifier (USB VID:PID, etc.)
    """
    device: str
    description: str
    hwid: str


class ByteChannel(ABC):
    """Half-duplex byte channel consumed by the command engine.

    Implementations must raise ChannelError on I/O failure.
    """

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write bytes, returning the number written."""

    @abstractmethod
    def drain(self) -> None:
        """Block until written bytes have been transmitted."""

    @abstractmethod
    def poll_readable(self, timeout: float) -> bool:
        """Wait up to timeout seconds for a byte to become readable."""

    @abstractmethod
    def read_byte(self) -> Optional[int]:
        """Read one byte, or return None if none is available."""

    @abstractmethod
    def flush_buffers(self) -> None:
        """Discard pending input and output."""

    def open(self) -> None:
        """Acquire the underlying device. No-op by default."""

    def close(self) -> None:
        """Release the underlying device. No-op by default."""


class SerialHandler(ByteChannel):
    """Manages serial port lifecycle and raw I/O operations.

    Wraps pyserial exceptions in ChannelError types. Not thread safe:
    exactly one command may be outstanding on a channel.

    Example:
        >>> with SerialHandler('/dev/ttyUSB0', baud_rate=115200) as channel:
        ...     channel.write(b'AT\\r\\n')
        ...     channel.drain()
    """

    POLL_SLICE = 0.005
    FLUSH_SETTLE = 0.1
    FLUSH_DRAIN_READS = 10
    FLUSH_DRAIN_DELAY = 0.01

    def __init__(self,
                 port: str,
                 baud_rate: int = 115200,
                 timeout: float = 0.5,
                 logger: Optional['CommunicationLogger'] = None,
                 **kwargs):
        """Initialize handler with port configuration.

        Args:
            port: Serial port device path
            baud_rate: Baud rate (default 115200)
            timeout: pyserial read timeout in seconds (default 0.5)
            logger: Optional CommunicationLogger for logging port events (default None)
            **kwargs: Additional arguments passed to serial.Serial
        """
        self.port = port
        self.baud_rate = baud_rate
        self.timeout = timeout
        self.logger = logger
        self.kwargs = kwargs
        self._serial: Optional[serial.Serial] = None
        self._saved_line_settings: Optional[List[Any]] = None
        self._open_time: Optional[float] = None  # Track session duration

    def open(self) -> None:
        """Open serial port and configure settings.

        Raises:
            ChannelError: Port doesn't exist or permission denied
            SerialPortBusyError: Port already in use
            ConnectionTimeoutError: Open timeout exceeded
        """
        if self._serial is not None and self._serial.is_open:
            return  # Already open

        self._saved_line_settings = self._snapshot_line_settings()

        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baud_rate,
                timeout=self.timeout,
                **self.kwargs
            )
            self._open_time = time.time()

            if self.logger:
                self.logger.log_port_event(
                    event="Port opened",
                    port=self.port,
                    details={
                        "baud_rate": self.baud_rate,
                        "timeout": self.timeout,
                        **self.kwargs
                    },
                    level="INFO"
                )

        except serial.SerialException as e:
            error_msg = str(e).lower()

            if self.logger:
                self.logger.log_error(
                    source="SerialHandler",
                    error=f"Failed to open port: {e}",
                    details={"port": self.port, "error_type": type(e).__name__}
                )

            if 'permission denied' in error_msg or 'access denied' in error_msg:
                raise ChannelError(
                    f"Permission denied accessing port {self.port}",
                    self.port,
                    e,
                    step="open"
                )
            elif 'busy' in error_msg or 'in use' in error_msg:
                raise SerialPortBusyError(
                    f"Port {self.port} is already in use",
                    self.port,
                    e,
                    step="open"
                )
            elif 'timeout' in error_msg:
                raise ConnectionTimeoutError(
                    f"Timeout opening port {self.port}",
                    self.port,
                    e,
                    step="open"
                )
            else:
                raise ChannelError(
                    f"Failed to open port {self.port}: {e}",
                    self.port,
                    e,
                    step="open"
                )

    def close(self) -> None:
        """Restore line settings and close the port.

        Safe to call multiple times; does nothing if port is already closed.
        """
        if self._serial is None or not self._serial.is_open:
            return

        try:
            self._restore_line_settings()
            self._serial.close()

            if self.logger:
                session_duration = None
                if self._open_time:
                    session_duration = time.time() - self._open_time

                self.logger.log_port_event(
                    event="Port closed",
                    port=self.port,
                    details={
                        "session_duration_seconds": session_duration
                    } if session_duration else None,
                    level="INFO"
                )
        except (serial.SerialException, OSError) as e:
            if self.logger:
                self.logger.log_error(
                    source="SerialHandler",
                    error=f"Error closing port: {e}",
                    details={"port": self.port}
                )
        finally:
            self._open_time = None
            self._saved_line_settings = None

    def _snapshot_line_settings(self) -> Optional[List[Any]]:
        """Read the terminal attributes before pyserial reconfigures the port."""
        if termios is None:
            return None
        try:
            fd = os.open(self.port, os.O_RDWR | os.O_NOCTTY | os.O_NONBLOCK)
        except OSError:
            return None
        try:
            return termios.tcgetattr(fd)
        except termios.error:
            return None
        finally:
            os.close(fd)

    def _restore_line_settings(self) -> None:
        if termios is None or self._saved_line_settings is None:
            return
        try:
            termios.tcsetattr(
                self._serial.fileno(), termios.TCSANOW, self._saved_line_settings
            )
        except (termios.error, OSError, ValueError) as e:
            if self.logger:
                self.logger.log_error(
                    source="SerialHandler",
                    error=f"Failed to restore line settings: {e}",
                    details={"port": self.port}
                )

    def _require_open(self, action: str) -> serial.Serial:
        if self._serial is None or not self._serial.is_open:
            raise ChannelError(f"Cannot {action} closed port", self.port, None, step=action)
        return self._serial

    def write(self, data: bytes) -> int:
        """Write raw bytes to the serial port.

        Args:
            data: Bytes to write (no terminator is added)

        Returns:
            Number of bytes written

        Raises:
            ChannelError: Port not open or write failed
        """
        port = self._require_open("write to")
        try:
            written = port.write(data)
            return len(data) if written is None else written
        except (serial.SerialException, OSError) as e:
            raise ChannelError(
                f"Failed to write to port {self.port}: {e}",
                self.port,
                e,
                step="write"
            )

    def drain(self) -> None:
        """Block until all written data has been transmitted.

        Raises:
            ChannelError: Port not open or drain failed
        """
        port = self._require_open("drain")
        try:
            port.flush()
        except (serial.SerialException, OSError) as e:
            raise ChannelError(
                f"Failed to drain port {self.port}: {e}",
                self.port,
                e,
                step="drain"
            )

    def poll_readable(self, timeout: float) -> bool:
        """Wait up to timeout seconds for input.

        Returns:
            True if at least one byte is waiting

        Raises:
            ChannelError: Port not open or status query failed
        """
        port = self._require_open("poll")
        deadline = time.monotonic() + timeout
        try:
            while True:
                if port.in_waiting > 0:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                time.sleep(min(self.POLL_SLICE, remaining))
        except (serial.SerialException, OSError) as e:
            raise ChannelError(
                f"Failed to poll port {self.port}: {e}",
                self.port,
                e,
                step="poll"
            )

    def read_byte(self) -> Optional[int]:
        """Read a single byte without blocking.

        Returns:
            Byte value, or None if no input is waiting

        Raises:
            ChannelError: Port not open or read failed
        """
        port = self._require_open("read from")
        try:
            if port.in_waiting <= 0:
                return None
            chunk = port.read(1)
        except (serial.SerialException, OSError) as e:
            raise ChannelError(
                f"Failed to read from port {self.port}: {e}",
                self.port,
                e,
                step="read"
            )
        return chunk[0] if chunk else None

    def is_connected(self) -> bool:
        """Check if port is currently open."""
        return self._serial is not None and self._serial.is_open

    def flush_buffers(self) -> None:
        """Flush input and output buffers.

        Resets both pyserial buffers, waits for the line to settle and then
        discards any bytes that arrived meanwhile.

        Raises:
            ChannelError: Port not open or flush failed
        """
        port = self._require_open("flush buffers on")

        try:
            port.reset_input_buffer()
            port.reset_output_buffer()
            time.sleep(self.FLUSH_SETTLE)

            for _ in range(self.FLUSH_DRAIN_READS):
                waiting = port.in_waiting
                if waiting <= 0:
                    break
                port.read(waiting)
                time.sleep(self.FLUSH_DRAIN_DELAY)
        except (serial.SerialException, OSError) as e:
            raise ChannelError(
                f"Failed to flush buffers on port {self.port}: {e}",
                self.port,
                e,
                step="flush"
            )

    @staticmethod
    def discover_ports() -> List[PortInfo]:
        """Enumerate available serial ports.

        Cross-platform port discovery using pyserial's list_ports.

        Returns:
            List of PortInfo objects with path, description, hwid

        Example:
            >>> ports = SerialHandler.discover_ports()
            >>> for port in ports:
            ...     print(f"{port.device}: {port.description}")
            /dev/ttyUSB0: CP2102 USB to UART Bridge Controller
        """
        ports = []
        for port_info in list_ports.comports():
            ports.append(PortInfo(
                device=port_info.device,
                description=port_info.description or "Unknown",
                hwid=port_info.hwid or "Unknown"
            ))
        return ports

    def __enter__(self):
        """Context manager entry: open port."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: restore settings and close port."""
        self.close()
        return False

    def __repr__(self) -> str:
        status = "open" if self.is_connected() else "closed"
        return f"SerialHandler(port='{self.port}', baud={self.baud_rate}, status={status})"
