"""Custom exception hierarchy for pagerlink.

This module defines all custom exceptions used throughout the AT command engine,
the transfer flows and the POCSAG encoder, providing structured error handling
with enough context (failed step, attempts used) for callers to decide whether
to abort or skip to the next message.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from pagerlink.core.command_response import ParsedResponse


class PagerLinkError(Exception):
    """Base exception for all pagerlink errors.

    All custom exceptions inherit from this base class to allow
    catching all tool-specific errors with a single except clause.

    Attributes:
        step: Name of the operation step that failed (e.g. "set frequency")
        attempts: Number of attempts made before giving up
    """

    def __init__(self, message: str, step: Optional[str] = None, attempts: int = 1):
        """Initialize PagerLinkError.

        Args:
            message: Human-readable error description
            step: Name of the failed step (optional)
            attempts: Attempts made before the error surfaced (default 1)
        """
        super().__init__(message)
        self.step = step
        self.attempts = attempts

    def context(self) -> str:
        """Format step/attempt context for messages."""
        parts = []
        if self.step:
            parts.append(f"step: {self.step}")
        if self.attempts > 1:
            parts.append(f"attempts: {self.attempts}")
        return ", ".join(parts)

    def __str__(self) -> str:
        base_msg = super().__str__()
        context = self.context()
        return f"{base_msg} ({context})" if context else base_msg


class ChannelError(PagerLinkError):
    """Serial channel communication error.

    Raised when serial port operations fail (open, read, write, poll).
    Captures port identifier and underlying OS error for diagnostics.

    Attributes:
        port: Serial port identifier (e.g., '/dev/ttyUSB0', 'COM3')
        os_error: Original exception from pyserial or OS (if available)
    """

    def __init__(self, message: str, port: Optional[str] = None,
                 os_error: Optional[Exception] = None, **kwargs):
        """Initialize ChannelError.

        Args:
            message: Human-readable error description
            port: Serial port identifier
            os_error: Original exception from pyserial/OS
            **kwargs: step/attempts forwarded to PagerLinkError
        """
        super().__init__(message, **kwargs)
        self.port = port
        self.os_error = os_error

    def context(self) -> str:
        parts = []
        if self.port:
            parts.append(f"port: {self.port}")
        if self.os_error:
            parts.append(f"cause: {self.os_error}")
        base = super().context()
        if base:
            parts.append(base)
        return ", ".join(parts)


class SerialPortBusyError(ChannelError):
    """Port is already in use by another process."""
    pass


class ConnectionTimeoutError(ChannelError):
    """Opening the serial port timed out."""
    pass


class ATCommandError(PagerLinkError):
    """AT command execution error.

    Raised when an AT command fails after its retries. Captures the
    command and the last parsed response for analysis.

    Attributes:
        command: AT command string that failed (without line terminator)
        response: Last ParsedResponse received, if any
    """

    def __init__(self, message: str, command: str,
                 response: Optional['ParsedResponse'] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.command = command
        self.response = response

    def context(self) -> str:
        parts = [f"command: {self.command}"]
        if self.response is not None:
            parts.append(f"response: {self.response.kind.value}")
        base = super().context()
        if base:
            parts.append(base)
        return ", ".join(parts)


class ProtocolError(ATCommandError):
    """Device replied ERROR to a command."""
    pass


class CommandTimeoutError(ATCommandError):
    """No usable reply arrived within the response budget.

    Attributes:
        partial_data: A '+LABEL: value' line received without a terminating
            OK/ERROR, if any
    """

    def __init__(self, message: str, command: str,
                 response: Optional['ParsedResponse'] = None,
                 partial_data: Optional[str] = None, **kwargs):
        super().__init__(message, command, response, **kwargs)
        self.partial_data = partial_data


class DeviceNotReadyError(PagerLinkError):
    """Device did not signal readiness.

    Raised when the expected '+MSG: READY' / '+SEND: READY' marker is
    absent or mismatched, or when the initial handshake fails.

    Attributes:
        expected: Marker that was expected (optional)
        received: Data line actually received (optional)
    """

    def __init__(self, message: str, expected: Optional[str] = None,
                 received: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.received = received


class TransferTimeoutError(PagerLinkError):
    """Payload delivery or completion wait exceeded its time budget."""
    pass


class EncodingError(PagerLinkError):
    """Message cannot be encoded.

    Raised for caller input defects: text exceeding capacity, characters
    outside the encodable range, or an invalid capcode/function. Never
    retried and never reaches the channel.
    """
    pass
