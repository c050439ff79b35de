"""AT command response data models.

This module defines the ResponseKind enum and the immutable ParsedResponse and
CommandResponse dataclasses, providing a structured representation of what the
device sent back for a command.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
import time


class ResponseKind(Enum):
    """Classified outcome of reading one device response.

    - OK: Terminal OK line received
    - ERROR: Terminal ERROR line received
    - DATA: A '+LABEL: value' line arrived but no OK/ERROR followed in time
    - TIMEOUT: Nothing usable arrived within the timeout budget
    - INVALID: The channel failed while polling or reading
    """
    OK = "ok"
    ERROR = "error"
    DATA = "data"
    TIMEOUT = "timeout"
    INVALID = "invalid"


@dataclass(frozen=True)
class ParsedResponse:
    """Immutable result of one Response Parser read.

    Attributes:
        kind: Terminal classification
        data: First '+LABEL: value' line seen, if any
        lines: Every completed non-empty line, in arrival order
        info: Side-channel lines (DEBUG:, AT READY) that do not affect the outcome
        elapsed: Seconds spent reading
        error: Channel failure description for INVALID responses
    """

    kind: ResponseKind
    data: Optional[str] = None
    lines: Tuple[str, ...] = ()
    info: Tuple[str, ...] = ()
    elapsed: float = 0.0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """True if an explicit OK or ERROR line ended the read."""
        return self.kind in (ResponseKind.OK, ResponseKind.ERROR)

    def has_marker(self, marker: str) -> bool:
        """Check whether the data line contains marker.

        Example:
            >>> ParsedResponse(ResponseKind.DATA, data="+MSG: READY").has_marker("+MSG: READY")
            True
        """
        return self.data is not None and marker in self.data

    def __str__(self) -> str:
        if self.data:
            return f"[{self.kind.value}] {self.data} ({self.elapsed:.3f}s)"
        return f"[{self.kind.value}] ({self.elapsed:.3f}s)"


@dataclass(frozen=True)
class CommandResponse:
    """Immutable record of a successfully executed AT command.

    Attributes:
        command: AT command sent, without line terminator (e.g., "AT+FREQ=916.0000")
        response: ParsedResponse of the successful attempt
        attempts: Number of attempts used (1 if the first attempt succeeded)
        execution_time: Seconds from first send to final response
        timestamp: Unix timestamp when the response was recorded
    """

    command: str
    response: ParsedResponse
    attempts: int = 1
    execution_time: float = 0.0
    timestamp: float = field(default_factory=time.time)

    @property
    def data(self) -> Optional[str]:
        """The '+LABEL: value' line of the response, if any."""
        return self.response.data

    def get_response_text(self) -> str:
        """Join response lines into a single string."""
        return '\n'.join(self.response.lines)

    def is_successful(self) -> bool:
        return self.response.kind == ResponseKind.OK

    def __str__(self) -> str:
        retries = f", {self.attempts} attempts" if self.attempts > 1 else ""
        return (f"[{self.response.kind.value}] {self.command} -> "
                f"{len(self.response.lines)} lines ({self.execution_time:.3f}s{retries})")


def parse_data_line(line: str) -> Tuple[str, str]:
    """Split a '+LABEL: value' line into label and value.

    Args:
        line: Data line as received

    Returns:
        Tuple of (label, value); value is empty when the line has no colon

    Example:
        >>> parse_data_line("+FREQ: 916.0000")
        ('FREQ', '916.0000')
    """
    body = line[1:] if line.startswith('+') else line
    label, sep, value = body.partition(':')
    if not sep:
        return label.strip(), ''
    return label.strip(), value.strip()
