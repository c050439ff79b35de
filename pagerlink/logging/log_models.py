"""Log data models for communication logging.

Immutable records of commands, responses, serial port events, transfer
progress and errors.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, Optional
import json


@dataclass(frozen=True)
class LogEntry:
    """Immutable log entry.

    Attributes:
        timestamp: When the event occurred
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        source: Component name (SerialHandler, ATExecutor, TransferEngine, ...)
        message: Human-readable description of the event
        details: Additional structured data
        port: Serial port name
        command: AT command sent, without terminator
        response: Data line or response text received
        status: Response classification (OK, ERROR, DATA, TIMEOUT, INVALID)
        execution_time: Seconds spent waiting for the response
        attempts: Attempts used so far
        error: Error message if applicable

    Example:
        >>> entry = LogEntry(
        ...     timestamp=datetime(2025, 1, 12, 10, 30, 15, 234000),
        ...     level="INFO",
        ...     source="ATExecutor",
        ...     message="Received response",
        ...     command="AT+FREQ?",
        ...     status="OK",
        ...     execution_time=0.123
        ... )
        >>> entry.to_string()
        '2025-01-12 10:30:15.234 | INFO    | ATExecutor      | Received response | CMD: AT+FREQ? | STATUS: OK | TIME: 0.123s'
    """

    timestamp: datetime
    level: str
    source: str
    message: str
    details: Optional[Dict[str, Any]] = None

    port: Optional[str] = None
    command: Optional[str] = None
    response: Optional[str] = None
    status: Optional[str] = None
    execution_time: Optional[float] = None
    attempts: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary form with an ISO 8601 timestamp."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_string(self) -> str:
        """Format as "YYYY-MM-DD HH:MM:SS.mmm | LEVEL | SOURCE | MESSAGE [| extras]"."""
        timestamp_str = self.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        parts = [timestamp_str, f"{self.level:7}", f"{self.source:15}", self.message]

        if self.command:
            parts.append(f"CMD: {self.command}")
        if self.response:
            parts.append(f"RESP: {self.response}")
        if self.status:
            parts.append(f"STATUS: {self.status}")
        if self.execution_time is not None:
            parts.append(f"TIME: {self.execution_time:.3f}s")
        if self.attempts is not None and self.attempts > 1:
            parts.append(f"ATTEMPTS: {self.attempts}")
        if self.error:
            parts.append(f"ERROR: {self.error}")
        if self.details:
            parts.append(", ".join(f"{k}={v}" for k, v in self.details.items()))

        return " | ".join(parts)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        """Create LogEntry from a dictionary produced by to_dict()."""
        timestamp = data['timestamp']
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        optional = ('details', 'port', 'command', 'response', 'status',
                    'execution_time', 'attempts', 'error')
        return cls(
            timestamp=timestamp,
            level=data['level'],
            source=data['source'],
            message=data['message'],
            **{name: data.get(name) for name in optional}
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'LogEntry':
        return cls.from_dict(json.loads(json_str))
