"""Communication logger for AT command and transfer logging.

This module provides the CommunicationLogger class, the central coordinator
for logging device communication. It fans level-filtered LogEntry records
out to a rotating log file, the console (stderr) and an in-memory buffer.
"""

from collections import deque
from datetime import datetime
from threading import Lock
from typing import Optional, List, Dict, Any
import sys

from pagerlink.logging.log_models import LogEntry
from pagerlink.logging.file_handler import FileHandler
from pagerlink.config.config_models import LogLevel, LoggingConfig

DEFAULT_LOG_DIR = "~/.pagerlink/logs"


class CommunicationLogger:
    """Central coordinator for communication logging.

    Attributes:
        log_level: Minimum level written (DEBUG, INFO, WARNING, ERROR)
        enable_file: Whether file logging is enabled
        enable_console: Whether console logging is enabled
        log_file_path: Path to log file (if file logging enabled)

    Example:
        >>> logger = CommunicationLogger(
        ...     log_level=LogLevel.DEBUG,
        ...     enable_file=True,
        ...     log_file_path="~/.pagerlink/logs/comm.log"
        ... )
        >>> logger.log_command(port="/dev/ttyUSB0", command="AT+FREQ=916.0000")
        >>> logger.log_response(port="/dev/ttyUSB0", response="", status="OK", execution_time=0.21)
        >>> logger.close()
    """

    _LEVEL_PRIORITY = {
        "DEBUG": 0,
        "INFO": 1,
        "WARNING": 2,
        "ERROR": 3
    }

    # Response classification -> entry level
    _STATUS_LEVEL = {
        "OK": "DEBUG",
        "DATA": "WARNING",
        "TIMEOUT": "WARNING",
        "ERROR": "ERROR",
        "INVALID": "ERROR",
    }

    BUFFER_SIZE = 1000

    def __init__(
        self,
        log_level: LogLevel = LogLevel.INFO,
        enable_file: bool = False,
        enable_console: bool = True,
        log_file_path: Optional[str] = None,
        max_file_size_mb: int = 10,
        backup_count: int = 5,
        fmt: str = "text"
    ):
        """Initialize destinations and log level.

        Args:
            log_level: Minimum level to write (default: INFO)
            enable_file: Enable file logging (default: False)
            enable_console: Enable console logging to stderr (default: True)
            log_file_path: Path to log file (required if enable_file=True)
            max_file_size_mb: File size that triggers rotation (default: 10)
            backup_count: Rotated files to keep (default: 5)
            fmt: File format, "text" or "json"

        Raises:
            ValueError: enable_file=True without log_file_path
        """
        self.log_level = log_level.value if isinstance(log_level, LogLevel) else log_level
        self.enable_file = enable_file
        self.enable_console = enable_console
        self.log_file_path = log_file_path

        self._lock = Lock()
        self._buffer: deque = deque(maxlen=self.BUFFER_SIZE)

        self._file_handler: Optional[FileHandler] = None
        if self.enable_file:
            if not log_file_path:
                raise ValueError("log_file_path required when enable_file=True")
            try:
                self._file_handler = FileHandler(
                    log_file_path=log_file_path,
                    max_size_mb=max_file_size_mb,
                    backup_count=backup_count,
                    fmt=fmt
                )
            except OSError as e:
                print(f"WARNING: Failed to initialize file logging: {e}", file=sys.stderr)

    @classmethod
    def from_config(cls, config: LoggingConfig) -> 'CommunicationLogger':
        """Build a logger from the logging config section.

        A timestamped file under ~/.pagerlink/logs is used when file logging
        is on and no path is configured.
        """
        log_file_path = config.log_file_path
        if config.log_to_file and not log_file_path:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file_path = f"{DEFAULT_LOG_DIR}/comm_{stamp}.log"

        return cls(
            log_level=config.level,
            enable_file=config.log_to_file,
            enable_console=config.log_to_console,
            log_file_path=log_file_path,
            max_file_size_mb=config.max_file_size_mb,
            backup_count=config.backup_count
        )

    def log(self, entry: LogEntry) -> None:
        """Write entry to every enabled destination if its level passes."""
        if not self._should_log(entry.level):
            return

        with self._lock:
            self._buffer.append(entry)

            if self._file_handler:
                self._file_handler.write(entry)

            if self.enable_console:
                self._write_to_console(entry)

    def _should_log(self, entry_level: str) -> bool:
        entry_priority = self._LEVEL_PRIORITY.get(entry_level, 0)
        current_priority = self._LEVEL_PRIORITY.get(self.log_level, 0)
        return entry_priority >= current_priority

    def _write_to_console(self, entry: LogEntry) -> None:
        try:
            print(entry.to_string(), file=sys.stderr)
        except (OSError, ValueError):
            # stderr closed or redirected to a broken pipe
            pass

    def log_command(self, port: str, command: str) -> None:
        """Log an AT command sent to the device.

        Example:
            >>> logger.log_command(port="/dev/ttyUSB0", command="AT+POWER=10")
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="DEBUG",
            source="ATExecutor",
            message="Sending command",
            port=port,
            command=command
        ))

    def log_response(
        self,
        port: str,
        response: str,
        status: str,
        execution_time: float,
        attempts: Optional[int] = None,
        command: Optional[str] = None
    ) -> None:
        """Log a classified response.

        The entry level follows the status: OK is DEBUG, DATA and TIMEOUT
        are WARNING, ERROR and INVALID are ERROR.

        Example:
            >>> logger.log_response(
            ...     port="/dev/ttyUSB0",
            ...     response="+FREQ: 916.0000",
            ...     status="OK",
            ...     execution_time=0.210,
            ...     command="AT+FREQ?"
            ... )
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level=self._STATUS_LEVEL.get(status, "INFO"),
            source="ATExecutor",
            message="Received response",
            port=port,
            command=command,
            response=response or None,
            status=status,
            execution_time=execution_time,
            attempts=attempts
        ))

    def log_port_event(
        self,
        event: str,
        port: str,
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO"
    ) -> None:
        """Log a serial port event (opened, closed).

        Example:
            >>> logger.log_port_event(event="Port opened", port="/dev/ttyUSB0",
            ...                       details={"baud_rate": 115200})
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="SerialHandler",
            message=event,
            port=port,
            details=details
        ))

    def log_transfer_event(
        self,
        event: str,
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO"
    ) -> None:
        """Log message transfer progress (radio applied, attempt failed, complete).

        Example:
            >>> logger.log_transfer_event(event="Transfer complete",
            ...                           details={"mode": "local", "total": 204})
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="TransferEngine",
            message=event,
            details=details
        ))

    def log_error(
        self,
        source: str,
        error: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an error raised in a component.

        Example:
            >>> logger.log_error(source="SerialHandler", error="Failed to open port",
            ...                  details={"port": "/dev/ttyUSB0"})
        """
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="ERROR",
            source=source,
            message="Error occurred",
            error=error,
            details=details
        ))

    def set_level(self, level: LogLevel) -> None:
        self.log_level = level.value if isinstance(level, LogLevel) else level

    def get_entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Buffered entries, oldest first; the last `limit` if given."""
        with self._lock:
            entries = list(self._buffer)
        if limit:
            entries = entries[-limit:]
        return entries

    def clear_buffer(self) -> None:
        """Clear the in-memory buffer. File logs are not affected."""
        with self._lock:
            self._buffer.clear()

    def flush(self) -> None:
        if self._file_handler:
            self._file_handler.flush()

    def close(self) -> None:
        """Close the file handler; call on shutdown."""
        if self._file_handler:
            self._file_handler.close()
            self._file_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
