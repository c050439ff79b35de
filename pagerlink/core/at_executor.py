"""AT command execution orchestration layer.

This module provides request/response execution of AT commands with
per-outcome retry policy, liveness-probe recovery after timeouts and a
readiness check that re-probes the device when the last confirmed probe
is stale.
"""

from typing import Callable, List, Optional, TYPE_CHECKING
import time

from pagerlink.core.serial_handler import ByteChannel
from pagerlink.core.response_parser import ResponseParser, DEFAULT
from pagerlink.core.command_response import CommandResponse, ParsedResponse, ResponseKind
from pagerlink.core.exceptions import (
    ChannelError,
    ProtocolError,
    CommandTimeoutError
)
from pagerlink.core.retry import RetryPolicy, run_with_retry
from pagerlink.config.config_models import ProtocolConfig

if TYPE_CHECKING:
    from pagerlink.logging.communication_logger import CommunicationLogger

KEEPALIVE = "AT"
TERMINATOR = "\r\n"


class ATExecutor:
    """Executes AT commands one at a time over a byte channel.

    Each attempt flushes stale input, writes the command, drains, waits the
    inter-command settling delay and reads a response. OK returns; ERROR,
    TIMEOUT and channel failures are retried with their own backoff until
    the attempt budget is spent.

    Example:
        >>> with SerialHandler('/dev/ttyUSB0') as channel:
        ...     executor = ATExecutor(channel)
        ...     response = executor.execute('AT+FREQ?')
        ...     print(response.data)
        +FREQ: 916.0000
    """

    def __init__(self,
                 channel: ByteChannel,
                 config: Optional[ProtocolConfig] = None,
                 parser: Optional[ResponseParser] = None,
                 logger: Optional['CommunicationLogger'] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize executor with a channel and protocol settings.

        Args:
            channel: ByteChannel used for I/O
            config: ProtocolConfig timings and retry budget (defaults if None)
            parser: ResponseParser (built from config if None)
            logger: Optional CommunicationLogger for command/response logging
            sleep: Sleep function (injectable for tests)
            clock: Monotonic time source (injectable for tests)
        """
        self.channel = channel
        self.config = config or ProtocolConfig()
        self.parser = parser or ResponseParser(
            timeout=self.config.response_timeout,
            poll_interval=self.config.poll_interval,
            max_empty_polls=self.config.max_empty_polls,
            max_line_length=self.config.max_line_length,
            clock=clock
        )
        self.logger = logger
        self._sleep = sleep
        self._clock = clock
        self._last_probe: Optional[float] = None
        self._history: List[CommandResponse] = []

    @property
    def port_name(self) -> str:
        return getattr(self.channel, 'port', '<channel>')

    def retry_policy(self, max_attempts: Optional[int] = None) -> RetryPolicy:
        """Command-level retry policy built from the protocol settings."""
        return RetryPolicy(
            max_attempts=max_attempts if max_attempts is not None else self.config.max_retries,
            retry_on=(ProtocolError, CommandTimeoutError, ChannelError),
            backoff={
                ProtocolError: self.config.error_backoff,
                CommandTimeoutError: self.config.timeout_backoff,
                ChannelError: self.config.invalid_backoff,
            }
        )

    def execute(self,
                command: str,
                max_retries: Optional[int] = None,
                timeout: Optional[float] = None) -> CommandResponse:
        """Execute one AT command with retry.

        Args:
            command: AT command (e.g., "AT+FREQ=916.0000"); terminator optional
            max_retries: Total attempts (default from config)
            timeout: Response timeout override in seconds

        Returns:
            CommandResponse of the successful attempt

        Raises:
            ProtocolError: Device answered ERROR on every attempt
            CommandTimeoutError: No usable reply on the last attempt
            ChannelError: Channel failed on the last attempt
        """
        command = command.strip()
        if command.upper() != KEEPALIVE:
            self.ensure_ready()

        start_time = self._clock()

        def attempt(number: int) -> ParsedResponse:
            return self._attempt(command, timeout)

        def recover(error: BaseException, number: int) -> None:
            if self.logger:
                self.logger.log_error(
                    source="ATExecutor",
                    error=str(error),
                    details={"command": command, "attempt": number}
                )
            if isinstance(error, CommandTimeoutError):
                self._keepalive()

        attempts_used = 0

        def counted(number: int) -> ParsedResponse:
            nonlocal attempts_used
            attempts_used = number
            return attempt(number)

        parsed = run_with_retry(
            counted,
            self.retry_policy(max_retries),
            step=command,
            before_retry=recover,
            sleep=self._sleep
        )

        response = CommandResponse(
            command=command,
            response=parsed,
            attempts=attempts_used,
            execution_time=self._clock() - start_time
        )
        self._history.append(response)

        if command.upper() == KEEPALIVE:
            self._last_probe = self._clock()

        return response

    def _attempt(self, command: str, timeout: Optional[float]) -> ParsedResponse:
        self.channel.flush_buffers()
        self.send_raw((command + TERMINATOR).encode('ascii'))
        self._sleep(self.config.inter_command_delay)

        if self.logger:
            self.logger.log_command(port=self.port_name, command=command)

        parsed = self.parser.read_response(self.channel, timeout=timeout)

        if self.logger:
            self.logger.log_response(
                port=self.port_name,
                response=parsed.data or '\n'.join(parsed.lines),
                status=parsed.kind.name,
                execution_time=parsed.elapsed,
                command=command
            )

        if parsed.kind == ResponseKind.OK:
            return parsed
        if parsed.kind == ResponseKind.ERROR:
            raise ProtocolError("Device returned ERROR", command, parsed)
        if parsed.kind == ResponseKind.INVALID:
            raise ChannelError(
                f"Communication error: {parsed.error}",
                self.port_name,
                step=command
            )
        # TIMEOUT, or DATA without a terminating OK/ERROR
        raise CommandTimeoutError(
            "No terminating response within timeout",
            command,
            parsed,
            partial_data=parsed.data
        )

    def _keepalive(self) -> None:
        """Send a bare AT and discard whatever comes back."""
        try:
            self.channel.flush_buffers()
            self.send_raw((KEEPALIVE + TERMINATOR).encode('ascii'))
            self._sleep(self.config.probe_settle)
            self.parser.read_response(self.channel)
        except ChannelError as e:
            if self.logger:
                self.logger.log_error(source="ATExecutor", error=f"Keep-alive failed: {e}")

    def probe(self, max_retries: Optional[int] = None) -> CommandResponse:
        """Liveness probe: execute a bare AT and stamp the freshness clock."""
        return self.execute(KEEPALIVE, max_retries=max_retries)

    def is_fresh(self) -> bool:
        """True if a probe succeeded within the liveness window."""
        if self._last_probe is None:
            return False
        return (self._clock() - self._last_probe) <= self.config.liveness_window

    def ensure_ready(self) -> None:
        """Probe the device if the last confirmed probe is stale.

        Raises:
            The probe's error if the device does not answer
        """
        if not self.is_fresh():
            self.probe()

    def send_raw(self, data: bytes) -> int:
        """Write bytes and drain, without reading a response."""
        written = self.channel.write(data)
        self.channel.drain()
        return written

    def read_response(self,
                      timeout: Optional[float] = None,
                      max_empty_polls=DEFAULT) -> ParsedResponse:
        """Read one response using the executor's parser."""
        return self.parser.read_response(
            self.channel, timeout=timeout, max_empty_polls=max_empty_polls
        )

    def get_history(self) -> List[CommandResponse]:
        """Get successful command responses for this session."""
        return self._history.copy()

    def clear_history(self) -> None:
        self._history.clear()

    def __repr__(self) -> str:
        return (f"ATExecutor(port={self.port_name}, "
                f"timeout={self.config.response_timeout}s, "
                f"retries={self.config.max_retries}, "
                f"history={len(self._history)} commands)")
