"""Multi-step message transfer flows.

The transfer engine sequences the exchanges needed to get one paging message
out of the device: configure the radio, announce the recipient or payload
size, wait for the device's READY marker, stream the text or encoded payload
and wait for the completion response. Each flow runs inside its own retry
envelope; a failed attempt is recovered with a reset probe and the whole flow
restarts from the beginning.
"""

from dataclasses import dataclass
from typing import Callable, Optional, TYPE_CHECKING
import time

from pagerlink.core.at_executor import ATExecutor, TERMINATOR
from pagerlink.core.command_response import ParsedResponse, ResponseKind
from pagerlink.core.exceptions import (
    PagerLinkError,
    ChannelError,
    ProtocolError,
    CommandTimeoutError,
    DeviceNotReadyError,
    EncodingError,
    TransferTimeoutError
)
from pagerlink.core.retry import RetryPolicy, run_with_retry
from pagerlink.config.config_models import EncodingMode, RadioConfig, TransferConfig

if TYPE_CHECKING:
    from pagerlink.logging.communication_logger import CommunicationLogger

MSG_READY = "+MSG: READY"
SEND_READY = "+SEND: READY"


def check_line_text(text: str) -> None:
    """Reject text that cannot travel as a single AT text line.

    The device reads remote message text up to the first line break, so only
    printable ASCII (0x20..0x7E) is accepted.

    Raises:
        EncodingError: Control or non-ASCII character in text
    """
    for index, char in enumerate(text):
        if not 0x20 <= ord(char) <= 0x7E:
            raise EncodingError(
                f"Character {char!r} at position {index} cannot be sent as message text",
                step="validate text"
            )


@dataclass
class TransferState:
    """Progress of one outbound message.

    Created per message and returned to the caller when the transfer
    completes.

    Attributes:
        mode: Remote (device encodes) or local (host encodes) flow
        total: Characters (remote) or bytes (local) to deliver
        radio_applied: Frequency/power/mail-drop were configured
        ready_confirmed: READY marker received on the current attempt
        delivered: Characters or bytes written on the current attempt
        attempts: Transfer attempts started
        completed: Device reported OK for the message
        last_error: Description of the most recent attempt failure
    """

    mode: EncodingMode
    total: int
    radio_applied: bool = False
    ready_confirmed: bool = False
    delivered: int = 0
    attempts: int = 0
    completed: bool = False
    last_error: Optional[str] = None

    def begin_attempt(self) -> None:
        """Reset per-attempt progress; partial delivery is never resumed."""
        self.attempts += 1
        self.ready_confirmed = False
        self.delivered = 0


class TransferEngine:
    """Runs the remote-encode and local-encode transfer flows.

    Example:
        >>> engine = TransferEngine(executor, TransferConfig())
        >>> state = engine.send_remote(1234567, "HELLO", RadioConfig(frequency=916.0))
        >>> state.completed
        True
    """

    RETRYABLE = (
        ProtocolError,
        CommandTimeoutError,
        ChannelError,
        DeviceNotReadyError,
        TransferTimeoutError,
    )

    def __init__(self,
                 executor: ATExecutor,
                 config: Optional[TransferConfig] = None,
                 logger: Optional['CommunicationLogger'] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.executor = executor
        self.config = config or TransferConfig()
        self.logger = logger
        self._sleep = sleep
        self._clock = clock

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.config.max_attempts,
            retry_on=self.RETRYABLE,
            default_backoff=self.config.attempt_backoff
        )

    def apply_radio(self, radio: RadioConfig) -> None:
        """Configure frequency, power and optional mail drop.

        Raises:
            ATCommandError/ChannelError from the failing command
        """
        self._event("Applying radio parameters", {
            "frequency": radio.frequency,
            "power": radio.power,
            "mail_drop": radio.mail_drop,
        })
        self.executor.execute(f"AT+FREQ={radio.frequency:.4f}")
        self.executor.execute(f"AT+POWER={radio.power}")
        if radio.mail_drop:
            self.executor.execute("AT+MAILDROP=1")

    def send_remote(self,
                    capcode: int,
                    text: str,
                    radio: Optional[RadioConfig] = None) -> TransferState:
        """Have the device encode and transmit text for capcode.

        Args:
            capcode: Recipient address
            text: Message text (printable ASCII)
            radio: Radio parameters applied once before the first attempt

        Returns:
            TransferState with completed=True

        Raises:
            EncodingError: Text is not printable ASCII
            PagerLinkError subclass of the last failed attempt
        """
        check_line_text(text)
        state = TransferState(mode=EncodingMode.REMOTE, total=len(text))
        command = f"AT+MSG={capcode}"

        def attempt(number: int) -> TransferState:
            state.begin_attempt()
            self._reset_probe(number)
            self._announce(command, MSG_READY, state)

            self.executor.send_raw((text + TERMINATOR).encode('ascii'))
            state.delivered = len(text)

            final = self.executor.read_response(
                timeout=self.config.message_send_timeout,
                max_empty_polls=None
            )
            self._complete(command, final, state)
            return state

        return self._run(attempt, state, radio, step="send message")

    def send_local(self,
                   payload: bytes,
                   radio: Optional[RadioConfig] = None) -> TransferState:
        """Stream a host-encoded POCSAG payload to the device.

        The payload is written in fixed-size chunks with a pacing delay
        between them; delivery aborts once the data send timeout elapses.

        Args:
            payload: Encoded transmission bytes
            radio: Radio parameters applied once before the first attempt

        Returns:
            TransferState with completed=True

        Raises:
            PagerLinkError subclass of the last failed attempt
        """
        state = TransferState(mode=EncodingMode.LOCAL, total=len(payload))
        command = f"AT+SEND={len(payload)}"

        def attempt(number: int) -> TransferState:
            state.begin_attempt()
            self._reset_probe(number)
            self._announce(command, SEND_READY, state)

            self._write_chunks(payload, state)
            self.executor.channel.drain()
            self._sleep(self.config.completion_settle)

            final = self.executor.read_response()
            self._complete(command, final, state)
            return state

        return self._run(attempt, state, radio, step="send payload")

    def _run(self,
             attempt: Callable[[int], TransferState],
             state: TransferState,
             radio: Optional[RadioConfig],
             step: str) -> TransferState:
        if radio is not None:
            self.apply_radio(radio)
            state.radio_applied = True

        def recover(error: BaseException, number: int) -> None:
            state.last_error = str(error)
            self._event(
                f"Transfer attempt {number} failed",
                {"error": str(error), "delivered": state.delivered, "total": state.total},
                level="WARNING"
            )

        try:
            result = run_with_retry(
                attempt,
                self.retry_policy(),
                step=step,
                before_retry=recover,
                sleep=self._sleep
            )
        except PagerLinkError as e:
            state.last_error = str(e)
            if self.logger:
                self.logger.log_error(
                    source="TransferEngine",
                    error=str(e),
                    details={"mode": state.mode.value, "attempts": state.attempts}
                )
            raise

        self._event("Transfer complete", {
            "mode": state.mode.value,
            "total": state.total,
            "attempts": state.attempts,
        })
        return result

    def _reset_probe(self, number: int) -> None:
        """Probe the device at the start of an attempt; failure is not fatal."""
        try:
            self.executor.probe(max_retries=1)
        except PagerLinkError as e:
            self._event(
                "Reset probe failed",
                {"attempt": number, "error": str(e)},
                level="WARNING"
            )

    def _announce(self, command: str, marker: str, state: TransferState) -> None:
        """Send the begin command and require the READY marker."""
        self.executor.channel.flush_buffers()
        self.executor.send_raw((command + TERMINATOR).encode('ascii'))

        response = self.executor.read_response()
        if response.kind not in (ResponseKind.DATA, ResponseKind.OK) \
                or not response.has_marker(marker):
            raise DeviceNotReadyError(
                f"Device did not signal ready for {command}",
                expected=marker,
                received=response.data,
                step="await ready"
            )
        state.ready_confirmed = True

    def _write_chunks(self, payload: bytes, state: TransferState) -> None:
        chunk_size = max(1, self.config.chunk_size)
        started = self._clock()

        for offset in range(0, len(payload), chunk_size):
            if self._clock() - started > self.config.data_send_timeout:
                raise TransferTimeoutError(
                    f"Payload send timed out after {state.delivered}/{state.total} bytes",
                    step="send payload data"
                )
            chunk = payload[offset:offset + chunk_size]
            self.executor.channel.write(chunk)
            state.delivered += len(chunk)
            self._sleep(self.config.chunk_delay)

    def _complete(self, command: str, final: ParsedResponse, state: TransferState) -> None:
        if final.kind == ResponseKind.OK:
            state.completed = True
            return
        if final.kind == ResponseKind.ERROR:
            raise ProtocolError(
                "Device reported transmission failure",
                command,
                final,
                step="await completion"
            )
        if final.kind == ResponseKind.INVALID:
            raise ChannelError(
                f"Channel failed awaiting completion of {command}: {final.error}",
                self.executor.port_name,
                step="await completion"
            )
        raise TransferTimeoutError(
            f"No completion response for {command} ({final.kind.value})",
            step="await completion"
        )

    def _event(self, event: str, details: Optional[dict] = None, level: str = "INFO") -> None:
        if self.logger:
            self.logger.log_transfer_event(event=event, details=details, level=level)
