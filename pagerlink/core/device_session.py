"""Device session: channel lifecycle and per-message orchestration.

A DeviceSession owns one open channel and composes the command executor,
transfer engine and device command set on top of it. It performs the
initial handshake, keeps the device's liveness fresh, routes each message
through the remote or local encoding flow and handles `capcode:message`
streams read from stdin.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple, TYPE_CHECKING
import logging
import time

from pagerlink.codec.pocsag import MAX_ADDRESS, encode_message, validate_message
from pagerlink.config.config_models import Config, DeviceConfig, EncodingMode
from pagerlink.core.at_executor import ATExecutor
from pagerlink.core.command_response import CommandResponse
from pagerlink.core.device_commands import DeviceCommands
from pagerlink.core.exceptions import (
    PagerLinkError,
    DeviceNotReadyError,
    EncodingError
)
from pagerlink.core.serial_handler import ByteChannel
from pagerlink.core.transfer_engine import TransferEngine, TransferState

if TYPE_CHECKING:
    from pagerlink.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

HANDSHAKE_SETTLE = 1.0
HANDSHAKE_STEP = 0.5
HANDSHAKE_PROBES = 2


@dataclass
class StreamSummary:
    """Outcome counts of a message stream."""
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.skipped == 0


def parse_message_line(line: str, max_length: int) -> Tuple[int, str]:
    """Parse a 'capcode:message' line.

    The capcode ends at the first colon; everything after it, colons
    included, is the message.

    Args:
        line: Input line, trailing newline optional
        max_length: Maximum message length

    Returns:
        Tuple of (capcode, message)

    Raises:
        EncodingError: Missing colon, invalid capcode or message too long

    Example:
        >>> parse_message_line("1234567:Hello: world\\n", 240)
        (1234567, 'Hello: world')
    """
    line = line.rstrip('\r\n')
    capcode_text, sep, message = line.partition(':')
    if not sep:
        raise EncodingError(
            f"Invalid input: {line!r}, expected 'capcode:message'", step="parse input"
        )

    capcode_text = capcode_text.strip()
    if not capcode_text.isdigit() or int(capcode_text) > MAX_ADDRESS:
        raise EncodingError(f"Invalid capcode in input: {capcode_text!r}", step="parse input")

    if len(message) > max_length:
        raise EncodingError(
            f"Message too long in input: {len(message)} characters (max {max_length})",
            step="parse input"
        )
    return int(capcode_text), message


class DeviceSession:
    """One conversation with a paging transmitter.

    Example:
        >>> with DeviceSession(SerialHandler('/dev/ttyUSB0'), config) as session:
        ...     session.initialize()
        ...     session.send_message(1234567, "HELLO")
    """

    def __init__(self,
                 channel: ByteChannel,
                 config: Optional[Config] = None,
                 logger: Optional['CommunicationLogger'] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize session components.

        Args:
            channel: Byte channel to the device (opened by the context manager)
            config: Complete configuration (defaults if None)
            logger: Optional CommunicationLogger shared by all components
            sleep: Sleep function (injectable for tests)
            clock: Monotonic time source (injectable for tests)
        """
        self.channel = channel
        self.config = config or Config()
        self.logger = logger
        self._sleep = sleep

        self.executor = ATExecutor(
            channel, self.config.protocol, logger=logger, sleep=sleep, clock=clock
        )
        self.engine = TransferEngine(
            self.executor, self.config.transfer, logger=logger, sleep=sleep, clock=clock
        )
        self.commands = DeviceCommands(self.executor)

    def __enter__(self):
        self.channel.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.channel.close()
        return False

    def initialize(self) -> None:
        """Wait for the device to answer consecutive liveness probes.

        Each probe uses the executor's full command retry budget.

        Raises:
            DeviceNotReadyError: No round of probes succeeded
        """
        rounds = self.config.transfer.handshake_attempts
        self.channel.flush_buffers()
        self._sleep(HANDSHAKE_SETTLE)

        for round_number in range(1, rounds + 1):
            try:
                for _ in range(HANDSHAKE_PROBES):
                    self.executor.probe()
                logger.info("Device answered handshake in round %d", round_number)
                return
            except PagerLinkError as e:
                logger.debug("Handshake round %d failed: %s", round_number, e)
                if self.logger:
                    self.logger.log_transfer_event(
                        event="Handshake round failed",
                        details={"round": round_number, "error": str(e)},
                        level="WARNING"
                    )
                self._sleep(HANDSHAKE_STEP * round_number)

        raise DeviceNotReadyError(
            "Device did not respond to AT handshake",
            expected="OK",
            step="handshake",
            attempts=rounds
        )

    def ping(self) -> CommandResponse:
        """Send a liveness probe now."""
        return self.executor.probe()

    def ensure_ready(self) -> None:
        self.executor.ensure_ready()

    def send_message(self, capcode: int, text: str) -> TransferState:
        """Transmit one message using the configured encoding mode.

        Input is validated before the channel is touched.

        Raises:
            EncodingError: Invalid capcode or text
            PagerLinkError: Transfer failed after its retries
        """
        encoding = self.config.encoding
        validate_message(capcode, text, encoding.function, encoding.max_message_length)

        if encoding.mode == EncodingMode.REMOTE:
            return self.engine.send_remote(capcode, text, self.config.radio)

        payload = encode_message(
            capcode,
            text,
            function=encoding.function,
            bit_order=encoding.bit_order,
            max_length=encoding.max_message_length
        )
        return self.engine.send_local(payload, self.config.radio)

    def send_stream(self, lines: Iterable[str]) -> StreamSummary:
        """Send 'capcode:message' lines.

        Without loop mode only the first message line is sent and any error
        ends the stream. In loop mode errors are logged and the line skipped.
        Blank lines are ignored.
        """
        loop = self.config.transfer.loop
        max_length = self.config.encoding.max_message_length
        summary = StreamSummary()

        for line in lines:
            if not line.strip():
                continue

            try:
                capcode, message = parse_message_line(line, max_length)
            except EncodingError as e:
                logger.warning("Skipping input line: %s", e)
                summary.skipped += 1
                if not loop:
                    break
                continue

            try:
                state = self.send_message(capcode, message)
                summary.sent += 1
                logger.info(
                    "Sent message for capcode %d (%d %s, %d attempts)",
                    capcode, state.total,
                    "characters" if state.mode == EncodingMode.REMOTE else "bytes",
                    state.attempts
                )
            except PagerLinkError as e:
                summary.failed += 1
                logger.error("Failed to send message for capcode %d: %s", capcode, e)
                if self.logger:
                    self.logger.log_error(
                        source="DeviceSession",
                        error=str(e),
                        details={"capcode": capcode}
                    )

            if not loop:
                break

        return summary

    def provision(self, device: Optional[DeviceConfig] = None) -> List[str]:
        """Push configured device settings and optionally save them.

        Only fields that are set are sent.

        Args:
            device: Values to push (defaults to config.device)

        Returns:
            Names of the settings that were applied

        Raises:
            ValueError: A value fails local validation
            PagerLinkError: A command failed after its retries
        """
        device = device or self.config.device
        applied: List[str] = []

        if device.wifi_ssid is not None:
            self.commands.set_wifi(device.wifi_ssid, device.wifi_password or "")
            applied.append("wifi")
        if device.banner is not None:
            self.commands.set_banner(device.banner)
            applied.append("banner")
        if device.api_port is not None:
            self.commands.set_api_port(device.api_port)
            applied.append("api_port")
        if device.api_username is not None:
            self.commands.set_api_credentials(device.api_username, device.api_password or "")
            applied.append("api_credentials")
        if device.default_capcode is not None:
            self.commands.set_default_capcode(device.default_capcode)
            applied.append("default_capcode")
        if device.default_frequency is not None:
            self.commands.set_default_frequency(device.default_frequency)
            applied.append("default_frequency")
        if device.default_power is not None:
            self.commands.set_default_power(device.default_power)
            applied.append("default_power")

        if applied and device.save_after_provision:
            self.commands.save()
            applied.append("save")

        logger.info("Provisioned device settings: %s", ", ".join(applied) or "none")
        return applied
