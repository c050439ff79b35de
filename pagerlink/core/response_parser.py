"""Incremental AT response parser.

Consumes bytes one at a time from a channel and classifies the stream into
protocol outcomes (OK / ERROR / DATA / TIMEOUT / INVALID). The parser owns
no I/O of its own: it only calls ``poll_readable`` and ``read_byte`` on the
byte source it is given.
"""

from typing import Callable, List, Optional, TYPE_CHECKING
import logging
import time

from pagerlink.core.command_response import ParsedResponse, ResponseKind
from pagerlink.core.exceptions import ChannelError

if TYPE_CHECKING:
    from pagerlink.core.serial_handler import ByteChannel

logger = logging.getLogger(__name__)

CR = 0x0D
LF = 0x0A

# Sentinel: use the parser's configured empty-poll cap.
DEFAULT = object()


class ResponseParser:
    """Line-oriented state machine over a byte source.

    Bytes accumulate into the current line until LF completes it. Completed
    lines are classified: ``OK`` and ``ERROR`` end the read, lines starting
    with ``+`` are retained as data (first one wins) while reading continues,
    and ``DEBUG:`` / ``AT READY`` lines are recorded as side-channel info.

    The timeout is a budget of elapsed wait time that is restored to its full
    value whenever a byte arrives. Independently, a cap on consecutive empty
    polls ends the read when the channel goes silent.

    Example:
        >>> parser = ResponseParser(timeout=8.0)
        >>> response = parser.read_response(channel)
        >>> response.kind
        <ResponseKind.OK: 'ok'>
    """

    def __init__(self,
                 timeout: float = 8.0,
                 poll_interval: float = 0.05,
                 max_empty_polls: Optional[int] = 20,
                 max_line_length: int = 1024,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize parser.

        Args:
            timeout: Default timeout budget in seconds (default 8.0)
            poll_interval: Seconds to wait for readability per poll (default 0.05)
            max_empty_polls: Consecutive empty polls before giving up; None disables
            max_line_length: Line buffer size; longer lines are truncated
            clock: Monotonic time source
        """
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_empty_polls = max_empty_polls
        self.max_line_length = max_line_length
        self._clock = clock

    def read_response(self,
                      source: 'ByteChannel',
                      timeout: Optional[float] = None,
                      max_empty_polls=DEFAULT) -> ParsedResponse:
        """Read and classify one response.

        Args:
            source: Object providing poll_readable() and read_byte()
            timeout: Override the timeout budget in seconds
            max_empty_polls: Override the empty-poll cap; None disables it

        Returns:
            ParsedResponse with the terminal outcome
        """
        budget = self.timeout if timeout is None else timeout
        empty_cap = self.max_empty_polls if max_empty_polls is DEFAULT else max_empty_polls

        line = bytearray()
        lines: List[str] = []
        info: List[str] = []
        data: Optional[str] = None
        empty_polls = 0

        started = self._clock()
        remaining = budget

        def finish(kind: ResponseKind, error: Optional[str] = None) -> ParsedResponse:
            return ParsedResponse(
                kind=kind,
                data=data,
                lines=tuple(lines),
                info=tuple(info),
                elapsed=self._clock() - started,
                error=error
            )

        while remaining > 0 and (empty_cap is None or empty_polls < empty_cap):
            poll_started = self._clock()
            try:
                readable = source.poll_readable(self.poll_interval)
                byte = source.read_byte() if readable else None
            except ChannelError as e:
                logger.error("Channel failure while reading response: %s", e)
                return finish(ResponseKind.INVALID, str(e))

            if byte is None:
                remaining -= self._clock() - poll_started
                empty_polls += 1
                continue

            empty_polls = 0
            remaining = budget

            if byte == CR:
                continue

            if byte == LF:
                if not line:
                    continue
                text = line.decode('ascii')
                line.clear()
                lines.append(text)
                logger.debug("Received: %r", text)

                if text == 'OK':
                    return finish(ResponseKind.OK)
                if text == 'ERROR':
                    return finish(ResponseKind.ERROR)
                if text.startswith('+'):
                    if data is None:
                        data = text
                elif 'DEBUG:' in text:
                    info.append(text)
                    logger.debug("Device debug: %s", text)
                elif 'AT READY' in text:
                    info.append(text)
                    logger.info("Device ready message: %s", text)
                continue

            if 0x20 <= byte <= 0x7E:
                if len(line) < self.max_line_length - 1:
                    line.append(byte)
                continue

            logger.warning(
                "Non-printable byte 0x%02X in response, resetting line", byte
            )
            line.clear()

        if data is not None:
            return finish(ResponseKind.DATA)
        return finish(ResponseKind.TIMEOUT)
