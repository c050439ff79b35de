"""Core AT command engine and transfer components.

This package provides the serial byte channel, the incremental response
parser, command execution with retry, the multi-step transfer flows and the
device session that composes them.
"""

from pagerlink.core.exceptions import (
    PagerLinkError,
    ChannelError,
    SerialPortBusyError,
    ConnectionTimeoutError,
    ATCommandError,
    ProtocolError,
    CommandTimeoutError,
    DeviceNotReadyError,
    TransferTimeoutError,
    EncodingError
)
from pagerlink.core.command_response import (
    CommandResponse,
    ParsedResponse,
    ResponseKind,
    parse_data_line
)
from pagerlink.core.serial_handler import ByteChannel, SerialHandler, PortInfo
from pagerlink.core.response_parser import ResponseParser
from pagerlink.core.retry import RetryPolicy, run_with_retry
from pagerlink.core.at_executor import ATExecutor
from pagerlink.core.transfer_engine import TransferEngine, TransferState
from pagerlink.core.device_commands import DeviceCommands
from pagerlink.core.device_session import DeviceSession, StreamSummary, parse_message_line

__all__ = [
    'CommandResponse',
    'ParsedResponse',
    'ResponseKind',
    'parse_data_line',
    'ByteChannel',
    'SerialHandler',
    'PortInfo',
    'ResponseParser',
    'RetryPolicy',
    'run_with_retry',
    'ATExecutor',
    'TransferEngine',
    'TransferState',
    'DeviceCommands',
    'DeviceSession',
    'StreamSummary',
    'parse_message_line',
    'PagerLinkError',
    'ChannelError',
    'SerialPortBusyError',
    'ConnectionTimeoutError',
    'ATCommandError',
    'ProtocolError',
    'CommandTimeoutError',
    'DeviceNotReadyError',
    'TransferTimeoutError',
    'EncodingError',
]
