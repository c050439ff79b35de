"""pagerlink - POCSAG paging transmitter control over AT commands.

This package provides:
- AT command execution with retry and liveness recovery
- Remote (device-side) and local (host-side) message encoding flows
- A pure POCSAG encoder
- Device provisioning commands
"""

# Core AT Command Engine (imported first: the codec depends on its exceptions)
from pagerlink.core import (
    CommandResponse,
    ResponseKind,
    SerialHandler,
    PortInfo,
    ATExecutor,
    TransferEngine,
    DeviceCommands,
    DeviceSession,
    PagerLinkError,
    ChannelError,
    ATCommandError,
    EncodingError,
)

# Codec
from pagerlink.codec import (
    MessageFunction,
    BitOrder,
    encode_message,
    encode_transmission,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "CommandResponse",
    "ResponseKind",
    "SerialHandler",
    "PortInfo",
    "ATExecutor",
    "TransferEngine",
    "DeviceCommands",
    "DeviceSession",
    # Codec
    "MessageFunction",
    "BitOrder",
    "encode_message",
    "encode_transmission",
    # Exceptions
    "PagerLinkError",
    "ChannelError",
    "ATCommandError",
    "EncodingError",
]
