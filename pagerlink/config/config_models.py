"""Configuration data models for pagerlink.

This module defines immutable configuration dataclasses with sensible defaults
for zero-config operation. All dataclasses are frozen for immutability; each
component receives the section it needs instead of reading shared state.
"""

from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Optional, Dict, Any

from pagerlink.codec.pocsag import MessageFunction, BitOrder, MAX_MESSAGE_LENGTH


class EncodingMode(Enum):
    """Where the paging message is encoded."""
    REMOTE = "remote"  # device encodes (AT+MSG)
    LOCAL = "local"    # host encodes, payload sent with AT+SEND


class LogLevel(Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class SerialConfig:
    """Serial port configuration."""
    port: str = "/dev/ttyUSB0"
    baud_rate: int = 115200
    read_timeout: float = 0.5  # seconds


@dataclass(frozen=True)
class ProtocolConfig:
    """AT command protocol timing and retry settings (seconds)."""
    response_timeout: float = 8.0
    max_retries: int = 5
    inter_command_delay: float = 0.2
    poll_interval: float = 0.05
    max_empty_polls: int = 20
    error_backoff: float = 0.5
    timeout_backoff: float = 0.5
    invalid_backoff: float = 1.0
    probe_settle: float = 0.2
    liveness_window: float = 30.0
    max_line_length: int = 1024


@dataclass(frozen=True)
class TransferConfig:
    """Message transfer settings."""
    max_attempts: int = 3
    attempt_backoff: float = 2.0  # seconds
    chunk_size: int = 32  # bytes
    chunk_delay: float = 0.005  # seconds
    data_send_timeout: float = 20.0
    message_send_timeout: float = 35.0
    completion_settle: float = 5.0
    handshake_attempts: int = 10
    loop: bool = False


@dataclass(frozen=True)
class RadioConfig:
    """Radio parameters applied before each message."""
    frequency: float = 916.0  # MHz
    power: int = 2  # dBm, 2-20
    mail_drop: bool = False


@dataclass(frozen=True)
class EncodingConfig:
    """Message encoding settings."""
    mode: EncodingMode = EncodingMode.LOCAL
    function: MessageFunction = MessageFunction.ALPHANUMERIC
    bit_order: BitOrder = BitOrder.LSB_FIRST
    max_message_length: int = MAX_MESSAGE_LENGTH


@dataclass(frozen=True)
class DeviceConfig:
    """Values pushed to the device by provisioning (None = leave unchanged)."""
    wifi_ssid: Optional[str] = None
    wifi_password: Optional[str] = None
    banner: Optional[str] = None
    api_port: Optional[int] = None
    api_username: Optional[str] = None
    api_password: Optional[str] = None
    default_capcode: Optional[int] = None
    default_frequency: Optional[float] = None
    default_power: Optional[int] = None
    save_after_provision: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Communication logging configuration."""
    enabled: bool = False
    level: LogLevel = LogLevel.INFO
    log_to_file: bool = False
    log_to_console: bool = True
    log_file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class EncryptionConfig:
    """Encryption of sensitive configuration values."""
    enabled: bool = False
    key_path: Optional[str] = None


SENSITIVE_FIELDS = ('wifi_password', 'api_password')


@dataclass(frozen=True)
class Config:
    """Complete configuration object with all sections."""
    serial: SerialConfig = field(default_factory=SerialConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    radio: RadioConfig = field(default_factory=RadioConfig)
    encoding: EncodingConfig = field(default_factory=EncodingConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation with nested sections.
        """
        def convert_value(obj: Any) -> Any:
            """Recursively convert dataclass and enum values."""
            if isinstance(obj, Enum):
                return obj.value
            elif hasattr(obj, '__dataclass_fields__'):
                return {k: convert_value(v) for k, v in asdict(obj).items()}
            elif isinstance(obj, list):
                return [convert_value(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert_value(v) for k, v in obj.items()}
            return obj

        return convert_value(asdict(self))

    def mask_sensitive(self) -> 'Config':
        """Return copy with sensitive fields masked.

        Masks passwords, showing only the last 4 characters.

        Returns:
            New Config instance with masked sensitive data.
        """
        def mask_value(value: Optional[str]) -> Optional[str]:
            """Mask string showing only last 4 characters."""
            if value is None or len(value) <= 4:
                return value
            return '*' * (len(value) - 4) + value[-4:]

        masked_device = replace(
            self.device,
            **{name: mask_value(getattr(self.device, name)) for name in SENSITIVE_FIELDS}
        )
        return replace(self, device=masked_device)
