"""Default configuration values for zero-config operation.

This module provides defaults for all configuration sections, allowing the
tool to drive a transmitter without a pagerlink.yaml file.
"""

from pagerlink.codec.pocsag import MessageFunction, BitOrder, MAX_MESSAGE_LENGTH
from pagerlink.config.config_models import (
    Config,
    SerialConfig,
    ProtocolConfig,
    TransferConfig,
    RadioConfig,
    EncodingConfig,
    DeviceConfig,
    LoggingConfig,
    EncryptionConfig,
    EncodingMode,
    LogLevel
)


def get_default_config() -> Config:
    """Get default configuration with values matching the device firmware.

    Returns:
        Config: Complete configuration with all defaults populated.

    Default Values:
        - Serial: /dev/ttyUSB0 at 115200 baud
        - Protocol: 8s response timeout, 5 attempts, 200ms settle delay
        - Transfer: 3 attempts 2s apart, 32-byte chunks every 5ms
        - Radio: 916.0 MHz at 2 dBm, mail drop off
        - Encoding: local alphanumeric, LSB first, 240 characters max
        - Device: nothing to provision
        - Logging/Encryption: disabled (opt-in)
    """
    return Config(
        serial=SerialConfig(
            port="/dev/ttyUSB0",
            baud_rate=115200,
            read_timeout=0.5
        ),
        protocol=ProtocolConfig(
            response_timeout=8.0,
            max_retries=5,
            inter_command_delay=0.2,
            poll_interval=0.05,
            max_empty_polls=20,  # ~1s of silence after last byte
            error_backoff=0.5,
            timeout_backoff=0.5,
            invalid_backoff=1.0,
            probe_settle=0.2,
            liveness_window=30.0,
            max_line_length=1024
        ),
        transfer=TransferConfig(
            max_attempts=3,
            attempt_backoff=2.0,
            chunk_size=32,
            chunk_delay=0.005,
            data_send_timeout=20.0,
            message_send_timeout=35.0,  # device-side encoding is slow
            completion_settle=5.0,
            handshake_attempts=10,
            loop=False
        ),
        radio=RadioConfig(
            frequency=916.0,
            power=2,
            mail_drop=False
        ),
        encoding=EncodingConfig(
            mode=EncodingMode.LOCAL,
            function=MessageFunction.ALPHANUMERIC,
            bit_order=BitOrder.LSB_FIRST,
            max_message_length=MAX_MESSAGE_LENGTH
        ),
        device=DeviceConfig(),
        logging=LoggingConfig(
            enabled=False,
            level=LogLevel.INFO,
            log_to_file=False,
            log_to_console=True,
            log_file_path=None,  # Auto-generated: ~/.pagerlink/logs/comm_{timestamp}.log
            max_file_size_mb=10,
            backup_count=5
        ),
        encryption=EncryptionConfig(
            enabled=False,
            key_path=None  # Auto-generated: ~/.pagerlink/.key
        )
    )
