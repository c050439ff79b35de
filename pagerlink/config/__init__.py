"""Configuration management package.

Provides centralized configuration access with defaults, file loading,
environment variable overrides and encryption of sensitive values.
"""

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
from pagerlink.config.config_manager import ConfigManager
from pagerlink.config.config_encryption import ConfigEncryption, ConfigEncryptionError

__all__ = [
    'ConfigManager',
    'ConfigEncryption',
    'ConfigEncryptionError',
    'Config',
    'SerialConfig',
    'ProtocolConfig',
    'TransferConfig',
    'RadioConfig',
    'EncodingConfig',
    'DeviceConfig',
    'LoggingConfig',
    'EncryptionConfig',
    'EncodingMode',
    'LogLevel',
]
