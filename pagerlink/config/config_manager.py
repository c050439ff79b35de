"""Configuration manager for pagerlink.

Provides singleton access to configuration with support for defaults, file
loading, environment variable overrides and hot reload of the file.
"""

from copy import deepcopy
from dataclasses import fields
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable
import logging
import os
import time

import yaml
from watchdog.events import FileSystemEventHandler, FileModifiedEvent
from watchdog.observers import Observer

from pagerlink.codec.pocsag import MessageFunction, BitOrder
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
from pagerlink.config.defaults import get_default_config
from pagerlink.config.config_schema import ConfigSchema
from pagerlink.config.config_encryption import ConfigEncryption

logger = logging.getLogger(__name__)

ENV_PREFIX = "PAGERLINK_"
CONFIG_FILENAME = "pagerlink.yaml"


class ConfigFileEventHandler(FileSystemEventHandler):
    """Reloads configuration when the watched file is modified."""

    def __init__(self, config_manager: 'ConfigManager', config_path: Path,
                 debounce_seconds: float = 2.0):
        super().__init__()
        self.config_manager = config_manager
        self.config_path = config_path
        self._debounce_seconds = debounce_seconds
        self._last_reload_time = 0.0

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return
        if Path(event.src_path).resolve() != self.config_path.resolve():
            return

        # Editors often write a file several times per save
        now = time.time()
        if now - self._last_reload_time < self._debounce_seconds:
            return
        self._last_reload_time = now

        logger.info("Configuration file changed: %s", self.config_path)
        if self.config_manager.reload(self.config_path):
            logger.info("Configuration reloaded successfully")
        else:
            logger.warning("Configuration reload failed - using previous configuration")


class ConfigManager:
    """Singleton configuration manager.

    Layered loading:
    1. Load defaults
    2. Load from file (if exists)
    3. Apply environment variable overrides
    4. Validate configuration against JSON schema
    5. Decrypt sensitive fields (if encryption enabled)
    6. Build the immutable Config object
    """

    _instance: Optional['ConfigManager'] = None
    _config: Optional[Config] = None
    _config_source: Dict[str, str] = {}
    _config_path: Optional[Path] = None
    _file_observer: Optional[Observer] = None
    _watch_enabled: bool = False
    _reload_callbacks: List[Callable[[], None]] = []
    _reload_error_callbacks: List[Callable[[str], None]] = []

    def __init__(self):
        """Private constructor. Use instance() or initialize() class methods."""
        if ConfigManager._instance is not None:
            raise RuntimeError("Use ConfigManager.instance() instead of constructor")

    @classmethod
    def instance(cls) -> 'ConfigManager':
        """Get singleton instance.

        Raises:
            RuntimeError: If not yet initialized.
        """
        if cls._instance is None:
            raise RuntimeError("ConfigManager not initialized. Call initialize() first.")
        return cls._instance

    @classmethod
    def initialize(cls,
                   config_path: Optional[Path] = None,
                   skip_validation: bool = False,
                   enable_hot_reload: bool = False) -> 'ConfigManager':
        """Load configuration and install it as the singleton's state.

        Args:
            config_path: Path to a YAML file. If None, searches default paths.
            skip_validation: Skip schema validation.
            enable_hot_reload: Watch the loaded file and reload on change.

        Returns:
            ConfigManager: Initialized singleton instance.

        Raises:
            ValueError: Configuration fails validation or the given file
                cannot be parsed.
            ConfigEncryptionError: Encrypted values cannot be decrypted.
        """
        if cls._instance is None:
            cls._instance = cls.__new__(cls)

        manager = cls._instance
        manager._config_source = {}
        manager._config_path = None

        config_dict = get_default_config().to_dict()
        manager._mark_source(config_dict, "default")

        explicit_path = config_path is not None
        if config_path is None:
            config_path = cls._search_config_paths()

        if config_path is not None:
            config_path = Path(config_path).expanduser()
            if config_path.exists():
                try:
                    file_config = cls._load_from_file(config_path)
                except (OSError, yaml.YAMLError) as e:
                    if explicit_path:
                        raise ValueError(f"Failed to load config from {config_path}: {e}")
                    logger.warning("Failed to load config from %s: %s; using defaults",
                                   config_path, e)
                else:
                    config_dict = cls._merge_configs(config_dict, file_config)
                    manager._mark_source(file_config, "file")
                    manager._config_path = config_path
            elif explicit_path:
                raise ValueError(f"Configuration file not found: {config_path}")

        env_overrides = cls._apply_env_overrides()
        if env_overrides:
            config_dict = cls._merge_configs(config_dict, env_overrides)
            manager._mark_source(env_overrides, "env")

        if not skip_validation:
            is_valid, validation_errors = ConfigSchema.validate_config(config_dict)
            if not is_valid:
                raise ValueError("Configuration validation failed:\n" + "\n".join(
                    f"  - {error}" for error in validation_errors
                ))

        encryption_section = config_dict.get('encryption', {})
        if encryption_section.get('enabled', False):
            key_path = encryption_section.get('key_path')
            encryption = ConfigEncryption(
                enabled=True, key_path=Path(key_path).expanduser() if key_path else None
            )
            config_dict = encryption.decrypt_sensitive_fields(config_dict)

        manager._config = cls._dict_to_config(config_dict)

        if enable_hot_reload and manager._config_path:
            manager.enable_hot_reload()

        return manager

    @staticmethod
    def _search_config_paths() -> Optional[Path]:
        """Search for the config file.

        Search order:
            1. ./pagerlink.yaml
            2. ~/.pagerlink/config.yaml
        """
        search_paths = [
            Path(".") / CONFIG_FILENAME,
            Path.home() / ".pagerlink" / "config.yaml"
        ]
        for path in search_paths:
            if path.is_file():
                return path
        return None

    @staticmethod
    def _load_from_file(path: Path) -> Dict[str, Any]:
        with open(path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)
        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise yaml.YAMLError(f"Top level of {path} must be a mapping")
        return config_dict

    @staticmethod
    def _apply_env_overrides() -> Dict[str, Any]:
        """Collect environment variable overrides.

        Variables use the format PAGERLINK_SECTION_KEY, e.g.
            PAGERLINK_SERIAL_PORT=/dev/ttyACM0
            PAGERLINK_RADIO_FREQUENCY=929.6625
            PAGERLINK_TRANSFER_LOOP=true

        Values are converted to the type the schema declares for the key.

        Returns:
            Dictionary with environment overrides.
        """
        properties = ConfigSchema.get_schema()["properties"]
        overrides: Dict[str, Dict[str, Any]] = {}

        for env_name, env_value in os.environ.items():
            if not env_name.startswith(ENV_PREFIX):
                continue

            parts = env_name[len(ENV_PREFIX):].lower().split('_', 1)
            if len(parts) != 2 or not parts[1]:
                continue

            section, key = parts
            key_schema = properties.get(section, {}).get("properties", {}).get(key, {})
            declared = key_schema.get("type", ())
            if isinstance(declared, str):
                declared = (declared,)
            overrides.setdefault(section, {})[key] = ConfigManager._parse_env_value(
                env_value, tuple(declared)
            )

        return overrides

    @staticmethod
    def _parse_env_value(value: str, types: tuple = ()) -> Any:
        """Parse an environment value.

        Args:
            value: Raw string value.
            types: JSON schema types allowed for the key; empty when unknown.

        Returns:
            bool, int, float, None or str.
        """
        lowered = value.strip().lower()

        if lowered in ('null', 'none') and (not types or "null" in types):
            return None

        if "boolean" in types or not types:
            if lowered in ('true', 'yes', 'on') or (types and lowered == '1'):
                return True
            if lowered in ('false', 'no', 'off') or (types and lowered == '0'):
                return False

        if "integer" in types or not types:
            try:
                return int(value)
            except ValueError:
                pass

        if "number" in types or not types:
            try:
                return float(value)
            except ValueError:
                pass

        return value

    @staticmethod
    def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge override sections into a copy of base (override wins)."""
        merged = deepcopy(base)

        for section, section_values in override.items():
            if isinstance(section_values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(section_values)
            else:
                merged[section] = section_values

        return merged

    def _mark_source(self, config: Dict[str, Any], source: str):
        """Record source label ("default", "file", "env") per section.key."""
        for section, section_values in config.items():
            if isinstance(section_values, dict):
                for key in section_values.keys():
                    self._config_source[f"{section}.{key}"] = source

    @staticmethod
    def _dict_to_config(config_dict: Dict[str, Any]) -> Config:
        """Convert a validated configuration dictionary to a Config object."""

        def get_enum(enum_class, value, default):
            if isinstance(value, enum_class):
                return value
            if isinstance(value, str):
                for candidate in (value, value.lower(), value.upper()):
                    try:
                        return enum_class(candidate)
                    except ValueError:
                        continue
                return default
            return default if value is None else enum_class(value)

        def section(name: str, klass, **converted):
            values = config_dict.get(name) or {}
            known = {f.name for f in fields(klass)}
            kwargs = {k: v for k, v in values.items() if k in known}
            kwargs.update(converted)
            return klass(**kwargs)

        encoding_dict = config_dict.get('encoding') or {}
        function = encoding_dict.get('function', MessageFunction.ALPHANUMERIC)
        # Function 2 has no dedicated format and is sent as text
        if int(function) == 2:
            function = MessageFunction.ALPHANUMERIC

        log_dict = config_dict.get('logging') or {}

        return Config(
            serial=section('serial', SerialConfig),
            protocol=section('protocol', ProtocolConfig),
            transfer=section('transfer', TransferConfig),
            radio=section('radio', RadioConfig),
            encoding=section(
                'encoding', EncodingConfig,
                mode=get_enum(EncodingMode, encoding_dict.get('mode'), EncodingMode.LOCAL),
                function=MessageFunction(int(function)),
                bit_order=get_enum(BitOrder, encoding_dict.get('bit_order'), BitOrder.LSB_FIRST)
            ),
            device=section('device', DeviceConfig),
            logging=section(
                'logging', LoggingConfig,
                level=get_enum(LogLevel, log_dict.get('level'), LogLevel.INFO)
            ),
            encryption=section('encryption', EncryptionConfig)
        )

    def get_config(self) -> Config:
        """Get current configuration object.

        Raises:
            RuntimeError: If configuration not loaded.
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config

    def get_config_path(self) -> Optional[Path]:
        """Path of the loaded configuration file, if any."""
        return self._config_path

    def reload(self, config_path: Optional[Path] = None) -> bool:
        """Reload configuration from file and environment.

        If the new configuration is invalid, the previous one is kept.

        Returns:
            True if reload succeeded, False if it was rolled back.
        """
        if config_path is None:
            config_path = self._config_path

        old_config = self._config
        old_source = self._config_source.copy()
        old_config_path = self._config_path

        was_watching = self._watch_enabled
        if was_watching:
            self.disable_hot_reload()

        try:
            ConfigManager.initialize(config_path, enable_hot_reload=False)
        except Exception as e:
            error_msg = str(e)
            logger.error("Error reloading configuration, rolling back: %s", error_msg)
            self._config = old_config
            self._config_source = old_source
            self._config_path = old_config_path
            if was_watching and self._config_path:
                self.enable_hot_reload()
            self._call_callbacks(self._reload_error_callbacks, error_msg)
            return False

        if was_watching and self._config_path:
            self.enable_hot_reload()
        self._call_callbacks(self._reload_callbacks)
        return True

    def validate(self) -> List[str]:
        """Validate current configuration; returns error messages (empty if valid)."""
        if self._config is None:
            return ["Configuration not loaded"]
        _, errors = ConfigSchema.validate_config(self._config.to_dict())
        return errors

    def show_config(self, mask_sensitive: bool = True) -> Dict[str, Any]:
        """Current configuration with the source of each value.

        Example:
            {
                "radio": {
                    "frequency": {"value": 929.6625, "source": "file"},
                    "power": {"value": 2, "source": "default"}
                },
                "device": {
                    "wifi_password": {"value": "****word", "source": "env"}
                }
            }
        """
        config = self.get_config()
        if mask_sensitive:
            config = config.mask_sensitive()

        result: Dict[str, Any] = {}
        for section, section_values in config.to_dict().items():
            result[section] = {
                key: {
                    "value": value,
                    "source": self._config_source.get(f"{section}.{key}", "unknown")
                }
                for key, value in section_values.items()
            }
        return result

    def enable_hot_reload(self) -> bool:
        """Watch the loaded config file with watchdog and reload on change.

        Returns:
            True if watching, False if no file is loaded or the watch failed.
        """
        if not self._config_path:
            logger.warning("Cannot enable hot reload - no config file loaded")
            return False

        if self._watch_enabled:
            return True

        try:
            observer = Observer()
            observer.schedule(
                ConfigFileEventHandler(self, self._config_path),
                str(self._config_path.parent),
                recursive=False
            )
            observer.start()
        except OSError as e:
            logger.error("Error enabling hot reload: %s", e)
            return False

        self._file_observer = observer
        self._watch_enabled = True
        return True

    def disable_hot_reload(self):
        if not self._watch_enabled:
            return

        if self._file_observer:
            self._file_observer.stop()
            self._file_observer.join(timeout=2.0)
            self._file_observer = None

        self._watch_enabled = False

    def is_hot_reload_enabled(self) -> bool:
        return self._watch_enabled

    def register_reload_callback(self, callback: Callable[[], None]):
        """Register a callback run after each successful reload."""
        if callback not in self._reload_callbacks:
            self._reload_callbacks.append(callback)

    def unregister_reload_callback(self, callback: Callable[[], None]):
        if callback in self._reload_callbacks:
            self._reload_callbacks.remove(callback)

    def register_reload_error_callback(self, callback: Callable[[str], None]):
        """Register a callback receiving the error message of a failed reload."""
        if callback not in self._reload_error_callbacks:
            self._reload_error_callbacks.append(callback)

    def unregister_reload_error_callback(self, callback: Callable[[str], None]):
        if callback in self._reload_error_callbacks:
            self._reload_error_callbacks.remove(callback)

    @staticmethod
    def _call_callbacks(callbacks: List[Callable], *args):
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in configuration reload callback")

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        if cls._instance and cls._instance._watch_enabled:
            cls._instance.disable_hot_reload()

        cls._instance = None
        cls._config = None
        cls._config_path = None
        cls._config_source = {}
        cls._file_observer = None
        cls._watch_enabled = False
        cls._reload_callbacks = []
        cls._reload_error_callbacks = []
