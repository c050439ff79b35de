"""JSON Schema validation for pagerlink configuration.

Provides schema definition and validation logic with clear error messages for
configuration validation.
"""

from typing import List, Tuple, Dict, Any
import copy
import jsonschema
from jsonschema import Draft7Validator

from pagerlink.codec.pocsag import MAX_ADDRESS, MAX_MESSAGE_LENGTH


def _number(description: str, minimum: float, maximum: float = None,
            exclusive: bool = False) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "number", "description": description}
    if exclusive:
        schema["exclusiveMinimum"] = minimum
    else:
        schema["minimum"] = minimum
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def _integer(description: str, minimum: int, maximum: int = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "integer", "description": description, "minimum": minimum}
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def _nullable(schema: Dict[str, Any]) -> Dict[str, Any]:
    schema = dict(schema)
    schema["type"] = [schema["type"], "null"]
    return schema


class ConfigSchema:
    """Configuration schema validator using JSON Schema Draft 7.

    Validates configuration dictionaries against JSON schema with custom
    validators for domain-specific checks (baud rates, paths, quoted
    device strings).

    Example:
        >>> is_valid, errors = ConfigSchema.validate_config(config_dict)
        >>> if not is_valid:
        >>>     for error in errors:
        >>>         print(error)
    """

    # Valid baud rates for serial communication
    VALID_BAUD_RATES = [9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600]

    # Device strings sent inside AT+...="..." arguments
    QUOTED_DEVICE_FIELDS = ['wifi_ssid', 'wifi_password', 'banner', 'api_username', 'api_password']

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get JSON Schema Draft 7 for configuration validation.

        Returns:
            JSON Schema dictionary defining all configuration sections,
            types, and value constraints.
        """
        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "pagerlink Configuration",
            "description": "Configuration schema for the pagerlink transmitter tool",
            "type": "object",
            "properties": {
                "serial": {
                    "type": "object",
                    "description": "Serial port settings",
                    "properties": {
                        "port": {
                            "type": "string",
                            "description": "Serial device path",
                            "minLength": 1
                        },
                        "baud_rate": {
                            "type": "integer",
                            "description": "Baud rate for serial communication",
                            "enum": ConfigSchema.VALID_BAUD_RATES
                        },
                        "read_timeout": _number("pyserial read timeout in seconds", 0, 60)
                    },
                    "additionalProperties": False
                },
                "protocol": {
                    "type": "object",
                    "description": "AT command timing and retry settings",
                    "properties": {
                        "response_timeout": _number("Response timeout in seconds", 0, 300, exclusive=True),
                        "max_retries": _integer("Attempts per command", 1, 20),
                        "inter_command_delay": _number("Settle delay after each command", 0, 10),
                        "poll_interval": _number("Readability poll interval", 0.001, 5),
                        "max_empty_polls": _nullable(_integer("Consecutive empty polls before giving up", 1)),
                        "error_backoff": _number("Backoff after ERROR", 0, 60),
                        "timeout_backoff": _number("Backoff after a timeout", 0, 60),
                        "invalid_backoff": _number("Backoff after a channel failure", 0, 60),
                        "probe_settle": _number("Delay before reading a keep-alive reply", 0, 10),
                        "liveness_window": _number("Seconds a liveness probe stays fresh", 0, 3600),
                        "max_line_length": _integer("Response line buffer size", 16, 65536)
                    },
                    "additionalProperties": False
                },
                "transfer": {
                    "type": "object",
                    "description": "Message transfer settings",
                    "properties": {
                        "max_attempts": _integer("Attempts per message", 1, 20),
                        "attempt_backoff": _number("Delay between message attempts", 0, 300),
                        "chunk_size": _integer("Payload chunk size in bytes", 1, 4096),
                        "chunk_delay": _number("Delay between payload chunks", 0, 10),
                        "data_send_timeout": _number("Payload send timeout", 0, 600, exclusive=True),
                        "message_send_timeout": _number("Remote encoding completion timeout", 0, 600, exclusive=True),
                        "completion_settle": _number("Delay before reading the completion response", 0, 60),
                        "handshake_attempts": _integer("Handshake rounds", 1, 100),
                        "loop": {
                            "type": "boolean",
                            "description": "Keep reading stdin and skip failed messages"
                        }
                    },
                    "additionalProperties": False
                },
                "radio": {
                    "type": "object",
                    "description": "Radio parameters",
                    "properties": {
                        "frequency": _number("Frequency in MHz", 0, exclusive=True),
                        "power": _integer("Transmit power in dBm", 2, 20),
                        "mail_drop": {
                            "type": "boolean",
                            "description": "Set the mail drop flag"
                        }
                    },
                    "additionalProperties": False
                },
                "encoding": {
                    "type": "object",
                    "description": "Message encoding settings",
                    "properties": {
                        "mode": {
                            "type": "string",
                            "description": "Encode on the device (remote) or the host (local)",
                            "enum": ["remote", "local"]
                        },
                        "function": {
                            "type": "integer",
                            "description": "POCSAG function (0 tone, 1 numeric, 3 alphanumeric)",
                            "enum": [0, 1, 2, 3]
                        },
                        "bit_order": {
                            "type": "string",
                            "description": "Bit order of alphanumeric characters",
                            "enum": ["lsb_first", "msb_first"]
                        },
                        "max_message_length": _integer("Maximum message length", 1, MAX_MESSAGE_LENGTH)
                    },
                    "additionalProperties": False
                },
                "device": {
                    "type": "object",
                    "description": "Settings pushed to the device by provisioning",
                    "properties": {
                        "wifi_ssid": {"type": ["string", "null"], "description": "WiFi network name"},
                        "wifi_password": {"type": ["string", "null"], "description": "WiFi password"},
                        "banner": {"type": ["string", "null"], "description": "Display banner"},
                        "api_port": _nullable(_integer("REST API port", 1, 65535)),
                        "api_username": {"type": ["string", "null"], "description": "REST API user"},
                        "api_password": {"type": ["string", "null"], "description": "REST API password"},
                        "default_capcode": _nullable(_integer("Power-on capcode", 0, MAX_ADDRESS)),
                        "default_frequency": _nullable(_number("Power-on frequency in MHz", 0, exclusive=True)),
                        "default_power": _nullable(_integer("Power-on transmit power in dBm", 2, 20)),
                        "save_after_provision": {
                            "type": "boolean",
                            "description": "Persist settings with AT+SAVE after provisioning"
                        }
                    },
                    "additionalProperties": False
                },
                "logging": {
                    "type": "object",
                    "description": "Communication logging settings",
                    "properties": {
                        "enabled": {
                            "type": "boolean",
                            "description": "Enable communication logging"
                        },
                        "level": {
                            "type": "string",
                            "description": "Logging level",
                            "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]
                        },
                        "log_to_file": {
                            "type": "boolean",
                            "description": "Enable logging to file"
                        },
                        "log_to_console": {
                            "type": "boolean",
                            "description": "Enable logging to console"
                        },
                        "log_file_path": {
                            "type": ["string", "null"],
                            "description": "Path to log file"
                        },
                        "max_file_size_mb": _integer("Maximum log file size in megabytes", 1, 1000),
                        "backup_count": _integer("Number of backup log files to keep", 0, 100)
                    },
                    "additionalProperties": False
                },
                "encryption": {
                    "type": "object",
                    "description": "Encryption of sensitive values",
                    "properties": {
                        "enabled": {
                            "type": "boolean",
                            "description": "Decrypt encrypted: values on load"
                        },
                        "key_path": {
                            "type": ["string", "null"],
                            "description": "Path to the encryption key file"
                        }
                    },
                    "additionalProperties": False
                }
            },
            "additionalProperties": False
        }

    @staticmethod
    def validate_config(config: Dict[str, Any], strict: bool = True) -> Tuple[bool, List[str]]:
        """Validate configuration dictionary against schema.

        Args:
            config: Configuration dictionary to validate.
            strict: If True, reject unknown fields. If False, accept them.

        Returns:
            Tuple of (is_valid, error_messages).

        Example:
            >>> is_valid, errors = ConfigSchema.validate_config({"radio": {"power": 10}})
            >>> assert is_valid

            >>> is_valid, errors = ConfigSchema.validate_config({"radio": {"power": 30}})
            >>> assert not is_valid
        """
        schema = ConfigSchema.get_schema()

        if not strict:
            schema = ConfigSchema._make_permissive(schema)

        errors: List[str] = []
        validator = Draft7Validator(schema)

        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            errors.append(ConfigSchema._format_error(error))

        errors.extend(ConfigSchema._custom_validation(config))

        return len(errors) == 0, errors

    @staticmethod
    def _make_permissive(schema: Dict[str, Any]) -> Dict[str, Any]:
        """Copy schema with every additionalProperties restriction removed."""
        permissive_schema = copy.deepcopy(schema)

        def remove_additional_properties(obj):
            if isinstance(obj, dict):
                obj.pop("additionalProperties", None)
                for value in obj.values():
                    remove_additional_properties(value)

        remove_additional_properties(permissive_schema)
        return permissive_schema

    @staticmethod
    def _format_error(error: jsonschema.exceptions.ValidationError) -> str:
        """Format validation error with section, field and an example value.

        Example:
            "Section 'radio', field 'power': Value must be <= 20, got 30. Example: power: 20"
        """
        path_parts = list(error.path)
        if len(path_parts) == 0:
            section = "root"
            field = "configuration"
        elif len(path_parts) == 1:
            section = path_parts[0]
            field = "section"
        else:
            section = path_parts[0]
            field = ".".join(str(p) for p in path_parts[1:])

        if error.validator == "type":
            expected_type = error.validator_value
            actual_value = error.instance
            actual_type = type(actual_value).__name__
            return (f"Section '{section}', field '{field}': Expected type {expected_type}, "
                    f"got {actual_type} (value: {actual_value}). "
                    f"Example: {field}: <{expected_type} value>")

        elif error.validator == "enum":
            expected_values = error.validator_value
            example_value = expected_values[0] if expected_values else "N/A"
            return (f"Section '{section}', field '{field}': Expected one of {expected_values}, "
                    f"got {error.instance}. Example: {field}: {example_value}")

        elif error.validator in ("minimum", "exclusiveMinimum"):
            relation = ">=" if error.validator == "minimum" else ">"
            return (f"Section '{section}', field '{field}': Value must be {relation} "
                    f"{error.validator_value}, got {error.instance}.")

        elif error.validator == "maximum":
            maximum = error.validator_value
            return (f"Section '{section}', field '{field}': Value must be <= {maximum}, "
                    f"got {error.instance}. Example: {field}: {maximum}")

        elif error.validator == "minLength":
            return (f"Section '{section}', field '{field}': String must be at least "
                    f"{error.validator_value} characters, got {len(error.instance)}.")

        elif error.validator == "additionalProperties":
            extra_props = set(error.instance.keys()) - set(error.schema.get('properties', {}).keys())
            return (f"Section '{section}': Unknown fields {sorted(extra_props)} not allowed. "
                    f"Remove unknown fields or use permissive validation mode.")

        return f"Section '{section}', field '{field}': {error.message}"

    @staticmethod
    def _custom_validation(config: Dict[str, Any]) -> List[str]:
        """Validation beyond JSON schema: paths and quoted device strings."""
        errors = []

        logging_section = config.get("logging")
        if isinstance(logging_section, dict):
            path = logging_section.get("log_file_path")
            if path is not None and not ConfigSchema.validate_path(path):
                errors.append(
                    f"Section 'logging', field 'log_file_path': Path '{path}' "
                    f"contains invalid characters. Example: log_file_path: './logs/comm.log'"
                )

        device_section = config.get("device")
        if isinstance(device_section, dict):
            for name in ConfigSchema.QUOTED_DEVICE_FIELDS:
                value = device_section.get(name)
                if isinstance(value, str) and not ConfigSchema.validate_quoted(value):
                    errors.append(
                        f"Section 'device', field '{name}': Value must not contain "
                        f"double quotes or line breaks."
                    )

        return errors

    @staticmethod
    def validate_baud_rate(baud: int) -> bool:
        """Validate baud rate is a standard serial communication rate.

        Example:
            >>> ConfigSchema.validate_baud_rate(115200)
            True
            >>> ConfigSchema.validate_baud_rate(12345)
            False
        """
        return baud in ConfigSchema.VALID_BAUD_RATES

    @staticmethod
    def validate_quoted(value: str) -> bool:
        """True if value can be sent inside a quoted AT argument."""
        return not any(char in value for char in '"\r\n')

    @staticmethod
    def validate_path(path: str) -> bool:
        """Validate path format (basic validation for invalid characters).

        Example:
            >>> ConfigSchema.validate_path("/var/log/pagerlink.log")
            True
            >>> ConfigSchema.validate_path("")
            False
        """
        if not path or path.strip() == "":
            return False
        return not any(char in path for char in ['\0', '\r', '\n'])
