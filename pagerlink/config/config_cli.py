"""Configuration management CLI commands.

Command implementations behind the --show-config, --validate-config,
--generate-config, --config-schema and --encrypt-value options.
"""

from pathlib import Path
from typing import Optional
import json
import sys

import yaml

from pagerlink.config.config_manager import ConfigManager, CONFIG_FILENAME
from pagerlink.config.config_encryption import ConfigEncryption, ConfigEncryptionError
from pagerlink.config.config_schema import ConfigSchema
from pagerlink.config.defaults import get_default_config

_SECTION_TITLES = [
    ("serial", "Serial Settings"),
    ("protocol", "Protocol Settings"),
    ("transfer", "Transfer Settings"),
    ("radio", "Radio Settings"),
    ("encoding", "Encoding Settings"),
    ("device", "Device Provisioning"),
    ("logging", "Logging Settings"),
    ("encryption", "Encryption Settings"),
]


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def show_config_command(mask_sensitive: bool = True) -> int:
    """Display current configuration with the source of each value.

    Returns:
        Exit code (0 for success)
    """
    try:
        config_dict = ConfigManager.instance().show_config(mask_sensitive=mask_sensitive)
    except RuntimeError as e:
        print(f"Error showing configuration: {e}", file=sys.stderr)
        return 1

    _banner("Current Configuration")
    path = ConfigManager.instance().get_config_path()
    print(f"\nLoaded from: {path if path else 'defaults only'}")

    for key, title in _SECTION_TITLES:
        print(f"\n{title}:")
        for name, entry in config_dict.get(key, {}).items():
            print(f"  {name}: {entry['value']} (source: {entry['source']})")

    print()
    return 0


def validate_config_command(config_path: Optional[str] = None) -> int:
    """Validate a configuration file, or the loaded configuration.

    Returns:
        Exit code (0 if valid, 1 if invalid)
    """
    try:
        if config_path:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = ConfigManager.instance().get_config().to_dict()
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        return 1
    except (OSError, yaml.YAMLError, RuntimeError) as e:
        print(f"Error validating configuration: {e}", file=sys.stderr)
        return 1

    is_valid, errors = ConfigSchema.validate_config(config_dict)

    _banner("Configuration Validation")
    if is_valid:
        print("\n[OK] Configuration is valid\n")
        return 0

    print(f"\n[ERROR] Configuration has {len(errors)} error(s):\n")
    for i, error in enumerate(errors, 1):
        print(f"{i}. {error}")
    print()
    return 1


def generate_config_command(output_path: str = f"./{CONFIG_FILENAME}", force: bool = False) -> int:
    """Write the default configuration as YAML.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    output_file = Path(output_path)

    if output_file.exists() and not force:
        print(f"Error: File already exists: {output_path}", file=sys.stderr)
        print("Use --force to overwrite", file=sys.stderr)
        return 1

    try:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write("# pagerlink configuration\n")
            f.write("# Generated with default values\n\n")
            yaml.safe_dump(get_default_config().to_dict(), f,
                           default_flow_style=False, sort_keys=False)
    except OSError as e:
        print(f"Error generating configuration: {e}", file=sys.stderr)
        return 1

    print(f"\n[OK] Default configuration generated: {output_file}")
    print("\nNext steps:")
    print("  1. Set serial.port and the radio section for your transmitter")
    print(f"  2. Run 'python main.py --validate-config {output_file}' to validate")
    print()
    return 0


def config_schema_command() -> int:
    """Print the JSON schema of the configuration file."""
    print(json.dumps(ConfigSchema.get_schema(), indent=2))
    return 0


def encrypt_value_command(value: str, key_path: Optional[str] = None) -> int:
    """Encrypt a value for use as wifi_password or api_password.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        encryption = ConfigEncryption(enabled=True, key_path=Path(key_path) if key_path else None)
        encrypted = encryption.encrypt_value(value)
    except ConfigEncryptionError as e:
        print(f"Error encrypting value: {e}", file=sys.stderr)
        return 1

    print("\nEncrypted value:")
    print(f"  {encrypted}")
    print(f"\nUse it in {CONFIG_FILENAME} with encryption enabled:")
    print("  device:")
    print(f"    wifi_password: {encrypted}")
    print(f"\nEncryption key: {encryption.key_path}")
    print()
    return 0
