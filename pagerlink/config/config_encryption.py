"""AES-256-GCM encryption for sensitive configuration values.

WiFi and API passwords may be stored in pagerlink.yaml as
``encrypted:<base64>`` strings; they are decrypted when the configuration
is loaded with encryption enabled.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional
import base64
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from pagerlink.core.exceptions import PagerLinkError
from pagerlink.config.config_models import SENSITIVE_FIELDS

NONCE_SIZE = 12
KEY_SIZE = 32


class ConfigEncryptionError(PagerLinkError):
    """Key handling, encryption or decryption failed."""
    pass


class ConfigEncryption:
    """AES-256-GCM encryption of configuration values.

    A random key is generated on first use and stored base64-encoded with
    owner-only permissions. When disabled, values pass through unchanged.

    Example:
        >>> encryption = ConfigEncryption(enabled=True, key_path=Path("/tmp/key"))
        >>> token = encryption.encrypt_value("hunter22")
        >>> token.startswith("encrypted:")
        True
        >>> encryption.decrypt_value(token)
        'hunter22'
    """

    ENCRYPTED_PREFIX = "encrypted:"
    DEFAULT_KEY_PATH = Path.home() / ".pagerlink" / ".key"

    def __init__(self, enabled: bool = True, key_path: Optional[Path] = None):
        """Initialize encryption handler.

        Args:
            enabled: If False, encrypt/decrypt return values unchanged
            key_path: Key file location (default ~/.pagerlink/.key)

        Raises:
            ConfigEncryptionError: Key file cannot be read or created
        """
        self.enabled = enabled
        self.key_path = Path(key_path) if key_path else self.DEFAULT_KEY_PATH
        self._key: Optional[bytes] = None

        if self.enabled:
            self._key = self._load_or_create_key()

    def _load_or_create_key(self) -> bytes:
        try:
            if self.key_path.exists():
                key = base64.b64decode(self.key_path.read_bytes())
                if len(key) != KEY_SIZE:
                    raise ConfigEncryptionError(
                        f"Invalid key length: expected {KEY_SIZE} bytes, got {len(key)}"
                    )
                return key

            key = secrets.token_bytes(KEY_SIZE)
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            self.key_path.write_bytes(base64.b64encode(key))
            try:
                os.chmod(self.key_path, 0o600)
            except (OSError, NotImplementedError):
                # Windows ACLs govern access instead
                pass
            return key
        except ConfigEncryptionError:
            raise
        except (OSError, ValueError) as e:
            raise ConfigEncryptionError(f"Failed to initialize encryption key: {e}")

    def is_encrypted(self, value: Any) -> bool:
        return isinstance(value, str) and value.startswith(self.ENCRYPTED_PREFIX)

    def encrypt_value(self, plaintext: str) -> str:
        """Encrypt plaintext into ``encrypted:<base64(nonce + ciphertext)>``."""
        if not self.enabled or not plaintext:
            return plaintext

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = AESGCM(self._key).encrypt(nonce, plaintext.encode('utf-8'), None)
        encoded = base64.b64encode(nonce + ciphertext).decode('ascii')
        return f"{self.ENCRYPTED_PREFIX}{encoded}"

    def decrypt_value(self, value: str) -> str:
        """Decrypt an ``encrypted:`` value; other values are returned as-is.

        Raises:
            ConfigEncryptionError: Value is corrupt or was encrypted with another key
        """
        if not self.enabled or not self.is_encrypted(value):
            return value

        try:
            data = base64.b64decode(value[len(self.ENCRYPTED_PREFIX):])
            plaintext = AESGCM(self._key).decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)
            return plaintext.decode('utf-8')
        except (InvalidTag, ValueError) as e:
            raise ConfigEncryptionError(f"Failed to decrypt value: {e!r}")

    def decrypt_sensitive_fields(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of config_dict with every encrypted string decrypted."""
        if not self.enabled:
            return config_dict
        return self._map_strings(config_dict, lambda key, value: self.decrypt_value(value))

    def encrypt_sensitive_fields(self,
                                 config_dict: Dict[str, Any],
                                 sensitive_keys: Iterable[str] = SENSITIVE_FIELDS) -> Dict[str, Any]:
        """Return a copy of config_dict with sensitive plaintext values encrypted."""
        if not self.enabled:
            return config_dict
        keys = set(sensitive_keys)

        def encrypt(key: str, value: str) -> str:
            if key in keys and not self.is_encrypted(value):
                return self.encrypt_value(value)
            return value

        return self._map_strings(config_dict, encrypt)

    def _map_strings(self, data: Any, func, key: str = "") -> Any:
        if isinstance(data, dict):
            return {k: self._map_strings(v, func, k) for k, v in data.items()}
        if isinstance(data, list):
            return [self._map_strings(item, func, key) for item in data]
        if isinstance(data, str):
            return func(key, data)
        return data
