"""Unit tests for ConfigManager layered loading."""

import os
import time

import pytest
import yaml
from unittest.mock import Mock, patch

from pagerlink.codec.pocsag import MessageFunction, BitOrder
from pagerlink.config.config_encryption import ConfigEncryption
from pagerlink.config.config_manager import ConfigManager, ConfigFileEventHandler
from pagerlink.config.config_models import EncodingMode, LogLevel


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Fresh singleton, empty working directory and home, no env overrides."""
    for name in list(os.environ):
        if name.startswith("PAGERLINK_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    ConfigManager.reset()
    yield
    ConfigManager.reset()


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestSingleton:
    """Test singleton access."""

    def test_instance_before_initialize(self):
        with pytest.raises(RuntimeError):
            ConfigManager.instance()

    def test_constructor_blocked_after_initialize(self):
        ConfigManager.initialize()
        with pytest.raises(RuntimeError):
            ConfigManager()

    def test_instance_returns_same_object(self):
        manager = ConfigManager.initialize()
        assert ConfigManager.instance() is manager


class TestLoading:
    """Test defaults, file and environment layers."""

    def test_defaults_only(self):
        manager = ConfigManager.initialize()

        assert manager.get_config_path() is None
        assert manager.get_config().radio.frequency == 916.0
        assert manager.show_config()["radio"]["frequency"]["source"] == "default"

    def test_file_in_working_directory(self, tmp_path):
        write_yaml(tmp_path / "pagerlink.yaml", {"radio": {"frequency": 929.6625}})

        manager = ConfigManager.initialize()

        assert manager.get_config().radio.frequency == 929.6625
        assert manager.get_config().radio.power == 2
        assert manager.get_config_path().name == "pagerlink.yaml"

    def test_file_in_home(self, tmp_path):
        home_config = tmp_path / "home" / ".pagerlink" / "config.yaml"
        home_config.parent.mkdir(parents=True)
        write_yaml(home_config, {"radio": {"power": 12}})

        assert ConfigManager.initialize().get_config().radio.power == 12

    def test_explicit_path(self, tmp_path):
        path = write_yaml(tmp_path / "custom.yaml", {
            "encoding": {"mode": "remote", "function": 1, "bit_order": "msb_first"},
            "logging": {"level": "DEBUG"},
        })

        config = ConfigManager.initialize(path).get_config()

        assert config.encoding.mode == EncodingMode.REMOTE
        assert config.encoding.function == MessageFunction.NUMERIC
        assert config.encoding.bit_order == BitOrder.MSB_FIRST
        assert config.logging.level == LogLevel.DEBUG

    def test_function_two_sent_as_text(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"encoding": {"function": 2}})
        config = ConfigManager.initialize(path).get_config()
        assert config.encoding.function == MessageFunction.ALPHANUMERIC

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            ConfigManager.initialize(tmp_path / "missing.yaml")

    def test_explicit_unparseable_path(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("radio: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Failed to load"):
            ConfigManager.initialize(path)

    def test_searched_unparseable_file_falls_back(self, tmp_path):
        (tmp_path / "pagerlink.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        manager = ConfigManager.initialize()
        assert manager.get_config_path() is None

    def test_validation_failure(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"radio": {"power": 40}})
        with pytest.raises(ValueError, match="validation failed"):
            ConfigManager.initialize(path)

    def test_skip_validation(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"radio": {"power": 40}})
        config = ConfigManager.initialize(path, skip_validation=True).get_config()
        assert config.radio.power == 40

    def test_env_overrides(self, tmp_path, monkeypatch):
        write_yaml(tmp_path / "pagerlink.yaml", {"radio": {"frequency": 929.6625}})
        monkeypatch.setenv("PAGERLINK_RADIO_FREQUENCY", "931.9375")
        monkeypatch.setenv("PAGERLINK_TRANSFER_LOOP", "true")
        monkeypatch.setenv("PAGERLINK_SERIAL_PORT", "/dev/ttyACM0")
        monkeypatch.setenv("PAGERLINK_DEVICE_BANNER", "1")

        manager = ConfigManager.initialize()
        config = manager.get_config()

        assert config.radio.frequency == 931.9375
        assert config.transfer.loop is True
        assert config.serial.port == "/dev/ttyACM0"
        assert config.device.banner == "1"
        assert manager.show_config()["radio"]["frequency"]["source"] == "env"

    def test_show_config_masks(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"device": {"wifi_password": "hunter22"}})
        manager = ConfigManager.initialize(path)

        assert manager.show_config()["device"]["wifi_password"]["value"] == "****er22"
        assert manager.show_config(mask_sensitive=False)["device"]["wifi_password"]["value"] == "hunter22"

    def test_encrypted_values_decrypted(self, tmp_path):
        key_path = tmp_path / "key"
        token = ConfigEncryption(key_path=key_path).encrypt_value("hunter22")
        path = write_yaml(tmp_path / "c.yaml", {
            "device": {"wifi_password": token},
            "encryption": {"enabled": True, "key_path": str(key_path)},
        })

        config = ConfigManager.initialize(path).get_config()
        assert config.device.wifi_password == "hunter22"


class TestParseEnvValue:
    """Test environment value conversion."""

    @pytest.mark.parametrize("value,types,expected", [
        ("true", ("boolean",), True),
        ("0", ("boolean",), False),
        ("42", ("integer",), 42),
        ("2.5", ("number",), 2.5),
        ("null", ("integer", "null"), None),
        ("1", ("string",), "1"),
        ("yes", (), True),
        ("7", (), 7),
        ("text", (), "text"),
    ])
    def test_parse(self, value, types, expected):
        assert ConfigManager._parse_env_value(value, types) == expected


class TestReload:
    """Test reload and rollback."""

    def test_reload_success(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"radio": {"power": 5}})
        manager = ConfigManager.initialize(path)
        callback = Mock()
        manager.register_reload_callback(callback)

        write_yaml(path, {"radio": {"power": 7}})
        assert manager.reload()

        assert manager.get_config().radio.power == 7
        callback.assert_called_once_with()

    def test_reload_rollback(self, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {"radio": {"power": 5}})
        manager = ConfigManager.initialize(path)
        error_callback = Mock()
        manager.register_reload_error_callback(error_callback)

        write_yaml(path, {"radio": {"power": 99}})
        assert not manager.reload()

        assert manager.get_config().radio.power == 5
        assert manager.get_config_path() == path
        error_callback.assert_called_once()

    def test_validate_current(self):
        assert ConfigManager.initialize().validate() == []

    def test_hot_reload_requires_file(self):
        manager = ConfigManager.initialize()
        assert not manager.enable_hot_reload()

    @patch('pagerlink.config.config_manager.Observer')
    def test_hot_reload_enable_disable(self, mock_observer, tmp_path):
        path = write_yaml(tmp_path / "c.yaml", {})
        manager = ConfigManager.initialize(path)

        assert manager.enable_hot_reload()
        assert manager.is_hot_reload_enabled()
        mock_observer.return_value.start.assert_called_once()

        manager.disable_hot_reload()
        assert not manager.is_hot_reload_enabled()
        mock_observer.return_value.stop.assert_called_once()


class TestFileEventHandler:
    """Test watchdog event filtering and debounce."""

    def test_reload_on_modify_with_debounce(self, tmp_path):
        from watchdog.events import FileModifiedEvent

        path = tmp_path / "c.yaml"
        manager = Mock()
        handler = ConfigFileEventHandler(manager, path, debounce_seconds=60)

        handler.on_modified(FileModifiedEvent(str(path)))
        handler.on_modified(FileModifiedEvent(str(path)))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "other.yaml")))

        manager.reload.assert_called_once_with(path)
