"""Unit tests for configuration CLI commands."""

import json

import pytest
import yaml

from pagerlink.config import config_cli
from pagerlink.config.config_manager import ConfigManager
from pagerlink.config.config_schema import ConfigSchema


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    ConfigManager.reset()
    yield
    ConfigManager.reset()


class TestGenerateConfig:
    """Test --generate-config."""

    def test_generates_valid_yaml(self, tmp_path, capsys):
        output = tmp_path / "pagerlink.yaml"

        assert config_cli.generate_config_command(str(output)) == 0

        data = yaml.safe_load(output.read_text(encoding="utf-8"))
        assert data["radio"]["frequency"] == 916.0
        assert ConfigSchema.validate_config(data)[0]
        assert "Default configuration generated" in capsys.readouterr().out

    def test_refuses_overwrite(self, tmp_path):
        output = tmp_path / "pagerlink.yaml"
        output.write_text("existing", encoding="utf-8")

        assert config_cli.generate_config_command(str(output)) == 1
        assert output.read_text(encoding="utf-8") == "existing"

    def test_force_overwrite(self, tmp_path):
        output = tmp_path / "pagerlink.yaml"
        output.write_text("existing", encoding="utf-8")
        assert config_cli.generate_config_command(str(output), force=True) == 0


class TestValidateConfig:
    """Test --validate-config."""

    def test_valid_file(self, tmp_path, capsys):
        path = tmp_path / "c.yaml"
        path.write_text("radio:\n  power: 10\n", encoding="utf-8")

        assert config_cli.validate_config_command(str(path)) == 0
        assert "[OK]" in capsys.readouterr().out

    def test_invalid_file(self, tmp_path, capsys):
        path = tmp_path / "c.yaml"
        path.write_text("radio:\n  power: 30\n", encoding="utf-8")

        assert config_cli.validate_config_command(str(path)) == 1
        assert "1 error(s)" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert config_cli.validate_config_command(str(tmp_path / "missing.yaml")) == 1
        assert "not found" in capsys.readouterr().err

    def test_loaded_configuration(self):
        ConfigManager.initialize()
        assert config_cli.validate_config_command() == 0

    def test_loaded_configuration_not_initialized(self):
        assert config_cli.validate_config_command() == 1


class TestShowConfig:
    """Test --show-config."""

    def test_show(self, capsys):
        ConfigManager.initialize()

        assert config_cli.show_config_command() == 0

        out = capsys.readouterr().out
        assert "Loaded from: defaults only" in out
        assert "frequency: 916.0 (source: default)" in out

    def test_not_initialized(self):
        assert config_cli.show_config_command() == 1


class TestSchemaAndEncrypt:
    """Test --config-schema and --encrypt-value."""

    def test_schema_is_json(self, capsys):
        assert config_cli.config_schema_command() == 0
        schema = json.loads(capsys.readouterr().out)
        assert schema["title"] == "pagerlink Configuration"

    def test_encrypt_value(self, tmp_path, capsys):
        key_path = tmp_path / "key"

        assert config_cli.encrypt_value_command("hunter22", key_path=str(key_path)) == 0

        out = capsys.readouterr().out
        assert "encrypted:" in out
        assert str(key_path) in out
