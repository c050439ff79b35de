"""Unit tests for configuration schema validation."""

import pytest

from pagerlink.config.config_schema import ConfigSchema


class TestValidateConfig:
    """Test ConfigSchema.validate_config()."""

    def test_empty_config_valid(self):
        assert ConfigSchema.validate_config({}) == (True, [])

    def test_partial_config_valid(self):
        config = {"radio": {"frequency": 929.6625, "power": 10}, "encoding": {"mode": "remote"}}
        is_valid, errors = ConfigSchema.validate_config(config)
        assert is_valid, errors

    @pytest.mark.parametrize("power", [1, 21])
    def test_power_range(self, power):
        is_valid, errors = ConfigSchema.validate_config({"radio": {"power": power}})
        assert not is_valid
        assert "field 'power'" in errors[0]

    def test_frequency_must_be_positive(self):
        is_valid, errors = ConfigSchema.validate_config({"radio": {"frequency": 0}})
        assert not is_valid
        assert "Value must be > 0" in errors[0]

    def test_invalid_mode(self):
        is_valid, errors = ConfigSchema.validate_config({"encoding": {"mode": "hybrid"}})
        assert not is_valid
        assert "Expected one of ['remote', 'local']" in errors[0]

    def test_invalid_type(self):
        is_valid, errors = ConfigSchema.validate_config({"transfer": {"loop": "maybe"}})
        assert not is_valid
        assert "Expected type boolean" in errors[0]

    def test_invalid_baud_rate(self):
        is_valid, _ = ConfigSchema.validate_config({"serial": {"baud_rate": 12345}})
        assert not is_valid

    def test_unknown_field_strict(self):
        is_valid, errors = ConfigSchema.validate_config({"radio": {"modulation": "fsk"}})
        assert not is_valid
        assert "Unknown fields ['modulation']" in errors[0]

    def test_unknown_field_permissive(self):
        is_valid, _ = ConfigSchema.validate_config({"radio": {"modulation": "fsk"}}, strict=False)
        assert is_valid

    def test_nullable_device_fields(self):
        config = {"device": {"api_port": None, "wifi_ssid": None, "default_power": None}}
        assert ConfigSchema.validate_config(config)[0]

    def test_quoted_device_fields(self):
        is_valid, errors = ConfigSchema.validate_config({"device": {"banner": 'say "hi"'}})
        assert not is_valid
        assert "field 'banner'" in errors[0]

    def test_invalid_log_path(self):
        is_valid, errors = ConfigSchema.validate_config({"logging": {"log_file_path": "  "}})
        assert not is_valid
        assert "log_file_path" in errors[0]

    def test_errors_sorted_by_path(self):
        config = {"transfer": {"chunk_size": 0}, "radio": {"power": 99}}
        _, errors = ConfigSchema.validate_config(config)
        assert "'radio'" in errors[0]
        assert "'transfer'" in errors[1]


class TestHelpers:
    """Test standalone validators."""

    def test_validate_baud_rate(self):
        assert ConfigSchema.validate_baud_rate(115200)
        assert not ConfigSchema.validate_baud_rate(12345)

    def test_validate_quoted(self):
        assert ConfigSchema.validate_quoted("home network")
        assert not ConfigSchema.validate_quoted('a"b')
        assert not ConfigSchema.validate_quoted("a\nb")

    def test_validate_path(self):
        assert ConfigSchema.validate_path("/var/log/pagerlink.log")
        assert not ConfigSchema.validate_path("")
        assert not ConfigSchema.validate_path("bad\0path")

    def test_schema_sections(self):
        properties = ConfigSchema.get_schema()["properties"]
        assert set(properties) == {"serial", "protocol", "transfer", "radio",
                                   "encoding", "device", "logging", "encryption"}
