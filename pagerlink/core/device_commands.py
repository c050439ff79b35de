"""Device settings and maintenance commands.

Thin wrappers that build the set/query AT commands understood by the
transmitter firmware and run them through an ATExecutor. Arguments are
validated locally so malformed values never reach the device.
"""

from typing import Optional

from pagerlink.core.at_executor import ATExecutor
from pagerlink.core.command_response import CommandResponse, parse_data_line
from pagerlink.codec.pocsag import MAX_ADDRESS

MIN_POWER = 2
MAX_POWER = 20


def _check_power(dbm: int) -> int:
    if not MIN_POWER <= int(dbm) <= MAX_POWER:
        raise ValueError(f"Power {dbm} dBm outside {MIN_POWER}..{MAX_POWER}")
    return int(dbm)


def _check_frequency(mhz: float) -> float:
    if float(mhz) <= 0:
        raise ValueError(f"Frequency must be positive, got {mhz}")
    return float(mhz)


def _check_capcode(capcode: int) -> int:
    if not 0 <= int(capcode) <= MAX_ADDRESS:
        raise ValueError(f"Capcode {capcode} outside 0..{MAX_ADDRESS}")
    return int(capcode)


def _check_port(port: int) -> int:
    if not 1 <= int(port) <= 65535:
        raise ValueError(f"Port {port} outside 1..65535")
    return int(port)


def _quote(value: str, name: str) -> str:
    if any(c in value for c in '"\r\n'):
        raise ValueError(f"{name} must not contain quotes or line breaks")
    return f'"{value}"'


class DeviceCommands:
    """Set/query command set of the paging transmitter.

    Setters return the CommandResponse; queries return the value part of the
    '+LABEL: value' data line, or None when the device sent no data line.

    Example:
        >>> commands = DeviceCommands(executor)
        >>> commands.set_frequency(916.0)
        >>> commands.get_frequency()
        '916.0000'
    """

    def __init__(self, executor: ATExecutor):
        self.executor = executor

    def _set(self, command: str) -> CommandResponse:
        return self.executor.execute(command)

    def _query(self, command: str) -> Optional[str]:
        response = self.executor.execute(command)
        if response.data is None:
            return None
        _, value = parse_data_line(response.data)
        return value

    # Radio

    def set_frequency(self, mhz: float) -> CommandResponse:
        return self._set(f"AT+FREQ={_check_frequency(mhz):.4f}")

    def get_frequency(self) -> Optional[str]:
        return self._query("AT+FREQ?")

    def set_power(self, dbm: int) -> CommandResponse:
        return self._set(f"AT+POWER={_check_power(dbm)}")

    def get_power(self) -> Optional[str]:
        return self._query("AT+POWER?")

    def set_mail_drop(self, enabled: bool) -> CommandResponse:
        return self._set(f"AT+MAILDROP={1 if enabled else 0}")

    def get_mail_drop(self) -> Optional[str]:
        return self._query("AT+MAILDROP?")

    # Network and API

    def set_wifi(self, ssid: str, password: str) -> CommandResponse:
        """Store WiFi credentials (AT+WIFI="ssid","password")."""
        return self._set(
            f"AT+WIFI={_quote(ssid, 'SSID')},{_quote(password, 'WiFi password')}"
        )

    def get_wifi(self) -> Optional[str]:
        return self._query("AT+WIFI?")

    def set_banner(self, text: str) -> CommandResponse:
        return self._set(f"AT+BANNER={_quote(text, 'Banner')}")

    def get_banner(self) -> Optional[str]:
        return self._query("AT+BANNER?")

    def set_api_port(self, port: int) -> CommandResponse:
        return self._set(f"AT+APIPORT={_check_port(port)}")

    def get_api_port(self) -> Optional[str]:
        return self._query("AT+APIPORT?")

    def set_api_credentials(self, username: str, password: str) -> CommandResponse:
        """Set the REST API username, then password.

        Both values are validated before either command is sent.
        """
        user_arg = _quote(username, 'API username')
        pass_arg = _quote(password, 'API password')
        self._set(f"AT+APIUSER={user_arg}")
        return self._set(f"AT+APIPASS={pass_arg}")

    # Power-on defaults

    def set_default_capcode(self, capcode: int) -> CommandResponse:
        return self._set(f"AT+DEFCAPCODE={_check_capcode(capcode)}")

    def get_default_capcode(self) -> Optional[str]:
        return self._query("AT+DEFCAPCODE?")

    def set_default_frequency(self, mhz: float) -> CommandResponse:
        return self._set(f"AT+DEFFREQ={_check_frequency(mhz):.4f}")

    def get_default_frequency(self) -> Optional[str]:
        return self._query("AT+DEFFREQ?")

    def set_default_power(self, dbm: int) -> CommandResponse:
        return self._set(f"AT+DEFPOWER={_check_power(dbm)}")

    def get_default_power(self) -> Optional[str]:
        return self._query("AT+DEFPOWER?")

    # Maintenance

    def save(self) -> CommandResponse:
        """Persist current settings to device storage."""
        return self._set("AT+SAVE")

    def factory_reset(self) -> CommandResponse:
        return self._set("AT+FACTORYRESET")

    def soft_reset(self) -> CommandResponse:
        return self._set("AT+RESET")

    def query_status(self) -> Optional[str]:
        return self._query("AT+STATUS?")

    def query_battery(self) -> Optional[str]:
        return self._query("AT+BATTERY?")
