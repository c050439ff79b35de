"""pagerlink - paging transmitter command-line interface.

Sends POCSAG paging messages through an AT-command transmitter, either as a
single capcode/message pair or as 'capcode:message' lines read from stdin,
and provisions or queries the device.
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional
import argparse
import logging
import sys

from pagerlink.codec import MessageFunction, BitOrder, encode_message
from pagerlink.config import ConfigManager, Config, EncodingMode, LogLevel
from pagerlink.config import config_cli
from pagerlink.core import (
    SerialHandler,
    DeviceSession,
    PagerLinkError,
    EncodingError
)
from pagerlink.logging import CommunicationLogger


def _power(value: str) -> int:
    power = int(value)
    if not 2 <= power <= 20:
        raise argparse.ArgumentTypeError(f"Invalid power: {value} (expected 2-20)")
    return power


def _frequency(value: str) -> float:
    frequency = float(value)
    if frequency <= 0:
        raise argparse.ArgumentTypeError(f"Invalid frequency: {value}")
    return frequency


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="pagerlink - send paging messages through an AT-command transmitter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 1234567 'MY MESSAGE'                         # Local encoding (default)
  %(prog)s -r 1234567 'MY MESSAGE'                      # Device-side encoding
  %(prog)s -d /dev/ttyACM0 -f 915.5 -p 10 1234567 'MY MESSAGE'
  printf '1234567:MY MESSAGE' | %(prog)s -
  printf '1234567:MSG1\\n1122334:MSG2' | %(prog)s -l -

  %(prog)s --encode-only 1234567 'MY MESSAGE'           # Print encoded payload
  %(prog)s --status                                     # Query device settings
  %(prog)s --provision --config pagerlink.yaml          # Push device section
  %(prog)s --discover-ports

  # Logging:
  %(prog)s --log --log-level DEBUG --log-to-console 1234567 'MY MESSAGE'
        """
    )

    parser.add_argument('capcode', nargs='?',
                        help="Recipient capcode, or '-' to read capcode:message lines from stdin")
    parser.add_argument('message', nargs='?', help='Message text')

    parser.add_argument('-d', '--port', help='Serial device (e.g., /dev/ttyUSB0)')
    parser.add_argument('-b', '--baud', type=int, help='Baud rate')
    parser.add_argument('-f', '--frequency', type=_frequency, help='Frequency in MHz')
    parser.add_argument('-p', '--power', type=_power, help='Transmit power in dBm (2-20)')
    parser.add_argument('-l', '--loop', action='store_true',
                        help='Stdin mode: keep reading lines until EOF, skipping failures')
    parser.add_argument('-m', '--mail-drop', action='store_true', help='Set the mail drop flag')
    parser.add_argument('-r', '--remote', action='store_true',
                        help='Encode on the device (AT+MSG) instead of on the host (AT+SEND)')
    parser.add_argument('--numeric', action='store_true', help='Send as a numeric (BCD) message')
    parser.add_argument('--msb-first', action='store_true',
                        help='Pack alphanumeric characters most significant bit first')
    parser.add_argument('--config', metavar='PATH', help='Configuration file')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')

    parser.add_argument('--encode-only', action='store_true',
                        help='Print the locally encoded payload as hex and exit')
    parser.add_argument('--provision', action='store_true',
                        help='Push the device section of the configuration and exit')
    parser.add_argument('--status', action='store_true',
                        help='Query radio settings, status and battery and exit')
    parser.add_argument('--discover-ports', action='store_true',
                        help='Discover and list available serial ports')

    # Logging arguments
    parser.add_argument('--log', action='store_true', help='Enable communication logging')
    parser.add_argument('--log-file', metavar='PATH',
                        help='Path to log file (default: ~/.pagerlink/logs/comm_YYYYMMDD_HHMMSS.log)')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level (default: INFO)')
    parser.add_argument('--log-to-console', action='store_true',
                        help='Output logs to console (stderr) in addition to file')

    # Configuration management arguments
    parser.add_argument('--show-config', action='store_true',
                        help='Show current configuration with sources')
    parser.add_argument('--validate-config', nargs='?', const='', metavar='PATH',
                        help='Validate a configuration file (default: the loaded configuration)')
    parser.add_argument('--generate-config', nargs='?', const='./pagerlink.yaml', metavar='PATH',
                        help='Write the default configuration (default: ./pagerlink.yaml)')
    parser.add_argument('--config-schema', action='store_true',
                        help='Output JSON schema for configuration')
    parser.add_argument('--encrypt-value', metavar='VALUE',
                        help='Encrypt a value for use in configuration')

    return parser


def apply_arguments(config: Config, args: argparse.Namespace) -> Config:
    """Overlay command-line options on the loaded configuration."""
    serial = config.serial
    if args.port:
        serial = replace(serial, port=args.port)
    if args.baud:
        serial = replace(serial, baud_rate=args.baud)

    radio = config.radio
    if args.frequency is not None:
        radio = replace(radio, frequency=args.frequency)
    if args.power is not None:
        radio = replace(radio, power=args.power)
    if args.mail_drop:
        radio = replace(radio, mail_drop=True)

    encoding = config.encoding
    if args.remote:
        encoding = replace(encoding, mode=EncodingMode.REMOTE)
    if args.numeric:
        encoding = replace(encoding, function=MessageFunction.NUMERIC)
    if args.msb_first:
        encoding = replace(encoding, bit_order=BitOrder.MSB_FIRST)

    transfer = config.transfer
    if args.loop:
        transfer = replace(transfer, loop=True)

    log_config = config.logging
    if args.log:
        log_config = replace(log_config, enabled=True, log_to_file=True,
                             log_to_console=args.log_to_console)
    if args.log_file:
        log_config = replace(log_config, log_file_path=args.log_file)
    if args.log_level:
        log_config = replace(log_config, level=LogLevel(args.log_level))

    return replace(config, serial=serial, radio=radio, encoding=encoding,
                   transfer=transfer, logging=log_config)


def discover_ports() -> None:
    """Discover and display available serial ports."""
    print("Discovering serial ports...")
    ports = SerialHandler.discover_ports()

    if not ports:
        print("No serial ports found.")
        return

    print(f"\nFound {len(ports)} port(s):")
    for port in ports:
        print(f"  {port.device}")
        print(f"    Description: {port.description}")
        print(f"    Hardware ID: {port.hwid}")
        print()


def parse_capcode(text: str) -> int:
    if not text.isdigit():
        raise EncodingError(f"Invalid capcode: {text}", step="parse arguments")
    return int(text)


def encode_only(config: Config, capcode: int, message: str) -> int:
    """Print the local encoding of one message as hex words."""
    payload = encode_message(
        capcode,
        message,
        function=config.encoding.function,
        bit_order=config.encoding.bit_order,
        max_length=config.encoding.max_message_length
    )
    for offset in range(0, len(payload), 4):
        print(payload[offset:offset + 4].hex().upper())
    print(f"{len(payload)} bytes ({len(payload) // 4} codewords)", file=sys.stderr)
    return 0


def show_status(session: DeviceSession) -> int:
    commands = session.commands
    print(f"Frequency: {commands.get_frequency()}")
    print(f"Power:     {commands.get_power()}")
    print(f"Mail drop: {commands.get_mail_drop()}")
    print(f"Status:    {commands.query_status()}")
    print(f"Battery:   {commands.query_battery()}")
    return 0


def run_session(config: Config,
                args: argparse.Namespace,
                logger: Optional[CommunicationLogger]) -> int:
    """Open the device, handshake and perform the requested action."""
    channel = SerialHandler(
        config.serial.port,
        baud_rate=config.serial.baud_rate,
        timeout=config.serial.read_timeout,
        logger=logger
    )
    remote = config.encoding.mode == EncodingMode.REMOTE

    with DeviceSession(channel, config, logger=logger) as session:
        if args.verbose:
            print(f"Opened {config.serial.port} at {config.serial.baud_rate} baud")
        session.initialize()

        if args.status:
            return show_status(session)

        if args.provision:
            applied = session.provision()
            print(f"Provisioned: {', '.join(applied) if applied else 'nothing configured'}")
            return 0

        print("Using remote encoding mode (device-side encoding)" if remote
              else "Using local encoding mode (host-side encoding)")

        if args.capcode == '-':
            summary = session.send_stream(sys.stdin)
            print(f"Sent {summary.sent} message(s), {summary.failed} failed, "
                  f"{summary.skipped} skipped")
            return 0 if summary.ok or config.transfer.loop else 1

        state = session.send_message(parse_capcode(args.capcode), args.message)
        if remote:
            print("Successfully sent message using remote encoding")
        else:
            print(f"Successfully sent {state.total} bytes using local encoding")
        return 0


def main() -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    # Configuration commands that need no loaded configuration
    if args.generate_config:
        return config_cli.generate_config_command(args.generate_config)
    if args.config_schema:
        return config_cli.config_schema_command()
    if args.encrypt_value:
        return config_cli.encrypt_value_command(args.encrypt_value)
    if args.validate_config:
        return config_cli.validate_config_command(args.validate_config)

    try:
        manager = ConfigManager.initialize(Path(args.config) if args.config else None)
    except (ValueError, PagerLinkError) as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.show_config:
        return config_cli.show_config_command(mask_sensitive=True)
    if args.validate_config is not None:
        return config_cli.validate_config_command()

    if args.discover_ports:
        discover_ports()
        return 0

    config = apply_arguments(manager.get_config(), args)

    sending = args.capcode == '-' or (args.capcode is not None and args.message is not None)
    if not (sending or args.status or args.provision):
        parser.print_help()
        return 1

    if args.encode_only:
        if args.capcode is None or args.capcode == '-' or args.message is None:
            print("Error: --encode-only requires <capcode> <message>", file=sys.stderr)
            return 1
        try:
            return encode_only(config, parse_capcode(args.capcode), args.message)
        except EncodingError as e:
            print(f"Error encoding message: {e}", file=sys.stderr)
            return 1

    logger = None
    if config.logging.enabled:
        logger = CommunicationLogger.from_config(config.logging)
        if args.verbose and logger.log_file_path:
            print(f"Logging enabled: {logger.log_file_path}")

    try:
        return run_session(config, args, logger)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1
    except EncodingError as e:
        print(f"Error encoding message: {e}", file=sys.stderr)
        return 1
    except (PagerLinkError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        if logger:
            logger.close()


if __name__ == '__main__':
    sys.exit(main())
