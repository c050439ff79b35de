"""Unit tests for TransferEngine remote and local flows."""

import pytest
from unittest.mock import Mock

from pagerlink.codec.pocsag import encode_message
from pagerlink.config.config_models import EncodingMode, RadioConfig, TransferConfig
from pagerlink.core.command_response import ParsedResponse, ResponseKind
from pagerlink.core.exceptions import (
    ChannelError,
    DeviceNotReadyError,
    EncodingError,
    ProtocolError,
    TransferTimeoutError
)
from pagerlink.core.transfer_engine import TransferEngine, TransferState, check_line_text


@pytest.fixture
def engine(executor, clock):
    return TransferEngine(executor, sleep=clock.sleep, clock=clock)


class TestTransferState:
    """Test per-attempt bookkeeping."""

    def test_begin_attempt_resets_progress(self):
        state = TransferState(mode=EncodingMode.LOCAL, total=100)
        state.begin_attempt()
        state.ready_confirmed = True
        state.delivered = 64

        state.begin_attempt()
        assert state.attempts == 2
        assert state.delivered == 0
        assert not state.ready_confirmed


class TestCheckLineText:
    """Test remote text validation."""

    def test_printable_ascii_accepted(self):
        check_line_text("HELLO world ~!@#$%^&*()")
        check_line_text("")

    @pytest.mark.parametrize("text", ["a\rb", "a\nb", "\x00", "\x7f", "café"])
    def test_rejected(self, text):
        with pytest.raises(EncodingError) as exc_info:
            check_line_text(text)
        assert exc_info.value.step == "validate text"


class TestApplyRadio:
    """Test radio configuration commands."""

    def test_frequency_and_power(self, engine, device):
        engine.apply_radio(RadioConfig(frequency=929.6625, power=10))
        assert device.sent_commands() == ["AT+FREQ=929.6625", "AT+POWER=10"]

    def test_mail_drop_only_when_set(self, engine, device):
        engine.apply_radio(RadioConfig(frequency=916.0, power=2, mail_drop=True))
        assert device.sent_commands() == ["AT+FREQ=916.0000", "AT+POWER=2", "AT+MAILDROP=1"]


class TestSendRemote:
    """Test the device-encoded flow."""

    def test_success(self, engine, device):
        state = engine.send_remote(1234567, "HELLO WORLD", RadioConfig())

        assert state.completed
        assert state.radio_applied
        assert state.ready_confirmed
        assert state.attempts == 1
        assert state.delivered == state.total == 11
        assert device.messages == [(1234567, "HELLO WORLD")]
        assert device.sent_commands() == ["AT+FREQ=916.0000", "AT+POWER=2", "AT+MSG=1234567"]

    def test_without_radio(self, engine, device):
        state = engine.send_remote(8, "HI")
        assert not state.radio_applied
        assert device.sent_commands() == ["AT+MSG=8"]

    def test_text_sent_with_terminator(self, engine, device):
        engine.send_remote(8, "HI")
        assert device.written.endswith(b"AT+MSG=8\r\nHI\r\n")

    def test_reset_probe_each_attempt(self, engine, device):
        engine.send_remote(8, "HI")
        assert device.commands == ["AT", "AT+MSG=8"]

    def test_missing_ready_retries_whole_flow(self, engine, device, clock):
        device.script("AT+MSG", b"+MSG: BUSY\r\n")

        state = engine.send_remote(8, "HI")

        assert state.attempts == 2
        assert state.last_error is not None
        assert device.sent_commands() == ["AT+MSG=8", "AT+MSG=8"]
        assert 2.0 in clock.sleeps

    def test_ready_required_every_attempt(self, engine, device):
        device.script("AT+MSG", *[b"OK\r\n"] * 3)

        with pytest.raises(DeviceNotReadyError) as exc_info:
            engine.send_remote(8, "HI")

        assert exc_info.value.attempts == 3
        assert exc_info.value.step == "await ready"
        assert exc_info.value.expected == "+MSG: READY"
        assert device.messages == []

    def test_completion_error(self, engine, device):
        device.completion_replies.extend([b"ERROR\r\n"] * 3)

        with pytest.raises(ProtocolError) as exc_info:
            engine.send_remote(8, "HI")

        assert exc_info.value.step == "await completion"
        assert exc_info.value.attempts == 3
        assert len(device.messages) == 3

    def test_completion_timeout_uses_message_budget(self, engine, device, clock):
        device.completion_replies.extend([b"", b"OK\r\n"])
        started = clock.now

        state = engine.send_remote(8, "HI")

        assert state.completed
        assert state.attempts == 2
        # the silent attempt waits out the full 35 s send budget
        assert clock.now - started >= 35.0

    def test_line_break_rejected_before_io(self, engine, device):
        with pytest.raises(EncodingError):
            engine.send_remote(1234567, "abc\r\nAT+FACTORYRESET", RadioConfig())

        assert device.written == bytearray()
        assert device.messages == []

    def test_completion_channel_failure(self, executor, device, clock, monkeypatch):
        engine = TransferEngine(executor, TransferConfig(max_attempts=1),
                                sleep=clock.sleep, clock=clock)
        real_read = executor.read_response
        reads = iter([real_read, lambda **kwargs: ParsedResponse(ResponseKind.INVALID,
                                                                   error="device unplugged")])
        monkeypatch.setattr(executor, "read_response", lambda **kwargs: next(reads)(**kwargs))

        with pytest.raises(ChannelError) as exc_info:
            engine.send_remote(8, "HI")

        assert exc_info.value.step == "await completion"
        assert exc_info.value.port == "/dev/ttyFAKE"
        assert "device unplugged" in str(exc_info.value)

    def test_radio_applied_once(self, engine, device):
        device.script("AT+MSG", b"ERROR\r\n")
        engine.send_remote(8, "HI", RadioConfig())
        assert device.sent_commands().count("AT+FREQ=916.0000") == 1

    def test_radio_failure_not_retried_by_transfer(self, engine, device):
        device.script("AT+FREQ", *[b"ERROR\r\n"] * 5)

        with pytest.raises(ProtocolError):
            engine.send_remote(8, "HI", RadioConfig())
        assert "AT+MSG=8" not in device.commands


class TestSendLocal:
    """Test the host-encoded flow."""

    def test_success(self, engine, device, clock):
        payload = encode_message(1234567, "HELLO")

        state = engine.send_local(payload, RadioConfig(power=5))

        assert state.completed
        assert state.delivered == state.total == len(payload)
        assert device.payloads == [payload]
        assert device.sent_commands() == ["AT+FREQ=916.0000", "AT+POWER=5",
                                          f"AT+SEND={len(payload)}"]
        assert 5.0 in clock.sleeps

    def test_chunk_pacing(self, engine, device, clock):
        payload = bytes(100)
        engine.send_local(payload)
        # 100 bytes in 32-byte chunks = 4 chunks
        assert clock.sleeps.count(0.005) == 4

    def test_custom_chunk_size(self, executor, device, clock):
        engine = TransferEngine(executor, TransferConfig(chunk_size=10, chunk_delay=0.001),
                                sleep=clock.sleep, clock=clock)
        engine.send_local(bytes(25))
        assert clock.sleeps.count(0.001) == 3

    def test_missing_ready(self, engine, device):
        device.script("AT+SEND", *[b"+MSG: READY\r\n"] * 3)

        with pytest.raises(DeviceNotReadyError) as exc_info:
            engine.send_local(bytes(8))
        assert exc_info.value.received == "+MSG: READY"

    def test_data_send_timeout(self, executor, device, clock):
        engine = TransferEngine(
            executor,
            TransferConfig(max_attempts=1, chunk_size=1, chunk_delay=1.0, data_send_timeout=2.5),
            sleep=clock.sleep, clock=clock
        )

        with pytest.raises(TransferTimeoutError) as exc_info:
            engine.send_local(bytes(10))
        assert exc_info.value.step == "send payload data"
        assert device.payloads == []

    def test_partial_delivery_restarts(self, engine, device):
        payload = bytes(64)
        device.completion_replies.append(b"ERROR\r\n")

        state = engine.send_local(payload)

        assert state.attempts == 2
        assert device.payloads == [payload, payload]


class TestEvents:
    """Test transfer event logging."""

    def test_complete_event(self, executor, clock):
        logger = Mock()
        engine = TransferEngine(executor, logger=logger, sleep=clock.sleep, clock=clock)
        engine.send_remote(8, "HI")

        events = [c.kwargs["event"] for c in logger.log_transfer_event.call_args_list]
        assert events == ["Transfer complete"]

    def test_failure_logged(self, executor, device, clock):
        logger = Mock()
        engine = TransferEngine(executor, TransferConfig(max_attempts=1),
                                logger=logger, sleep=clock.sleep, clock=clock)
        device.script("AT+MSG", b"ERROR\r\n")

        with pytest.raises(DeviceNotReadyError):
            engine.send_remote(8, "HI")
        logger.log_error.assert_called_once()
        assert logger.log_error.call_args.kwargs["source"] == "TransferEngine"
