"""Unit tests for the bounded retry combinator."""

import pytest
from unittest.mock import Mock

from pagerlink.core.exceptions import (
    PagerLinkError,
    ProtocolError,
    CommandTimeoutError,
    EncodingError
)
from pagerlink.core.retry import RetryPolicy, run_with_retry


def failing(*errors, result="done"):
    """Operation raising the given errors in order, then returning result."""
    remaining = list(errors)

    def operation(attempt):
        if remaining:
            raise remaining.pop(0)
        return result
    return operation


class TestRetryPolicy:
    """Test RetryPolicy lookups."""

    def test_most_specific_backoff_wins(self):
        policy = RetryPolicy(
            backoff={PagerLinkError: 2.0, CommandTimeoutError: 0.5},
            default_backoff=9.0
        )
        assert policy.delay_for(CommandTimeoutError("t", "AT")) == 0.5
        assert policy.delay_for(ProtocolError("e", "AT")) == 2.0
        assert policy.delay_for(ValueError()) == 9.0

    def test_is_retryable(self):
        policy = RetryPolicy(retry_on=(ProtocolError,))
        assert policy.is_retryable(ProtocolError("e", "AT"))
        assert not policy.is_retryable(EncodingError("bad"))


class TestRunWithRetry:
    """Test run_with_retry()."""

    def test_first_attempt_success(self):
        sleep = Mock()
        assert run_with_retry(failing(), RetryPolicy(max_attempts=3), sleep=sleep) == "done"
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        sleep = Mock()
        policy = RetryPolicy(max_attempts=3, retry_on=(ProtocolError,), default_backoff=0.5)
        operation = failing(ProtocolError("e", "AT"), ProtocolError("e", "AT"))

        assert run_with_retry(operation, policy, sleep=sleep) == "done"
        assert sleep.call_count == 2
        sleep.assert_called_with(0.5)

    def test_attempt_number_passed(self):
        seen = []

        def operation(attempt):
            seen.append(attempt)
            if attempt < 3:
                raise ProtocolError("e", "AT")
            return attempt

        policy = RetryPolicy(max_attempts=5, retry_on=(ProtocolError,))
        assert run_with_retry(operation, policy, sleep=Mock()) == 3
        assert seen == [1, 2, 3]

    def test_gives_up_and_records_attempts_and_step(self):
        policy = RetryPolicy(max_attempts=2, retry_on=(ProtocolError,))
        operation = failing(*[ProtocolError("e", "AT+FREQ=1.0000")] * 3)

        with pytest.raises(ProtocolError) as exc_info:
            run_with_retry(operation, policy, step="set frequency", sleep=Mock())

        assert exc_info.value.attempts == 2
        assert exc_info.value.step == "set frequency"

    def test_existing_step_kept(self):
        policy = RetryPolicy(max_attempts=1, retry_on=(ProtocolError,))
        operation = failing(ProtocolError("e", "AT", step="await ready"))

        with pytest.raises(ProtocolError) as exc_info:
            run_with_retry(operation, policy, step="send message", sleep=Mock())
        assert exc_info.value.step == "await ready"

    def test_non_retryable_propagates_immediately(self):
        sleep = Mock()
        policy = RetryPolicy(max_attempts=5, retry_on=(ProtocolError,))

        with pytest.raises(EncodingError) as exc_info:
            run_with_retry(failing(EncodingError("bad")), policy, sleep=sleep)
        assert exc_info.value.attempts == 1
        sleep.assert_not_called()

    def test_before_retry_hook(self):
        hook = Mock()
        error = CommandTimeoutError("t", "AT")
        policy = RetryPolicy(max_attempts=2, retry_on=(CommandTimeoutError,))

        run_with_retry(failing(error), policy, before_retry=hook, sleep=Mock())
        hook.assert_called_once_with(error, 1)

    def test_zero_attempts_still_runs_once(self):
        operation = Mock(return_value=1)
        assert run_with_retry(operation, RetryPolicy(max_attempts=0)) == 1
        operation.assert_called_once_with(1)
