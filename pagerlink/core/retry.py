"""Bounded retry combinator.

A RetryPolicy names how many attempts an operation gets, which error types
are worth another attempt, and how long to back off after each kind of
failure. run_with_retry() applies a policy to a callable and is shared by
the command-level and transfer-level retry loops.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple, Type, TypeVar
import time

from pagerlink.core.exceptions import PagerLinkError

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule.

    Attributes:
        max_attempts: Total attempts, first one included (minimum 1)
        retry_on: Error types that allow another attempt; anything else
            propagates immediately
        backoff: Delay in seconds after a failure, keyed by error type.
            The most specific matching type wins.
        default_backoff: Delay used when no backoff entry matches
    """

    max_attempts: int = 1
    retry_on: Tuple[Type[BaseException], ...] = ()
    backoff: Dict[Type[BaseException], float] = field(default_factory=dict)
    default_backoff: float = 0.0

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, self.retry_on)

    def delay_for(self, error: BaseException) -> float:
        """Return the backoff delay for error."""
        for klass in type(error).__mro__:
            if klass in self.backoff:
                return self.backoff[klass]
        return self.default_backoff


def run_with_retry(operation: Callable[[int], T],
                   policy: RetryPolicy,
                   step: Optional[str] = None,
                   before_retry: Optional[Callable[[BaseException, int], None]] = None,
                   sleep: Callable[[float], None] = time.sleep) -> T:
    """Run operation until it succeeds or the policy gives up.

    Args:
        operation: Callable receiving the 1-based attempt number
        policy: RetryPolicy to apply
        step: Step name recorded on the final error if it has none
        before_retry: Hook called with (error, attempt) before backing off,
            e.g. to probe the device after a timeout
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation's return value

    Raises:
        The last error raised by operation. PagerLinkError instances have
        their attempts (and step, if unset) filled in.
    """
    attempts = max(1, policy.max_attempts)
    attempt = 1

    while True:
        try:
            return operation(attempt)
        except Exception as e:
            if not policy.is_retryable(e) or attempt >= attempts:
                if isinstance(e, PagerLinkError):
                    e.attempts = attempt
                    if e.step is None:
                        e.step = step
                raise

            if before_retry is not None:
                before_retry(e, attempt)

            delay = policy.delay_for(e)
            if delay > 0:
                sleep(delay)
            attempt += 1
