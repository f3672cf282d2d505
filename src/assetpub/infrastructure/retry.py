"""Retry-with-backoff execution built on tenacity.

Every outbound call (blob uploads, stored procedure execution, token
requests) is wrapped by ``retry``/``RetryExecutor`` so transient
failures do not fail a release job.
"""

from __future__ import annotations

import random
import threading
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

import requests
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from assetpub.domain.config.retry import RetryPolicy
from assetpub.domain.errors import ConfigurationError, RetryCancelledError

T = TypeVar("T")

PolicyLike = Union[RetryPolicy, Mapping[str, Any], None]
RetryPredicate = Callable[[BaseException], bool]
BeforeSleepHook = Callable[[int, BaseException, float], None]


def _always_retry(exception: BaseException) -> bool:
    return True


def _status_code(exception: BaseException) -> Optional[int]:
    if isinstance(exception, requests.exceptions.HTTPError) and exception.response is not None:
        return exception.response.status_code
    return getattr(exception, "status_code", None)


def is_transient_error(exception: BaseException) -> bool:
    """Stricter retryability predicate for HTTP-backed operations.

    Auth errors and most 4xx responses are final; 429, 5xx and errors
    without a status code (network failures) are retried.
    """
    if isinstance(exception, (ConfigurationError, RetryCancelledError)):
        return False
    status_code = _status_code(exception)
    if status_code in (401, 403):
        return False
    if status_code and 400 <= status_code < 500 and status_code != 429:
        return False
    return True


def build_policy(policy: PolicyLike = None, **overrides: Any) -> RetryPolicy:
    """Build a validated RetryPolicy.

    Args:
        policy: Existing policy, a mapping of policy fields, or None for defaults
        **overrides: Individual fields taking precedence over ``policy``

    Returns:
        RetryPolicy instance

    Raises:
        ConfigurationError: If the resulting policy is invalid
    """
    if isinstance(policy, RetryPolicy) and not overrides:
        return policy
    if isinstance(policy, RetryPolicy):
        fields = policy.model_dump()
    else:
        fields = dict(policy or {})
    fields.update(overrides)
    try:
        return RetryPolicy(**fields)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {field}: {error['msg']}")
        raise ConfigurationError("Invalid retry policy:\n" + "\n".join(errors)) from e


class _wait_with_jitter(wait_base):
    """Wraps a deterministic wait with +/- jitter, kept within [0, max_delay]."""

    def __init__(self, wait: wait_base, jitter_amount: float, max_delay: Optional[float] = None):
        self.wait = wait
        self.jitter_amount = jitter_amount
        self.max_delay = max_delay

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self.wait(retry_state) + random.uniform(-self.jitter_amount, self.jitter_amount)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(0.0, delay)


def create_wait(policy: RetryPolicy) -> wait_base:
    """Create the tenacity wait strategy for a policy.

    Delay after attempt n is ``base_delay * backoff_factor ** (n - 1)``,
    capped by ``max_delay`` after any jitter is applied.
    """
    kwargs: dict = {"multiplier": policy.base_delay, "exp_base": policy.backoff_factor}
    if policy.max_delay is not None:
        kwargs["max"] = policy.max_delay
    wait: wait_base = wait_exponential(**kwargs)
    if policy.jitter > 0:
        wait = _wait_with_jitter(wait, policy.base_delay * policy.jitter, policy.max_delay)
    return wait


class RetryExecutor:
    """Runs an operation, retrying failures with exponential backoff.

    Attempts are strictly sequential. The exception raised by the final
    attempt is re-raised verbatim once ``max_attempts`` is exhausted;
    earlier exceptions are discarded. The executor keeps no per-call
    state, so one instance may serve concurrent calls.
    """

    def __init__(
        self,
        policy: PolicyLike = None,
        *,
        retry_on: Optional[RetryPredicate] = None,
        before_sleep: Optional[BeforeSleepHook] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
        async_sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize executor

        Args:
            policy: Retry policy (defaults applied when None)
            retry_on: Predicate deciding whether an exception is retryable
                (default: every Exception is retried)
            before_sleep: Hook called with (attempt, exception, delay) before each delay
            cancel_event: Event that aborts a pending delay when set
            sleep: Blocking sleep function (default: tenacity's sleep)
            async_sleep: Coroutine sleep function for ``run_async``

        Raises:
            ConfigurationError: If the policy is invalid
        """
        self.policy = build_policy(policy)
        self.retry_on = retry_on or _always_retry
        self.before_sleep = before_sleep
        self.cancel_event = cancel_event
        self.sleep = sleep
        self.async_sleep = async_sleep

    def _should_retry(self, exception: BaseException) -> bool:
        # KeyboardInterrupt, SystemExit and asyncio.CancelledError propagate at once
        if not isinstance(exception, Exception):
            return False
        if isinstance(exception, RetryCancelledError):
            return False
        return self.retry_on(exception)

    def _tenacity_kwargs(self) -> dict:
        kwargs = {
            "stop": stop_after_attempt(self.policy.max_attempts),
            "wait": create_wait(self.policy),
            "retry": retry_if_exception(self._should_retry),
            "reraise": True,
        }
        if self.before_sleep is not None:
            hook = self.before_sleep

            def _before_sleep(retry_state: RetryCallState) -> None:
                hook(
                    retry_state.attempt_number,
                    retry_state.outcome.exception(),
                    retry_state.next_action.sleep,
                )

            kwargs["before_sleep"] = _before_sleep
        return kwargs

    def _check_cancelled(self, attempts: int) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RetryCancelledError(attempts)

    def run(self, operation: Callable[[], T]) -> T:
        """Invoke ``operation`` until it succeeds or attempts are exhausted"""
        attempts = 0

        def _attempt() -> T:
            nonlocal attempts
            self._check_cancelled(attempts)
            attempts += 1
            return operation()

        kwargs = self._tenacity_kwargs()
        if self.cancel_event is not None:
            event = self.cancel_event
            sleep = self.sleep

            def _cancellable_sleep(seconds: float) -> None:
                if sleep is not None:
                    sleep(seconds)
                    if event.is_set():
                        raise RetryCancelledError(attempts)
                elif event.wait(seconds):
                    raise RetryCancelledError(attempts)

            kwargs["sleep"] = _cancellable_sleep
        elif self.sleep is not None:
            kwargs["sleep"] = self.sleep

        return Retrying(**kwargs)(_attempt)

    async def run_async(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Async variant of ``run``; delays use ``asyncio.sleep``"""
        attempts = 0

        async def _attempt() -> T:
            nonlocal attempts
            self._check_cancelled(attempts)
            attempts += 1
            return await operation()

        kwargs = self._tenacity_kwargs()
        if self.async_sleep is not None:
            kwargs["sleep"] = self.async_sleep
        return await AsyncRetrying(**kwargs)(_attempt)


def retry(
    operation: Callable[[], T],
    policy: PolicyLike = None,
    *,
    retry_on: Optional[RetryPredicate] = None,
    before_sleep: Optional[BeforeSleepHook] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
    **overrides: Any,
) -> T:
    """Run ``operation`` with retries.

    Args:
        operation: Zero-argument callable; may be invoked several times
        policy: Retry policy or mapping of policy fields
        retry_on: Optional retryability predicate (default: retry every Exception)
        before_sleep: Optional hook called before each delay
        cancel_event: Optional event aborting a pending delay
        sleep: Optional sleep function
        **overrides: Policy fields, e.g. ``max_attempts=3``

    Returns:
        The operation's result

    Raises:
        ConfigurationError: If the policy is invalid (before any attempt)
        RetryCancelledError: If ``cancel_event`` fired during a delay
        Exception: The exception raised by the final attempt
    """
    executor = RetryExecutor(
        build_policy(policy, **overrides),
        retry_on=retry_on,
        before_sleep=before_sleep,
        cancel_event=cancel_event,
        sleep=sleep,
    )
    return executor.run(operation)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: PolicyLike = None,
    *,
    retry_on: Optional[RetryPredicate] = None,
    before_sleep: Optional[BeforeSleepHook] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    **overrides: Any,
) -> T:
    """Async counterpart of ``retry``"""
    executor = RetryExecutor(
        build_policy(policy, **overrides),
        retry_on=retry_on,
        before_sleep=before_sleep,
        async_sleep=sleep,
    )
    return await executor.run_async(operation)
