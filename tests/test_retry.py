"""Tests for the retry executor"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List

import pytest
import requests
from pydantic import ValidationError

from assetpub.domain.config.retry import RetryPolicy
from assetpub.domain.errors import ConfigurationError, RetryCancelledError, StorageError
from assetpub.infrastructure.retry import (
    RetryExecutor,
    build_policy,
    is_transient_error,
    retry,
    retry_async,
)


class FlakyOperation:
    """Fails ``failures`` times with numbered errors, then returns ``result``"""

    def __init__(self, failures: int, result: str = "ok"):
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"E{self.calls}")
        return self.result


class TestRetryOutcomes:
    """Tests for attempt counting and the terminal outcome"""

    def test_first_attempt_success_has_no_delay(self):
        """Test that a successful first attempt returns immediately"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=0, result="value")

        assert retry(op, sleep=sleeps.append) == "value"
        assert op.calls == 1
        assert sleeps == []

    @pytest.mark.parametrize("failures", [1, 2, 4])
    def test_succeeds_after_k_failures(self, failures):
        """Test k failures followed by success takes k+1 invocations"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=failures)

        assert retry(op, max_attempts=5, base_delay=0, sleep=sleeps.append) == "ok"
        assert op.calls == failures + 1
        assert len(sleeps) == failures

    def test_always_failing_raises_last_error(self):
        """Test that the final attempt's error is surfaced, not the first"""
        op = FlakyOperation(failures=100)

        with pytest.raises(RuntimeError, match="^E3$"):
            retry(op, max_attempts=3, base_delay=0, sleep=lambda _: None)
        assert op.calls == 3

    def test_last_error_is_reraised_verbatim(self):
        """Test that the exact exception object from the final attempt is raised"""
        errors = [ValueError("first"), KeyError("second"), OSError("third")]
        calls = {"n": 0}

        def op():
            error = errors[calls["n"]]
            calls["n"] += 1
            raise error

        with pytest.raises(OSError) as exc_info:
            retry(op, max_attempts=3, base_delay=0, sleep=lambda _: None)
        assert exc_info.value is errors[2]

    def test_single_attempt_means_no_retry(self):
        """Test max_attempts=1 surfaces the first failure immediately"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=1)

        with pytest.raises(RuntimeError, match="E1"):
            retry(op, max_attempts=1, sleep=sleeps.append)
        assert op.calls == 1
        assert sleeps == []


class TestBackoff:
    """Tests for delay computation"""

    def test_doubling_delays(self):
        """Test base_delay=1, factor=2, 4 attempts: delays 1, 2, 4"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=3, result="fourth")

        result = retry(
            op, max_attempts=4, base_delay=1, backoff_factor=2, sleep=sleeps.append
        )

        assert result == "fourth"
        assert op.calls == 4
        assert sleeps == [1, 2, 4]

    def test_custom_factor(self):
        """Test backoff_factor=3 with base 0.5"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=3)

        retry(op, max_attempts=4, base_delay=0.5, backoff_factor=3, sleep=sleeps.append)

        assert sleeps == pytest.approx([0.5, 1.5, 4.5])

    def test_delays_non_decreasing(self):
        """Test delays never shrink for backoff_factor >= 1"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=100)

        with pytest.raises(RuntimeError):
            retry(op, max_attempts=6, base_delay=0.1, backoff_factor=1.5, sleep=sleeps.append)

        assert len(sleeps) == 5
        assert all(a <= b for a, b in zip(sleeps, sleeps[1:]))

    def test_max_delay_caps_delay(self):
        """Test that max_delay bounds each delay"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=4)

        retry(op, max_attempts=5, base_delay=1, backoff_factor=10, max_delay=5, sleep=sleeps.append)

        assert sleeps == [1, 5, 5, 5]

    def test_jitter_stays_within_bounds(self):
        """Test jitter adds at most +/- base_delay * jitter"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=2)

        retry(op, max_attempts=3, base_delay=1.0, jitter=0.1, sleep=sleeps.append)

        assert 0.9 <= sleeps[0] <= 1.1
        assert 1.9 <= sleeps[1] <= 2.1

    def test_jitter_never_exceeds_max_delay(self):
        """Test max_delay still bounds delays once jitter is added"""
        sleeps: List[float] = []
        op = FlakyOperation(failures=5)

        retry(
            op,
            max_attempts=6,
            base_delay=1,
            backoff_factor=10,
            max_delay=5,
            jitter=1.0,
            sleep=sleeps.append,
        )

        assert len(sleeps) == 5
        assert all(0 <= delay <= 5 for delay in sleeps)


class TestPolicyValidation:
    """Tests for policy construction"""

    def test_defaults(self):
        """Test default policy values"""
        policy = RetryPolicy()
        assert policy.max_attempts == 5
        assert policy.base_delay == 1.0
        assert policy.backoff_factor == 2.0
        assert policy.jitter == 0.0
        assert policy.max_delay is None

    def test_zero_attempts_fails_before_any_attempt(self):
        """Test invalid max_attempts raises ConfigurationError without invoking the operation"""
        op = FlakyOperation(failures=0)

        with pytest.raises(ConfigurationError, match="max_attempts"):
            retry(op, max_attempts=0)
        assert op.calls == 0

    def test_negative_delay_rejected(self):
        """Test negative base_delay is a configuration error"""
        with pytest.raises(ConfigurationError, match="base_delay"):
            build_policy(base_delay=-1)

    def test_unknown_field_rejected(self):
        """Test unknown policy fields are rejected"""
        with pytest.raises(ConfigurationError):
            build_policy({"retries": 3})

    def test_model_validation_error(self):
        """Test direct model construction validates too"""
        with pytest.raises(ValidationError, match="max_attempts"):
            RetryPolicy(max_attempts=0)

    def test_policy_is_immutable(self):
        """Test a policy cannot be modified after creation"""
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.max_attempts = 10

    def test_overrides_merge_with_policy(self):
        """Test keyword overrides take precedence over the given policy"""
        policy = build_policy(RetryPolicy(max_attempts=2, base_delay=3), max_attempts=7)
        assert policy.max_attempts == 7
        assert policy.base_delay == 3

    def test_same_policy_returned_without_overrides(self):
        """Test build_policy passes through an existing policy"""
        policy = RetryPolicy(max_attempts=2)
        assert build_policy(policy) is policy


class TestRetryHooks:
    """Tests for retry_on, before_sleep and cancellation"""

    def test_non_retryable_error_raises_immediately(self):
        """Test that a predicate returning False stops retrying"""
        op = FlakyOperation(failures=5)

        with pytest.raises(RuntimeError, match="E1"):
            retry(op, max_attempts=5, retry_on=lambda e: False, sleep=lambda _: None)
        assert op.calls == 1

    def test_predicate_receives_exception(self):
        """Test the predicate sees each failure"""
        seen = []

        def retry_on(exc):
            seen.append(str(exc))
            return True

        retry(FlakyOperation(failures=2), base_delay=0, retry_on=retry_on, sleep=lambda _: None)
        assert seen == ["E1", "E2"]

    def test_before_sleep_hook(self):
        """Test before_sleep gets attempt number, exception and delay"""
        calls = []

        retry(
            FlakyOperation(failures=2),
            base_delay=1,
            backoff_factor=2,
            before_sleep=lambda attempt, exc, delay: calls.append((attempt, str(exc), delay)),
            sleep=lambda _: None,
        )

        assert calls == [(1, "E1", 1), (2, "E2", 2)]

    def test_cancel_during_delay(self):
        """Test a set cancel event stops retrying without another attempt"""
        event = threading.Event()
        op = FlakyOperation(failures=5)

        with pytest.raises(RetryCancelledError) as exc_info:
            retry(
                op,
                max_attempts=5,
                base_delay=1,
                cancel_event=event,
                before_sleep=lambda *_: event.set(),
                sleep=lambda _: None,
            )
        assert op.calls == 1
        assert exc_info.value.attempt == 1

    def test_cancel_aborts_real_wait(self):
        """Test cancellation interrupts the pending delay itself"""
        event = threading.Event()
        op = FlakyOperation(failures=5)

        # base_delay is long; the wait returns immediately because the event is set
        with pytest.raises(RetryCancelledError):
            retry(op, base_delay=60, cancel_event=event, before_sleep=lambda *_: event.set())
        assert op.calls == 1

    def test_cancel_before_start(self):
        """Test no attempt is made when the event is already set"""
        event = threading.Event()
        event.set()
        op = FlakyOperation(failures=0)

        with pytest.raises(RetryCancelledError):
            retry(op, cancel_event=event, sleep=lambda _: None)
        assert op.calls == 0

    @pytest.mark.parametrize("interrupt", [KeyboardInterrupt, SystemExit])
    def test_interrupts_are_not_retried(self, interrupt):
        """Test interrupts propagate after a single invocation"""
        calls = {"n": 0}

        def op():
            calls["n"] += 1
            raise interrupt()

        with pytest.raises(interrupt):
            retry(op, max_attempts=3, base_delay=0, sleep=lambda _: None)
        assert calls["n"] == 1

    def test_interrupts_bypass_predicate(self):
        """Test retry_on is not consulted for interrupts"""
        seen = []

        def op():
            raise KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            retry(op, max_attempts=3, retry_on=seen.append, sleep=lambda _: None)
        assert seen == []


class TestConcurrentRetries:
    """Tests for independent retry calls running in parallel"""

    def test_independent_calls_do_not_interfere(self):
        """Test concurrent calls keep their own attempt counts and delays"""
        executor = RetryExecutor(RetryPolicy(max_attempts=5, base_delay=0.001))
        ops = [FlakyOperation(failures=n, result=f"r{n}") for n in (0, 2, 4)]

        with ThreadPoolExecutor(max_workers=3) as pool:
            results = list(pool.map(executor.run, ops))

        assert results == ["r0", "r2", "r4"]
        assert [op.calls for op in ops] == [1, 3, 5]

    def test_separate_sleep_recorders(self):
        """Test each concurrent call observes only its own delays"""
        barrier = threading.Barrier(2)

        def run(failures: int, base: float) -> List[float]:
            sleeps: List[float] = []
            op = FlakyOperation(failures=failures)

            def record(delay: float) -> None:
                sleeps.append(delay)

            barrier.wait()
            retry(op, max_attempts=4, base_delay=base, sleep=record)
            return sleeps

        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(run, 3, 1)
            second = pool.submit(run, 2, 10)

        assert first.result() == [1, 2, 4]
        assert second.result() == [10, 20]


class TestRetryAsync:
    """Tests for the async variant"""

    def test_async_retries_then_succeeds(self):
        """Test async operation failing twice then succeeding"""
        sleeps: List[float] = []
        calls = {"n": 0}

        async def op():
            calls["n"] += 1
            if calls["n"] < 3:
                raise RuntimeError(f"E{calls['n']}")
            return "done"

        async def fake_sleep(delay):
            sleeps.append(delay)

        result = asyncio.run(retry_async(op, max_attempts=4, base_delay=1, sleep=fake_sleep))

        assert result == "done"
        assert calls["n"] == 3
        assert sleeps == [1, 2]

    def test_async_raises_last_error(self):
        """Test async exhaustion re-raises the final error"""
        calls = {"n": 0}

        async def op():
            calls["n"] += 1
            raise RuntimeError(f"E{calls['n']}")

        async def fake_sleep(delay):
            pass

        with pytest.raises(RuntimeError, match="E3"):
            asyncio.run(retry_async(op, max_attempts=3, sleep=fake_sleep))
        assert calls["n"] == 3

    def test_async_concurrent_calls(self):
        """Test concurrent async retries are independent"""

        def make_op(failures):
            state = {"n": 0}

            async def op():
                state["n"] += 1
                if state["n"] <= failures:
                    raise RuntimeError("boom")
                return state["n"]

            return op

        async def main():
            return await asyncio.gather(
                retry_async(make_op(0), base_delay=0),
                retry_async(make_op(3), base_delay=0),
            )

        assert asyncio.run(main()) == [1, 4]

    def test_async_task_cancellation_propagates(self):
        """Test cancelling the task mid-operation raises CancelledError without new attempts"""
        calls = {"n": 0}

        async def main():
            started = asyncio.Event()

            async def op():
                calls["n"] += 1
                started.set()
                await asyncio.sleep(10)
                return "late"

            task = asyncio.create_task(retry_async(op, max_attempts=3, base_delay=0))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())
        assert calls["n"] == 1


class TestIsTransientError:
    """Tests for the strict retryability predicate"""

    def _http_error(self, status_code):
        response = requests.Response()
        response.status_code = status_code
        return requests.HTTPError(response=response)

    @pytest.mark.parametrize("status_code", [401, 403, 404, 409])
    def test_client_errors_are_final(self, status_code):
        assert is_transient_error(self._http_error(status_code)) is False
        assert is_transient_error(StorageError("x", status_code=status_code)) is False

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_throttling_and_server_errors_retry(self, status_code):
        assert is_transient_error(self._http_error(status_code)) is True
        assert is_transient_error(StorageError("x", status_code=status_code)) is True

    def test_network_errors_retry(self):
        assert is_transient_error(requests.ConnectionError("reset")) is True

    def test_configuration_errors_are_final(self):
        assert is_transient_error(ConfigurationError("bad")) is False

    def test_strict_predicate_stops_on_401(self):
        """Test retry with is_transient_error stops at a 401"""
        calls = {"n": 0}

        def op():
            calls["n"] += 1
            raise StorageError("unauthorized", status_code=401)

        with pytest.raises(StorageError):
            retry(op, retry_on=is_transient_error, sleep=lambda _: None)
        assert calls["n"] == 1
