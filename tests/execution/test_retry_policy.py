"""Tests for execution/retry_policy.py."""

import random

import pytest

from execution.retry_policy import RetryPolicy, call_with_retry


class Transient(Exception):
    def __init__(self, message="transient", retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after


class Terminal(Exception):
    pass


def _is_transient(error):
    return isinstance(error, Transient)


def _flaky(failures):
    """Return a callable raising each item of failures in turn, then 'ok'."""
    calls = []
    def fn():
        calls.append(1)
        if len(calls) <= len(failures):
            raise failures[len(calls) - 1]
        return "ok"
    fn.calls = calls
    return fn


class TestRetryPolicy:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError, match="max_attempts"):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)

    def test_delay_grows_exponentially_within_jitter(self):
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=100.0)
        rng = random.Random(42)
        for attempt, step in [(1, 1.0), (2, 2.0), (3, 4.0)]:
            delay = policy.delay_for(attempt, rng=rng)
            assert step * 0.5 <= delay < step * 1.5

    def test_delay_capped_by_max_delay(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=4.0, jitter_low=1.0, jitter_high=1.0)
        assert policy.delay_for(10) == 4.0

    def test_hint_sets_minimum_delay(self):
        policy = RetryPolicy(base_delay=0.1, max_delay=10.0, jitter_low=1.0, jitter_high=1.0)
        assert policy.delay_for(1, hint=5.0) == 5.0

    def test_hint_is_capped_by_max_delay(self):
        policy = RetryPolicy(base_delay=0.1, max_delay=2.0, jitter_low=1.0, jitter_high=1.0)
        assert policy.delay_for(1, hint=60.0) == 2.0

    def test_max_backoff_sums_worst_case_waits(self):
        policy = RetryPolicy(max_attempts=4, base_delay=1.0, max_delay=3.0)
        # 1 + 2 + 3 (capped), each at the top of the jitter range
        assert policy.max_backoff() == pytest.approx(9.0)

    def test_single_attempt_never_waits(self):
        assert RetryPolicy(max_attempts=1).max_backoff() == 0


class TestCallWithRetry:
    def test_success_first_try(self, no_sleep):
        fn = _flaky([])
        assert call_with_retry(fn, is_retryable=_is_transient, sleep=no_sleep) == "ok"
        assert len(fn.calls) == 1
        assert no_sleep.delays == []

    def test_transient_then_success(self, no_sleep):
        fn = _flaky([Transient()])
        result = call_with_retry(
            fn, is_retryable=_is_transient, policy=RetryPolicy(max_attempts=3), sleep=no_sleep
        )
        assert result == "ok"
        assert len(fn.calls) == 2
        assert len(no_sleep.delays) == 1

    def test_terminal_error_not_retried(self, no_sleep):
        fn = _flaky([Terminal("nope")])
        with pytest.raises(Terminal):
            call_with_retry(fn, is_retryable=_is_transient, sleep=no_sleep)
        assert len(fn.calls) == 1
        assert no_sleep.delays == []

    def test_budget_exhausted_raises_last_error(self, no_sleep):
        fn = _flaky([Transient("one"), Transient("two"), Transient("three")])
        with pytest.raises(Transient, match="three"):
            call_with_retry(
                fn, is_retryable=_is_transient, policy=RetryPolicy(max_attempts=3), sleep=no_sleep
            )
        assert len(fn.calls) == 3
        assert len(no_sleep.delays) == 2

    def test_retry_after_hint_respected(self, no_sleep):
        fn = _flaky([Transient(retry_after=3.0)])
        policy = RetryPolicy(max_attempts=2, base_delay=0.01, max_delay=10.0)
        call_with_retry(fn, is_retryable=_is_transient, policy=policy, sleep=no_sleep)
        assert no_sleep.delays[0] >= 3.0

    def test_on_retry_callback(self, no_sleep):
        seen = []
        fn = _flaky([Transient(), Transient()])
        call_with_retry(
            fn,
            is_retryable=_is_transient,
            policy=RetryPolicy(max_attempts=3),
            sleep=no_sleep,
            on_retry=lambda attempt, error, delay: seen.append(attempt),
        )
        assert seen == [1, 2]
