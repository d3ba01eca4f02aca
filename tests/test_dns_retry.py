"""Tests for the retry policy."""

from unittest.mock import MagicMock

import pytest

from dns_challenge.dns.retry import RetryPolicy
from dns_challenge.errors import RemoteAPIError


def _policy(max_retries=3, backoff=1.0):
    sleeps = []
    return RetryPolicy(max_retries=max_retries, backoff_seconds=backoff, sleep=sleeps.append), sleeps


def test_returns_result_without_retry():
    policy, sleeps = _policy()

    assert policy.call("step", lambda x: x * 2, 21) == 42
    assert sleeps == []


def test_retries_retryable_errors_with_backoff():
    policy, sleeps = _policy(backoff=0.5)
    fn = MagicMock(side_effect=[RemoteAPIError("503", retryable=True), RemoteAPIError("503", retryable=True), "ok"])

    assert policy.call("activate", fn, "zone") == "ok"
    assert fn.call_count == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_max_retries():
    policy, sleeps = _policy(max_retries=2)
    fn = MagicMock(side_effect=RemoteAPIError("503", retryable=True))

    with pytest.raises(RemoteAPIError):
        policy.call("activate", fn)

    assert fn.call_count == 3
    assert sleeps == [1.0, 2.0]


def test_does_not_retry_non_retryable_errors():
    policy, sleeps = _policy()
    fn = MagicMock(side_effect=RemoteAPIError("401 unauthorized", status=401))

    with pytest.raises(RemoteAPIError, match="unauthorized"):
        policy.call("clone", fn)

    assert fn.call_count == 1
    assert sleeps == []


def test_backoff_is_capped():
    policy, sleeps = _policy(max_retries=7, backoff=4.0)
    fn = MagicMock(side_effect=[RemoteAPIError("503", retryable=True)] * 7 + ["ok"])

    policy.call("clone", fn)

    assert sleeps == [4.0, 8.0, 16.0, 30.0, 30.0, 30.0, 30.0]


def test_other_exceptions_propagate():
    policy, _ = _policy()
    fn = MagicMock(side_effect=KeyError("bug"))

    with pytest.raises(KeyError):
        policy.call("clone", fn)

    assert fn.call_count == 1
