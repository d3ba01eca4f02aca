"""Tests for DnsProvider ABC."""

from unittest.mock import MagicMock

import pytest

from dns_challenge.dns.base import DnsProvider
from dns_challenge.errors import PartialCleanupFailure, PropagationTimeout


class FakeProvider(DnsProvider):
    def __init__(self, propagation=None, cleanup_error=None):
        super().__init__(propagation)
        self.presented = []
        self.cleanup_error = cleanup_error

    def _present(self, record, token):
        self.presented.append((record, token))

    def _cleanup(self, record, token):
        if self.cleanup_error is not None:
            raise self.cleanup_error
        return ["kept version 1"]


def test_cannot_instantiate_abc():
    with pytest.raises(TypeError, match="abstract"):
        DnsProvider()


def test_present_derives_record():
    provider = FakeProvider()

    provider.present("*.example.com", "tok", "XXXX")

    record, token = provider.presented[0]
    assert record.fqdn == "_acme-challenge.example.com."
    assert record.value == "ezRpBPY8wH8djMLYjX2uCKPwiKDkFZ1SFMJ6ZXGlHrQ"
    assert record.ttl == DnsProvider.ttl
    assert token == "tok"


def test_present_waits_for_propagation():
    checker = MagicMock()
    provider = FakeProvider(propagation=checker)

    provider.present("example.com", "tok", "XXXX")

    checker.wait.assert_called_once_with(
        "_acme-challenge.example.com.",
        "ezRpBPY8wH8djMLYjX2uCKPwiKDkFZ1SFMJ6ZXGlHrQ",
        DnsProvider.propagation_timeout,
        DnsProvider.polling_interval,
    )


def test_present_propagation_timeout_raises():
    checker = MagicMock()
    checker.wait.side_effect = PropagationTimeout("too slow")

    with pytest.raises(PropagationTimeout):
        FakeProvider(propagation=checker).present("example.com", "tok", "XXXX")


def test_cleanup_returns_warnings():
    result = FakeProvider().cleanup("example.com", "tok", "XXXX")

    assert result.success is True
    assert result.warnings == ("kept version 1",)


def test_cleanup_errors_are_reported():
    provider = FakeProvider(cleanup_error=PartialCleanupFailure("version 2 left behind", leftover=(2,)))

    result = provider.cleanup("example.com", "tok", "XXXX")

    assert result.success is False
    assert result.error == "version 2 left behind"


def test_cleanup_does_not_hide_bugs():
    provider = FakeProvider(cleanup_error=KeyError("bug"))

    with pytest.raises(KeyError):
        provider.cleanup("example.com", "tok", "XXXX")


def test_context_manager_closes():
    provider = FakeProvider()
    provider.close = MagicMock()

    with provider as entered:
        assert entered is provider

    provider.close.assert_called_once()
