"""Shared test fixtures for dns-challenge."""

import dns_challenge.dns.state as _state
from dns_challenge.auth import reset_credential


def pytest_runtest_setup(item):
    """Reset module-level caches between tests."""
    reset_credential()
    _state._stores.clear()
