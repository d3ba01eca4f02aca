"""Shared Azure credential management."""

from __future__ import annotations

import threading

from azure.identity import DefaultAzureCredential

_credential: DefaultAzureCredential | None = None
_credential_lock = threading.Lock()


def get_credential() -> DefaultAzureCredential:
    """Return a cached DefaultAzureCredential instance.

    Activities for several domains may run on worker threads at once; the
    credential is created only once.
    """
    global _credential
    with _credential_lock:
        if _credential is None:
            _credential = DefaultAzureCredential()
        return _credential


def reset_credential() -> None:
    """Drop the cached credential so the next call builds a new one."""
    global _credential
    with _credential_lock:
        _credential = None
