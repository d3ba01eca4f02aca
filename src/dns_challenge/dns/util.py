"""DNS utility functions."""

from __future__ import annotations

import hashlib

import httpx
import josepy
from acme import challenges

from dns_challenge.errors import RemoteAPIError
from dns_challenge.models import ChallengeRecord, RecordDescriptor

DEFAULT_TTL = 120


def to_fqdn(name: str) -> str:
    """Return ``name`` with a trailing dot."""
    return name if name.endswith(".") else f"{name}."


def un_fqdn(name: str) -> str:
    """Return ``name`` without its trailing dot."""
    return name.removesuffix(".")


def challenge_fqdn(domain: str) -> str:
    """Return the fully qualified TXT record name validated for ``domain``.

    RFC 8555 §8.4: wildcard ``*.example.com`` is validated at
    ``_acme-challenge.example.com``.
    """
    base_domain = un_fqdn(domain).removeprefix("*.")
    return to_fqdn(f"{challenges.DNS01.LABEL}.{base_domain}")


def txt_value(key_auth: str) -> str:
    """Return the unpadded base64url SHA-256 digest of a key authorization."""
    digest = hashlib.sha256(key_auth.encode("utf-8")).digest()
    return josepy.b64encode(digest).decode("ascii")


def challenge_record(domain: str, key_auth: str, ttl: int = DEFAULT_TTL) -> ChallengeRecord:
    """Derive the TXT record to publish for ``domain``."""
    return ChallengeRecord(domain=domain, fqdn=challenge_fqdn(domain), value=txt_value(key_auth), ttl=ttl)


def relative_record_name(fqdn: str, apex: str) -> str:
    """Return ``fqdn`` relative to the zone ``apex``.

    Args:
        fqdn: Fully qualified record name (e.g. "_acme-challenge.abc.def.example.com.").
        apex: Zone apex (e.g. "example.com.").

    Returns:
        The relative name (e.g. "_acme-challenge.abc.def").
    """
    name = un_fqdn(fqdn).lower()
    zone = un_fqdn(apex).lower()
    suffix = f".{zone}"
    if not name.endswith(suffix):
        raise ValueError(f"Record '{fqdn}' is not under zone '{apex}'")
    return un_fqdn(fqdn)[: -len(suffix)]


def describe(record: ChallengeRecord, apex: str) -> RecordDescriptor:
    """Return ``record`` as a descriptor relative to the zone ``apex``."""
    return RecordDescriptor(name=relative_record_name(record.fqdn, apex), value=record.value, ttl=record.ttl)


def remote_error(provider: str, action: str, exc: httpx.HTTPError, detail: str | None = None) -> RemoteAPIError:
    """Normalize an httpx failure into a :class:`RemoteAPIError`.

    Transport errors, HTTP 429 and 5xx responses are retryable; authentication
    and other client errors are not.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        message = detail or exc.response.text[:200]
        return RemoteAPIError(
            f"{provider} {action} failed with HTTP {status}: {message}",
            status=status,
            retryable=status == 429 or status >= 500,
        )
    return RemoteAPIError(f"{provider} {action} failed: {exc}", retryable=isinstance(exc, httpx.TransportError))
