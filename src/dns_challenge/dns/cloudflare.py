"""Cloudflare DNS provider: create/delete TXT records via Cloudflare REST API."""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from dns_challenge.dns.base import DnsProvider
from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.retry import RetryPolicy
from dns_challenge.dns.util import remote_error, un_fqdn
from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import RemoteAPIError, ZoneNotFound
from dns_challenge.models import ChallengeRecord

logger = logging.getLogger(__name__)

_API_BASE = "https://api.cloudflare.com/client/v4"


def _error_messages(payload: dict) -> str:
    errors = payload.get("errors") or []
    return "; ".join(f"({e.get('code')}) {e.get('message')}" for e in errors) or "unknown error"


def _listing(payload: dict, url: str) -> list[dict]:
    """Return the objects of a list call; each must carry an ``id``."""
    result = payload["result"]
    if not isinstance(result, list) or not all(isinstance(item, dict) and "id" in item for item in result):
        raise RemoteAPIError(f"Cloudflare {url} returned an unexpected result: {result!r}")
    return result


class CloudflareDnsProvider(DnsProvider):
    """DNS provider backed by the Cloudflare API."""

    def __init__(
        self,
        api_token: str,
        zone_locator: ZoneLocator,
        timeout: float = 30,
        retry: RetryPolicy | None = None,
        propagation: PropagationChecker | None = None,
        _http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(propagation)
        self._locator = zone_locator
        self._retry = retry or RetryPolicy()
        self._client = _http_client or httpx.Client(
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout,
        )

    def _call(self, send: Callable[..., httpx.Response], url: str, **kwargs) -> dict:
        """Send a request, retrying transient failures, and return the JSON payload."""
        return self._retry.call(f"Cloudflare {url}", self._send, send, url, **kwargs)

    def _send(self, send: Callable[..., httpx.Response], url: str, **kwargs) -> dict:
        try:
            resp = send(url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            try:
                detail = _error_messages(exc.response.json())
            except ValueError:
                detail = None
            raise remote_error("Cloudflare", url, exc, detail) from exc
        except httpx.HTTPError as exc:
            raise remote_error("Cloudflare", url, exc) from exc
        try:
            payload = resp.json()
        except ValueError as exc:
            raise RemoteAPIError(f"Cloudflare {url} returned an invalid response: {exc}") from exc
        if not isinstance(payload, dict):
            raise RemoteAPIError(f"Cloudflare {url} returned an unexpected response: {payload!r}")
        if payload.get("success") is False:
            errors = payload.get("errors") or [{}]
            raise RemoteAPIError(f"Cloudflare {url} failed: {_error_messages(payload)}", code=errors[0].get("code"))
        if "result" not in payload:
            raise RemoteAPIError(f"Cloudflare {url} returned a response without a result")
        return payload

    def _get_zone_id(self, zone: str) -> str:
        """Look up the Cloudflare zone ID for a domain name."""
        url = f"{_API_BASE}/zones"
        results = _listing(self._call(self._client.get, url, params={"name": zone}), url)
        if not results:
            raise ZoneNotFound(f"No Cloudflare zone found for '{zone}'")
        return results[0]["id"]

    def _find_records(self, zone_id: str, record: ChallengeRecord) -> list[dict]:
        url = f"{_API_BASE}/zones/{zone_id}/dns_records"
        payload = self._call(
            self._client.get,
            url,
            params={"type": "TXT", "name": un_fqdn(record.fqdn), "content": record.value},
        )
        return _listing(payload, url)

    def _present(self, record: ChallengeRecord, token: str) -> None:
        zone = un_fqdn(self._locator.find_zone(record.fqdn))
        zone_id = self._get_zone_id(zone)
        name = un_fqdn(record.fqdn)
        # A replayed present must not duplicate the value; other values (wildcard + base) stay.
        if self._find_records(zone_id, record):
            logger.info("TXT record %s already present in Cloudflare zone %s", name, zone)
            return
        self._call(
            self._client.post,
            f"{_API_BASE}/zones/{zone_id}/dns_records",
            json={"type": "TXT", "name": name, "content": record.value, "ttl": record.ttl},
        )
        logger.info("Created TXT record %s in Cloudflare zone %s", name, zone)

    def _cleanup(self, record: ChallengeRecord, token: str) -> list[str]:
        zone = un_fqdn(self._locator.find_zone(record.fqdn))
        zone_id = self._get_zone_id(zone)
        name = un_fqdn(record.fqdn)
        records = self._find_records(zone_id, record)
        if not records:
            message = f"TXT record {name} not found in Cloudflare zone {zone}, skipping delete"
            logger.warning(message)
            return [message]
        for found in records:
            self._call(self._client.delete, f"{_API_BASE}/zones/{zone_id}/dns_records/{found['id']}")
        logger.info("Deleted TXT record %s from Cloudflare zone %s", name, zone)
        return []

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
