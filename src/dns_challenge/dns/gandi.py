"""Gandi DNS provider: publish TXT records through Gandi's versioned zones (XML-RPC API).

The Gandi v3 domain API has no "add a record to the live zone" call. A zone
is edited by cloning it, creating a version of the clone, adding records to
that version and attaching the clone to the domain. In the terms of
:mod:`dns_challenge.dns.editor` a Gandi zone id is a zone *version* and the
inner version number is the draft's ``revision``.
"""

from __future__ import annotations

import logging
import re
import xmlrpc.client
from collections.abc import Callable
from datetime import UTC, datetime
from xml.parsers.expat import ExpatError

import httpx

from dns_challenge.dns.base import DnsProvider
from dns_challenge.dns.editor import TransactionalZoneEditor, ZoneVersionBackend
from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.retry import RetryPolicy
from dns_challenge.dns.state import PendingStore
from dns_challenge.dns.util import remote_error, un_fqdn
from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import RemoteAPIError, VersionNotFound, ZoneNotFound
from dns_challenge.models import ChallengeRecord, RecordDescriptor, VersionId, ZoneReference, ZoneVersion

logger = logging.getLogger(__name__)

GANDI_ENDPOINT = "https://rpc.gandi.net/xmlrpc/"
_MIN_TTL = 300
# Gandi reports missing objects as e.g. "OBJECT_ZONE (CAUSE_NOTFOUND)".
_NOT_FOUND = re.compile(r"CAUSE_NOTFOUND|not found|does ?n[o']t exist", re.IGNORECASE)


def _is_not_found(exc: RemoteAPIError) -> bool:
    return exc.code is not None and _NOT_FOUND.search(exc.detail) is not None


def _field(reply, key: str, method: str):
    """Return ``reply[key]``; a reply without it is a malformed response."""
    if not isinstance(reply, dict) or key not in reply:
        raise RemoteAPIError(f"Gandi {method} returned an unexpected response without '{key}': {reply!r}")
    return reply[key]


class GandiClient:
    """XML-RPC calls to the Gandi API, authenticated by API key."""

    def __init__(
        self,
        api_key: str,
        endpoint: str = GANDI_ENDPOINT,
        timeout: float = 30,
        _http_client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._client = _http_client or httpx.Client(timeout=timeout)

    def call(self, method: str, *params):
        """Invoke ``method`` with the API key prepended to ``params`` and return its result."""
        body = xmlrpc.client.dumps((self._api_key, *params), methodname=method)
        logger.debug("Gandi RPC %s", method)
        try:
            resp = self._client.post(
                self._endpoint,
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/xml"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise remote_error("Gandi", method, exc) from exc
        try:
            result, _ = xmlrpc.client.loads(resp.content)
        except xmlrpc.client.Fault as exc:
            raise RemoteAPIError(
                f"Gandi {method} failed: ({exc.faultCode}) {exc.faultString}",
                code=exc.faultCode,
            ) from exc
        except (ExpatError, xmlrpc.client.ResponseError) as exc:
            raise RemoteAPIError(f"Gandi {method} returned an invalid response: {exc}") from exc
        if len(result) != 1:
            raise RemoteAPIError(f"Gandi {method} returned {len(result)} values, expected 1")
        return result[0]

    def close(self) -> None:
        self._client.close()


class GandiZoneBackend(ZoneVersionBackend):
    """Versioned-zone primitives on top of the Gandi domain.zone.* calls."""

    def __init__(self, client: GandiClient, _now: Callable[[], datetime] | None = None) -> None:
        self._client = client
        self._now = _now or (lambda: datetime.now(UTC))

    def resolve_zone(self, apex: str) -> ZoneReference:
        info = self._domain_info(apex)
        return ZoneReference(apex=apex, provider_zone_id=_field(info, "id", "domain.info"))

    def active_version(self, zone: ZoneReference) -> VersionId:
        return _field(self._domain_info(zone.apex), "zone_id", "domain.info")

    def clone_version(self, zone: ZoneReference, version_id: VersionId) -> ZoneVersion:
        name = f"{un_fqdn(zone.apex)} [ACME Challenge {self._now().strftime('%d %b %y %H:%M %z')}]"
        clone = self._client.call("domain.zone.clone", version_id, 0, {"name": name})
        clone_id = _field(clone, "id", "domain.zone.clone")
        try:
            revision = self._client.call("domain.zone.version.new", clone_id)
            if not isinstance(revision, int) or isinstance(revision, bool):
                raise RemoteAPIError(f"Gandi domain.zone.version.new returned an unexpected response: {revision!r}")
        except RemoteAPIError:
            self._discard(clone_id)
            raise
        return ZoneVersion(id=clone_id, revision=revision)

    def add_record(self, zone: ZoneReference, draft: ZoneVersion, record: RecordDescriptor) -> None:
        self._client.call(
            "domain.zone.record.add",
            draft.id,
            draft.revision,
            {"type": "TXT", "name": record.name, "value": record.value, "ttl": max(record.ttl, _MIN_TTL)},
        )

    def remove_record(self, zone: ZoneReference, draft: ZoneVersion, record: RecordDescriptor) -> None:
        matches = self._matching_records(draft.id, draft.revision, record)
        if not matches:
            logger.debug("TXT %s not found in version %s of zone %s", record.name, draft.id, zone.apex)
        for record_id in matches:
            self._client.call("domain.zone.record.delete", draft.id, draft.revision, {"id": record_id})

    def has_record(self, zone: ZoneReference, version_id: VersionId, record: RecordDescriptor) -> bool:
        # Version 0 addresses the zone's active version.
        return bool(self._matching_records(version_id, 0, record))

    def activate_version(self, zone: ZoneReference, draft: ZoneVersion) -> None:
        if not self._client.call("domain.zone.version.set", draft.id, draft.revision):
            raise RemoteAPIError(f"Could not activate version {draft.revision} of Gandi zone {draft.id}")
        self._attach(zone, draft.id)

    def restore_version(self, zone: ZoneReference, version_id: VersionId) -> None:
        self._attach(zone, version_id)

    def delete_version(self, zone: ZoneReference, version_id: VersionId) -> None:
        try:
            deleted = self._client.call("domain.zone.delete", version_id)
        except RemoteAPIError as exc:
            if _is_not_found(exc):
                raise VersionNotFound(exc.detail, code=exc.code) from exc
            raise
        if not deleted:
            raise RemoteAPIError(f"Could not delete Gandi zone {version_id}")

    def _domain_info(self, apex: str) -> dict:
        try:
            return self._client.call("domain.info", apex)
        except RemoteAPIError as exc:
            if _is_not_found(exc):
                raise ZoneNotFound(f"Domain {apex} is not managed by this Gandi account: {exc.detail}") from exc
            raise

    def _attach(self, zone: ZoneReference, zone_id: VersionId) -> None:
        info = self._client.call("domain.zone.set", zone.apex, zone_id)
        if _field(info, "zone_id", "domain.zone.set") != zone_id:
            raise RemoteAPIError(f"Could not set zone {zone_id} on Gandi domain {zone.apex}")

    def _matching_records(self, zone_id: VersionId, revision: VersionId, record: RecordDescriptor) -> list:
        records = self._client.call(
            "domain.zone.record.list",
            zone_id,
            revision,
            {"type": "TXT", "name": record.name},
        )
        if not isinstance(records, list):
            raise RemoteAPIError(f"Gandi domain.zone.record.list returned an unexpected response: {records!r}")
        # Gandi returns TXT values wrapped in double quotes.
        return [
            _field(r, "id", "domain.zone.record.list")
            for r in records
            if str(_field(r, "value", "domain.zone.record.list")).strip('"') == record.value
        ]

    def _discard(self, zone_id: VersionId) -> None:
        try:
            self._client.call("domain.zone.delete", zone_id)
        except RemoteAPIError as exc:
            logger.warning("Could not delete Gandi zone %s after a failed clone: %s", zone_id, exc.detail)


class GandiDnsProvider(DnsProvider):
    """DNS provider backed by Gandi's versioned zones.

    Activating a version switches the whole zone, so challenges for several
    domains must be processed sequentially.
    """

    sequential = True
    ttl = _MIN_TTL
    propagation_timeout = 40 * 60.0
    polling_interval = 60.0

    def __init__(
        self,
        api_key: str,
        zone_locator: ZoneLocator,
        store: PendingStore,
        endpoint: str = GANDI_ENDPOINT,
        timeout: float = 30,
        retry: RetryPolicy | None = None,
        propagation: PropagationChecker | None = None,
        _http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(propagation)
        self._client = GandiClient(api_key, endpoint=endpoint, timeout=timeout, _http_client=_http_client)
        self._editor = TransactionalZoneEditor(GandiZoneBackend(self._client), zone_locator, store, retry)

    def _present(self, record: ChallengeRecord, token: str) -> None:
        self._editor.present(record, token)

    def _cleanup(self, record: ChallengeRecord, token: str) -> list[str]:
        return self._editor.cleanup(record, token)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()
