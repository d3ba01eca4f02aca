"""Azure DNS provider: create/delete TXT records via azure-mgmt-dns."""

from __future__ import annotations

import logging

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError, ServiceRequestError
from azure.mgmt.dns import DnsManagementClient
from azure.mgmt.dns.models import RecordSet, TxtRecord

from dns_challenge.dns.base import DnsProvider
from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.util import relative_record_name, un_fqdn
from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import RemoteAPIError
from dns_challenge.models import ChallengeRecord

logger = logging.getLogger(__name__)


def _azure_error(action: str, exc: HttpResponseError | ServiceRequestError) -> RemoteAPIError:
    if isinstance(exc, ServiceRequestError):
        return RemoteAPIError(f"Azure DNS {action} failed: {exc}", retryable=True)
    status = exc.status_code
    return RemoteAPIError(
        f"Azure DNS {action} failed: {exc.message}",
        status=status,
        code=exc.error.code if getattr(exc, "error", None) else None,
        retryable=status is not None and (status == 429 or status >= 500),
    )


class AzureDnsProvider(DnsProvider):
    """DNS provider backed by Azure DNS zones.

    The SDK retries transient failures itself. A record set holds every value
    published under one name, so values are merged rather than overwritten.
    """

    def __init__(
        self,
        credential,
        subscription_id: str,
        resource_group: str,
        zone_locator: ZoneLocator,
        propagation: PropagationChecker | None = None,
        _dns_client: DnsManagementClient | None = None,
    ) -> None:
        super().__init__(propagation)
        self._resource_group = resource_group
        self._locator = zone_locator
        self._dns_client = _dns_client or DnsManagementClient(credential, subscription_id)

    def _locate(self, record: ChallengeRecord) -> tuple[str, str]:
        apex = self._locator.find_zone(record.fqdn)
        return un_fqdn(apex), relative_record_name(record.fqdn, apex)

    def _get_values(self, zone: str, record_name: str) -> list[list[str]]:
        try:
            record_set = self._dns_client.record_sets.get(
                resource_group_name=self._resource_group,
                zone_name=zone,
                relative_record_set_name=record_name,
                record_type="TXT",
            )
        except ResourceNotFoundError:
            return []
        except (HttpResponseError, ServiceRequestError) as exc:
            raise _azure_error(f"get {record_name}.{zone}", exc) from exc
        return [list(txt.value) for txt in record_set.txt_records or []]

    def _put_values(self, zone: str, record_name: str, values: list[list[str]], ttl: int) -> None:
        record_set = RecordSet(ttl=ttl, txt_records=[TxtRecord(value=v) for v in values])
        try:
            self._dns_client.record_sets.create_or_update(
                resource_group_name=self._resource_group,
                zone_name=zone,
                relative_record_set_name=record_name,
                record_type="TXT",
                parameters=record_set,
            )
        except (HttpResponseError, ServiceRequestError) as exc:
            raise _azure_error(f"update {record_name}.{zone}", exc) from exc

    def _present(self, record: ChallengeRecord, token: str) -> None:
        zone, record_name = self._locate(record)
        values = self._get_values(zone, record_name)
        if [record.value] in values:
            logger.info("TXT record %s.%s already holds the challenge value", record_name, zone)
            return
        self._put_values(zone, record_name, [*values, [record.value]], record.ttl)
        logger.info("Created TXT record %s.%s", record_name, zone)

    def _cleanup(self, record: ChallengeRecord, token: str) -> list[str]:
        zone, record_name = self._locate(record)
        values = self._get_values(zone, record_name)
        if [record.value] not in values:
            message = f"TXT record {record_name}.{zone} does not hold the challenge value, skipping delete"
            logger.warning(message)
            return [message]
        remaining = [v for v in values if v != [record.value]]
        if remaining:
            self._put_values(zone, record_name, remaining, record.ttl)
        else:
            try:
                self._dns_client.record_sets.delete(
                    resource_group_name=self._resource_group,
                    zone_name=zone,
                    relative_record_set_name=record_name,
                    record_type="TXT",
                )
            except (HttpResponseError, ServiceRequestError) as exc:
                raise _azure_error(f"delete {record_name}.{zone}", exc) from exc
        logger.info("Deleted TXT record %s.%s", record_name, zone)
        return []
