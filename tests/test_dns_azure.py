"""Tests for Azure DNS provider."""

from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from dns_challenge.dns.azure_dns import AzureDnsProvider
from dns_challenge.errors import RemoteAPIError

_VALUE = "ezRpBPY8wH8djMLYjX2uCKPwiKDkFZ1SFMJ6ZXGlHrQ"


def _provider(mock_client) -> AzureDnsProvider:
    locator = MagicMock()
    locator.find_zone.return_value = "example.com."
    return AzureDnsProvider(
        credential=MagicMock(),
        subscription_id="sub-123",
        resource_group="rg-dns",
        zone_locator=locator,
        _dns_client=mock_client,
    )


def _existing(*values: str) -> MagicMock:
    return MagicMock(txt_records=[MagicMock(value=[v]) for v in values])


class TestAzureDnsProviderPresent:
    def test_creates_record_set_with_correct_params(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.side_effect = ResourceNotFoundError("not found")
        provider = _provider(mock_client)

        provider.present("abc.def.example.com", "tok", "XXXX")

        call_kwargs = mock_client.record_sets.create_or_update.call_args
        assert call_kwargs.kwargs["resource_group_name"] == "rg-dns"
        assert call_kwargs.kwargs["zone_name"] == "example.com"
        assert call_kwargs.kwargs["relative_record_set_name"] == "_acme-challenge.abc.def"
        assert call_kwargs.kwargs["record_type"] == "TXT"
        record_set = call_kwargs.kwargs["parameters"]
        assert record_set.ttl == 120
        assert [r.value for r in record_set.txt_records] == [[_VALUE]]

    def test_merges_with_existing_values(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.return_value = _existing("wildcard-value")
        provider = _provider(mock_client)

        provider.present("example.com", "tok", "XXXX")

        record_set = mock_client.record_sets.create_or_update.call_args.kwargs["parameters"]
        assert [r.value for r in record_set.txt_records] == [["wildcard-value"], [_VALUE]]

    def test_existing_value_is_not_duplicated(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.return_value = _existing(_VALUE)
        provider = _provider(mock_client)

        provider.present("example.com", "tok", "XXXX")

        mock_client.record_sets.create_or_update.assert_not_called()

    def test_http_errors_are_normalized(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.side_effect = ResourceNotFoundError("not found")
        error = HttpResponseError(message="Throttled")
        error.status_code = 429
        mock_client.record_sets.create_or_update.side_effect = error
        provider = _provider(mock_client)

        with pytest.raises(RemoteAPIError, match="Throttled") as exc_info:
            provider.present("example.com", "tok", "XXXX")

        assert exc_info.value.status == 429
        assert exc_info.value.retryable is True


class TestAzureDnsProviderCleanup:
    def test_deletes_record_set_when_last_value(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.return_value = _existing(_VALUE)
        provider = _provider(mock_client)

        result = provider.cleanup("example.com", "tok", "XXXX")

        assert result.success is True
        mock_client.record_sets.delete.assert_called_once_with(
            resource_group_name="rg-dns",
            zone_name="example.com",
            relative_record_set_name="_acme-challenge",
            record_type="TXT",
        )

    def test_keeps_other_values(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.return_value = _existing("wildcard-value", _VALUE)
        provider = _provider(mock_client)

        provider.cleanup("example.com", "tok", "XXXX")

        mock_client.record_sets.delete.assert_not_called()
        record_set = mock_client.record_sets.create_or_update.call_args.kwargs["parameters"]
        assert [r.value for r in record_set.txt_records] == [["wildcard-value"]]

    def test_missing_record_is_a_warning(self):
        mock_client = MagicMock()
        mock_client.record_sets.get.side_effect = ResourceNotFoundError("not found")
        provider = _provider(mock_client)

        result = provider.cleanup("example.com", "tok", "XXXX")

        assert result.success is True
        assert "skipping delete" in result.warnings[0]
        mock_client.record_sets.delete.assert_not_called()


class TestAzureDnsProviderDefaultClient:
    @patch("dns_challenge.dns.azure_dns.DnsManagementClient")
    def test_creates_dns_client_from_credential(self, mock_dns_cls):
        cred = MagicMock()
        provider = AzureDnsProvider(
            credential=cred,
            subscription_id="sub-123",
            resource_group="rg-dns",
            zone_locator=MagicMock(),
        )

        mock_dns_cls.assert_called_once_with(cred, "sub-123")
        assert provider._dns_client is mock_dns_cls.return_value
