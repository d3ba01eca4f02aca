"""Tests for DNS provider factory."""

from unittest.mock import MagicMock, patch

import pytest

from dns_challenge.config import AppConfig
from dns_challenge.dns import available_providers, get_dns_provider
from dns_challenge.dns.gandi import GandiDnsProvider
from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.state import InMemoryPendingStore
from dns_challenge.errors import MissingCredential, UnsupportedProvider


def _make_config(**overrides) -> AppConfig:
    defaults = {
        "dns_provider": "azure",
        "gandi_api_key": "gandi-key",
        "azure_subscription_id": "sub-1",
        "azure_dns_resource_group": "rg-1",
    }
    defaults.update(overrides)
    return AppConfig(**defaults)


class TestGetDnsProvider:
    @patch("dns_challenge.dns.AzureDnsProvider")
    @patch("dns_challenge.dns._get_credential")
    def test_returns_azure_provider(self, mock_cred, mock_azure_cls):
        locator = MagicMock()
        config = _make_config(dns_provider="azure")
        provider = get_dns_provider(config, zone_locator=locator)

        mock_azure_cls.assert_called_once_with(
            credential=mock_cred.return_value,
            subscription_id="sub-1",
            resource_group="rg-1",
            zone_locator=locator,
            propagation=None,
        )
        assert provider is mock_azure_cls.return_value

    @patch("dns_challenge.dns.CloudflareDnsProvider")
    def test_returns_cloudflare_provider(self, mock_cf_cls):
        config = _make_config(dns_provider="cloudflare", cloudflare_api_token="tok")
        provider = get_dns_provider(config, zone_locator=MagicMock())

        assert mock_cf_cls.call_args.kwargs["api_token"] == "tok"
        assert mock_cf_cls.call_args.kwargs["timeout"] == 30.0
        assert provider is mock_cf_cls.return_value

    def test_returns_gandi_provider(self):
        store = InMemoryPendingStore()
        config = _make_config(dns_provider="gandi")

        with get_dns_provider(config, zone_locator=MagicMock(), store=store, http_client=MagicMock()) as provider:
            assert isinstance(provider, GandiDnsProvider)
            assert provider.sequential is True

    @patch("dns_challenge.dns.GandiDnsProvider")
    def test_gandi_uses_process_wide_store_and_retry_settings(self, mock_gandi_cls):
        config = _make_config(dns_provider="gandi", max_retries=5, retry_backoff_seconds=0.5)

        get_dns_provider(config, zone_locator=MagicMock())
        get_dns_provider(config, zone_locator=MagicMock())

        first, second = mock_gandi_cls.call_args_list
        assert first.kwargs["store"] is second.kwargs["store"]
        assert first.kwargs["retry"].max_retries == 5
        assert first.kwargs["retry"].backoff_seconds == 0.5
        assert first.kwargs["endpoint"] == "https://rpc.gandi.net/xmlrpc/"

    @patch("dns_challenge.dns.CloudflareDnsProvider")
    def test_propagation_checker_when_enabled(self, mock_cf_cls):
        locator = MagicMock()
        config = _make_config(dns_provider="cloudflare", cloudflare_api_token="tok", wait_for_propagation=True)

        get_dns_provider(config, zone_locator=locator)

        assert isinstance(mock_cf_cls.call_args.kwargs["propagation"], PropagationChecker)

    @patch("dns_challenge.dns.ZoneLocator")
    @patch("dns_challenge.dns.CloudflareDnsProvider")
    def test_builds_zone_locator_from_config(self, mock_cf_cls, mock_locator_cls):
        config = _make_config(dns_provider="cloudflare", cloudflare_api_token="tok", dns_resolvers=("1.1.1.1",))

        get_dns_provider(config)

        mock_locator_cls.assert_called_once_with(("1.1.1.1",), timeout=10.0)
        assert mock_cf_cls.call_args.kwargs["zone_locator"] is mock_locator_cls.return_value

    def test_raises_on_unknown_provider(self):
        config = _make_config(dns_provider="route53")
        with pytest.raises(UnsupportedProvider, match="Unknown DNS provider: 'route53'.*azure, cloudflare, gandi"):
            get_dns_provider(config)

    def test_unsupported_provider_is_value_error(self):
        with pytest.raises(ValueError):
            get_dns_provider(_make_config(dns_provider="route53"))

    def test_raises_when_gandi_missing_api_key(self):
        config = _make_config(dns_provider="gandi", gandi_api_key=None)
        with pytest.raises(MissingCredential, match="GANDI_API_KEY is required when DNS_PROVIDER=gandi"):
            get_dns_provider(config, zone_locator=MagicMock())

    def test_raises_when_azure_missing_subscription_id(self):
        config = _make_config(dns_provider="azure", azure_subscription_id=None)
        with pytest.raises(MissingCredential, match="AZURE_SUBSCRIPTION_ID"):
            get_dns_provider(config, zone_locator=MagicMock())

    def test_raises_when_azure_missing_resource_group(self):
        config = _make_config(dns_provider="azure", azure_dns_resource_group=None)
        with pytest.raises(MissingCredential, match="AZURE_DNS_RESOURCE_GROUP"):
            get_dns_provider(config, zone_locator=MagicMock())

    def test_raises_when_cloudflare_missing_token(self):
        config = _make_config(dns_provider="cloudflare", cloudflare_api_token=None)
        with pytest.raises(MissingCredential, match="CLOUDFLARE_API_TOKEN"):
            get_dns_provider(config, zone_locator=MagicMock())

    @patch("dns_challenge.dns.AzureDnsProvider")
    @patch("dns_challenge.dns._get_credential")
    def test_provider_name_override(self, mock_cred, mock_azure_cls):
        config = _make_config(dns_provider="cloudflare")
        provider = get_dns_provider(config, provider_name="Azure", zone_locator=MagicMock())

        mock_azure_cls.assert_called_once()
        assert provider is mock_azure_cls.return_value


def test_available_providers():
    assert available_providers() == ["azure", "cloudflare", "gandi"]
