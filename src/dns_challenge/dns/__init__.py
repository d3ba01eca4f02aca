"""DNS provider factory: resolve provider name to concrete implementation."""

from __future__ import annotations

from collections.abc import Callable
from types import MappingProxyType

import httpx

from dns_challenge.auth import get_credential as _get_credential
from dns_challenge.config import AppConfig
from dns_challenge.dns.azure_dns import AzureDnsProvider
from dns_challenge.dns.base import DnsProvider
from dns_challenge.dns.cloudflare import CloudflareDnsProvider
from dns_challenge.dns.gandi import GandiDnsProvider
from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.retry import RetryPolicy
from dns_challenge.dns.state import PendingStore, get_pending_store
from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import MissingCredential, UnsupportedProvider


def _require(value: str | None, variable: str, provider: str) -> str:
    if not value:
        raise MissingCredential(f"{variable} is required when DNS_PROVIDER={provider}")
    return value


def _build_gandi(config, locator, store, http_client, propagation) -> DnsProvider:
    return GandiDnsProvider(
        api_key=_require(config.gandi_api_key, "GANDI_API_KEY", "gandi"),
        zone_locator=locator,
        store=store or get_pending_store(config),
        endpoint=config.gandi_endpoint,
        timeout=config.http_timeout,
        retry=RetryPolicy(config.max_retries, config.retry_backoff_seconds),
        propagation=propagation,
        _http_client=http_client,
    )


def _build_cloudflare(config, locator, store, http_client, propagation) -> DnsProvider:
    return CloudflareDnsProvider(
        api_token=_require(config.cloudflare_api_token, "CLOUDFLARE_API_TOKEN", "cloudflare"),
        zone_locator=locator,
        timeout=config.http_timeout,
        retry=RetryPolicy(config.max_retries, config.retry_backoff_seconds),
        propagation=propagation,
        _http_client=http_client,
    )


def _build_azure(config, locator, store, http_client, propagation) -> DnsProvider:
    subscription_id = _require(config.azure_subscription_id, "AZURE_SUBSCRIPTION_ID", "azure")
    resource_group = _require(config.azure_dns_resource_group, "AZURE_DNS_RESOURCE_GROUP", "azure")
    return AzureDnsProvider(
        credential=_get_credential(),
        subscription_id=subscription_id,
        resource_group=resource_group,
        zone_locator=locator,
        propagation=propagation,
    )


_Builder = Callable[..., DnsProvider]

_PROVIDERS: MappingProxyType[str, _Builder] = MappingProxyType(
    {
        "azure": _build_azure,
        "cloudflare": _build_cloudflare,
        "gandi": _build_gandi,
    }
)


def available_providers() -> list[str]:
    """Return the names accepted by :func:`get_dns_provider`."""
    return sorted(_PROVIDERS)


def get_dns_provider(
    config: AppConfig,
    provider_name: str | None = None,
    *,
    zone_locator: ZoneLocator | None = None,
    store: PendingStore | None = None,
    http_client: httpx.Client | None = None,
) -> DnsProvider:
    """Instantiate a DNS provider by name.

    Args:
        config: Application configuration.
        provider_name: Override the default provider from config.
        zone_locator: Zone locator to use instead of one built from ``config``.
        store: Pending-cleanup store for versioned-zone providers. Defaults to
            the process-wide store for ``config``.
        http_client: HTTP client for providers that speak HTTP directly.

    Returns:
        A configured DnsProvider instance.

    Raises:
        UnsupportedProvider: The name is not registered.
        MissingCredential: A credential the provider needs is not configured.
    """
    name = (provider_name or config.dns_provider).strip().lower()
    builder = _PROVIDERS.get(name)
    if builder is None:
        raise UnsupportedProvider(
            f"Unknown DNS provider: '{name}' (valid providers: {', '.join(available_providers())})"
        )

    locator = zone_locator or ZoneLocator(config.dns_resolvers, timeout=config.dns_timeout)
    propagation = PropagationChecker(locator) if config.wait_for_propagation else None
    return builder(config, locator, store, http_client, propagation)
