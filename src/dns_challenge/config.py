"""Configuration loading and validation from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

_GANDI_ENDPOINT = "https://rpc.gandi.net/xmlrpc/"
_DEFAULT_DNS_TIMEOUT = 10.0
_DEFAULT_HTTP_TIMEOUT = 30.0
_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_BACKOFF = 1.0
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    dns_provider: str
    gandi_api_key: str | None = None
    gandi_endpoint: str = _GANDI_ENDPOINT
    cloudflare_api_token: str | None = None
    azure_subscription_id: str | None = None
    azure_dns_resource_group: str | None = None
    dns_resolvers: tuple[str, ...] = ()
    dns_timeout: float = _DEFAULT_DNS_TIMEOUT
    http_timeout: float = _DEFAULT_HTTP_TIMEOUT
    max_retries: int = _DEFAULT_MAX_RETRIES
    retry_backoff_seconds: float = _DEFAULT_RETRY_BACKOFF
    pending_state_path: str | None = None
    wait_for_propagation: bool = False


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ValueError(f"Required environment variable {name} is not set")
    return value


def _positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be a positive number, got: {value}")
    return value


def _non_negative_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must be zero or a positive integer, got: {value}")
    return value


def load_config() -> AppConfig:
    """Load and validate application configuration from environment variables."""
    dns_provider = _require_env("DNS_PROVIDER")

    raw_resolvers = os.environ.get("DNS_RESOLVERS", "")
    dns_resolvers = tuple(r.strip() for r in raw_resolvers.split(",") if r.strip())

    return AppConfig(
        dns_provider=dns_provider,
        gandi_api_key=os.environ.get("GANDI_API_KEY"),
        gandi_endpoint=os.environ.get("GANDI_ENDPOINT", _GANDI_ENDPOINT),
        cloudflare_api_token=os.environ.get("CLOUDFLARE_API_TOKEN"),
        azure_subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID"),
        azure_dns_resource_group=os.environ.get("AZURE_DNS_RESOURCE_GROUP"),
        dns_resolvers=dns_resolvers,
        dns_timeout=_positive_float("DNS_TIMEOUT", _DEFAULT_DNS_TIMEOUT),
        http_timeout=_positive_float("HTTP_TIMEOUT", _DEFAULT_HTTP_TIMEOUT),
        max_retries=_non_negative_int("DNS_MAX_RETRIES", _DEFAULT_MAX_RETRIES),
        retry_backoff_seconds=_positive_float("DNS_RETRY_BACKOFF", _DEFAULT_RETRY_BACKOFF),
        pending_state_path=os.environ.get("DNS_PENDING_STATE_PATH") or None,
        wait_for_propagation=os.environ.get("DNS_WAIT_FOR_PROPAGATION", "").lower() in _TRUE_VALUES,
    )
