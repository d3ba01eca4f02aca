"""Azure Functions entry point: DNS-01 challenge activity function definitions."""

import logging

import azure.durable_functions as df
import azure.functions as func

from dns_challenge.config import load_config
from dns_challenge.dns import available_providers, get_dns_provider

app = df.DFApp(http_auth_level=func.AuthLevel.FUNCTION)


# Activity: publish the TXT record answering a DNS-01 challenge
@app.activity_trigger(input_name="input")
def present_dns_challenge(input: dict) -> None:
    config = load_config()
    with get_dns_provider(config, provider_name=input.get("dns_provider")) as provider:
        provider.present(input["domain"], input["token"], input["key_authorization"])
    logging.info("Presented DNS-01 challenge for %s", input["domain"])


# Activity: remove the TXT record once the authorization is validated
@app.activity_trigger(input_name="input")
def cleanup_dns_challenge(input: dict) -> dict:
    config = load_config()
    with get_dns_provider(config, provider_name=input.get("dns_provider")) as provider:
        result = provider.cleanup(input["domain"], input["token"], input["key_authorization"])
    return result.to_dict()


# Activity: report how the orchestrator must schedule challenges for a provider
@app.activity_trigger(input_name="input")
def describe_dns_provider(input: dict | None) -> dict:
    config = load_config()
    name = (input or {}).get("dns_provider")
    with get_dns_provider(config, provider_name=name) as provider:
        return {
            "dns_provider": (name or config.dns_provider).lower(),
            "sequential": provider.sequential,
            "propagation_timeout": provider.propagation_timeout,
            "polling_interval": provider.polling_interval,
            "available_providers": available_providers(),
        }
