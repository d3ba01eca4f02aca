"""Zone Locator: find the apex of the zone serving a name by walking SOA lookups."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import dns.exception
import dns.name
import dns.rdatatype
import dns.resolver
import dns.rrset

from dns_challenge.errors import ResolutionTimeout, ZoneNotFound

logger = logging.getLogger(__name__)

PUBLIC_RESOLVERS = ("8.8.8.8", "8.8.4.4")
_EDNS_PAYLOAD = 4096


def system_nameservers() -> tuple[str, ...]:
    """Return the nameservers configured for the system resolver, if any."""
    try:
        resolver = dns.resolver.Resolver(configure=True)
    except dns.resolver.NoResolverConfiguration:
        return ()
    return tuple(resolver.nameservers)


def default_nameservers(configured: Iterable[str] = ()) -> tuple[str, ...]:
    """Explicitly configured servers win; otherwise system servers, then public ones."""
    configured = tuple(configured)
    if configured:
        return configured
    servers: list[str] = []
    for server in (*system_nameservers(), *PUBLIC_RESOLVERS):
        if server not in servers:
            servers.append(server)
    return tuple(servers)


class ZoneLocator:
    """Locate authoritative zones with recursive SOA queries.

    Queries go through a :class:`dns.resolver.Resolver` bound to the configured
    nameservers, which moves on to the next server when one fails or answers
    SERVFAIL and retries truncated replies over TCP. No results are cached:
    zone topology may change between calls.
    """

    def __init__(self, nameservers: Iterable[str] = (), timeout: float = 10.0) -> None:
        self._nameservers = default_nameservers(nameservers)
        self._timeout = timeout
        self._resolver = self._resolver_for(self._nameservers, recursive=True)

    @property
    def nameservers(self) -> tuple[str, ...]:
        return self._nameservers

    def _resolver_for(self, nameservers: Iterable[str], recursive: bool) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = list(nameservers)
        resolver.timeout = self._timeout
        # Each server gets the full per-query timeout.
        resolver.lifetime = self._timeout * max(len(resolver.nameservers), 1)
        resolver.use_edns(0, 0, _EDNS_PAYLOAD)
        if not recursive:
            resolver.set_flags(0)
        return resolver

    def find_zone(self, fqdn: str) -> str:
        """Return the apex (with trailing dot) of the closest zone enclosing ``fqdn``.

        Raises:
            ZoneNotFound: No suffix below the top-level domain answered with an SOA.
            ResolutionTimeout: No nameserver could be reached for a suffix.
        """
        name = dns.name.from_text(fqdn)
        # Stop before the TLD: ("com", "") has two labels.
        while len(name.labels) > 2:
            for rrset in self.query(name, dns.rdatatype.SOA):
                if rrset.rdtype == dns.rdatatype.SOA:
                    zone = rrset.name.to_text()
                    logger.debug("Found zone %s for %s", zone, fqdn)
                    return zone
            name = name.parent()
        raise ZoneNotFound(f"Could not find the start of authority for {fqdn}")

    def nameservers_for(self, apex: str) -> list[str]:
        """Return the NS host names of the zone ``apex``."""
        hosts = [
            rdata.target.to_text()
            for rrset in self.query(dns.name.from_text(apex), dns.rdatatype.NS)
            if rrset.rdtype == dns.rdatatype.NS
            for rdata in rrset
        ]
        if not hosts:
            raise ZoneNotFound(f"No nameservers found for zone {apex}")
        return sorted(hosts)

    def addresses_for(self, host: str) -> list[str]:
        """Return the IPv4 addresses of ``host``."""
        rrsets = self.query(dns.name.from_text(host), dns.rdatatype.A)
        return [rdata.address for rrset in rrsets if rrset.rdtype == dns.rdatatype.A for rdata in rrset]

    def query(
        self,
        name: dns.name.Name,
        rdtype: dns.rdatatype.RdataType,
        nameservers: Iterable[str] | None = None,
        recursive: bool = True,
    ) -> list[dns.rrset.RRset]:
        """Return the answer section for ``name``/``rdtype``.

        A name that does not exist, or has no data of that type, yields an empty list.

        Raises:
            ZoneNotFound: Every nameserver failed or refused the query.
            ResolutionTimeout: No nameserver answered before the timeout.
        """
        if nameservers is None and recursive:
            resolver = self._resolver
        else:
            resolver = self._resolver_for(self._nameservers if nameservers is None else nameservers, recursive)
        try:
            answer = resolver.resolve(name, rdtype, raise_on_no_answer=False)
        except dns.resolver.NXDOMAIN:
            return []
        except dns.resolver.NoNameservers as exc:
            raise ZoneNotFound(f"No nameserver answered {name}: {exc}") from exc
        except dns.exception.Timeout as exc:
            raise ResolutionTimeout(
                f"DNS query for {name} timed out on all nameservers: {', '.join(resolver.nameservers)}"
            ) from exc
        return list(answer.response.answer)
