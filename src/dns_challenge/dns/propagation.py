"""Wait until a TXT record is served by every authoritative nameserver of its zone."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import dns.name
import dns.rdatatype

from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import DnsChallengeError, PropagationTimeout

logger = logging.getLogger(__name__)


class PropagationChecker:
    """Poll the zone's authoritative nameservers for a TXT value."""

    def __init__(
        self,
        locator: ZoneLocator,
        _sleep: Callable[[float], None] = time.sleep,
        _clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._locator = locator
        self._sleep = _sleep
        self._clock = _clock

    def is_published(self, fqdn: str, value: str) -> bool:
        """Return True if every authoritative nameserver serves ``value`` at ``fqdn``."""
        apex = self._locator.find_zone(fqdn)
        for host in self._locator.nameservers_for(apex):
            addresses = self._locator.addresses_for(host)
            if not addresses:
                logger.debug("Nameserver %s has no address, skipping", host)
                continue
            rrsets = self._locator.query(
                dns.name.from_text(fqdn),
                dns.rdatatype.TXT,
                nameservers=addresses,
                recursive=False,
            )
            values = {
                b"".join(rdata.strings).decode("utf-8", "replace")
                for rrset in rrsets
                if rrset.rdtype == dns.rdatatype.TXT
                for rdata in rrset
            }
            if value not in values:
                logger.debug("Nameserver %s does not serve %s yet", host, fqdn)
                return False
        return True

    def wait(self, fqdn: str, value: str, timeout: float, interval: float) -> None:
        """Block until ``value`` is published at ``fqdn`` or ``timeout`` seconds elapse.

        DNS errors while polling are treated as "not yet" and retried until the deadline.
        """
        deadline = self._clock() + timeout
        while True:
            try:
                if self.is_published(fqdn, value):
                    logger.info("TXT record %s has propagated", fqdn)
                    return
            except DnsChallengeError as exc:
                logger.debug("Propagation check for %s failed: %s", fqdn, exc)
            if self._clock() + interval > deadline:
                raise PropagationTimeout(f"TXT record {fqdn} did not propagate within {timeout:.0f}s")
            self._sleep(interval)
