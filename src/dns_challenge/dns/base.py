"""Abstract base class for DNS providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Self

from dns_challenge.dns.propagation import PropagationChecker
from dns_challenge.dns.util import DEFAULT_TTL, challenge_record
from dns_challenge.errors import DnsChallengeError
from dns_challenge.models import ChallengeRecord, CleanupResult

logger = logging.getLogger(__name__)


class DnsProvider(ABC):
    """Interface for DNS providers that publish ACME DNS-01 challenge TXT records.

    Subclasses implement :meth:`_present` and :meth:`_cleanup`; the public
    :meth:`present` and :meth:`cleanup` derive the record and apply the
    propagation and error policies.
    """

    #: Challenges for several domains must be processed one after another.
    sequential: ClassVar[bool] = False
    ttl: ClassVar[int] = DEFAULT_TTL
    propagation_timeout: ClassVar[float] = 60.0
    polling_interval: ClassVar[float] = 2.0

    def __init__(self, propagation: PropagationChecker | None = None) -> None:
        self._propagation = propagation

    def close(self) -> None:
        """Release resources. Override in subclasses that hold open connections."""

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def present(self, domain: str, token: str, key_auth: str) -> None:
        """Publish the challenge TXT record for ``domain``.

        Args:
            domain: Domain being validated (e.g. "abc.def.example.com" or "*.example.com").
            token: Challenge token; together with ``domain`` it identifies the challenge.
            key_auth: Key authorization whose digest becomes the record value.

        Raises:
            DnsChallengeError: The record could not be published.
        """
        record = challenge_record(domain, key_auth, ttl=self.ttl)
        logger.debug("Presenting %s for %s", record.fqdn, domain)
        self._present(record, token)
        if self._propagation is not None:
            self._propagation.wait(record.fqdn, record.value, self.propagation_timeout, self.polling_interval)

    def cleanup(self, domain: str, token: str, key_auth: str) -> CleanupResult:
        """Remove the challenge TXT record for ``domain`` and restore prior state.

        Never raises :class:`DnsChallengeError`: by the time cleanup runs the
        certificate has been issued, so failures are logged and reported in the
        returned result instead.
        """
        record = challenge_record(domain, key_auth, ttl=self.ttl)
        try:
            warnings = self._cleanup(record, token)
        except DnsChallengeError as exc:
            logger.warning("Cleanup of %s failed: %s", record.fqdn, exc.detail)
            return CleanupResult(domain=domain, success=False, error=exc.detail)
        return CleanupResult(domain=domain, success=True, warnings=tuple(warnings))

    @abstractmethod
    def _present(self, record: ChallengeRecord, token: str) -> None:
        """Create the TXT record in the provider's zone."""

    @abstractmethod
    def _cleanup(self, record: ChallengeRecord, token: str) -> list[str]:
        """Delete the TXT record. Returns warnings about degraded cleanup."""
