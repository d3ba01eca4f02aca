"""Error taxonomy for DNS-01 challenge provisioning."""

from __future__ import annotations


class DnsChallengeError(Exception):
    """Base class for all provisioning failures.

    Args:
        detail: Human-readable description of the failure.
        retryable: Whether the failure is transient and the step may be retried.
    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class ZoneNotFound(DnsChallengeError, LookupError):
    """No authoritative zone could be found for a name."""


class ResolutionTimeout(DnsChallengeError):
    """Every nameserver timed out while locating a zone."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, retryable=True)


class MissingCredential(DnsChallengeError, ValueError):
    """A provider was requested without its required credentials."""


class UnsupportedProvider(DnsChallengeError, ValueError):
    """The requested provider name is not registered."""


class RemoteAPIError(DnsChallengeError):
    """A provider API call failed.

    Wraps the provider's HTTP status and/or fault code together with its message.
    """

    def __init__(
        self,
        detail: str,
        *,
        status: int | None = None,
        code: int | str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(detail, retryable=retryable)
        self.status = status
        self.code = code


class VersionNotFound(RemoteAPIError):
    """The zone version addressed by a call does not exist (anymore)."""


class VersionConflict(DnsChallengeError):
    """The active zone version changed between clone and activation."""


class PartialCleanupFailure(DnsChallengeError):
    """The prior version was restored but transient versions were left behind."""

    def __init__(self, detail: str, *, leftover: tuple = ()) -> None:
        super().__init__(detail)
        self.leftover = tuple(leftover)


class PropagationTimeout(ResolutionTimeout):
    """A published record was not served by every authoritative nameserver in time."""


class PendingStateError(DnsChallengeError):
    """Pending-cleanup state could not be read or written."""
