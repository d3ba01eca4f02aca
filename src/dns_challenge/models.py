"""Data classes shared between providers, the zone editor and the pending-state store."""

from __future__ import annotations

from dataclasses import dataclass, field

VersionId = int | str


@dataclass(frozen=True)
class RecordDescriptor:
    """A TXT record relative to a zone apex, as handed to provider APIs."""

    name: str
    value: str
    ttl: int

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value, "ttl": self.ttl}

    @classmethod
    def from_dict(cls, data: dict) -> RecordDescriptor:
        return cls(name=data["name"], value=data["value"], ttl=int(data["ttl"]))


@dataclass(frozen=True)
class ChallengeRecord:
    """The DNS-01 TXT record derived from a key authorization."""

    domain: str
    fqdn: str
    value: str
    ttl: int

    def to_dict(self) -> dict:
        return {"domain": self.domain, "fqdn": self.fqdn, "value": self.value, "ttl": self.ttl}


@dataclass(frozen=True)
class ZoneReference:
    """A provider's authoritative zone for a domain."""

    apex: str
    provider_zone_id: VersionId | None = None

    @property
    def key(self) -> str:
        """Normalized apex used to key locks and pending state."""
        return self.apex.rstrip(".").lower()

    def to_dict(self) -> dict:
        return {"apex": self.apex, "provider_zone_id": self.provider_zone_id}

    @classmethod
    def from_dict(cls, data: dict) -> ZoneReference:
        return cls(apex=data["apex"], provider_zone_id=data.get("provider_zone_id"))


@dataclass(frozen=True)
class ZoneVersion:
    """A snapshot of a zone's record set.

    ``revision`` is a provider-specific handle on the editable draft inside a
    cloned version (Gandi's inner zone version number); ``None`` when unused.
    """

    id: VersionId
    revision: VersionId | None = None


@dataclass(frozen=True)
class PendingChallenge:
    """Cleanup bookkeeping for one presented challenge."""

    domain: str
    token: str
    record: RecordDescriptor
    prior_version: VersionId
    transient_version: VersionId
    activated: bool = True

    @property
    def key(self) -> str:
        return challenge_key(self.domain, self.token)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "token": self.token,
            "record": self.record.to_dict(),
            "prior_version": self.prior_version,
            "transient_version": self.transient_version,
            "activated": self.activated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PendingChallenge:
        return cls(
            domain=data["domain"],
            token=data["token"],
            record=RecordDescriptor.from_dict(data["record"]),
            prior_version=data["prior_version"],
            transient_version=data["transient_version"],
            activated=data.get("activated", True),
        )


@dataclass(frozen=True)
class ZoneSession:
    """All pending challenges of one zone.

    ``baseline`` is the version that was active before the first pending
    challenge; ``transients`` are the versions created since and not yet deleted.
    """

    zone: ZoneReference
    baseline: VersionId
    transients: tuple[VersionId, ...] = ()
    challenges: tuple[PendingChallenge, ...] = ()

    def find(self, key: str) -> PendingChallenge | None:
        for challenge in self.challenges:
            if challenge.key == key:
                return challenge
        return None

    def to_dict(self) -> dict:
        return {
            "zone": self.zone.to_dict(),
            "baseline": self.baseline,
            "transients": list(self.transients),
            "challenges": [c.to_dict() for c in self.challenges],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ZoneSession:
        return cls(
            zone=ZoneReference.from_dict(data["zone"]),
            baseline=data["baseline"],
            transients=tuple(data.get("transients", [])),
            challenges=tuple(PendingChallenge.from_dict(c) for c in data.get("challenges", [])),
        )


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of a cleanup call. Cleanup failures never abort issuance."""

    domain: str
    success: bool
    error: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "success": self.success,
            "error": self.error,
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: dict) -> CleanupResult:
        return cls(
            domain=data["domain"],
            success=data["success"],
            error=data.get("error"),
            warnings=tuple(data.get("warnings", [])),
        )


def challenge_key(domain: str, token: str) -> str:
    """Key pending state by domain and token."""
    return f"{domain.rstrip('.').lower()}|{token}"
