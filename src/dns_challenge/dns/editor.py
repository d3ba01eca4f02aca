"""Transactional zone editing for providers that only support whole-zone versions.

Some provider APIs cannot upsert a single record. They instead let a client
clone the active version of a zone, edit the clone and activate it. The
:class:`TransactionalZoneEditor` drives that workflow on top of the primitives
of a :class:`ZoneVersionBackend` and keeps the bookkeeping needed to undo it:

present:  Resolved → Cloned → Mutated → Activated
cleanup:  Activated → PriorActivated → TransientDeleted

All mutations of one zone run under that zone's lock, and every Present clones
the version active at call time, so back-to-back challenges on one zone (for
example a wildcard and its base domain) never drop each other's records.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace

from dns_challenge.dns.retry import RetryPolicy
from dns_challenge.dns.state import PendingStore
from dns_challenge.dns.util import describe
from dns_challenge.dns.zone import ZoneLocator
from dns_challenge.errors import (
    DnsChallengeError,
    PartialCleanupFailure,
    VersionConflict,
    VersionNotFound,
)
from dns_challenge.models import (
    ChallengeRecord,
    PendingChallenge,
    RecordDescriptor,
    VersionId,
    ZoneReference,
    ZoneSession,
    ZoneVersion,
    challenge_key,
)

logger = logging.getLogger(__name__)


class ZoneVersionBackend(ABC):
    """Provider-specific primitives of the versioned-zone workflow.

    Implementations translate provider failures into the taxonomy of
    :mod:`dns_challenge.errors`; retryable failures are marked as such.
    """

    @abstractmethod
    def resolve_zone(self, apex: str) -> ZoneReference:
        """Map a zone apex to the provider's zone."""

    @abstractmethod
    def active_version(self, zone: ZoneReference) -> VersionId:
        """Return the id of the version currently served for ``zone``."""

    @abstractmethod
    def clone_version(self, zone: ZoneReference, version_id: VersionId) -> ZoneVersion:
        """Copy ``version_id`` into a new, inactive and editable version."""

    @abstractmethod
    def add_record(self, zone: ZoneReference, draft: ZoneVersion, record: RecordDescriptor) -> None:
        """Add ``record`` to the editable ``draft``."""

    @abstractmethod
    def remove_record(self, zone: ZoneReference, draft: ZoneVersion, record: RecordDescriptor) -> None:
        """Remove ``record`` from the editable ``draft``."""

    @abstractmethod
    def has_record(self, zone: ZoneReference, version_id: VersionId, record: RecordDescriptor) -> bool:
        """Return True if ``version_id`` contains ``record``."""

    @abstractmethod
    def activate_version(self, zone: ZoneReference, draft: ZoneVersion) -> None:
        """Make the edited ``draft`` the version served for ``zone``."""

    @abstractmethod
    def restore_version(self, zone: ZoneReference, version_id: VersionId) -> None:
        """Make an existing, previously active version the served one again."""

    @abstractmethod
    def delete_version(self, zone: ZoneReference, version_id: VersionId) -> None:
        """Delete an inactive version. Raises :class:`VersionNotFound` if it is gone."""


class TransactionalZoneEditor:
    """Publish and retract challenge records through clone/edit/activate cycles."""

    def __init__(
        self,
        backend: ZoneVersionBackend,
        locator: ZoneLocator,
        store: PendingStore,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._backend = backend
        self._locator = locator
        self._store = store
        self._retry = retry or RetryPolicy()

    # -- present ---------------------------------------------------------

    def present(self, record: ChallengeRecord, token: str) -> None:
        """Publish ``record`` in a new active version of its zone.

        On failure the cloned version is rolled back before the error propagates.
        """
        zone = self._resolve(record)
        descriptor = describe(record, zone.apex)
        key = challenge_key(record.domain, token)

        with self._store.zone_lock(zone.key):
            session = self._store.get(zone.key)
            prior = self._step("read active version", self._backend.active_version, zone)
            if session is not None and prior != session.baseline and prior not in session.transients:
                logger.warning(
                    "Active version %s of zone %s was not created by pending challenges",
                    prior,
                    zone.apex,
                )

            orphans: list[VersionId] = []
            try:
                base, draft = self._publish(
                    zone,
                    prior,
                    lambda d: self._backend.add_record(zone, d, descriptor),
                    orphans,
                )
                challenge = PendingChallenge(
                    domain=record.domain,
                    token=token,
                    record=descriptor,
                    prior_version=base,
                    transient_version=draft.id,
                )
                updated = session if session is not None else ZoneSession(zone=zone, baseline=base)
                updated = replace(
                    updated,
                    zone=zone,
                    transients=(*updated.transients, draft.id),
                    challenges=(*(c for c in updated.challenges if c.key != key), challenge),
                )
                try:
                    self._store.put(updated)
                except BaseException:
                    # The clone is active but unrecorded.
                    self._rollback(zone, base, draft, orphans)
                    raise
            except BaseException:
                if orphans:
                    try:
                        self._remember_orphans(session, zone, prior, orphans, record.domain, token, descriptor)
                    except DnsChallengeError as exc:
                        logger.error(
                            "Could not record leftover versions %s of zone %s: %s",
                            orphans,
                            zone.apex,
                            exc.detail,
                        )
                raise
            logger.info(
                "Activated version %s of zone %s with TXT %s (prior version %s)",
                draft.id,
                zone.apex,
                descriptor.name,
                base,
            )

    # -- cleanup ---------------------------------------------------------

    def cleanup(self, record: ChallengeRecord, token: str) -> list[str]:
        """Retract ``record`` and restore the zone. Returns warnings about degraded cleanup.

        Raises:
            PartialCleanupFailure: The prior version is active again but some
                transient versions could not be deleted.
        """
        key = challenge_key(record.domain, token)
        pending = self._store.find_challenge(key)
        if pending is None:
            return self._cleanup_without_state(record, token)

        zone = pending.zone
        with self._store.zone_lock(zone.key):
            session = self._store.get(zone.key)
            challenge = session.find(key) if session is not None else None
            if challenge is None:
                message = f"Challenge for {record.domain} was already cleaned up"
                logger.warning(message)
                return [message]
            others = tuple(c for c in session.challenges if c.key != key)
            if others:
                return self._withdraw(session, challenge, others)
            return self._restore(session)

    def _withdraw(
        self,
        session: ZoneSession,
        challenge: PendingChallenge,
        others: tuple[PendingChallenge, ...],
    ) -> list[str]:
        """Remove one record while other challenges of the zone are still pending."""
        zone = session.zone
        active = self._step("read active version", self._backend.active_version, zone)
        transients = list(session.transients)

        if self._step("look up record", self._backend.has_record, zone, active, challenge.record):
            orphans: list[VersionId] = []
            try:
                _, draft = self._publish(
                    zone,
                    active,
                    lambda d: self._backend.remove_record(zone, d, challenge.record),
                    orphans,
                )
            finally:
                if orphans:
                    transients.extend(orphans)
                    self._store.put(replace(session, transients=tuple(transients)))
            transients.append(draft.id)
            active = draft.id
            logger.info("Activated version %s of zone %s without TXT %s", draft.id, zone.apex, challenge.record.name)

        still_needed = {c.prior_version for c in others} | {active}
        if challenge.transient_version not in still_needed:
            if self._delete(zone, challenge.transient_version) and challenge.transient_version in transients:
                transients.remove(challenge.transient_version)

        self._store.put(replace(session, transients=tuple(transients), challenges=others))
        return []

    def _restore(self, session: ZoneSession) -> list[str]:
        """Reactivate the baseline version and delete every transient version."""
        zone = session.zone
        warnings: list[str] = []
        active = self._step("read active version", self._backend.active_version, zone)
        transients = list(session.transients)

        if active in transients:
            self._step("restore version", self._backend.restore_version, zone, session.baseline)
            logger.info("Restored version %s of zone %s", session.baseline, zone.apex)
            active = session.baseline
        elif active != session.baseline:
            # The zone was edited outside this workflow; keep those edits.
            message = (
                f"Active version {active} of zone {zone.apex} was not created by this challenge; "
                f"version {session.baseline} was not restored"
            )
            logger.warning(message)
            warnings.append(message)
            for challenge in session.challenges:
                if self._step("look up record", self._backend.has_record, zone, active, challenge.record):
                    orphans: list[VersionId] = []
                    try:
                        _, draft = self._publish(
                            zone,
                            active,
                            lambda d, r=challenge.record: self._backend.remove_record(zone, d, r),
                            orphans,
                        )
                    finally:
                        if orphans:
                            transients.extend(orphans)
                            self._store.put(replace(session, transients=tuple(transients)))
                    transients.append(draft.id)
                    active = draft.id

        leftover = [v for v in transients if v != active and not self._delete(zone, v)]
        self._store.delete(zone.key)
        if leftover:
            raise PartialCleanupFailure(
                f"Pending challenges of zone {zone.apex} were cleaned up but transient "
                f"version(s) {', '.join(map(str, leftover))} could not be deleted",
                leftover=tuple(leftover),
            )
        logger.info("Cleaned up all pending challenges of zone %s", zone.apex)
        return warnings

    def _cleanup_without_state(self, record: ChallengeRecord, token: str) -> list[str]:
        """Best-effort cleanup when no pending state exists (e.g. after a restart).

        The version active now cannot be attributed to this challenge, so it is
        never deleted: the record is removed in a fresh version instead.
        """
        zone = self._resolve(record)
        descriptor = describe(record, zone.apex)

        with self._store.zone_lock(zone.key):
            active = self._step("read active version", self._backend.active_version, zone)
            if not self._step("look up record", self._backend.has_record, zone, active, descriptor):
                message = (
                    f"No pending state for {record.domain}; active version {active} of zone "
                    f"{zone.apex} does not contain {descriptor.name}, nothing to clean up"
                )
                logger.warning(message)
                return [message]

            orphans: list[VersionId] = []
            _, draft = self._publish(
                zone,
                active,
                lambda d: self._backend.remove_record(zone, d, descriptor),
                orphans,
            )
            session = self._store.get(zone.key)
            if session is not None:
                self._store.put(replace(session, transients=(*session.transients, *orphans, draft.id)))

        message = (
            f"No pending state for {record.domain}; removed {descriptor.name} in new version "
            f"{draft.id} of zone {zone.apex} and kept the previous version {active}, which may "
            f"belong to the challenge"
        )
        logger.warning(message)
        return [message]

    # -- helpers ---------------------------------------------------------

    def _resolve(self, record: ChallengeRecord) -> ZoneReference:
        apex = self._locator.find_zone(record.fqdn)
        return self._step("resolve zone", self._backend.resolve_zone, apex)

    def _step(self, step: str, fn: Callable, *args):
        return self._retry.call(step, fn, *args)

    def _publish(
        self,
        zone: ZoneReference,
        base: VersionId,
        mutate: Callable[[ZoneVersion], None],
        orphans: list[VersionId],
    ) -> tuple[VersionId, ZoneVersion]:
        """Clone ``base``, apply ``mutate`` and activate the clone.

        A :class:`VersionConflict` re-clones once from the then-active version.
        Any failure rolls the clone back; clones that cannot be rolled back are
        appended to ``orphans``.

        Returns:
            The version the activated clone was based on, and the clone.
        """
        for attempt in (1, 2):
            draft = self._step("clone version", self._backend.clone_version, zone, base)
            logger.debug("Cloned version %s of zone %s into %s", base, zone.apex, draft.id)
            try:
                # Not retried: record edits are not idempotent.
                mutate(draft)
                current = self._step("read active version", self._backend.active_version, zone)
                if current != base:
                    raise VersionConflict(f"Active version of zone {zone.apex} changed from {base} to {current}")
                self._step("activate version", self._backend.activate_version, zone, draft)
                return base, draft
            except VersionConflict:
                self._rollback(zone, base, draft, orphans)
                if attempt == 2:
                    raise
                base = self._step("read active version", self._backend.active_version, zone)
                logger.warning("Zone %s changed during the update, re-cloning from version %s", zone.apex, base)
            except BaseException:
                self._rollback(zone, base, draft, orphans)
                raise
        raise AssertionError("unreachable")

    def _rollback(self, zone: ZoneReference, base: VersionId, draft: ZoneVersion, orphans: list[VersionId]) -> None:
        try:
            if self._step("read active version", self._backend.active_version, zone) == draft.id:
                self._step("restore version", self._backend.restore_version, zone, base)
            self._step("delete version", self._backend.delete_version, zone, draft.id)
        except VersionNotFound:
            pass
        except DnsChallengeError as exc:
            logger.warning(
                "Could not roll back version %s of zone %s, leaving it for cleanup: %s",
                draft.id,
                zone.apex,
                exc.detail,
            )
            orphans.append(draft.id)
        else:
            logger.info("Rolled back version %s of zone %s", draft.id, zone.apex)

    def _delete(self, zone: ZoneReference, version_id: VersionId) -> bool:
        """Delete a transient version; a version that is already gone counts as deleted."""
        try:
            self._step("delete version", self._backend.delete_version, zone, version_id)
        except VersionNotFound:
            logger.debug("Version %s of zone %s was already deleted", version_id, zone.apex)
        except DnsChallengeError as exc:
            logger.warning("Could not delete version %s of zone %s: %s", version_id, zone.apex, exc.detail)
            return False
        else:
            logger.info("Deleted version %s of zone %s", version_id, zone.apex)
        return True

    def _remember_orphans(
        self,
        session: ZoneSession | None,
        zone: ZoneReference,
        prior: VersionId,
        orphans: list[VersionId],
        domain: str,
        token: str,
        descriptor: RecordDescriptor,
    ) -> None:
        """Keep versions a failed present could not roll back so cleanup deletes them."""
        key = challenge_key(domain, token)
        challenge = PendingChallenge(
            domain=domain,
            token=token,
            record=descriptor,
            prior_version=prior,
            transient_version=orphans[-1],
            activated=False,
        )
        if session is None:
            session = ZoneSession(zone=zone, baseline=prior)
        self._store.put(
            replace(
                session,
                transients=(*session.transients, *orphans),
                challenges=(*(c for c in session.challenges if c.key != key), challenge),
            )
        )
