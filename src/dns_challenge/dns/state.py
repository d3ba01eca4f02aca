"""Pending-cleanup state shared between present and cleanup calls.

Sessions are keyed by zone; each session lists the challenges presented in
that zone. Stores also hand out the per-zone locks that serialize the
clone→mutate→activate sequences of a zone.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from dns_challenge.config import AppConfig
from dns_challenge.errors import PendingStateError
from dns_challenge.models import ZoneSession

logger = logging.getLogger(__name__)


class PendingStore(ABC):
    """Thread-safe storage of :class:`ZoneSession` objects."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._zone_locks: dict[str, threading.Lock] = {}

    def zone_lock(self, zone_key: str) -> threading.Lock:
        """Return the lock serializing mutations of one zone."""
        with self._lock:
            return self._zone_locks.setdefault(zone_key, threading.Lock())

    def find_challenge(self, challenge_key: str) -> ZoneSession | None:
        """Return the session holding ``challenge_key``, if any."""
        with self._lock:
            for session in self._load().values():
                if session.find(challenge_key) is not None:
                    return session
        return None

    def get(self, zone_key: str) -> ZoneSession | None:
        with self._lock:
            return self._load().get(zone_key)

    def put(self, session: ZoneSession) -> None:
        with self._lock:
            sessions = self._load()
            sessions[session.zone.key] = session
            self._save(sessions)

    def delete(self, zone_key: str) -> None:
        with self._lock:
            sessions = self._load()
            if sessions.pop(zone_key, None) is not None:
                self._save(sessions)

    @abstractmethod
    def _load(self) -> dict[str, ZoneSession]:
        """Return all sessions keyed by zone key."""

    @abstractmethod
    def _save(self, sessions: dict[str, ZoneSession]) -> None:
        """Persist all sessions."""


class InMemoryPendingStore(PendingStore):
    """Sessions held for the lifetime of the process."""

    def __init__(self) -> None:
        super().__init__()
        self._sessions: dict[str, ZoneSession] = {}

    def _load(self) -> dict[str, ZoneSession]:
        return dict(self._sessions)

    def _save(self, sessions: dict[str, ZoneSession]) -> None:
        self._sessions = dict(sessions)


class JsonFilePendingStore(PendingStore):
    """Sessions persisted to a JSON file so present and cleanup may run in different processes.

    Locks are per process; concurrent processes must not share a zone.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        super().__init__()
        self._path = Path(path)

    def _load(self) -> dict[str, ZoneSession]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise PendingStateError(f"Cannot read pending state {self._path}: {exc}") from exc
        try:
            return {key: ZoneSession.from_dict(data) for key, data in raw.items()}
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PendingStateError(f"Malformed pending state in {self._path}: {exc!r}") from exc

    def _save(self, sessions: dict[str, ZoneSession]) -> None:
        payload = json.dumps({key: s.to_dict() for key, s in sessions.items()}, indent=2, sort_keys=True)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        except OSError as exc:
            raise PendingStateError(f"Cannot write pending state {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self._path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise PendingStateError(f"Cannot write pending state {self._path}: {exc}") from exc
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d pending zone session(s) to %s", len(sessions), self._path)


_stores: dict[str | None, PendingStore] = {}
_stores_lock = threading.Lock()


def get_pending_store(config: AppConfig) -> PendingStore:
    """Return the process-wide store for ``config.pending_state_path``."""
    path = config.pending_state_path
    with _stores_lock:
        store = _stores.get(path)
        if store is None:
            store = JsonFilePendingStore(path) if path else InMemoryPendingStore()
            _stores[path] = store
        return store
