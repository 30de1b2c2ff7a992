"""Session store — keyed registry of per-sender sessions.

Handles session creation on first contact, wholesale reset, per-identity
serialization locks, and idle cleanup.

Contract:
- get() never fails: an unseen identity gets a default session
- reset() replaces the session object; nothing of the old state survives
- Two identities never share a session or a lock
- Process-local only; sessions do not survive a restart
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol, runtime_checkable

from simi.sessions.models import Session, SessionMode, create_session

logger = logging.getLogger(__name__)


def mask_identity(identity: str) -> str:
    """Log-safe form of a sender identity (last 4 characters only)."""
    if len(identity) <= 4:
        return "***"
    return "***" + identity[-4:]


@runtime_checkable
class SessionStore(Protocol):
    """Storage interface the dispatcher depends on."""

    def get(self, identity: str) -> Session:
        """Return the session for identity, creating a default one if needed."""
        ...

    def reset(self, identity: str, mode: SessionMode = SessionMode.DEMO) -> Session:
        """Replace the session for identity with a fresh one in the given mode."""
        ...

    def lock(self, identity: str) -> asyncio.Lock:
        """Lock serializing message processing for one identity."""
        ...


class InMemorySessionStore:
    """Dict-backed session store for a single process.

    A networked store can replace this without touching routing, as long as
    it satisfies SessionStore.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, identity: str) -> Session:
        session = self._sessions.get(identity)
        if session is None:
            session = create_session(identity)
            self._sessions[identity] = session
            logger.info("Session created: %s", mask_identity(identity))
        return session

    def reset(self, identity: str, mode: SessionMode = SessionMode.DEMO) -> Session:
        session = create_session(identity, mode=mode)
        self._sessions[identity] = session
        logger.info("Session reset: %s (mode=%s)", mask_identity(identity), mode.value)
        return session

    def lock(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def cleanup_idle(self, max_idle_seconds: float) -> int:
        """Drop sessions idle longer than max_idle_seconds.

        Sessions whose lock is currently held are skipped. Returns the
        number of sessions removed.
        """
        cutoff = time.time() - max_idle_seconds
        idle = [
            identity for identity, session in self._sessions.items()
            if session.last_activity < cutoff
            and not (identity in self._locks and self._locks[identity].locked())
        ]
        for identity in idle:
            del self._sessions[identity]
            self._locks.pop(identity, None)
        if idle:
            logger.info("Cleaned up %d idle sessions", len(idle))
        return len(idle)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions

    @property
    def session_count(self) -> int:
        return len(self._sessions)
