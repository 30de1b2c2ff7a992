"""Conversation session data models.

Contract:
- One Session per sender identity (phone number without channel prefix)
- Turns are append-only and frozen once created
- A Session is replaced wholesale on reset, never partially cleared by the store
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from simi.capabilities.registry import Capability


class SessionMode(str, Enum):
    """Which engine processes a sender's messages."""
    DEMO = "demo"
    FREEFORM = "freeform"


class Speaker(str, Enum):
    """Author of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One utterance in a session's history."""
    speaker: Speaker
    text: str
    # True for instructions the orchestrator wrote on the sender's behalf (demo kickoff)
    synthetic: bool = False
    timestamp: float = 0.0


@dataclass
class Session:
    """Per-sender conversational state.

    is_first_contact is consumed exactly once, by the first routed message,
    to emit the welcome menu.
    """
    identity: str = ""
    mode: SessionMode = SessionMode.DEMO
    history: list[Turn] = field(default_factory=list)
    is_first_contact: bool = True
    active_capability: Capability | None = None
    created_at: float = 0.0
    last_activity: float = 0.0

    @property
    def turn_count(self) -> int:
        return len(self.history)

    @property
    def idle_seconds(self) -> float:
        return time.time() - self.last_activity

    def touch(self) -> None:
        self.last_activity = time.time()


def create_session(identity: str, mode: SessionMode = SessionMode.DEMO) -> Session:
    """Create a fresh session with default state.

    Args:
        identity: Sender identity the session belongs to
        mode: Initial mode (demo unless an admin command asked otherwise)

    Returns:
        New Session with empty history and the first-contact flag set
    """
    now = time.time()
    return Session(
        identity=identity,
        mode=mode,
        created_at=now,
        last_activity=now,
    )
