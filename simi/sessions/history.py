"""History buffer — append, window, and sanitize turns for completion dispatch.

Contract:
- append() is the only way turns enter a session's history
- windowed() is the only place history is truncated; engines never slice
- sanitize() returns a new list and never mutates its input
- Sanitized history starts with a user turn, strictly alternates speakers,
  and never ends with a user turn (the pending input is sent separately)

The completion service rejects histories that break alternation, so any
caller that skips sanitize() risks a failed or malformed request.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from simi.sessions.models import Session, Speaker, Turn

# ── Window sizes (raw turns, before sanitization) ────────────────────────

DEMO_WINDOW_TURNS = 20
FREEFORM_WINDOW_TURNS = 30


def append(session: Session, speaker: Speaker, text: str, synthetic: bool = False) -> Turn:
    """Append one turn to the session and return it."""
    turn = Turn(speaker=speaker, text=text, synthetic=synthetic, timestamp=time.time())
    session.history.append(turn)
    session.touch()
    return turn


def windowed(turns: Sequence[Turn], max_turns: int) -> list[Turn]:
    """Return the last max_turns raw turns (unsanitized)."""
    if max_turns <= 0:
        return []
    return list(turns[-max_turns:])


def sanitize(turns: Sequence[Turn]) -> list[Turn]:
    """Project turns onto the shape the completion service accepts.

    1. Leading assistant turns are dropped.
    2. A run of same-speaker turns collapses to its first turn.
    3. A trailing user turn is dropped.

    Deterministic; sanitize(sanitize(t)) == sanitize(t).
    """
    result: list[Turn] = []
    for turn in turns:
        if not result:
            if turn.speaker == Speaker.USER:
                result.append(turn)
            continue
        if turn.speaker == result[-1].speaker:
            continue
        result.append(turn)

    # Alternation guarantees at most one trailing user turn
    if result and result[-1].speaker == Speaker.USER:
        result.pop()
    return result


def context_window(session: Session, max_turns: int, exclude_last: bool = True) -> list[Turn]:
    """Sanitized window of a session's history for one completion call.

    Args:
        session: Session whose history is projected
        max_turns: Raw window size applied before sanitization
        exclude_last: Drop the just-appended turn (it is the new input)

    Returns:
        Fresh sanitized list; the session is not modified
    """
    turns = session.history[:-1] if exclude_last and session.history else session.history
    return sanitize(windowed(turns, max_turns))


def to_messages(turns: Sequence[Turn]) -> list[BaseMessage]:
    """Convert sanitized turns to LangChain chat messages."""
    messages: list[BaseMessage] = []
    for turn in turns:
        if turn.speaker == Speaker.USER:
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))
    return messages
