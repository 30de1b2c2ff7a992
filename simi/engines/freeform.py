"""Freeform engine — open-ended conversation with a wider context window."""

from __future__ import annotations

import logging

from simi.llm.completion import CompletionService
from simi.prompts import FREEFORM_SYSTEM_PROMPT
from simi.sessions import history
from simi.sessions.models import Session, Speaker

logger = logging.getLogger(__name__)


class FreeformEngine:
    """One freeform exchange per call; never signals completion."""

    def __init__(
        self,
        completion: CompletionService,
        window_turns: int = history.FREEFORM_WINDOW_TURNS,
        system_prompt: str = FREEFORM_SYSTEM_PROMPT,
    ):
        self._completion = completion
        self._window_turns = window_turns
        self._system_prompt = system_prompt

    async def step(self, session: Session, text: str) -> str:
        history.append(session, Speaker.USER, text)
        prior = history.context_window(session, self._window_turns)

        reply = (await self._completion.complete(self._system_prompt, prior, text)).strip()
        history.append(session, Speaker.ASSISTANT, reply)

        logger.info("Freeform step: history=%d reply_len=%d", session.turn_count, len(reply))
        return reply
