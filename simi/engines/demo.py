"""Demo step engine — one exchange of a guided capability walkthrough.

The model ends a walkthrough by including COMPLETION_MARKER in its reply.
parse_completion() turns the raw reply into a tagged StepResult so the
marker convention stays out of the routing code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from simi.capabilities.catalog import default_registry
from simi.capabilities.registry import Capability, CapabilityRegistry
from simi.llm.completion import CompletionService
from simi.prompts import COMPLETION_MARKER, build_capability_prompt, build_kickoff_instruction
from simi.sessions import history
from simi.sessions.models import Session, Speaker

logger = logging.getLogger(__name__)

# Marker plus the horizontal whitespace in front of it
_MARKER_PATTERN = re.compile(r"[ \t]*" + re.escape(COMPLETION_MARKER))


@dataclass(frozen=True)
class StepResult:
    """Reply text with the completion marker already removed."""
    text: str
    complete: bool = False


def parse_completion(raw: str) -> StepResult:
    """Detect and strip the completion marker anywhere in raw."""
    if COMPLETION_MARKER not in raw:
        return StepResult(text=raw.strip(), complete=False)
    return StepResult(text=_MARKER_PATTERN.sub("", raw).strip(), complete=True)


class DemoStepEngine:
    """Drives guided demos through a completion service."""

    def __init__(
        self,
        completion: CompletionService,
        window_turns: int = history.DEMO_WINDOW_TURNS,
        registry: CapabilityRegistry | None = None,
    ):
        self._completion = completion
        self._window_turns = window_turns
        self._registry = registry if registry is not None else default_registry()

    async def step(
        self,
        session: Session,
        text: str | None = None,
        kickoff: bool = False,
    ) -> StepResult:
        """Run one exchange for the session's active capability.

        Args:
            session: Session with active_capability set
            text: The sender's message (ignored on kickoff)
            kickoff: Open the demo with a synthesized instruction instead

        Returns:
            StepResult with the cleaned reply and whether the demo finished

        Raises:
            ValueError: No active capability on the session
            CompletionError: The completion service failed; the user turn
                stays in history and no assistant turn is appended
        """
        capability: Capability | None = session.active_capability
        if capability is None:
            raise ValueError("Demo step requires an active capability")

        description = self._registry.describe(capability)
        if kickoff:
            new_input = build_kickoff_instruction(description)
            history.append(session, Speaker.USER, new_input, synthetic=True)
        else:
            new_input = text or ""
            history.append(session, Speaker.USER, new_input)

        prior = history.context_window(session, self._window_turns)
        raw = await self._completion.complete(
            build_capability_prompt(description),
            prior,
            new_input,
        )

        result = parse_completion(raw)
        history.append(session, Speaker.ASSISTANT, result.text)

        logger.info(
            "Demo step: capability=%s kickoff=%s complete=%s reply_len=%d",
            capability.key,
            kickoff,
            result.complete,
            len(result.text),
        )
        return result
