"""Shared fixtures for the Simi test suite."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from typing import Any

import pytest

# simi.serve builds the production app at import unless TESTING=1
os.environ.setdefault("TESTING", "1")

from simi.capabilities.catalog import default_registry  # noqa: E402
from simi.capabilities.registry import CapabilityRegistry  # noqa: E402
from simi.channels.protocol import SendResult  # noqa: E402
from simi.dispatcher import Dispatcher  # noqa: E402
from simi.engines.demo import DemoStepEngine  # noqa: E402
from simi.engines.freeform import FreeformEngine  # noqa: E402
from simi.sessions.manager import InMemorySessionStore  # noqa: E402
from simi.sessions.models import Turn  # noqa: E402


class FakeCompletion:
    """CompletionService double: scripted replies, recorded calls."""

    def __init__(self, replies: Sequence[Any] = (), delay: float = 0.0):
        self.replies = list(replies)
        self.calls: list[tuple[str, list[Turn], str]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, system_prompt: str, prior_turns: Sequence[Turn], new_input: str) -> str:
        self.calls.append((system_prompt, list(prior_turns), new_input))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            reply = self.replies.pop(0) if self.replies else "ok"
            if isinstance(reply, Exception):
                raise reply
            return reply
        finally:
            self.in_flight -= 1


class RecordingChannel:
    """OutboundChannel double that records every send."""

    def __init__(self, fail: bool = False, raise_on_send: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.fail = fail
        self.raise_on_send = raise_on_send

    @property
    def channel_id(self) -> str:
        return "recording"

    @property
    def is_configured(self) -> bool:
        return True

    def send(self, recipient: str, text: str) -> SendResult:
        if self.raise_on_send:
            raise RuntimeError("transport exploded")
        self.sent.append((recipient, text))
        if self.fail:
            return SendResult(success=False, channel_id=self.channel_id, error="mock failure")
        return SendResult(success=True, channel_id=self.channel_id, response_id="SM123")

    def texts_to(self, recipient: str) -> list[str]:
        return [text for to, text in self.sent if to == recipient]


@pytest.fixture
def registry() -> CapabilityRegistry:
    return default_registry()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def demo_completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def freeform_completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def dispatcher(store, registry, demo_completion, freeform_completion, channel) -> Dispatcher:
    return Dispatcher(
        store=store,
        registry=registry,
        demo_engine=DemoStepEngine(demo_completion, registry=registry),
        freeform_engine=FreeformEngine(freeform_completion),
        channel=channel,
    )
