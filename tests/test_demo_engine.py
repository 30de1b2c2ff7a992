"""Tests for the demo step engine and completion-marker parsing."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from conftest import FakeCompletion

from simi.engines.demo import DemoStepEngine, StepResult, parse_completion
from simi.llm.completion import CompletionError, ErrorClass
from simi.prompts import COMPLETION_MARKER, build_kickoff_instruction
from simi.sessions import history
from simi.sessions.models import Speaker, create_session


@pytest.fixture
def session(registry):
    s = create_session("+15550001111")
    s.is_first_contact = False
    s.active_capability = registry.resolve("1")
    return s


class TestParseCompletion:

    def test_no_marker(self):
        assert parse_completion("  How are you?  ") == StepResult(text="How are you?", complete=False)

    def test_trailing_marker(self):
        result = parse_completion("Great job! [DEMO_COMPLETE]")
        assert result.text == "Great job!"
        assert result.complete is True

    def test_marker_mid_text(self):
        result = parse_completion("Logged ✓ [DEMO_COMPLETE] Talk soon.")
        assert result.text == "Logged ✓ Talk soon."
        assert result.complete is True

    def test_marker_only(self):
        assert parse_completion(COMPLETION_MARKER) == StepResult(text="", complete=True)

    def test_multiple_markers_all_removed(self):
        result = parse_completion("Done [DEMO_COMPLETE] really [DEMO_COMPLETE]")
        assert COMPLETION_MARKER not in result.text
        assert result.text == "Done really"

    def test_marker_on_own_line(self):
        result = parse_completion("See you Thursday.\n[DEMO_COMPLETE]")
        assert result.text == "See you Thursday."
        assert result.complete is True

    def test_partial_marker_is_not_completion(self):
        assert parse_completion("[DEMO_COMPLETE").complete is False


class TestDemoStep:

    @pytest.mark.asyncio
    async def test_kickoff_uses_synthetic_turn(self, session):
        completion = FakeCompletion(["Hey! Did you take your meds today?"])
        engine = DemoStepEngine(completion)

        result = await engine.step(session, kickoff=True)

        assert result == StepResult(text="Hey! Did you take your meds today?", complete=False)
        system, prior, new_input = completion.calls[0]
        assert prior == []
        assert new_input == build_kickoff_instruction(session.active_capability.description)
        assert session.active_capability.description in system
        assert COMPLETION_MARKER in system

        assert len(session.history) == 2
        assert session.history[0].speaker == Speaker.USER
        assert session.history[0].synthetic is True
        assert session.history[1].speaker == Speaker.ASSISTANT
        assert session.history[1].synthetic is False

    @pytest.mark.asyncio
    async def test_normal_step_sends_prior_context(self, session):
        completion = FakeCompletion(["Opening", "Logged ✓"])
        engine = DemoStepEngine(completion)
        await engine.step(session, kickoff=True)

        result = await engine.step(session, "yes I took them")

        assert result.text == "Logged ✓"
        _, prior, new_input = completion.calls[1]
        assert new_input == "yes I took them"
        assert [t.text for t in prior][1] == "Opening"
        assert len(prior) == 2
        assert [t.text for t in session.history][-2:] == ["yes I took them", "Logged ✓"]

    @pytest.mark.asyncio
    async def test_completion_stores_cleaned_text(self, session):
        completion = FakeCompletion(["Great job! [DEMO_COMPLETE]"])
        result = await DemoStepEngine(completion).step(session, "ok")
        assert result.complete is True
        assert session.history[-1].text == "Great job!"

    @pytest.mark.asyncio
    async def test_empty_reply_still_recorded(self, session):
        completion = FakeCompletion(["   "])
        result = await DemoStepEngine(completion).step(session, "hello")
        assert result.text == ""
        assert session.history[-1].speaker == Speaker.ASSISTANT
        assert session.history[-1].text == ""

    @pytest.mark.asyncio
    async def test_failure_keeps_user_turn_only(self, session):
        completion = FakeCompletion([CompletionError("boom", ErrorClass.SERVER_ERROR)])
        with pytest.raises(CompletionError):
            await DemoStepEngine(completion).step(session, "hello")
        assert len(session.history) == 1
        assert session.history[0].speaker == Speaker.USER
        assert session.history[0].text == "hello"

    @pytest.mark.asyncio
    async def test_failed_turn_excluded_from_next_context(self, session):
        completion = FakeCompletion(["Opening", CompletionError("boom"), "Recovered"])
        engine = DemoStepEngine(completion)
        await engine.step(session, kickoff=True)
        with pytest.raises(CompletionError):
            await engine.step(session, "lost message")

        await engine.step(session, "second try")

        _, prior, _ = completion.calls[2]
        assert "lost message" not in [t.text for t in prior]
        for prev, cur in zip(prior, prior[1:]):
            assert prev.speaker != cur.speaker

    @pytest.mark.asyncio
    async def test_requires_active_capability(self, session):
        session.active_capability = None
        completion = FakeCompletion()
        with pytest.raises(ValueError):
            await DemoStepEngine(completion).step(session, "hi")
        assert completion.calls == []
        assert session.history == []

    @pytest.mark.asyncio
    async def test_context_capped_at_window(self, session):
        for i in range(40):
            history.append(session, Speaker.USER, f"q{i}")
            history.append(session, Speaker.ASSISTANT, f"a{i}")
        completion = FakeCompletion()

        await DemoStepEngine(completion).step(session, "latest")

        _, prior, _ = completion.calls[0]
        assert len(prior) <= history.DEMO_WINDOW_TURNS
        assert prior[-1].text == "a39"

    @pytest.mark.asyncio
    async def test_custom_window(self, session):
        for i in range(10):
            history.append(session, Speaker.USER, f"q{i}")
            history.append(session, Speaker.ASSISTANT, f"a{i}")
        completion = FakeCompletion()

        await DemoStepEngine(completion, window_turns=4).step(session, "latest")

        _, prior, _ = completion.calls[0]
        assert [t.text for t in prior] == ["q8", "a8", "q9", "a9"]

    @pytest.mark.asyncio
    async def test_prompt_text_comes_from_registry(self, session, registry):
        completion = FakeCompletion()
        engine = DemoStepEngine(completion, registry=registry)

        with patch.object(registry, "describe", return_value="a custom walkthrough") as describe:
            await engine.step(session, kickoff=True)

        describe.assert_called_once_with(session.active_capability)
        system, _, new_input = completion.calls[0]
        assert "a custom walkthrough" in system
        assert new_input == build_kickoff_instruction("a custom walkthrough")
