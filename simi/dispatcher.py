"""Dispatcher — the single entry point invoked once per inbound message.

Flow: session fetch -> route -> handler -> outbound send(s).

Contract:
- Messages from one sender are processed one at a time (per-identity lock),
  in arrival order; different senders run concurrently
- Engine failures are caught here and only here; the sender gets a short
  recovery message, the session keeps the history up to the failed turn
- Send failures are logged and never raised, and never roll back history
- Nothing internal (stack traces, identifiers) is ever sent to the sender
"""

from __future__ import annotations

import asyncio
import logging

from simi.capabilities.registry import Capability, CapabilityRegistry
from simi.channels.protocol import OutboundChannel, SendResult
from simi.engines.demo import DemoStepEngine, StepResult
from simi.engines.freeform import FreeformEngine
from simi.llm.completion import CompletionError
from simi.prompts import (
    ERROR_MESSAGE,
    FREEFORM_CONFIRMATION,
    RESET_CONFIRMATION,
    build_insight_message,
    build_menu,
)
from simi.router import AdminCommand, Route, RouteDecision, route
from simi.sessions.manager import SessionStore, mask_identity
from simi.sessions.models import Session, SessionMode

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes each inbound message and sends the resulting replies."""

    def __init__(
        self,
        store: SessionStore,
        registry: CapabilityRegistry,
        demo_engine: DemoStepEngine,
        freeform_engine: FreeformEngine,
        channel: OutboundChannel,
    ):
        self._store = store
        self._registry = registry
        self._demo = demo_engine
        self._freeform = freeform_engine
        self._channel = channel
        self._menu = build_menu(registry)

    @property
    def menu(self) -> str:
        return self._menu

    @property
    def store(self) -> SessionStore:
        return self._store

    async def handle(self, identity: str, text: str | None) -> None:
        """Process one inbound message end to end. Never raises."""
        message = (text or "").strip()
        async with self._store.lock(identity):
            try:
                await self._handle_locked(identity, message)
            except CompletionError as e:
                logger.warning(
                    "Completion failed for %s: [%s] %s",
                    mask_identity(identity),
                    e.error_class.value,
                    str(e)[:200],
                )
                await self._send(identity, ERROR_MESSAGE)
            except Exception:
                logger.exception("Message handling failed for %s", mask_identity(identity))
                await self._send(identity, ERROR_MESSAGE)

    async def _handle_locked(self, identity: str, message: str) -> None:
        session = self._store.get(identity)
        session.touch()
        decision = route(session, message, self._registry)
        logger.info(
            "Routing %s -> %s (mode=%s)",
            mask_identity(identity),
            decision.route.value,
            session.mode.value,
        )

        if decision.route == Route.ADMIN_COMMAND:
            await self._apply_admin(identity, decision)
        elif decision.route == Route.FREEFORM_ACTIVE:
            reply = await self._freeform.step(session, message)
            await self._send(identity, reply)
        elif decision.route == Route.FIRST_CONTACT:
            session.is_first_contact = False
            await self._send(identity, self._menu)
        elif decision.route == Route.MENU_RETURN:
            session.active_capability = None
            session.history = []
            await self._send(identity, self._menu)
        elif decision.route == Route.CAPABILITY_IN_PROGRESS:
            result = await self._demo.step(session, message)
            await self._deliver_step(identity, session, result)
        elif decision.route == Route.CAPABILITY_SELECT:
            await self._start_capability(identity, session, decision.capability)
        else:
            await self._send(identity, self._menu)

    async def _apply_admin(self, identity: str, decision: RouteDecision) -> None:
        if decision.command == AdminCommand.RESET:
            self._store.reset(identity, SessionMode.DEMO)
            await self._send(identity, RESET_CONFIRMATION)
            await self._send(identity, self._menu)
        elif decision.command == AdminCommand.FREEFORM:
            self._store.reset(identity, SessionMode.FREEFORM)
            await self._send(identity, FREEFORM_CONFIRMATION)
        elif decision.command == AdminCommand.DEMO:
            self._store.reset(identity, SessionMode.DEMO)
            await self._send(identity, self._menu)

    async def _start_capability(
        self,
        identity: str,
        session: Session,
        capability: Capability | None,
    ) -> None:
        session.active_capability = capability
        session.history = []
        result = await self._demo.step(session, kickoff=True)
        await self._deliver_step(identity, session, result)

    async def _deliver_step(self, identity: str, session: Session, result: StepResult) -> None:
        capability = session.active_capability
        await self._send(identity, result.text)
        if result.complete and capability is not None:
            session.active_capability = None
            await self._send(
                identity,
                build_insight_message(self._registry.insight_for(capability)),
            )
            logger.info("Demo complete: %s -> %s", mask_identity(identity), capability.key)

    async def _send(self, identity: str, text: str) -> SendResult | None:
        if not text.strip():
            logger.warning("Skipping blank outbound message to %s", mask_identity(identity))
            return None
        try:
            result = await asyncio.to_thread(self._channel.send, identity, text)
        except Exception:
            logger.exception("Channel %s raised on send", self._channel.channel_id)
            return None
        if not result.success:
            logger.warning(
                "Send to %s failed on %s: %s",
                mask_identity(identity),
                result.channel_id,
                result.error,
            )
        return result
