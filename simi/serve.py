"""FastAPI application: wiring, logging setup, and the idle-session cleanup loop.

Run with: uvicorn simi.serve:app --port 3000  (or python -m simi.serve)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import AsyncIterator

from fastapi import FastAPI

from simi.capabilities.catalog import default_registry
from simi.channels.whatsapp import TwilioWhatsAppChannel
from simi.dispatcher import Dispatcher
from simi.engines.demo import DemoStepEngine
from simi.engines.freeform import FreeformEngine
from simi.llm import config as llm_config
from simi.llm.completion import build_completion_service
from simi.sessions.manager import InMemorySessionStore
from simi.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
SESSION_IDLE_TTL_SECONDS = float(os.environ.get("SESSION_IDLE_TTL_SECONDS", "0"))
_CLEANUP_INTERVAL_SECONDS = 60


def build_dispatcher(store: InMemorySessionStore | None = None) -> Dispatcher:
    """Production dispatcher: in-memory sessions, Gemini, Twilio WhatsApp."""
    registry = default_registry()
    return Dispatcher(
        store=store or InMemorySessionStore(),
        registry=registry,
        demo_engine=DemoStepEngine(
            build_completion_service(llm_config.DEMO_MAX_OUTPUT_TOKENS),
            registry=registry,
        ),
        freeform_engine=FreeformEngine(
            build_completion_service(llm_config.FREEFORM_MAX_OUTPUT_TOKENS)
        ),
        channel=TwilioWhatsAppChannel(),
    )


async def idle_cleanup_loop(store: InMemorySessionStore, max_idle_seconds: float) -> None:
    """Periodically drop idle sessions. Runs until cancelled."""
    logger.info("Idle session cleanup started (ttl=%.0fs)", max_idle_seconds)
    try:
        while True:
            await asyncio.sleep(_CLEANUP_INTERVAL_SECONDS)
            store.cleanup_idle(max_idle_seconds)
    except asyncio.CancelledError:
        logger.info("Idle session cleanup stopped")
        raise


def create_app(
    dispatcher: Dispatcher | None = None,
    store: InMemorySessionStore | None = None,
) -> FastAPI:
    """Build the app. Tests pass their own dispatcher.

    Idle cleanup always runs on the dispatcher's store; passing a different
    store alongside a dispatcher is an error.
    """
    if dispatcher is None:
        dispatcher = build_dispatcher(store)
    elif store is not None and store is not dispatcher.store:
        raise ValueError("store must be the dispatcher's store")
    session_store = dispatcher.store

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = None
        if SESSION_IDLE_TTL_SECONDS > 0 and isinstance(session_store, InMemorySessionStore):
            task = asyncio.create_task(
                idle_cleanup_loop(session_store, SESSION_IDLE_TTL_SECONDS)
            )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(title="SimisAI WhatsApp Orchestrator", version="1.0.0", lifespan=lifespan)
    app.state.dispatcher = dispatcher
    register_webhook_routes(app)
    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


_configure_logging()
app = create_app() if os.environ.get("TESTING") != "1" else None


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "3000")))
