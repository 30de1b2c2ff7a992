"""Webhook HTTP handlers — FastAPI routes for inbound WhatsApp messages.

Each delivery:
1. Reads the raw form body (needed for signature verification)
2. Verifies X-Twilio-Signature
3. Ignores Twilio redeliveries of an already-seen MessageSid
4. Acknowledges with empty TwiML immediately
5. Hands (sender, text) to the dispatcher as a background task

Security contract:
- Never return error details to the webhook caller
- Return 401 only for signature failures; everything else gets the ack
- Log all webhook activity for audit trail (sender masked)
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from simi.channels.whatsapp import strip_prefix
from simi.dispatcher import Dispatcher
from simi.sessions.manager import mask_identity
from simi.webhooks.idempotency import is_redelivery
from simi.webhooks.verification import SIGNATURE_HEADER, verify_twilio

logger = logging.getLogger(__name__)

EMPTY_TWIML = "<Response></Response>"


def _ack() -> Response:
    return Response(content=EMPTY_TWIML, media_type="application/xml", status_code=200)


def _log_webhook(sender: str, message_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    logger.info(
        "WEBHOOK_AUDIT provider=twilio from=%s sid=%s status=%s",
        mask_identity(sender) if sender else "-",
        message_id or "-",
        status,
    )


async def _handle_sms(request: Request, background: BackgroundTasks) -> Response:
    body = await request.body()
    try:
        params = parse_qsl(body.decode("utf-8"), keep_blank_values=True)
    except UnicodeDecodeError:
        _log_webhook("", "", "invalid_body")
        return _ack()

    headers = {k.lower(): v for k, v in request.headers.items()}
    if not verify_twilio(str(request.url), params, headers.get(SIGNATURE_HEADER)):
        _log_webhook("", "", "signature_failed")
        return PlainTextResponse("unauthorized", status_code=401)

    fields = dict(params)
    sender = strip_prefix(fields.get("From", "").strip())
    message_id = fields.get("MessageSid", "")
    text = fields.get("Body")

    if not sender:
        _log_webhook("", message_id, "missing_sender")
        return _ack()

    if is_redelivery(message_id):
        _log_webhook(sender, message_id, "duplicate")
        return _ack()

    dispatcher: Dispatcher = request.app.state.dispatcher
    background.add_task(dispatcher.handle, sender, text)
    _log_webhook(sender, message_id, "dispatched")
    return _ack()


def register_webhook_routes(app: FastAPI) -> None:
    """Register webhook routes. Expects app.state.dispatcher to be set."""

    @app.post("/sms")
    async def sms_webhook(request: Request, background: BackgroundTasks):
        """Receive Twilio WhatsApp messages (signature-verified)."""
        return await _handle_sms(request, background)

    @app.get("/")
    async def health():
        return PlainTextResponse("SimisAI running ✓")

    logger.info("Webhook routes registered: /sms")
