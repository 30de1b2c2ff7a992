"""WhatsApp channel — sends replies through the Twilio Messages API.

Security: TWILIO_AUTH_TOKEN is read from env and never logged. Recipients are
logged masked.
"""

from __future__ import annotations

import logging
import os

import httpx

from simi.channels.protocol import SendResult
from simi.channels.retry import retry_with_backoff
from simi.sessions.manager import mask_identity

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
WHATSAPP_PREFIX = "whatsapp:"

# Twilio rejects longer bodies
MAX_BODY_CHARS = 1600


def with_prefix(number: str) -> str:
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


def strip_prefix(address: str) -> str:
    return address[len(WHATSAPP_PREFIX):] if address.startswith(WHATSAPP_PREFIX) else address


class TwilioWhatsAppChannel:
    """Outbound WhatsApp messages via Twilio REST."""

    def __init__(
        self,
        channel_id: str = "whatsapp-twilio",
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self._channel_id = channel_id
        self._account_sid = account_sid or os.environ.get("TWILIO_ACCOUNT_SID", "")
        self._auth_token = auth_token or os.environ.get("TWILIO_AUTH_TOKEN", "")
        self._from = with_prefix(
            from_number or os.environ.get("TWILIO_WHATSAPP_FROM", "whatsapp:+14155238886")
        )
        self._transport = transport
        self._timeout = timeout

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token)

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self._account_sid}/Messages.json"

    def send(self, recipient: str, text: str) -> SendResult:
        """Send text to recipient (bare number or whatsapp: address)."""
        if not self.is_configured:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="Twilio credentials not configured",
            )

        body = text
        if len(body) > MAX_BODY_CHARS:
            logger.warning("Truncating outbound body from %d chars", len(body))
            body = body[:MAX_BODY_CHARS]

        try:
            data = self._post({"From": self._from, "To": with_prefix(recipient), "Body": body})
        except httpx.HTTPStatusError as e:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=f"Twilio API error: {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            return SendResult(success=False, channel_id=self._channel_id, error=str(e))
        except ValueError:
            # 2xx with a body that is not JSON; delivery state unknown
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="Twilio API returned a non-JSON response",
            )

        logger.info("WhatsApp message sent to %s", mask_identity(strip_prefix(recipient)))
        return SendResult(
            success=True,
            channel_id=self._channel_id,
            response_id=str(data.get("sid", "")),
        )

    @retry_with_backoff(max_retries=1)
    def _post(self, form: dict[str, str]) -> dict:
        with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
            response = client.post(
                self.messages_url,
                data=form,
                auth=(self._account_sid, self._auth_token),
            )
            response.raise_for_status()
            return response.json()
