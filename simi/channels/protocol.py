"""Outbound channel protocol — the single "send text to recipient" operation.

Contract:
- send() reports failure through SendResult; it does not raise
- Credentials come from env vars, never logged
- Recipients are bare identities; channels add any transport prefix
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class SendResult:
    """Result of one outbound send."""
    success: bool
    channel_id: str
    error: str = ""
    response_id: str = ""  # Provider message ID (Twilio SID)


@runtime_checkable
class OutboundChannel(Protocol):
    """Protocol for outbound text channels."""

    @property
    def channel_id(self) -> str:
        """Unique identifier for this channel."""
        ...

    @property
    def is_configured(self) -> bool:
        """Whether this channel has valid credentials configured."""
        ...

    def send(self, recipient: str, text: str) -> SendResult:
        """Deliver text to recipient. Returns SendResult."""
        ...
