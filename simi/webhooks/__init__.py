"""Webhook inbound system.

Receives Twilio WhatsApp webhooks. Each webhook is signature-verified,
deduplicated on MessageSid, acknowledged immediately and dispatched async.
"""
