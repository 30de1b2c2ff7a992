"""Simi — per-sender conversation orchestrator for the WhatsApp demo line."""
