"""Completion model configuration, read from the environment at import time."""

from __future__ import annotations

import os

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
# Comma-separated model names tried in order when the primary fails
GEMINI_FALLBACK_MODELS = [
    m.strip() for m in os.environ.get("GEMINI_FALLBACK_MODELS", "").split(",") if m.strip()
]
MODEL_TEMPERATURE = float(os.environ.get("MODEL_TEMPERATURE", "0.7"))

LLM_TIMEOUT_SECONDS = float(os.environ.get("LLM_TIMEOUT_SECONDS", "30"))

# Output caps keep replies SMS-sized
DEMO_MAX_OUTPUT_TOKENS = int(os.environ.get("DEMO_MAX_OUTPUT_TOKENS", "200"))
FREEFORM_MAX_OUTPUT_TOKENS = int(os.environ.get("FREEFORM_MAX_OUTPUT_TOKENS", "300"))
