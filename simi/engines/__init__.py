"""Completion-driven engines: guided capability demos and freeform chat."""
