"""Completion service adapter: system prompt + sanitized turns + new input -> text.

Wraps LangChain chat models with:
- An ordered fallback chain (primary model first)
- A hard timeout per model call
- Error classification (rate_limit, auth_failure, server_error, timeout, ...)

Contract:
- prior_turns must already be sanitized (see simi.sessions.history)
- Every failure surfaces as CompletionError; callers never see provider types
- No automatic retry of a successful-but-empty reply
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from simi.llm import config
from simi.sessions.history import to_messages
from simi.sessions.models import Turn

logger = logging.getLogger(__name__)


class ErrorClass(str, Enum):
    """Classification of completion provider errors."""

    RATE_LIMIT = "rate_limit"       # 429
    AUTH_FAILURE = "auth_failure"    # 401/403, bad key
    SERVER_ERROR = "server_error"    # 500/502/503/504
    TIMEOUT = "timeout"             # Provider or local timeout
    MODEL_ERROR = "model_error"     # Invalid model, bad request, rejected history
    UNKNOWN = "unknown"


class CompletionError(Exception):
    """A completion call failed on every model in the chain."""

    def __init__(self, message: str, error_class: ErrorClass = ErrorClass.UNKNOWN):
        super().__init__(message)
        self.error_class = error_class


def classify_error(error: Exception) -> ErrorClass:
    """Classify a provider error by exception type and message."""
    error_str = str(error).lower()
    error_type = type(error).__name__

    if isinstance(error, asyncio.TimeoutError):
        return ErrorClass.TIMEOUT

    # Rate limit errors
    if "429" in error_str or ("rate" in error_str and "limit" in error_str):
        return ErrorClass.RATE_LIMIT
    if "too many requests" in error_str or "resource_exhausted" in error_str:
        return ErrorClass.RATE_LIMIT
    if "RateLimitError" in error_type or "ResourceExhausted" in error_type:
        return ErrorClass.RATE_LIMIT

    # Auth errors
    if "401" in error_str or "403" in error_str:
        return ErrorClass.AUTH_FAILURE
    if "authentication" in error_str or "unauthorized" in error_str:
        return ErrorClass.AUTH_FAILURE
    if "api key not valid" in error_str or "invalid api key" in error_str:
        return ErrorClass.AUTH_FAILURE
    if "PermissionDenied" in error_type or "Unauthenticated" in error_type:
        return ErrorClass.AUTH_FAILURE

    # Timeout errors
    if "timeout" in error_str or "timed out" in error_str or "deadline" in error_str:
        return ErrorClass.TIMEOUT
    if "Timeout" in error_type or "DeadlineExceeded" in error_type:
        return ErrorClass.TIMEOUT

    # Server errors
    if any(code in error_str for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER_ERROR
    if "InternalServerError" in error_type or "ServiceUnavailable" in error_type:
        return ErrorClass.SERVER_ERROR

    # Model errors (bad request, invalid model)
    if "400" in error_str or "bad request" in error_str or "invalid argument" in error_str:
        return ErrorClass.MODEL_ERROR
    if "model" in error_str and ("not found" in error_str or "invalid" in error_str):
        return ErrorClass.MODEL_ERROR

    return ErrorClass.UNKNOWN


@runtime_checkable
class CompletionService(Protocol):
    """Black-box text generator the engines call."""

    async def complete(
        self,
        system_prompt: str,
        prior_turns: Sequence[Turn],
        new_input: str,
    ) -> str:
        ...


def _content_text(content: Any) -> str:
    """Flatten LangChain message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


def build_messages(
    system_prompt: str,
    prior_turns: Sequence[Turn],
    new_input: str,
) -> list[BaseMessage]:
    """System instruction, then history, then the pending user input."""
    return [
        SystemMessage(content=system_prompt),
        *to_messages(prior_turns),
        HumanMessage(content=new_input),
    ]


class LangChainCompletionService:
    """CompletionService over an ordered chain of LangChain chat models."""

    def __init__(
        self,
        models: Sequence[BaseChatModel],
        timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
        names: Sequence[str] | None = None,
    ):
        if not models:
            raise ValueError("LangChainCompletionService needs at least one model")
        self._models = list(models)
        self._names = list(names) if names else [f"model-{i}" for i in range(len(models))]
        self._timeout = timeout_seconds

    async def complete(
        self,
        system_prompt: str,
        prior_turns: Sequence[Turn],
        new_input: str,
    ) -> str:
        messages = build_messages(system_prompt, prior_turns, new_input)
        last_error: Exception | None = None
        last_class = ErrorClass.UNKNOWN

        for i, model in enumerate(self._models):
            name = self._names[i]
            try:
                result = await asyncio.wait_for(model.ainvoke(messages), timeout=self._timeout)
            except Exception as e:
                last_error = e
                last_class = classify_error(e)
                logger.warning(
                    "Completion via %s failed: [%s] %s",
                    name,
                    last_class.value,
                    str(e)[:200],  # Truncate to avoid logging secrets
                )
                continue

            if i > 0:
                logger.info("Completion fallback succeeded: %s -> %s", self._names[0], name)
            return _content_text(getattr(result, "content", result)).strip()

        raise CompletionError(
            f"All {len(self._models)} completion models failed ({last_class.value})",
            error_class=last_class,
        ) from last_error


def build_chat_model(model_name: str, max_output_tokens: int) -> BaseChatModel:
    """Gemini chat model configured from the environment."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=model_name,
        google_api_key=config.GEMINI_API_KEY or None,
        temperature=config.MODEL_TEMPERATURE,
        max_output_tokens=max_output_tokens,
    )


def build_completion_service(max_output_tokens: int) -> LangChainCompletionService:
    """Primary model plus configured fallbacks, all capped at max_output_tokens."""
    names = [config.GEMINI_MODEL, *config.GEMINI_FALLBACK_MODELS]
    models = [build_chat_model(name, max_output_tokens) for name in names]
    return LangChainCompletionService(models, names=names)
