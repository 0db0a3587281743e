"""
src/openai_client.py
=====================
Shared OpenAI access — Legal Intake Pipeline

Provides:
    - get_openai_client(): builds an ``openai.OpenAI`` client with the
      per-call timeout from OPENAI_TIMEOUT_SECONDS
    - call_with_retry(): runs any SDK call, retrying transient failures
      (429, 5xx, timeouts, connection errors) with exponential back-off
    - chat_completions_with_retry(): convenience wrapper for
      ``client.chat.completions.create``

Usage::

    from src.openai_client import get_openai_client, chat_completions_with_retry

    client = get_openai_client()
    response = chat_completions_with_retry(
        client,
        model=CHAT_MODEL,
        messages=[...],
        temperature=0.0,
    )

Timeouts are enforced per call by the SDK; there is no overall pipeline
deadline.
"""

import logging
import os
import time
from typing import Any, Callable

from openai import OpenAI

logger = logging.getLogger("legalintake.openai_client")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
TIMEOUT_SECONDS: float = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "120"))

MAX_RETRIES: int = 2          # total attempts = MAX_RETRIES + 1 (initial)
BASE_DELAY: float = 1.0       # seconds, first back-off delay
MAX_DELAY: float = 10.0
BACKOFF_FACTOR: float = 2.0

_RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}
_RETRYABLE_ERROR_TYPES: set[str] = {
    "RateLimitError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
}


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------


def get_openai_client() -> OpenAI:
    """
    Build an OpenAI client from the environment.

    The SDK's own retry loop is disabled; call_with_retry owns retries.

    Raises:
        RuntimeError: If OPENAI_API_KEY is not set.
    """
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")

    return OpenAI(api_key=api_key, timeout=TIMEOUT_SECONDS, max_retries=0)


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


def _is_retryable(exc: Exception) -> bool:
    """Return True if the exception is a transient OpenAI error."""
    if type(exc).__name__ in _RETRYABLE_ERROR_TYPES:
        return True

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code in _RETRYABLE_STATUS_CODES

    return False


def call_with_retry(operation: Callable[..., Any], **kwargs: Any) -> Any:
    """
    Call ``operation(**kwargs)`` with automatic retry on transient errors.

    Non-retryable errors are re-raised immediately; the last error is
    re-raised once retries are exhausted.
    """
    last_exc: Exception | None = None
    delay = BASE_DELAY
    name = getattr(operation, "__qualname__", repr(operation))

    for attempt in range(MAX_RETRIES + 1):
        try:
            return operation(**kwargs)
        except Exception as exc:
            last_exc = exc

            if not _is_retryable(exc):
                logger.warning(
                    "OpenAI call %s failed with non-retryable error: %s", name, exc,
                )
                raise

            if attempt < MAX_RETRIES:
                logger.warning(
                    "OpenAI call %s failed (attempt %d/%d): %s — retrying in %.1fs",
                    name, attempt + 1, MAX_RETRIES + 1, exc, delay,
                )
                time.sleep(delay)
                delay = min(delay * BACKOFF_FACTOR, MAX_DELAY)
            else:
                logger.error(
                    "OpenAI call %s failed after %d attempts: %s",
                    name, MAX_RETRIES + 1, exc,
                )

    raise last_exc  # type: ignore[misc]


def chat_completions_with_retry(client: Any, **kwargs: Any) -> Any:
    """Call ``client.chat.completions.create(**kwargs)`` with retry."""
    return call_with_retry(client.chat.completions.create, **kwargs)


def first_message_content(response: Any) -> str:
    """Return the stripped text of the first choice of a chat completion."""
    content = response.choices[0].message.content
    return (content or "").strip()
