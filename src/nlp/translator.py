"""
src/nlp/translator.py
======================
Translator — Legal Intake Pipeline (TRANSLATE stage)

Responsibility:
    - Translate masked English text to Gujarati using OpenAI
    - Keep every mask token byte-identical in the output
    - Split very long texts into overlapping chunks

Mask protection:
    Before each provider call, every mask token (runs of '*', and the
    email mask) is swapped for an opaque placeholder ``__MASK_NNNN__``.
    After the call the placeholders are swapped back. The model never
    sees the asterisks, so it cannot "translate" or drop them.

Chunking:
    Texts up to CHUNK_SIZE characters go out in one call. Longer texts
    are cut into chunks of at most CHUNK_SIZE characters, preferring the
    last sentence terminator or newline past the chunk midpoint.
    Consecutive chunks overlap by OVERLAP_SIZE characters and the
    translated chunks are concatenated as-is; the overlap is NOT
    deduplicated.

Failure policy (soft):
    - A failing chunk contributes its untranslated text
    - A failure of the whole call returns None

This module does NOT:
    - Perform PII redaction (handled by pii_redactor.py)
    - Synthesize speech or classify cases
    - Store data
"""

import logging
import re
from typing import Any, Optional

from src.nlp.pii_redactor import MASK_TOKEN_PATTERN
from src.openai_client import (
    CHAT_MODEL,
    chat_completions_with_retry,
    first_message_content,
    get_openai_client,
)

logger = logging.getLogger("legalintake.nlp.translator")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

CHUNK_SIZE: int = 50_000       # characters per provider call
OVERLAP_SIZE: int = 500        # characters shared by consecutive chunks

_SENTENCE_BREAKS: str = ".!?\n"

_MIN_MAX_TOKENS: int = 2000
_MAX_MAX_TOKENS: int = 16000

_PLACEHOLDER_RE: re.Pattern[str] = re.compile(r"__MASK_\d{4}__")

_SYSTEM_PROMPT: str = (
    "You are a professional translator that translates English to Gujarati "
    "while preserving placeholder tokens exactly as they are."
)

_TRANSLATION_PROMPT: str = (
    "Translate the following English text to Gujarati.\n\n"
    "Important requirements:\n"
    "- Preserve every placeholder token of the form __MASK_NNNN__ exactly as "
    "it appears. Do not translate, reorder, merge, or drop them.\n"
    "- Maintain the same sentence structure and meaning.\n"
    "- Use natural Gujarati language.\n"
    "- Output ONLY the Gujarati translation, with no explanation.\n\n"
    "Text to translate:\n"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def translate_to_gujarati(text: str, client: Any = None) -> Optional[str]:
    """
    Translate masked English text to Gujarati.

    Args:
        text:   Masked English text.
        client: Optional OpenAI client; built from the environment if omitted.

    Returns:
        Gujarati text with mask tokens preserved, the input itself when it
        is blank, or None when the translation as a whole failed.
    """
    if not text or not text.strip():
        return text

    try:
        if client is None:
            client = get_openai_client()

        if len(text) <= CHUNK_SIZE:
            return _translate_chunk(client, text)

        chunks = split_into_chunks(text)
        logger.info(
            "Text is long (%d chars), translating in %d chunks.",
            len(text), len(chunks),
        )
        return "".join(_translate_chunk(client, chunk) for chunk in chunks)

    except Exception as exc:
        logger.error("Gujarati translation failed: %s", exc)
        return None


def split_into_chunks(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = OVERLAP_SIZE,
) -> list[str]:
    """
    Cut ``text`` into overlapping chunks of at most ``chunk_size`` characters.

    A chunk that does not reach the end of the text is shortened to end just
    after the last sentence terminator or newline it contains, provided that
    boundary lies past the chunk midpoint; otherwise it is cut hard. The next
    chunk starts ``overlap`` characters before the previous one ended.
    Chunking stops at the first chunk that reaches the end of the text.

    Raises:
        ValueError: If ``overlap`` is not smaller than half of ``chunk_size``
            (chunking would not make progress).
    """
    if chunk_size <= 0 or overlap < 0 or overlap >= chunk_size // 2:
        raise ValueError(
            f"Invalid chunking parameters: chunk_size={chunk_size}, overlap={overlap}"
        )

    chunks: list[str] = []
    total = len(text)
    start = 0

    while start < total:
        end = min(start + chunk_size, total)

        if end < total:
            window = text[start:end]
            break_at = max(window.rfind(ch) for ch in _SENTENCE_BREAKS)
            if break_at > chunk_size // 2:
                end = start + break_at + 1

        chunks.append(text[start:end])
        logger.debug("Chunk %d: chars %d-%d of %d", len(chunks), start, end, total)

        if end >= total:
            break
        start = end - overlap

    return chunks


# ---------------------------------------------------------------------------
# Mask protection
# ---------------------------------------------------------------------------


def protect_masks(text: str) -> tuple[str, dict[str, str]]:
    """Swap every mask token for a ``__MASK_NNNN__`` placeholder."""
    store: dict[str, str] = {}

    def _swap(match: re.Match) -> str:
        key = f"__MASK_{len(store):04d}__"
        store[key] = match.group(0)
        return key

    return MASK_TOKEN_PATTERN.sub(_swap, text), store


def restore_masks(text: str, store: dict[str, str]) -> str:
    """Swap placeholders back to their original mask tokens."""
    restored = _PLACEHOLDER_RE.sub(lambda m: store.get(m.group(0), m.group(0)), text)

    missing = [key for key in store if key not in text]
    if missing:
        logger.warning(
            "Translation dropped %d of %d mask placeholders.",
            len(missing), len(store),
        )
    return restored


# ---------------------------------------------------------------------------
# Translation engine (OpenAI)
# ---------------------------------------------------------------------------


def _max_tokens_for(text: str) -> int:
    estimated_input_tokens = len(text) // 4
    return min(max(estimated_input_tokens + 500, _MIN_MAX_TOKENS), _MAX_MAX_TOKENS)


def _translate_chunk(client: Any, text: str) -> str:
    """
    Translate one chunk. Any failure returns the chunk untranslated.
    """
    protected, store = protect_masks(text)

    try:
        response = chat_completions_with_retry(
            client,
            model=CHAT_MODEL,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": _TRANSLATION_PROMPT + protected},
            ],
            temperature=0.3,
            max_tokens=_max_tokens_for(protected),
        )
        translated = first_message_content(response)
    except Exception as exc:
        logger.error("Chunk translation failed (%d chars): %s", len(text), exc)
        return text

    if not translated:
        logger.error("Chunk translation returned empty text — keeping original.")
        return text

    logger.info("Translated chunk to Gujarati (length: %d)", len(translated))
    return restore_masks(translated, store)
