"""
src/tts/speech_client.py
=========================
OpenAI Text-to-Speech Client — Legal Intake Pipeline (SYNTH_EN / SYNTH_GU)

Responsibility:
    - Turn masked English or Gujarati text into spoken audio (MP3 bytes)

Failure policy (soft):
    Any error returns None. The orchestrator then persists the audio
    record without that track.

OpenAI TTS voices are multilingual and pick the language up from the
input text, so the language tag is only validated and logged.

This module does NOT:
    - Translate or redact text
    - Store audio
"""

import logging
import os
from typing import Any, Optional

from src.openai_client import call_with_retry, get_openai_client
from src.stage_outcome import DegradedStage

logger = logging.getLogger("legalintake.tts.speech_client")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

TTS_MODEL: str = os.getenv("OPENAI_TTS_MODEL", "tts-1")
TTS_VOICE: str = os.getenv("OPENAI_TTS_VOICE", "alloy")
TTS_FORMAT: str = "mp3"

# Provider-side input limit
MAX_INPUT_CHARS: int = 4096

SUPPORTED_LANGUAGES: frozenset[str] = frozenset({"en", "gu"})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def synthesize_speech(
    text: Optional[str],
    language: str,
    client: Any = None,
) -> Optional[bytes]:
    """
    Synthesize speech for ``text``.

    Args:
        text:     Text to speak.
        language: "en" or "gu".
        client:   Optional OpenAI client; built from the environment if
                  omitted.

    Returns:
        Audio bytes, or None on any failure.
    """
    try:
        return _synthesize_or_raise(text, language, client)
    except DegradedStage as exc:
        logger.error("%s TTS failed: %s", language.upper(), exc.message)
        return None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _synthesize_or_raise(
    text: Optional[str],
    language: str,
    client: Any = None,
) -> bytes:
    stage = f"synth_{language}"

    if language not in SUPPORTED_LANGUAGES:
        raise DegradedStage(stage, f"Unsupported language tag: {language!r}")
    if not text or not text.strip():
        raise DegradedStage(stage, "No text to synthesize")

    if len(text) > MAX_INPUT_CHARS:
        logger.warning(
            "TTS input truncated from %d to %d characters.", len(text), MAX_INPUT_CHARS,
        )
        text = text[:MAX_INPUT_CHARS]

    try:
        if client is None:
            client = get_openai_client()
        response = call_with_retry(
            client.audio.speech.create,
            model=TTS_MODEL,
            voice=TTS_VOICE,
            input=text,
            response_format=TTS_FORMAT,
        )
        audio = _response_bytes(response)
    except Exception as exc:
        raise DegradedStage(stage, str(exc)) from exc

    if not audio:
        raise DegradedStage(stage, "Provider returned no audio")

    logger.info("%s TTS generated %d bytes.", language.upper(), len(audio))
    return audio


def _response_bytes(response: Any) -> bytes:
    if isinstance(response, (bytes, bytearray)):
        return bytes(response)
    content = getattr(response, "content", None)
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    return response.read()
