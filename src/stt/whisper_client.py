"""
src/stt/whisper_client.py
==========================
OpenAI Whisper Client — Legal Intake Pipeline (TRANSCRIBE stage)

Responsibility:
    - Send uploaded audio to the OpenAI Whisper translations endpoint
    - Return plain English text, whatever language was spoken
      (Whisper translates while transcribing)

Failure policy (hard):
    Any provider error, a missing API key, or a blank transcript raises
    AbortPipeline. No audio record may exist without a transcript.
    The raised message is safe to show to a caller; provider details
    only go to the log.

This module does NOT:
    - Normalize, chunk, or diarize audio
    - Perform PII redaction or translation to other languages
    - Store data
"""

import io
import logging
import os
from typing import Any, Optional

from src.openai_client import call_with_retry, get_openai_client
from src.stage_outcome import AbortPipeline

logger = logging.getLogger("legalintake.stt.whisper_client")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

WHISPER_MODEL: str = "whisper-1"

_DEFAULT_EXTENSION: str = ".wav"

# Whisper infers the container format from the upload file name.
_MIME_EXTENSIONS: dict[str, str] = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/m4a": ".m4a",
    "video/mp4": ".mp4",
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "audio/x-flac": ".flac",
}

_STAGE: str = "transcribe"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def transcribe_to_english(
    audio_bytes: bytes,
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    client: Any = None,
) -> str:
    """
    Transcribe (and translate) audio to English text.

    Args:
        audio_bytes: Raw uploaded audio.
        mime_type:   Declared MIME type of the upload, e.g. "audio/mpeg".
        filename:    Original upload file name, if any.
        client:      Optional OpenAI client; built from the environment if
                     omitted.

    Returns:
        Non-blank English transcript.

    Raises:
        AbortPipeline: On any failure or a blank transcript.
    """
    if not audio_bytes:
        raise AbortPipeline(_STAGE, "Audio file is empty")

    try:
        if client is None:
            client = get_openai_client()
    except RuntimeError as exc:
        logger.error("Whisper client unavailable: %s", exc)
        raise AbortPipeline(_STAGE, "Transcription service is not configured") from exc

    audio_file = io.BytesIO(audio_bytes)
    audio_file.name = upload_name_for(mime_type, filename)

    try:
        response = call_with_retry(
            client.audio.translations.create,
            model=WHISPER_MODEL,
            file=audio_file,
        )
    except Exception as exc:
        logger.error("Whisper transcription failed: %s", exc, exc_info=True)
        raise AbortPipeline(_STAGE, "Whisper transcription failed") from exc

    text = _response_text(response)
    if not text.strip():
        logger.error("Whisper returned an empty transcript for %s", audio_file.name)
        raise AbortPipeline(_STAGE, "Transcription returned empty text")

    logger.info("Transcription completed. Length: %d", len(text))
    return text


def upload_name_for(mime_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Pick the file name sent to Whisper.

    Keeps the original name when it already has an extension; otherwise
    derives the extension from the MIME type.
    """
    if filename and os.path.splitext(filename)[1]:
        return os.path.basename(filename)

    base = os.path.splitext(os.path.basename(filename))[0] if filename else "audio"
    mime = (mime_type or "").split(";")[0].strip().lower()
    return base + _MIME_EXTENSIONS.get(mime, _DEFAULT_EXTENSION)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _response_text(response: Any) -> str:
    """Handle both object and dict shaped responses."""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        return response.get("text") or ""
    return getattr(response, "text", None) or ""
