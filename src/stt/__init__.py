# src/stt/__init__.py
# ====================
# Speech-to-Text Layer — Legal Intake
#
# TRANSCRIBE stage: uploaded audio → English transcript via Whisper's
# translation endpoint. The only stage that aborts the pipeline.
#
# Public API:
#   transcribe_to_english(audio_bytes, mime_type, filename) → str

from src.stt.whisper_client import transcribe_to_english  # noqa: F401

__all__ = [
    "transcribe_to_english",
]
