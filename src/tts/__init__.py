# src/tts/__init__.py
# ====================
# Text-to-Speech Layer — Legal Intake Pipeline
#
# SYNTH_EN and SYNTH_GU stages: masked text → spoken audio (soft-fail).
#
# Public API:
#   synthesize_speech(text, language) → bytes | None

from src.tts.speech_client import synthesize_speech, SUPPORTED_LANGUAGES  # noqa: F401

__all__ = [
    "synthesize_speech",
    "SUPPORTED_LANGUAGES",
]
