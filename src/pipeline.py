"""
src/pipeline.py
================
Audio Intake Pipeline Orchestrator — Legal Intake

Responsibility:
    1. Run every stage of the intake pipeline in order, synchronously
    2. Abort ONLY when transcription fails
    3. Absorb every other stage failure into a skipped StageOutcome and
       keep going with degraded (null) fields
    4. Persist the audio record, then create and link the case in
       separate commits

Stage order:
    TRANSCRIBE          → English transcript           (hard-fail)
    REDACT              → masked English text          (falls back to transcript)
    SYNTH_EN            → English audio                (soft)
    TRANSLATE           → Gujarati text                (soft)
    SYNTH_GU            → Gujarati audio               (soft; needs Gujarati text)
    PERSIST_AUDIO       → AudioRecord committed
    CLASSIFY            → CaseCategory                 (soft; needs owner; keywords if skipped)
    CREATE_CASE         → CaseRecord committed         (soft; needs owner)
    LINK_AUDIO_TO_CASE  → linked_case_id committed     (soft; needs case)

Redaction falling back to the unredacted transcript trades privacy for
never losing a record. That policy lives here, not in the redactor.

This layer does NOT:
    - Call OpenAI directly
    - Enforce rate limits or upload size (handled by the API layer)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from src.cases.case_service import create_case
from src.db.audio_repository import link_audio_to_case, save_audio_record
from src.db.models import AudioRecord
from src.nlp.case_classifier import CaseCategory, classify_case, classify_with_keywords
from src.nlp.pii_redactor import mask_personal_info
from src.nlp.translator import translate_to_gujarati
from src.stage_outcome import StageOutcome, run_soft_stage
from src.stt.whisper_client import transcribe_to_english
from src.tts.speech_client import synthesize_speech

logger = logging.getLogger("legalintake.pipeline")

RECORD_LANGUAGE: str = "english"
DEFAULT_CASE_TYPE: str = "General"
MAX_DESCRIPTION_CHARS: int = 500


@dataclass
class PipelineResult:
    """Persisted record plus the outcome of every soft stage."""

    record: AudioRecord
    outcomes: dict[str, StageOutcome] = field(default_factory=dict)
    category: Optional[CaseCategory] = None
    case_id: Optional[int] = None

    @property
    def degraded_stages(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.skipped]


# =====================================================================
# Main orchestration
# =====================================================================


def run_pipeline(
    db: Session,
    audio_bytes: bytes,
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    owner_user_id: Optional[int] = None,
    case_title: Optional[str] = None,
) -> PipelineResult:
    """
    Run the full intake pipeline for one upload.

    Args:
        db:            Session used for the audio record and the case.
        audio_bytes:   Raw uploaded audio.
        mime_type:     Declared MIME type of the upload.
        filename:      Original upload file name.
        owner_user_id: Uploading client; no case is created without one.
        case_title:    Optional title for the created case.

    Returns:
        PipelineResult with the persisted AudioRecord.

    Raises:
        AbortPipeline: Transcription failed; nothing was persisted.
    """
    outcomes: dict[str, StageOutcome] = {}

    logger.info(
        "Starting audio pipeline for file: %s (size: %d bytes)",
        filename, len(audio_bytes),
    )

    # ==================================================================
    # TRANSCRIBE (hard-fail)
    # ==================================================================
    _log_stage("TRANSCRIBE")
    original_text = transcribe_to_english(audio_bytes, mime_type, filename)

    # ==================================================================
    # REDACT
    # ==================================================================
    _log_stage("REDACT")
    outcomes["redact"] = run_soft_stage("redact", mask_personal_info, original_text)
    masked_text = outcomes["redact"].value_or("")
    if not masked_text.strip():
        logger.warning("Masking returned empty, falling back to original text.")
        masked_text = original_text

    # ==================================================================
    # SYNTH_EN
    # ==================================================================
    _log_stage("SYNTH_EN")
    outcomes["synth_en"] = run_soft_stage("synth_en", synthesize_speech, masked_text, "en")

    # ==================================================================
    # TRANSLATE → SYNTH_GU
    # ==================================================================
    _log_stage("TRANSLATE")
    outcomes["translate"] = run_soft_stage("translate", translate_to_gujarati, masked_text)
    gujarati_text = outcomes["translate"].value_or(None)
    if gujarati_text is not None and not gujarati_text.strip():
        outcomes["translate"] = StageOutcome.skip("translate", "blank translation")
        gujarati_text = None

    _log_stage("SYNTH_GU")
    if gujarati_text is None:
        outcomes["synth_gu"] = StageOutcome.skip("synth_gu", "no Gujarati text")
    else:
        outcomes["synth_gu"] = run_soft_stage(
            "synth_gu", synthesize_speech, gujarati_text, "gu",
        )

    # ==================================================================
    # PERSIST_AUDIO: first commit
    # ==================================================================
    _log_stage("PERSIST_AUDIO")
    record = save_audio_record(
        db,
        AudioRecord(
            language=RECORD_LANGUAGE,
            original_text=original_text,
            masked_text=masked_text,
            masked_audio_en=outcomes["synth_en"].value_or(None),
            masked_text_gu=gujarati_text,
            masked_audio_gu=outcomes["synth_gu"].value_or(None),
            owner_user_id=owner_user_id,
        ),
    )
    result = PipelineResult(record=record, outcomes=outcomes)

    if owner_user_id is None:
        logger.warning(
            "No owning user, skipping case creation for audio ID: %s", record.id,
        )
        for stage in ("classify", "create_case", "link_audio_to_case"):
            outcomes[stage] = StageOutcome.skip(stage, "no owning user")
        return result

    # ==================================================================
    # CLASSIFY
    # ==================================================================
    _log_stage("CLASSIFY")
    outcomes["classify"] = run_soft_stage("classify", classify_case, masked_text)
    result.category = outcomes["classify"].value_or(None)
    if result.category is None:
        # create_case must not reclassify, that would be a second AI call
        result.category = classify_with_keywords(masked_text)
        logger.warning(
            "Classification skipped, using keyword category %s.", result.category.value,
        )

    # ==================================================================
    # CREATE_CASE: own commit, broadcasts on success
    # ==================================================================
    _log_stage("CREATE_CASE")
    outcomes["create_case"] = run_soft_stage(
        "create_case",
        create_case,
        db,
        owner_id=owner_user_id,
        title=_case_title(case_title, filename),
        case_type=DEFAULT_CASE_TYPE,
        description=_case_description(masked_text),
        category=result.category.value,
    )

    # ==================================================================
    # LINK_AUDIO_TO_CASE: second commit on the audio record
    # ==================================================================
    _log_stage("LINK_AUDIO_TO_CASE")
    case = outcomes["create_case"].value_or(None)
    if case is None:
        outcomes["link_audio_to_case"] = StageOutcome.skip(
            "link_audio_to_case", "no case created",
        )
    else:
        result.case_id = case.id
        outcomes["link_audio_to_case"] = run_soft_stage(
            "link_audio_to_case", link_audio_to_case, db, record, case.id,
        )

    if result.degraded_stages:
        logger.warning(
            "Pipeline finished for audio ID %s with degraded stages: %s",
            record.id, ", ".join(result.degraded_stages),
        )
    else:
        logger.info("Pipeline finished for audio ID %s.", record.id)

    return result


# =====================================================================
# Helpers
# =====================================================================


def _log_stage(name: str) -> None:
    logger.info("=" * 60)
    logger.info("STAGE: %s", name)
    logger.info("=" * 60)


def _case_title(case_title: Optional[str], filename: Optional[str]) -> str:
    if case_title and case_title.strip():
        return case_title
    return f"Case from Audio - {filename or 'recording'}"


def _case_description(masked_text: Optional[str]) -> str:
    """Masked text capped at MAX_DESCRIPTION_CHARS, with a trailing ellipsis."""
    description = masked_text or "Case created from audio upload"
    if len(description) > MAX_DESCRIPTION_CHARS:
        description = description[: MAX_DESCRIPTION_CHARS - 3] + "..."
    return description
