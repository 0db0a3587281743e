# src/schemas/__init__.py
# ========================
# JSON shapes returned by the HTTP layer — Legal Intake Pipeline
#
# Every key is always present; missing values are null, never omitted.
# Binary audio is returned base64-encoded.

import base64
from typing import Any, Optional

from src.db.models import AudioRecord, CaseRecord


def _b64(data: Optional[bytes]) -> Optional[str]:
    if not data:
        return None
    return base64.b64encode(data).decode("ascii")


def audio_record_to_json(record: AudioRecord) -> dict[str, Any]:
    """Serialize an AudioRecord for API responses."""
    return {
        "id": record.id,
        "language": record.language,
        "original_text": record.original_text,
        "masked_text": record.masked_text,
        "masked_audio_en": _b64(record.masked_audio_en),
        "masked_text_gu": record.masked_text_gu,
        "masked_audio_gu": _b64(record.masked_audio_gu),
        "owner_user_id": record.owner_user_id,
        "linked_case_id": record.linked_case_id,
        "assigned_lawyer_id": record.assigned_lawyer_id,
    }


def case_record_to_json(case: CaseRecord) -> dict[str, Any]:
    """Serialize a CaseRecord for API responses and broadcasts."""
    return {
        "id": case.id,
        "user_id": case.user_id,
        "lawyer_id": case.lawyer_id,
        "title": case.title,
        "case_type": case.case_type,
        "status": case.status,
        "category": case.category,
        "description": case.description,
        "created_at": case.created_at.isoformat() if case.created_at else None,
    }


__all__ = [
    "audio_record_to_json",
    "case_record_to_json",
]
