"""
src/db/audio_repository.py
===========================
AudioRecord persistence.

Each write commits on its own. The audio save and the later link to a
case are deliberately separate transactions: a failed link must never
roll back a saved record.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.models import AudioRecord
from src.stage_outcome import DegradedStage

logger = logging.getLogger("legalintake.db.audio_repository")


def save_audio_record(db: Session, record: AudioRecord) -> AudioRecord:
    """Insert ``record`` and commit. Errors propagate after rollback."""
    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to persist audio record.", exc_info=True)
        raise

    logger.info("Persisted audio record id=%s", record.id)
    return record


def get_audio_record(db: Session, record_id: int) -> Optional[AudioRecord]:
    return db.get(AudioRecord, record_id)


def list_audio_records(db: Session) -> list[AudioRecord]:
    return db.query(AudioRecord).order_by(AudioRecord.id).all()


def list_by_owner(db: Session, user_id: int) -> list[AudioRecord]:
    return (
        db.query(AudioRecord)
        .filter(AudioRecord.owner_user_id == user_id)
        .order_by(AudioRecord.id)
        .all()
    )


def list_by_case(db: Session, case_id: int) -> list[AudioRecord]:
    return (
        db.query(AudioRecord)
        .filter(AudioRecord.linked_case_id == case_id)
        .order_by(AudioRecord.id)
        .all()
    )


def link_audio_to_case(db: Session, record: AudioRecord, case_id: int) -> AudioRecord:
    """
    Set ``linked_case_id`` and commit. Re-linking to the same case is a no-op.

    Raises:
        DegradedStage: If the update cannot be committed.
    """
    if record.linked_case_id == case_id:
        return record

    try:
        record.linked_case_id = case_id
        db.commit()
        db.refresh(record)
    except SQLAlchemyError as exc:
        db.rollback()
        raise DegradedStage("link_audio_to_case", str(exc)) from exc

    logger.info("Linked audio ID %s to case ID %s", record.id, case_id)
    return record


def set_assigned_lawyer(db: Session, case_id: int, lawyer_id: int) -> int:
    """
    Stage ``assigned_lawyer_id`` on every audio record linked to ``case_id``.

    Does not commit; the caller commits together with the case update.

    Returns:
        Number of records whose lawyer changed.
    """
    changed = 0
    for record in list_by_case(db, case_id):
        if record.assigned_lawyer_id != lawyer_id:
            record.assigned_lawyer_id = lawyer_id
            changed += 1
    return changed
