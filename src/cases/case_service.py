"""
src/cases/case_service.py
==========================
Case Service — Legal Intake Pipeline (CREATE_CASE collaborator)

Responsibility:
    - Create a case for a client, filling in the category from the case
      classifier when the caller did not supply one
    - Broadcast a newly created case (fire-and-forget webhook)
    - Assign a lawyer to a case and sync ``assigned_lawyer_id`` onto the
      audio records linked to it

Case creation commits on its own. Its broadcast is a side effect that
is never undone, so it must not share a transaction with the audio
record write.

Configuration:
    CASE_BROADCAST_URL — optional webhook receiving each new case as JSON
"""

import logging
import os
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.audio_repository import set_assigned_lawyer
from src.db.models import CaseRecord
from src.nlp.case_classifier import classify_case
from src.schemas import case_record_to_json
from src.stage_outcome import DegradedStage

logger = logging.getLogger("legalintake.cases")

CASE_BROADCAST_URL: Optional[str] = os.getenv("CASE_BROADCAST_URL")
BROADCAST_TIMEOUT_SECONDS: float = 10.0

STATUS_OPEN: str = "open"
STATUS_IN_PROGRESS: str = "in-progress"
VALID_STATUSES: frozenset[str] = frozenset({"open", "in-progress", "closed", "on-hold"})


class CaseNotFoundError(LookupError):
    """Raised when a case id does not exist."""

    def __init__(self, case_id: int):
        self.case_id = case_id
        super().__init__(f"Case not found with id: {case_id}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_case(
    db: Session,
    owner_id: int,
    title: str,
    case_type: str,
    description: str,
    category: Optional[str] = None,
) -> CaseRecord:
    """
    Create and commit a new open case, then broadcast it.

    Args:
        db:          Active session.
        owner_id:    Client user id.
        title:       Case title.
        case_type:   Free-form case type, e.g. "General".
        description: Case description (masked text).
        category:    Case category; classified from ``description`` if None.

    Returns:
        The persisted CaseRecord.

    Raises:
        DegradedStage: If the case cannot be committed.
    """
    if category is None:
        category = classify_case(description).value

    case = CaseRecord(
        user_id=owner_id,
        title=title,
        case_type=case_type,
        status=STATUS_OPEN,
        category=category,
        description=description,
    )

    try:
        db.add(case)
        db.commit()
        db.refresh(case)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to create case for user %s: %s", owner_id, exc)
        raise DegradedStage("create_case", str(exc)) from exc

    logger.info("Created case ID %s (category=%s) for user %s", case.id, category, owner_id)
    broadcast_case_created(case)
    return case


def get_case(db: Session, case_id: int) -> CaseRecord:
    case = db.get(CaseRecord, case_id)
    if case is None:
        raise CaseNotFoundError(case_id)
    return case


def assign_lawyer(db: Session, case_id: int, lawyer_id: int) -> CaseRecord:
    """
    Assign ``lawyer_id`` to a case and mark it in progress.

    Every audio record linked to the case gets the same
    ``assigned_lawyer_id`` in the same commit. Re-assigning the same
    lawyer is harmless.

    Raises:
        CaseNotFoundError: If the case does not exist.
    """
    case = get_case(db, case_id)

    case.lawyer_id = lawyer_id
    case.status = STATUS_IN_PROGRESS
    synced = set_assigned_lawyer(db, case_id, lawyer_id)

    try:
        db.commit()
        db.refresh(case)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Assigned lawyer %s to case %s (%d audio records synced).",
        lawyer_id, case_id, synced,
    )
    return case


def broadcast_case_created(case: CaseRecord) -> None:
    """
    POST the new case to CASE_BROADCAST_URL, if configured.

    Failures are logged and ignored.
    """
    if not CASE_BROADCAST_URL:
        logger.debug("CASE_BROADCAST_URL not configured — skipping broadcast.")
        return

    try:
        resp = requests.post(
            CASE_BROADCAST_URL,
            json=case_record_to_json(case),
            timeout=BROADCAST_TIMEOUT_SECONDS,
        )
        logger.info("Case broadcast to %s — status %d", CASE_BROADCAST_URL, resp.status_code)
    except requests.RequestException as exc:
        logger.warning("Case broadcast failed for case %s: %s", case.id, exc)
