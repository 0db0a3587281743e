"""
SQLAlchemy ORM models.

AudioRecord is owned by the intake pipeline. CaseRecord belongs to the
case-management side of the application; only the columns the pipeline
and the lawyer-assignment sync touch are modelled here.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
)

from src.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Cases
# ============================================================================


class CaseRecord(Base):
    """Legal case opened for a client."""

    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    lawyer_id = Column(Integer, nullable=True, index=True)
    title = Column(String(255), nullable=False)
    case_type = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="open")
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<CaseRecord id={self.id} user_id={self.user_id} status={self.status}>"


# ============================================================================
# Audio intake
# ============================================================================


class AudioRecord(Base):
    """
    Redacted, bilingual record of one uploaded recording.

    ``masked_text`` is never null. The audio tracks and the Gujarati text
    are null when their stage degraded. ``linked_case_id`` stays null
    until case creation succeeds; ``assigned_lawyer_id`` is filled in when
    a lawyer accepts the linked case.
    """

    __tablename__ = "client_audio"

    id = Column(Integer, primary_key=True, autoincrement=True)
    language = Column(String(32), nullable=False, default="english")
    original_text = Column(Text, nullable=False)
    masked_text = Column(Text, nullable=False)
    masked_audio_en = Column(LargeBinary, nullable=True)
    masked_text_gu = Column(Text, nullable=True)
    masked_audio_gu = Column(LargeBinary, nullable=True)
    owner_user_id = Column(Integer, nullable=True, index=True)
    linked_case_id = Column(Integer, ForeignKey("cases.id"), nullable=True, index=True)
    assigned_lawyer_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<AudioRecord id={self.id} owner_user_id={self.owner_user_id} "
            f"linked_case_id={self.linked_case_id}>"
        )
