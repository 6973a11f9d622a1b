"""Mistake book database model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB

from mistake_book.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MistakeRecord(Base):
    """One row per (document, question) pair the user has ever answered wrong."""

    __tablename__ = "mistake_book"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Business key
    storage_path = Column(String, nullable=False)
    question_id = Column(Integer, nullable=False)

    file_name = Column(String, nullable=False, default="")

    # Frozen snapshot of the question when it was first missed
    question = Column(Text, nullable=False)
    options = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    answer = Column(Text, nullable=False)

    # Review state
    wrong_count = Column(Integer, nullable=False, default=1)
    correct_streak = Column(Integer, nullable=False, default=0)
    mastered = Column(Boolean, nullable=False, default=False)

    last_seen_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("storage_path", "question_id", name="uq_mistake_book_path_question"),
        CheckConstraint("correct_streak >= 0", name="ck_mistake_book_streak_non_negative"),
        CheckConstraint("wrong_count >= 0", name="ck_mistake_book_wrong_non_negative"),
        Index("ix_mistake_book_mastered_created", "mastered", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MistakeRecord {self.storage_path}#{self.question_id} "
            f"streak={self.correct_streak} wrong={self.wrong_count} mastered={self.mastered}>"
        )
