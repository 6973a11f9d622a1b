"""Pydantic schemas for Mistakes API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool

# ============================================================================
# Records
# ============================================================================


class MistakeOut(BaseModel):
    """A mistake book record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    storage_path: str
    file_name: str
    question_id: int
    question: str
    options: list[str]
    answer: str
    wrong_count: int
    correct_streak: int
    mastered: bool
    last_seen_at: datetime
    created_at: datetime


class MistakesListResponse(BaseModel):
    """Active review set, oldest miss first."""

    mistakes: list[MistakeOut]


class MistakesSummaryResponse(BaseModel):
    """Counts across the whole mistake book."""

    active: int
    mastered: int
    total: int
    total_wrong: int
    threshold: int


# ============================================================================
# Ingest
# ============================================================================


class IngestItem(BaseModel):
    """One incorrectly answered quiz question."""

    storage_path: str = Field(..., min_length=1, description="Source document identifier")
    file_name: str = Field(default="", description="Display name of the document")
    question_id: int = Field(..., ge=0, description="Question index within the document's quiz")
    question: str = Field(..., description="Question text at the time of the miss")
    options: list[str] = Field(default_factory=list)
    answer: str = Field(..., description="Correct answer")


class IngestRequest(BaseModel):
    """Wrong answers from one completed quiz."""

    questions: list[IngestItem] = Field(..., min_length=1)


class IngestItemResult(BaseModel):
    """Outcome of ingesting a single item."""

    storage_path: str
    question_id: int
    status: Literal["created", "updated", "failed"]
    id: UUID | None = None
    error: str | None = None


class IngestResponse(BaseModel):
    """Per-item ingest outcome; ok is true only if every item was stored."""

    ok: bool
    results: list[IngestItemResult]


# ============================================================================
# Outcome / delete
# ============================================================================


class OutcomeRequest(BaseModel):
    """Result of answering a question from the review set."""

    correct: StrictBool


class OutcomeResponse(BaseModel):
    """Progress feedback after an answer."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    mastered: bool
    new_streak: int = Field(..., alias="newStreak")
    threshold: int


class DeleteResponse(BaseModel):
    """Delete acknowledgment; deleted is false when nothing matched."""

    ok: bool = True
    deleted: bool
