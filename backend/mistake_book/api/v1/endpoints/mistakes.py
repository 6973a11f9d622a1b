"""Mistake book API endpoints."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from mistake_book.core.app_exceptions import AppError, not_found, storage_failure
from mistake_book.core.config import settings
from mistake_book.db.session import get_db
from mistake_book.schemas.mistakes import (
    DeleteResponse,
    IngestRequest,
    IngestResponse,
    MistakeOut,
    MistakesListResponse,
    MistakesSummaryResponse,
    OutcomeRequest,
    OutcomeResponse,
)
from mistake_book.services.mistake_ledger import (
    ActiveSetTooLargeError,
    LedgerStorageError,
    MistakeNotFoundError,
    delete_mistake,
    get_mistake,
    ingest_incorrect_answers,
    list_active_mistakes,
    record_outcome,
    summarize_mistakes,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# GET /v1/mistakes
# ============================================================================


@router.get("/mistakes", response_model=MistakesListResponse)
def get_active_mistakes(db: Annotated[Session, Depends(get_db)]):
    """
    List the active review set.

    Returns every record that is not mastered yet, oldest miss first.
    Fails with 409 if the set is larger than MISTAKES_ACTIVE_LIST_MAX.
    """
    try:
        records = list_active_mistakes(db, limit=settings.MISTAKES_ACTIVE_LIST_MAX)
    except ActiveSetTooLargeError as e:
        raise AppError(
            status_code=status.HTTP_409_CONFLICT,
            code="ACTIVE_SET_LIMIT_EXCEEDED",
            message=e.detail,
            details={"limit": e.limit},
        ) from e
    except LedgerStorageError as e:
        raise storage_failure(e.detail) from e

    return MistakesListResponse(mistakes=[MistakeOut.model_validate(r) for r in records])


# ============================================================================
# POST /v1/mistakes
# ============================================================================


@router.post("/mistakes", response_model=IngestResponse)
def ingest_mistakes(
    payload: IngestRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Record the wrong answers of a completed quiz.

    Each question is stored independently; `ok` is false if any of them
    failed, and `results` says which.
    """
    results = ingest_incorrect_answers(db, payload.questions)
    ok = all(r.status != "failed" for r in results)
    if not ok:
        logger.warning("ingest_partial_failure", extra={"items": len(results)})
    return IngestResponse(ok=ok, results=results)


# ============================================================================
# GET /v1/mistakes/summary
# ============================================================================


@router.get("/mistakes/summary", response_model=MistakesSummaryResponse)
def get_mistakes_summary(db: Annotated[Session, Depends(get_db)]):
    """Counts of active and mastered records."""
    try:
        counts = summarize_mistakes(db)
    except LedgerStorageError as e:
        raise storage_failure(e.detail) from e
    return MistakesSummaryResponse(threshold=settings.MASTERY_THRESHOLD, **counts)


# ============================================================================
# /v1/mistakes/{record_id}
# ============================================================================


@router.get("/mistakes/{record_id}", response_model=MistakeOut)
def get_mistake_detail(record_id: UUID, db: Annotated[Session, Depends(get_db)]):
    """Get a single record, mastered or not."""
    try:
        record = get_mistake(db, record_id)
    except MistakeNotFoundError as e:
        raise not_found(e.detail, {"id": str(record_id)}) from e
    except LedgerStorageError as e:
        raise storage_failure(e.detail) from e
    return MistakeOut.model_validate(record)


@router.patch("/mistakes/{record_id}", response_model=OutcomeResponse)
def submit_outcome(
    record_id: UUID,
    payload: OutcomeRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Record a review answer.

    Three correct answers in a row (MASTERY_THRESHOLD) retire the record
    from the active set; a wrong answer resets the streak.
    """
    try:
        result = record_outcome(db, record_id, payload.correct, threshold=settings.MASTERY_THRESHOLD)
    except MistakeNotFoundError as e:
        raise not_found(e.detail, {"id": str(record_id)}) from e
    except LedgerStorageError as e:
        raise storage_failure(e.detail) from e

    return OutcomeResponse(
        mastered=result.mastered,
        new_streak=result.new_streak,
        threshold=result.threshold,
    )


@router.delete("/mistakes/{record_id}", response_model=DeleteResponse)
def remove_mistake(record_id: UUID, db: Annotated[Session, Depends(get_db)]):
    """Delete a record. Deleting a record that does not exist is not an error."""
    try:
        deleted = delete_mistake(db, record_id)
    except LedgerStorageError as e:
        raise storage_failure(e.detail) from e
    return DeleteResponse(deleted=deleted)
