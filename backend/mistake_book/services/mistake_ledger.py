"""Mistake ledger: storage and review-state updates for mistake book records."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mistake_book.learning_engine.mastery import (
    MASTERY_THRESHOLD,
    apply_outcome,
    initial_state,
    reset_for_miss,
)
from mistake_book.models.mistake import MistakeRecord
from mistake_book.schemas.mistakes import IngestItem, IngestItemResult

logger = logging.getLogger(__name__)

# Guarded outcome writes that lose to a concurrent answer re-read this many times
OUTCOME_MAX_ATTEMPTS = 3


class MistakeLedgerError(Exception):
    """Base class for ledger errors."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class MistakeNotFoundError(MistakeLedgerError):
    """No record with the given id."""

    def __init__(self, record_id: UUID):
        self.record_id = record_id
        super().__init__(f"Mistake record {record_id} not found")


class LedgerStorageError(MistakeLedgerError):
    """The database rejected or failed an operation."""


class ActiveSetTooLargeError(MistakeLedgerError):
    """The active review set exceeds the configured limit."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Active review set exceeds {limit} records")


@dataclass
class OutcomeResult:
    """What the caller needs to render progress after an answer."""

    mastered: bool
    new_streak: int
    threshold: int
    record: MistakeRecord


# ============================================================================
# Reads
# ============================================================================


def list_active_mistakes(db: Session, *, limit: int = 0) -> list[MistakeRecord]:
    """
    Return every record still under review, oldest miss first.

    The set is not paginated. When ``limit`` is positive and more than
    ``limit`` active records exist, ActiveSetTooLargeError is raised rather
    than returning a silently truncated set.
    """
    stmt = (
        select(MistakeRecord)
        .where(MistakeRecord.mastered.is_(False))
        .order_by(MistakeRecord.created_at.asc(), MistakeRecord.id.asc())
        .execution_options(populate_existing=True)
    )
    if limit:
        stmt = stmt.limit(limit + 1)

    try:
        records = list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to list active mistakes: %s", e, exc_info=True)
        raise LedgerStorageError(str(e)) from e

    if limit and len(records) > limit:
        logger.warning("active_set_limit_exceeded", extra={"limit": limit})
        raise ActiveSetTooLargeError(limit)
    return records


def get_mistake(db: Session, record_id: UUID) -> MistakeRecord:
    """Fetch one record by id."""
    try:
        record = db.get(MistakeRecord, record_id, populate_existing=True)
    except SQLAlchemyError as e:
        db.rollback()
        raise LedgerStorageError(str(e)) from e

    if record is None:
        raise MistakeNotFoundError(record_id)
    return record


def summarize_mistakes(db: Session) -> dict[str, int]:
    """Active/mastered/total record counts and the total number of misses."""
    stmt = select(
        MistakeRecord.mastered,
        func.count(MistakeRecord.id).label("records"),
        func.coalesce(func.sum(MistakeRecord.wrong_count), 0).label("wrong"),
    ).group_by(MistakeRecord.mastered)

    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as e:
        db.rollback()
        raise LedgerStorageError(str(e)) from e

    active = sum(row.records for row in rows if not row.mastered)
    mastered = sum(row.records for row in rows if row.mastered)
    return {
        "active": active,
        "mastered": mastered,
        "total": active + mastered,
        "total_wrong": int(sum(row.wrong for row in rows)),
    }


# ============================================================================
# Ingest
# ============================================================================


def _insert_for(db: Session):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def upsert_incorrect_answer(db: Session, item: IngestItem, now: datetime | None = None) -> tuple[UUID, bool]:
    """
    Record one wrong answer atomically on the (storage_path, question_id) key.

    New key: insert with wrong_count=1, streak 0, not mastered.
    Existing key: wrong_count + 1, streak reset, mastered cleared.
    The question snapshot of an existing record is left untouched.

    Returns:
        (record id, True if the record was created)
    """
    now = now or datetime.now(timezone.utc)
    state = initial_state(now=now)
    # wrong_count is incremented in SQL so concurrent misses are not lost
    missed_again = reset_for_miss(0, now=now)

    insert = _insert_for(db)
    stmt = insert(MistakeRecord).values(
        storage_path=item.storage_path,
        file_name=item.file_name,
        question_id=item.question_id,
        question=item.question,
        options=list(item.options),
        answer=item.answer,
        wrong_count=state.wrong_count,
        correct_streak=state.correct_streak,
        mastered=state.mastered,
        last_seen_at=state.last_seen_at,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["storage_path", "question_id"],
        set_={
            "wrong_count": MistakeRecord.wrong_count + 1,
            "correct_streak": missed_again.correct_streak,
            "mastered": missed_again.mastered,
            "last_seen_at": missed_again.last_seen_at,
        },
    ).returning(MistakeRecord.id, MistakeRecord.wrong_count)

    row = db.execute(stmt).one()
    # A fresh insert is the only way to end up with a single miss
    return row.id, row.wrong_count == state.wrong_count


def ingest_incorrect_answers(db: Session, items: Iterable[IngestItem]) -> list[IngestItemResult]:
    """
    Record every wrong answer from a quiz attempt.

    Items are committed one at a time. A failing item is rolled back and
    reported without undoing the items already stored.
    """
    results: list[IngestItemResult] = []
    for item in items:
        try:
            record_id, created = upsert_incorrect_answer(db, item)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Failed to ingest mistake %s#%s: %s",
                item.storage_path,
                item.question_id,
                e,
                exc_info=True,
            )
            results.append(
                IngestItemResult(
                    storage_path=item.storage_path,
                    question_id=item.question_id,
                    status="failed",
                    error=str(e),
                )
            )
            continue

        results.append(
            IngestItemResult(
                storage_path=item.storage_path,
                question_id=item.question_id,
                status="created" if created else "updated",
                id=record_id,
            )
        )

    logger.info(
        "mistakes_ingested",
        extra={
            "created": sum(1 for r in results if r.status == "created"),
            "updated": sum(1 for r in results if r.status == "updated"),
            "failed": sum(1 for r in results if r.status == "failed"),
        },
    )
    return results


# ============================================================================
# Review drilling
# ============================================================================


def _load_for_update(db: Session, record_id: UUID) -> MistakeRecord:
    stmt = (
        select(MistakeRecord)
        .where(MistakeRecord.id == record_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = db.execute(stmt).scalar_one_or_none()
    if record is None:
        db.rollback()
        raise MistakeNotFoundError(record_id)
    return record


def record_outcome(
    db: Session,
    record_id: UUID,
    correct: bool,
    *,
    threshold: int = MASTERY_THRESHOLD,
) -> OutcomeResult:
    """
    Apply one review answer to a record and persist the new state.

    The write is a guarded UPDATE that only matches the state the rule was
    applied to, so a concurrent answer that landed in between is never
    overwritten: the record is re-read and the rule applied again. The
    SELECT ... FOR UPDATE makes that rare on PostgreSQL; SQLite ignores it
    and relies on the guard alone.

    A record that is already mastered only gets last_seen_at stamped. The
    answer itself is dropped, a wrong one included, so this path never
    un-retires a record; only a fresh quiz miss (ingest) brings it back.
    """
    for attempt in range(1, OUTCOME_MAX_ATTEMPTS + 1):
        try:
            record = _load_for_update(db, record_id)
            prior_streak = record.correct_streak
            prior_wrong_count = record.wrong_count
            already_mastered = record.mastered

            if already_mastered:
                now = datetime.now(timezone.utc)
                stmt = (
                    update(MistakeRecord)
                    .where(MistakeRecord.id == record_id, MistakeRecord.mastered.is_(True))
                    .values(last_seen_at=now)
                )
            else:
                state = apply_outcome(prior_streak, prior_wrong_count, correct, threshold=threshold)
                stmt = (
                    update(MistakeRecord)
                    .where(
                        MistakeRecord.id == record_id,
                        MistakeRecord.mastered.is_(False),
                        MistakeRecord.correct_streak == prior_streak,
                        MistakeRecord.wrong_count == prior_wrong_count,
                    )
                    .values(
                        correct_streak=state.correct_streak,
                        wrong_count=state.wrong_count,
                        mastered=state.mastered,
                        last_seen_at=state.last_seen_at,
                    )
                )

            if db.execute(stmt).rowcount == 1:
                db.commit()
                break
            db.rollback()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to record outcome for %s: %s", record_id, e, exc_info=True)
            raise LedgerStorageError(str(e)) from e

        logger.info("outcome_conflict", extra={"record_id": str(record_id), "attempt": attempt})
    else:
        logger.error("Gave up recording outcome for %s after %s conflicts", record_id, OUTCOME_MAX_ATTEMPTS)
        raise LedgerStorageError(f"Mistake record {record_id} kept changing while recording the answer")

    if already_mastered:
        logger.info("outcome_ignored_for_mastered_record", extra={"record_id": str(record_id)})
        return OutcomeResult(mastered=True, new_streak=prior_streak, threshold=threshold, record=record)

    if state.mastered:
        logger.info("mistake_mastered", extra={"record_id": str(record_id), "streak": state.correct_streak})

    return OutcomeResult(
        mastered=state.mastered,
        new_streak=state.correct_streak,
        threshold=threshold,
        record=record,
    )


def delete_mistake(db: Session, record_id: UUID) -> bool:
    """Remove a record by id. Returns False when nothing matched."""
    try:
        result = db.execute(delete(MistakeRecord).where(MistakeRecord.id == record_id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to delete mistake %s: %s", record_id, e, exc_info=True)
        raise LedgerStorageError(str(e)) from e

    deleted = bool(result.rowcount)
    logger.info("mistake_deleted", extra={"record_id": str(record_id), "deleted": deleted})
    return deleted
