"""Tests for the mistake ledger service."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mistake_book.learning_engine.mastery import apply_outcome
from mistake_book.models.mistake import MistakeRecord
from mistake_book.schemas.mistakes import IngestItem
from mistake_book.services import mistake_ledger
from mistake_book.services.mistake_ledger import (
    OUTCOME_MAX_ATTEMPTS,
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


def _count(db) -> int:
    return db.execute(select(func.count(MistakeRecord.id))).scalar_one()


# ============================================================================
# INGEST
# ============================================================================


class TestIngest:
    """Bulk ingest of wrong answers."""

    def test_new_key_creates_record(self, db, make_item):
        """A miss on a question with no record creates one: 1 miss, no streak."""
        results = ingest_incorrect_answers(db, [make_item(question_id=7)])

        assert [r.status for r in results] == ["created"]
        record = get_mistake(db, results[0].id)
        assert record.wrong_count == 1
        assert record.correct_streak == 0
        assert record.mastered is False
        assert record.storage_path == "uploads/cardiology.pdf"
        assert record.question_id == 7
        assert record.options == ["A", "B", "C", "D"]

    def test_existing_mastered_record_is_unretired(self, db, make_item, seed_record):
        """A fresh quiz miss pulls a mastered record back into review."""
        seeded = seed_record(question_id=3, wrong_count=2, correct_streak=5, mastered=True)

        results = ingest_incorrect_answers(db, [make_item(question_id=3)])

        assert results[0].status == "updated"
        assert results[0].id == seeded.id
        record = get_mistake(db, seeded.id)
        assert record.mastered is False
        assert record.correct_streak == 0
        assert record.wrong_count == 3
        assert _count(db) == 1

    def test_existing_record_keeps_snapshot(self, db, make_item, seed_record):
        """Re-missing never refreshes the frozen question text or options."""
        seeded = seed_record(question_id=2, question="Original text?", options=["x", "y"], answer="x")

        ingest_incorrect_answers(
            db,
            [make_item(question_id=2, question="Regenerated text?", options=["p", "q"], answer="q")],
        )

        record = get_mistake(db, seeded.id)
        assert record.question == "Original text?"
        assert record.options == ["x", "y"]
        assert record.answer == "x"
        assert record.wrong_count == 2

    def test_same_question_id_in_other_document_is_separate(self, db, make_item):
        results = ingest_incorrect_answers(
            db,
            [
                make_item(question_id=1, storage_path="uploads/a.pdf"),
                make_item(question_id=1, storage_path="uploads/b.pdf"),
            ],
        )

        assert [r.status for r in results] == ["created", "created"]
        assert results[0].id != results[1].id
        assert _count(db) == 2

    def test_duplicate_key_within_batch_counts_twice(self, db, make_item):
        results = ingest_incorrect_answers(db, [make_item(question_id=4), make_item(question_id=4)])

        assert [r.status for r in results] == ["created", "updated"]
        assert results[0].id == results[1].id
        assert get_mistake(db, results[0].id).wrong_count == 2

    def test_failed_item_does_not_undo_earlier_items(self, db, make_item):
        """A batch is not all-or-nothing: the bad item fails alone."""
        broken = IngestItem.model_construct(
            storage_path="uploads/cardiology.pdf",
            file_name="cardiology.pdf",
            question_id=9,
            question=None,  # violates NOT NULL
            options=[],
            answer="A",
        )

        results = ingest_incorrect_answers(db, [make_item(question_id=1), broken, make_item(question_id=2)])

        assert [r.status for r in results] == ["created", "failed", "created"]
        assert results[1].error
        assert results[1].id is None
        assert _count(db) == 2

    def test_ingest_never_masters(self, db, make_item, seed_record):
        seed_record(question_id=1, correct_streak=2)

        ingest_incorrect_answers(db, [make_item(question_id=1), make_item(question_id=2)])

        assert all(not r.mastered for r in db.execute(select(MistakeRecord)).scalars())


# ============================================================================
# RECORD OUTCOME
# ============================================================================


class TestRecordOutcome:
    """Review answers applied through the mastery rule."""

    def test_three_correct_answers_master_record(self, db, seed_record):
        record = seed_record(wrong_count=2)

        results = [record_outcome(db, record.id, True) for _ in range(3)]

        assert [r.new_streak for r in results] == [1, 2, 3]
        assert [r.mastered for r in results] == [False, False, True]
        assert all(r.threshold == 3 for r in results)
        stored = get_mistake(db, record.id)
        assert stored.mastered is True
        assert stored.correct_streak == 3
        assert stored.wrong_count == 2

    def test_wrong_answer_resets_streak(self, db, seed_record):
        record = seed_record(wrong_count=1, correct_streak=2)

        result = record_outcome(db, record.id, False)

        assert result.new_streak == 0
        assert result.mastered is False
        stored = get_mistake(db, record.id)
        assert stored.correct_streak == 0
        assert stored.wrong_count == 2

    def test_updates_last_seen_at(self, db, seed_record):
        old = datetime(2025, 1, 1, tzinfo=timezone.utc)
        record = seed_record(last_seen_at=old, created_at=old)

        record_outcome(db, record.id, True)

        stored = get_mistake(db, record.id)
        assert stored.last_seen_at.replace(tzinfo=None) > old.replace(tzinfo=None)
        assert stored.created_at.replace(tzinfo=None) == old.replace(tzinfo=None)

    def test_configured_threshold_is_used(self, db, seed_record):
        record = seed_record()

        result = record_outcome(db, record.id, True, threshold=1)

        assert result.mastered is True
        assert result.threshold == 1

    def test_mastered_record_is_left_alone(self, db, seed_record):
        """Only a fresh quiz miss can bring a mastered record back."""
        old = datetime(2025, 1, 1, tzinfo=timezone.utc)
        record = seed_record(correct_streak=3, mastered=True, wrong_count=1, last_seen_at=old)

        result = record_outcome(db, record.id, False)

        assert result.mastered is True
        assert result.new_streak == 3
        stored = get_mistake(db, record.id)
        assert stored.mastered is True
        assert stored.correct_streak == 3
        assert stored.wrong_count == 1
        assert stored.last_seen_at.replace(tzinfo=None) > old.replace(tzinfo=None)

    def test_answer_committed_in_between_is_not_lost(self, db, seed_record, monkeypatch):
        """Two overlapping correct answers both count."""
        record = seed_record(wrong_count=1)
        other = Session(bind=db.get_bind(), expire_on_commit=False)
        raced = []

        def answer_elsewhere_first(*args, **kwargs):
            # Runs after this call read the record and before it writes
            if not raced:
                raced.append(True)
                record_outcome(other, record.id, True)
            return apply_outcome(*args, **kwargs)

        monkeypatch.setattr(mistake_ledger, "apply_outcome", answer_elsewhere_first)
        try:
            result = record_outcome(db, record.id, True)
        finally:
            other.close()

        assert result.new_streak == 2
        stored = get_mistake(db, record.id)
        assert stored.correct_streak == 2
        assert stored.wrong_count == 1

    def test_gives_up_when_record_keeps_changing(self, db, seed_record, monkeypatch):
        record = seed_record(wrong_count=1)
        other = Session(bind=db.get_bind(), expire_on_commit=False)
        busy = []

        def miss_elsewhere_every_time(*args, **kwargs):
            if not busy:
                busy.append(True)
                try:
                    record_outcome(other, record.id, False)
                finally:
                    busy.pop()
            return apply_outcome(*args, **kwargs)

        monkeypatch.setattr(mistake_ledger, "apply_outcome", miss_elsewhere_every_time)
        try:
            with pytest.raises(LedgerStorageError):
                record_outcome(db, record.id, True)
        finally:
            other.close()

        stored = get_mistake(db, record.id)
        assert stored.correct_streak == 0
        assert stored.wrong_count == 1 + OUTCOME_MAX_ATTEMPTS

    def test_missing_record(self, db):
        with pytest.raises(MistakeNotFoundError):
            record_outcome(db, uuid.uuid4(), True)


# ============================================================================
# READS AND DELETE
# ============================================================================


class TestListActive:
    """Active review set reads."""

    def test_excludes_mastered_and_orders_oldest_first(self, db, seed_record):
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        newest = seed_record(question_id=1, created_at=base + timedelta(days=2))
        seed_record(question_id=2, created_at=base, correct_streak=3, mastered=True)
        oldest = seed_record(question_id=3, created_at=base + timedelta(days=1))
        seed_record(question_id=4, created_at=base + timedelta(days=3), correct_streak=4, mastered=True)

        records = list_active_mistakes(db)

        assert [r.id for r in records] == [oldest.id, newest.id]
        assert all(not r.mastered for r in records)

    def test_record_mastered_by_outcomes_leaves_active_set(self, db, make_item):
        results = ingest_incorrect_answers(db, [make_item(question_id=1), make_item(question_id=2)])
        target = results[0].id

        for _ in range(3):
            record_outcome(db, target, True)

        assert [r.id for r in list_active_mistakes(db)] == [results[1].id]

    def test_size_guard_fails_closed(self, db, seed_record):
        for qid in range(3):
            seed_record(question_id=qid)

        assert len(list_active_mistakes(db, limit=3)) == 3
        with pytest.raises(ActiveSetTooLargeError) as exc_info:
            list_active_mistakes(db, limit=2)
        assert exc_info.value.limit == 2

    def test_empty(self, db):
        assert list_active_mistakes(db, limit=10) == []


def test_get_missing_record(db):
    with pytest.raises(MistakeNotFoundError):
        get_mistake(db, uuid.uuid4())


def test_delete_removes_record(db, seed_record):
    record = seed_record(correct_streak=3, mastered=True)

    assert delete_mistake(db, record.id) is True
    assert _count(db) == 0


def test_delete_missing_record_is_noop(db, seed_record):
    seed_record()

    assert delete_mistake(db, uuid.uuid4()) is False
    assert _count(db) == 1


def test_summary_counts(db, seed_record):
    seed_record(question_id=1, wrong_count=2)
    seed_record(question_id=2, wrong_count=1)
    seed_record(question_id=3, wrong_count=4, correct_streak=3, mastered=True)

    assert summarize_mistakes(db) == {
        "active": 2,
        "mastered": 1,
        "total": 3,
        "total_wrong": 7,
    }


def test_summary_empty(db):
    assert summarize_mistakes(db) == {"active": 0, "mastered": 0, "total": 0, "total_wrong": 0}
