"""Pytest configuration and shared fixtures."""

import os
import tempfile

# Point the app at a throwaway SQLite database before anything imports settings
_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["ENV"] = "test"

import uuid  # noqa: E402
from collections.abc import Callable, Generator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from mistake_book.db.base import Base  # noqa: E402
from mistake_book.db.engine import engine  # noqa: E402
from mistake_book.db.session import get_db  # noqa: E402
from mistake_book.main import app  # noqa: E402
from mistake_book.models.mistake import MistakeRecord  # noqa: E402
from mistake_book.schemas.mistakes import IngestItem  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _sqlite_file() -> Generator[None, None, None]:
    """Remove the temporary database file once the run is over."""
    yield
    engine.dispose()
    os.close(_db_fd)
    if os.path.exists(_db_path):
        os.unlink(_db_path)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; the ledger commits, so tables are dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database dependency override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close the session, it's managed by the db fixture

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_item() -> Callable[..., IngestItem]:
    """Factory for incorrect-answer ingest items."""

    def _make(
        question_id: int = 1,
        storage_path: str = "uploads/cardiology.pdf",
        **overrides: Any,
    ) -> IngestItem:
        data = {
            "storage_path": storage_path,
            "file_name": storage_path.rsplit("/", 1)[-1],
            "question_id": question_id,
            "question": f"Question {question_id}?",
            "options": ["A", "B", "C", "D"],
            "answer": "B",
        }
        data.update(overrides)
        return IngestItem(**data)

    return _make


@pytest.fixture
def seed_record(db) -> Callable[..., MistakeRecord]:
    """Insert a record directly, bypassing the ledger."""

    def _seed(
        question_id: int = 1,
        storage_path: str = "uploads/cardiology.pdf",
        **overrides: Any,
    ) -> MistakeRecord:
        now = datetime.now(timezone.utc)
        data = {
            "id": uuid.uuid4(),
            "storage_path": storage_path,
            "file_name": storage_path.rsplit("/", 1)[-1],
            "question_id": question_id,
            "question": f"Question {question_id}?",
            "options": ["A", "B", "C", "D"],
            "answer": "B",
            "wrong_count": 1,
            "correct_streak": 0,
            "mastered": False,
            "last_seen_at": now,
            "created_at": now,
        }
        data.update(overrides)
        record = MistakeRecord(**data)
        db.add(record)
        db.commit()
        return record

    return _seed
