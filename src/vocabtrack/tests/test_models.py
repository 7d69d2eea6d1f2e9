"""Tests for progress and database models."""
import json
from datetime import date
from typing import Generator

import pytest
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vocabtrack.models.base import init_db
from vocabtrack.models.models import Snapshot
from vocabtrack.models.progress_models import SCHEMA_VERSION, RootState, UserState, WordProgress

fake = Faker()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh in-memory database session for each test."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


def test_word_progress_defaults() -> None:
    """Test that a new record is not enrolled and has no dates."""
    progress = WordProgress()
    assert progress.enrolled is False
    assert progress.stage == 0
    assert progress.due is None
    assert progress.loop_until is None
    assert progress.seen_count == 0
    assert progress.remembered_count == 0


def test_word_progress_to_dict() -> None:
    """Test wire names and day formatting."""
    progress = WordProgress(
        enrolled=True,
        stage=2,
        due=date(2024, 1, 13),
        loop_until=date(2024, 1, 10),
        seen_count=4,
        remembered_count=1,
    )
    assert progress.to_dict() == {
        "enrolled": True,
        "stage": 2,
        "due": "2024-01-13",
        "loopUntil": "2024-01-10",
        "seenCount": 4,
        "rememberedCount": 1,
    }


def test_ensure_word_creates_once() -> None:
    """Test that ensure_word returns the same record on repeated calls."""
    user = UserState()
    word_id = fake.word()

    first = user.ensure_word(word_id)
    first.seen_count = 3

    assert user.ensure_word(word_id) is first
    assert list(user.words) == [word_id]


def test_ensure_user_defaults_to_active_user() -> None:
    """Test that an empty user id resolves to the active user."""
    state = RootState(active_user_id="riona")

    assert state.ensure_user("") == "riona"
    assert state.ensure_user(None) == "riona"
    assert state.ensure_user("soma") == "soma"
    assert set(state.users) == {"riona", "soma"}


def test_root_state_to_dict() -> None:
    """Test the persisted document layout."""
    state = RootState(active_user_id="riona")
    state.ensure_user()
    state.users["riona"].points = 2
    state.users["riona"].ensure_word("cat")

    document = state.to_dict()

    assert document["schemaVersion"] == SCHEMA_VERSION
    assert document["activeUserId"] == "riona"
    assert document["users"]["riona"]["points"] == 2
    assert document["users"]["riona"]["reviewCorrectSinceLastPoint"] == 0
    assert document["users"]["riona"]["words"]["cat"]["enrolled"] is False
    json.dumps(document)


def test_snapshot_creation(db: Session) -> None:
    """Test snapshot row creation."""
    snapshot = Snapshot(key=fake.slug(), schema_version=SCHEMA_VERSION, payload="{}")
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)

    assert snapshot.id is not None
    assert snapshot.created_at is not None
    assert snapshot.updated_at is not None
    assert snapshot.schema_version == SCHEMA_VERSION


if __name__ == "__main__":
    pytest.main([__file__])
