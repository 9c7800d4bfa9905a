"""
Shared pytest fixtures for test database management.
Every test gets a fresh in-memory SQLite database.
"""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from cardstack.config import ConfigManager, Settings
from cardstack.database import ConfigDAO, Database, FlashcardDAO, TagDAO
from cardstack.ledger import create_card
from cardstack.main import app, get_config_manager, get_db, get_undo_stack
from cardstack.models import Base
from cardstack.schemas import StudyMode, TagCreate
from cardstack.undo import UndoStack

T0 = datetime(2025, 1, 15, 12, 0, 0)


@pytest.fixture
def test_db():
    """Create a fresh in-memory test database for each test."""
    db = Database("sqlite:///:memory:")

    yield db

    # Clean up
    Base.metadata.drop_all(db.engine)
    db.engine.dispose()


@pytest.fixture
def db(test_db):
    """Alias for test_db."""
    return test_db


@pytest.fixture
def flashcard_dao(test_db):
    return FlashcardDAO(test_db)


@pytest.fixture
def tag_dao(test_db):
    return TagDAO(test_db)


@pytest.fixture
def config_manager(test_db):
    """Config manager backed by the test database, ignoring any .env file."""
    return ConfigManager(config_dao=ConfigDAO(test_db), settings=Settings(_env_file=None))


@pytest.fixture
def undo_stack():
    return UndoStack()


@pytest.fixture
def client(test_db, config_manager, undo_stack):
    """Create a test client with dependency overrides."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_config_manager] = lambda: config_manager
    app.dependency_overrides[get_undo_stack] = lambda: undo_stack

    with TestClient(app) as test_client:
        yield test_client

    # Clean up after test
    app.dependency_overrides.clear()


@pytest.fixture
def studied_tag(tag_dao):
    """A tag studied by recalling the back of its cards."""
    return tag_dao.create(TagCreate(name="Korean", study_mode=StudyMode.RECALL_BACK))


@pytest.fixture
def saved_card(flashcard_dao, studied_tag):
    """A saved, never reviewed card carrying the studied tag."""
    card = create_card(front="안녕", back="hello", tag_ids=[studied_tag.id], created_at=T0)
    return flashcard_dao.save(card)
