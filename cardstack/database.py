"""
Database DAOs (Data Access Objects) for managing database operations.
"""

import logging
from urllib.parse import urlparse

from sqlalchemy import create_engine, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from cardstack.models import Base, ConfigModel, FlashcardModel, ReviewModel, TagModel
from cardstack.parser import index_by_text
from cardstack.schemas import Flashcard, Tag, TagCreate, TagSelection, TagUpdate

logger = logging.getLogger(__name__)


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str = "sqlite:///./cardstack.db"):
        self.database_url = database_url
        self.engine = self._create_engine(database_url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.create_tables()

    def _create_engine(self, database_url: str) -> Engine:
        """Create the database engine."""
        if database_url.startswith("sqlite"):
            engine_kwargs = {
                "echo": False,
                "connect_args": {"check_same_thread": False},
            }
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                # All sessions must share the single in-memory connection
                engine_kwargs["poolclass"] = StaticPool
            return create_engine(database_url, **engine_kwargs)

        engine_kwargs = {
            "echo": False,
            "poolclass": QueuePool,
            "pool_size": 10,  # Number of connections to maintain
            "max_overflow": 20,  # Additional connections beyond pool_size
            "pool_timeout": 30,  # Timeout when getting connection from pool
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_pre_ping": True,  # Validate connections before use
        }
        return create_engine(database_url, **engine_kwargs)

    def create_tables(self):
        """Create all tables."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
                return True
        except Exception:
            logger.exception("Database connection test failed")
            return False

    def get_db_info(self) -> dict:
        """Get database information."""
        parsed_url = urlparse(self.database_url)
        return {
            "database_type": parsed_url.scheme,
            "host": parsed_url.hostname or "local",
            "database": parsed_url.path.lstrip("/") or "memory",
            "connection_status": "connected" if self.test_connection() else "disconnected",
        }


class FlashcardDAO:
    """Data Access Object for Flashcard operations."""

    def __init__(self, db: Database):
        self.db = db

    def save(self, flashcard: Flashcard) -> Flashcard | None:
        """
        Insert or update a flashcard, its tags and its review history.

        Empty flashcards are never persisted: saving one deletes any stored
        version and returns None.
        """
        with self.db.get_session() as session:
            flashcard_model = session.get(FlashcardModel, flashcard.id)

            if flashcard.is_empty:
                if flashcard_model:
                    session.delete(flashcard_model)
                    session.commit()
                    logger.info("Deleted flashcard %s emptied by an edit", flashcard.id)
                return None

            if flashcard_model is None:
                flashcard_model = FlashcardModel(id=flashcard.id)
                session.add(flashcard_model)

            flashcard_model.front = flashcard.front
            flashcard_model.back = flashcard.back
            flashcard_model.notes = flashcard.notes
            flashcard_model.created_at = flashcard.created_at
            flashcard_model.modified_at = flashcard.modified_at
            flashcard_model.next_review_date = flashcard.next_review_date
            flashcard_model.scheduler_state = flashcard.scheduler_state.model_dump(mode="json")

            if flashcard.tag_ids:
                flashcard_model.tags = (
                    session.query(TagModel).filter(TagModel.id.in_(flashcard.tag_ids)).all()
                )
            else:
                flashcard_model.tags = []

            # Reviews are append-only, except for undo which removes the last ones
            kept_ids = {review.id for review in flashcard.reviews}
            existing = {review.id: review for review in flashcard_model.reviews}
            for review_model in list(flashcard_model.reviews):
                if review_model.id not in kept_ids:
                    flashcard_model.reviews.remove(review_model)

            for position, review in enumerate(flashcard.reviews):
                review_model = existing.get(review.id)
                if review_model is None:
                    review_model = ReviewModel(
                        id=review.id,
                        reviewed_at=review.reviewed_at,
                        outcome=review.outcome.value,
                        position=position,
                    )
                    flashcard_model.reviews.append(review_model)
                review_model.position = position

            session.commit()
            session.refresh(flashcard_model)
            return Flashcard.model_validate(flashcard_model)

    def get_by_id(self, flashcard_id: str) -> Flashcard | None:
        """Get a flashcard by ID."""
        with self.db.get_session() as session:
            flashcard_model = session.get(FlashcardModel, flashcard_id)
            if flashcard_model:
                return Flashcard.model_validate(flashcard_model)
            return None

    def get_all(self) -> list[Flashcard]:
        """Get all flashcards, by ascending next review date."""
        with self.db.get_session() as session:
            flashcard_models = (
                session.query(FlashcardModel).order_by(FlashcardModel.next_review_date).all()
            )
            return [Flashcard.model_validate(fc) for fc in flashcard_models]

    def get_non_empty(self) -> list[Flashcard]:
        """Get flashcards with a front or a back, by ascending next review date."""
        with self.db.get_session() as session:
            flashcard_models = (
                session.query(FlashcardModel)
                .filter(or_(FlashcardModel.front != "", FlashcardModel.back != ""))
                .order_by(FlashcardModel.next_review_date)
                .all()
            )
            return [Flashcard.model_validate(fc) for fc in flashcard_models]

    def delete(self, flashcard_id: str) -> bool:
        """Delete a flashcard and its reviews."""
        with self.db.get_session() as session:
            flashcard_model = session.get(FlashcardModel, flashcard_id)
            if flashcard_model:
                session.delete(flashcard_model)
                session.commit()
                return True
            return False

    def find_by_text(self, text: str) -> Flashcard | None:
        """Find a flashcard whose front or back equals ``text``, ignoring case."""
        return index_by_text(self.get_non_empty()).get(text.lower())

    def count_reviews(self, flashcard_id: str) -> int:
        """Count the stored reviews of a flashcard."""
        with self.db.get_session() as session:
            return session.query(ReviewModel).filter(ReviewModel.card_id == flashcard_id).count()


class TagDAO:
    """Data Access Object for Tag operations."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, tag_data: TagCreate) -> Tag:
        """Create a new tag."""
        with self.db.get_session() as session:
            tag_model = TagModel(
                name=tag_data.name,
                study_mode=tag_data.study_mode.value if tag_data.study_mode else None,
            )
            session.add(tag_model)
            session.commit()
            session.refresh(tag_model)
            return Tag.model_validate(tag_model)

    def get_by_id(self, tag_id: str) -> Tag | None:
        """Get a tag by ID."""
        with self.db.get_session() as session:
            tag_model = session.get(TagModel, tag_id)
            if tag_model:
                return Tag.model_validate(tag_model)
            return None

    def get_all(self) -> list[Tag]:
        """Get all tags, by name."""
        with self.db.get_session() as session:
            tag_models = session.query(TagModel).order_by(TagModel.name).all()
            return [Tag.model_validate(tag) for tag in tag_models]

    def get_by_ids(self) -> dict[str, Tag]:
        """Get all tags, keyed by ID."""
        return {tag.id: tag for tag in self.get_all()}

    def update(self, tag_id: str, tag_data: TagUpdate) -> Tag | None:
        """Update a tag's properties."""
        with self.db.get_session() as session:
            tag_model = session.get(TagModel, tag_id)
            if not tag_model:
                return None

            if tag_data.name is not None:
                tag_model.name = tag_data.name
            if tag_data.clear_study_mode:
                tag_model.study_mode = None
            elif tag_data.study_mode is not None:
                tag_model.study_mode = tag_data.study_mode.value
            if tag_data.clear_selection:
                tag_model.selection = None
            elif tag_data.selection is not None:
                tag_model.selection = tag_data.selection.value

            session.commit()
            session.refresh(tag_model)
            return Tag.model_validate(tag_model)

    def delete(self, tag_id: str) -> bool:
        """Delete a tag. Its flashcards are kept."""
        with self.db.get_session() as session:
            tag_model = session.get(TagModel, tag_id)
            if tag_model:
                tag_model.flashcards = []
                session.delete(tag_model)
                session.commit()
                return True
            return False

    def get_cards(self, tag_id: str) -> list[Flashcard]:
        """Get the flashcards carrying a tag."""
        with self.db.get_session() as session:
            tag_model = session.get(TagModel, tag_id)
            if not tag_model:
                return []
            return [Flashcard.model_validate(fc) for fc in tag_model.flashcards]

    def get_committed_cards(self, tag_id: str) -> list[Flashcard]:
        """Get the non-empty flashcards carrying a tag."""
        return [flashcard for flashcard in self.get_cards(tag_id) if not flashcard.is_empty]

    def get_selection(self) -> TagSelection:
        """Get the current study filter from the tags' selection markers."""
        return TagSelection.from_tags(self.get_all())


class ConfigDAO:
    """Data Access Object for Config operations."""

    def __init__(self, db: Database):
        self.db = db

    def set(self, key: str, value: str) -> None:
        """Set a configuration value."""
        with self.db.get_session() as session:
            config_model = session.get(ConfigModel, key)
            if config_model:
                config_model.value = value
            else:
                config_model = ConfigModel(key=key, value=value)
                session.add(config_model)
            session.commit()

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value."""
        with self.db.get_session() as session:
            config_model = session.get(ConfigModel, key)
            return config_model.value if config_model else default

    def get_all(self) -> dict:
        """Get all configuration values."""
        with self.db.get_session() as session:
            configs = session.query(ConfigModel).all()
            return {config.key: config.value for config in configs}
