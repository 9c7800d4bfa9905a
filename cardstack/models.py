"""
SQLAlchemy ORM models for database tables.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


flashcard_tags = Table(
    "flashcard_tags",
    Base.metadata,
    Column("flashcard_id", String, ForeignKey("flashcards.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class FlashcardModel(Base):
    """SQLAlchemy model for flashcards table."""

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    front: Mapped[str] = mapped_column(Text, nullable=False, default="")
    back: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now())
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now())
    next_review_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Opaque spaced repetition state, owned by the scheduler
    scheduler_state: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Relationships
    tags: Mapped[list["TagModel"]] = relationship(
        "TagModel", secondary=flashcard_tags, back_populates="flashcards"
    )
    reviews: Mapped[list["ReviewModel"]] = relationship(
        "ReviewModel",
        back_populates="flashcard",
        cascade="all, delete-orphan",
        order_by="ReviewModel.position",
    )

    @property
    def tag_ids(self) -> list[str]:
        return [tag.id for tag in self.tags]


class TagModel(Base):
    """SQLAlchemy model for tags table."""

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False, default="New tag")
    study_mode: Mapped[str | None] = mapped_column(String, nullable=True)
    selection: Mapped[str | None] = mapped_column(String, nullable=True)  # all/any/exclude

    # Relationships
    flashcards: Mapped[list["FlashcardModel"]] = relationship(
        "FlashcardModel", secondary=flashcard_tags, back_populates="tags"
    )


class ReviewModel(Base):
    """SQLAlchemy model for reviews table."""

    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    card_id: Mapped[str] = mapped_column(String, ForeignKey("flashcards.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # Order within the card
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    outcome: Mapped[str] = mapped_column(String, nullable=False)  # ok/fail

    # Relationships
    flashcard: Mapped["FlashcardModel"] = relationship("FlashcardModel", back_populates="reviews")


class ConfigModel(Base):
    """SQLAlchemy model for config table."""

    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
