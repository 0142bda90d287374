"""Database models for the phrase store."""
from datetime import datetime, UTC

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from phrasedrill.models.base import Base, TimestampMixin


class Phrase(Base, TimestampMixin):
    """A word or expression in one language."""

    __tablename__ = "phrases"
    __table_args__ = (
        Index("idx_phrases_language", "language"),
        Index("idx_phrases_phrase", "phrase"),
        Index("idx_phrases_frequency", "relative_frequency"),
        Index("idx_phrases_category", "category"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    phrase = Column(String, nullable=False)
    language = Column(String, nullable=False)  # e.g., "en", "pt"
    relative_frequency = Column(Float, nullable=True)
    category = Column(String, nullable=True)

    # Relationships
    outgoing = relationship(
        "Similarity",
        foreign_keys="Similarity.from_phrase_id",
        back_populates="from_phrase",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    incoming = relationship(
        "Similarity",
        foreign_keys="Similarity.to_phrase_id",
        back_populates="to_phrase",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Phrase {self.id} {self.language}:{self.phrase!r}>"


class Similarity(Base):
    """Directed similarity edge between two phrases."""

    __tablename__ = "similarity"
    __table_args__ = (
        UniqueConstraint("from_phrase_id", "to_phrase_id", name="uq_similarity_pair"),
        CheckConstraint("similarity >= 0.0 AND similarity <= 1.0", name="ck_similarity_range"),
        Index("idx_similarity_from", "from_phrase_id"),
        Index("idx_similarity_to", "to_phrase_id"),
        Index("idx_similarity_score", "similarity"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_phrase_id = Column(Integer, ForeignKey("phrases.id", ondelete="CASCADE"), nullable=False)
    to_phrase_id = Column(Integer, ForeignKey("phrases.id", ondelete="CASCADE"), nullable=False)
    similarity = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    # Relationships
    from_phrase = relationship("Phrase", foreign_keys=[from_phrase_id], back_populates="outgoing")
    to_phrase = relationship("Phrase", foreign_keys=[to_phrase_id], back_populates="incoming")
