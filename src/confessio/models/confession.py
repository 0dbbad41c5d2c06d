# src/confessio/models/confession.py
"""SQLAlchemy model for the denormalized confessions table."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from confessio.db.session import Base
from confessio.db.time import utcnow


class ConfessionRow(Base):
    """Flat record holding a confession with its interaction data.

    Reactions, comments, poll options and the author avatar are stored as
    structured JSON columns and rewritten wholesale on update.
    """

    __tablename__ = "confessions"
    __table_args__ = (Index("ix_confessions_timestamp", "timestamp"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # text | poll | video
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    # For polls this is the question.
    text: Mapped[str] = mapped_column(Text, nullable=False)

    # Inline data URLs; nullable because most posts carry no media.
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    audio: Mapped[str | None] = mapped_column(Text, nullable=True)
    video: Mapped[str | None] = mapped_column(Text, nullable=True)
    poll_options: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    # Client-assigned epoch milliseconds; the feed orders on this.
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reactions: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    comments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # AI-derived fields.
    sentiment: Mapped[str] = mapped_column(String(16), nullable=False)
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    color_theme: Mapped[str] = mapped_column(String(32), nullable=False)
    is_safe: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    flag_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    author_avatar: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
