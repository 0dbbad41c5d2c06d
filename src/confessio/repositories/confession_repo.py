"""Data access helpers for working with confessions."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from confessio.models.confession import ConfessionRow
from confessio.schemas.confession import Comment, Confession, PollOption
from confessio.services.realtime import (
    InsertCallback,
    RealtimeChannel,
    Unsubscribe,
    get_realtime_channel,
)

__all__ = ["ConfessionRepository", "confession_to_row", "row_to_confession"]

logger = logging.getLogger(__name__)


def confession_to_row(confession: Confession) -> dict[str, Any]:
    """Translate the in-app confession shape into column values."""
    return {
        "id": confession.id,
        "type": confession.type,
        "text": confession.text,
        "image": confession.image or None,
        "audio": confession.audio or None,
        "video": confession.video or None,
        "poll_options": (
            [option.model_dump() for option in confession.poll_options]
            if confession.poll_options
            else None
        ),
        "timestamp": confession.timestamp,
        "reactions": dict(confession.reactions),
        "comments": [comment.model_dump(by_alias=True) for comment in confession.comments],
        "sentiment": confession.sentiment,
        "emoji": confession.emoji,
        "tags": list(confession.tags),
        "color_theme": confession.color_theme,
        "author_avatar": confession.author_avatar.model_dump(),
        "is_safe": confession.is_safe,
        "flag_reason": confession.flag_reason,
    }


def row_to_confession(row: ConfessionRow) -> Confession:
    """Translate a stored row back into the in-app confession shape."""
    return Confession(
        id=row.id,
        type=row.type,
        text=row.text,
        image=row.image or None,
        audio=row.audio or None,
        video=row.video or None,
        poll_options=row.poll_options or None,
        timestamp=row.timestamp,
        author_avatar=row.author_avatar,
        reactions=row.reactions,
        comments=row.comments or [],
        tags=row.tags or [],
        sentiment=row.sentiment,
        emoji=row.emoji,
        color_theme=row.color_theme,
        is_safe=row.is_safe,
        flag_reason=row.flag_reason,
    )


class ConfessionRepository:
    """Thin wrapper around the confession store.

    Reads degrade to an empty list and writes report a boolean instead of
    raising, so callers branch on the result and undo optimistic changes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        channel: RealtimeChannel | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.channel = channel or get_realtime_channel()

    def fetch_confessions(self) -> list[Confession]:
        """Return every confession, newest timestamp first."""
        try:
            with self.session_factory() as db:
                rows = db.execute(
                    select(ConfessionRow).order_by(ConfessionRow.timestamp.desc())
                ).scalars()
                confessions: list[Confession] = []
                for row in rows:
                    try:
                        confessions.append(row_to_confession(row))
                    except ValidationError as exc:
                        logger.warning("Skipping malformed confession %s: %s", row.id, exc)
                return confessions
        except SQLAlchemyError as exc:
            logger.error("Error fetching confessions: %s", exc)
            return []

    def get_confession(self, confession_id: str) -> Confession | None:
        try:
            with self.session_factory() as db:
                row = db.get(ConfessionRow, confession_id)
                return row_to_confession(row) if row is not None else None
        except ValidationError as exc:
            logger.warning("Malformed confession %s: %s", confession_id, exc)
            return None
        except SQLAlchemyError as exc:
            logger.error("Error fetching confession %s: %s", confession_id, exc)
            return None

    def insert_confession(self, confession: Confession) -> bool:
        """Persist a new confession and announce it on the realtime channel."""
        try:
            with self.session_factory() as db:
                db.add(ConfessionRow(**confession_to_row(confession)))
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Error inserting confession %s: %s", confession.id, exc)
            return False

        self.channel.publish(confession)
        return True

    def update_confession(
        self,
        confession_id: str,
        *,
        reactions: dict[str, int] | None = None,
        comments: list[Comment] | None = None,
        poll_options: list[PollOption] | None = None,
    ) -> bool:
        """Rewrite only the structured interaction columns that were provided."""
        values: dict[str, Any] = {}
        if reactions is not None:
            values["reactions"] = dict(reactions)
        if comments is not None:
            values["comments"] = [comment.model_dump(by_alias=True) for comment in comments]
        if poll_options is not None:
            values["poll_options"] = [option.model_dump() for option in poll_options]
        if not values:
            return True

        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(ConfessionRow)
                    .where(ConfessionRow.id == confession_id)
                    .values(**values)
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Error updating confession %s: %s", confession_id, exc)
            return False

        if result.rowcount == 0:
            logger.error("Error updating confession %s: no such row", confession_id)
            return False
        return True

    def subscribe(self, callback: InsertCallback) -> Unsubscribe:
        """Invoke ``callback`` with every newly inserted confession."""
        return self.channel.subscribe(callback)
