# src/confessio/schemas/confession.py
"""Confession-related Pydantic schemas."""

from __future__ import annotations

from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ReactionType = Literal["love", "funny", "sad", "shock", "fire"]
PostType = Literal["text", "poll", "video"]
Sentiment = Literal["happy", "sad", "angry", "funny", "neutral", "romantic"]

REACTION_TYPES: Final[tuple[ReactionType, ...]] = ("love", "funny", "sad", "shock", "fire")
SENTIMENTS: Final[tuple[Sentiment, ...]] = (
    "happy",
    "sad",
    "angry",
    "funny",
    "neutral",
    "romantic",
)
MAX_TAGS: Final[int] = 3


def empty_reactions() -> dict[ReactionType, int]:
    """Return a zeroed tally for every reaction kind."""
    return {kind: 0 for kind in REACTION_TYPES}


class CamelModel(BaseModel):
    """Base model exposing camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Avatar(CamelModel):
    """Pseudonymous per-client identity."""

    name: str
    color: str
    icon: str


class PollOption(CamelModel):
    id: str
    text: str
    votes: int = Field(default=0, ge=0)


class Comment(CamelModel):
    id: str
    text: str
    timestamp: int
    author_avatar: Avatar


class AnalysisResult(CamelModel):
    """Structured verdict returned by the content-analysis model."""

    tags: list[str]
    sentiment: Sentiment
    emoji: str
    color_theme: str
    is_safe: bool
    flag_reason: str | None = None

    @field_validator("tags")
    @classmethod
    def _cap_tags(cls, value: list[str]) -> list[str]:
        return value[:MAX_TAGS]

    @classmethod
    def fallback(cls) -> AnalysisResult:
        """Neutral verdict used whenever analysis is unavailable."""
        return cls(
            sentiment="neutral",
            emoji="😶",
            tags=["anonymous", "student"],
            color_theme="#64748b",
            is_safe=True,
        )


class Confession(CamelModel):
    """In-app confession shape shared by the view-model and the API."""

    id: str
    type: PostType
    text: str
    image: str | None = None
    audio: str | None = None
    video: str | None = None
    poll_options: list[PollOption] | None = None
    timestamp: int
    author_avatar: Avatar

    reactions: dict[ReactionType, int] = Field(default_factory=empty_reactions)
    comments: list[Comment] = Field(default_factory=list)

    tags: list[str] = Field(default_factory=list)
    sentiment: Sentiment = "neutral"
    emoji: str = "😶"
    color_theme: str = "#64748b"
    is_safe: bool = True
    flag_reason: str | None = None

    @field_validator("reactions", mode="before")
    @classmethod
    def _fill_reactions(cls, value: object) -> object:
        if value is None:
            return empty_reactions()
        if isinstance(value, dict):
            tally = empty_reactions()
            tally.update(value)
            return tally
        return value

    @property
    def total_reactions(self) -> int:
        return sum(self.reactions.values())


class ConfessionCreate(CamelModel):
    """Schema for submitting a new confession."""

    type: PostType = "text"
    text: str = Field(..., max_length=5000, description="Body text, or the question for polls")
    image: str | None = Field(None, description="Image as a data URL")
    audio: str | None = Field(None, description="Audio clip as a data URL")
    video: str | None = Field(None, description="Video clip as a data URL")
    poll_options: list[str] | None = Field(None, description="Option labels for polls")
    confirm_unsafe: bool = Field(
        False,
        description="Post even when the analysis flags the content as unsafe",
    )


class ReactionCreate(CamelModel):
    kind: ReactionType


class CommentCreate(CamelModel):
    text: str = Field(..., min_length=1, max_length=1000)


class VoteCreate(CamelModel):
    option_id: str
