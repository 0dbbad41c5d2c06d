# src/confessio/schemas/session.py
"""Schemas for client-local session data and UI state."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from .confession import Avatar, CamelModel, Confession, ReactionType

Tab = Literal["home", "search", "matchmaker", "profile"]
FeedFilter = Literal["all", "popular", "polls"]
Theme = Literal["dark", "light"]
StyleFilter = Literal["cartoon", "sketch", "kawaii", "anime"]


class UserSessionData(CamelModel):
    """Pseudonymous identity, experience points and per-post choices."""

    avatar: Avatar
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    reacted_posts: dict[str, ReactionType] = Field(default_factory=dict)
    voted_polls: dict[str, str] = Field(default_factory=dict)


class SavedPhoto(CamelModel):
    """A matchmaker polaroid pinned to the client's gallery."""

    id: str
    url: str
    date: str
    rotation: float
    x_offset: float
    y_offset: float
    filter: StyleFilter
    caption: str


class SessionResponse(CamelModel):
    session: UserSessionData
    theme: Theme
    active_tab: Tab
    feed_filter: FeedFilter
    search_query: str


class TabUpdate(CamelModel):
    tab: Tab


class MutationResponse(CamelModel):
    """Outcome of an optimistic mutation.

    ``synced`` is False when the remote update failed and local state was
    rolled back; ``applied`` is False when the request was a no-op.
    """

    confession: Confession
    session: UserSessionData
    synced: bool
    applied: bool = True


class MatchmakerStatus(CamelModel):
    camera_on: bool
    processing: bool
    developing: bool
    filter: StyleFilter
    current_photo: str | None = None
    gallery: list[SavedPhoto] = Field(default_factory=list)


class CaptureRequest(CamelModel):
    frame: str = Field(..., description="Raw camera frame as a data URL")


class PowerRequest(CamelModel):
    on: bool
