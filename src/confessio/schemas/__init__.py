"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .confession import (
    AnalysisResult,
    Avatar,
    Comment,
    CommentCreate,
    Confession,
    ConfessionCreate,
    PollOption,
    ReactionCreate,
    VoteCreate,
)
from .session import MutationResponse, SavedPhoto, SessionResponse, UserSessionData

__all__ = [
    "AnalysisResult", "Avatar", "Comment", "CommentCreate",
    "Confession", "ConfessionCreate", "PollOption",
    "ReactionCreate", "VoteCreate",
    "MutationResponse", "SavedPhoto", "SessionResponse", "UserSessionData",
]
