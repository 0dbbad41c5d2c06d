"""Confession endpoints for the Confess.io API."""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from confessio.api.v1.dependencies import AppStateDep
from confessio.schemas.confession import (
    CommentCreate,
    Confession,
    ConfessionCreate,
    ReactionCreate,
    VoteCreate,
)
from confessio.schemas.session import FeedFilter, MutationResponse
from confessio.services.app_state import (
    ConfessionNotFoundError,
    ConfessionPersistError,
    InvalidInputError,
    MutationResult,
    UnsafeContentError,
)

router = APIRouter(prefix="/confessions", tags=["confessions"])
logger = logging.getLogger(__name__)


def _not_found(confession_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Confession {confession_id} not found",
    )


def _to_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        confession=result.confession,
        session=result.session,
        synced=result.synced,
        applied=result.applied,
    )


@router.get("/feed", response_model=list[Confession])
async def get_feed(
    state: AppStateDep,
    feed_filter: FeedFilter | None = Query(None, alias="filter", description="all, popular or polls"),
) -> list[Confession]:
    """Return the loaded confessions in feed order.

    Passing ``filter`` also makes it the client's current feed filter.
    """
    if feed_filter is not None:
        state.set_feed_filter(feed_filter)
    return state.feed()


@router.post("/refresh", response_model=list[Confession])
async def refresh_feed(state: AppStateDep) -> list[Confession]:
    """Reload every confession from the store."""
    state.refresh()
    return state.feed()


@router.get("/{confession_id}", response_model=Confession)
async def get_confession(confession_id: str, state: AppStateDep) -> Confession:
    try:
        return state.get(confession_id)
    except ConfessionNotFoundError as err:
        raise _not_found(confession_id) from err


@router.post("/", response_model=Confession, status_code=status.HTTP_201_CREATED)
async def create_confession(draft: ConfessionCreate, state: AppStateDep) -> Confession:
    """Analyze and publish a confession.

    Raises:
        HTTPException: 422 for invalid drafts, 409 when the analysis flags the
            draft and ``confirmUnsafe`` was not set, 503 when the store
            rejects the insert.
    """
    try:
        return await state.create_post(draft)
    except InvalidInputError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err
    except UnsafeContentError as err:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(err),
                "flagReason": err.flag_reason,
                "requiresConfirmation": True,
            },
        ) from err
    except ConfessionPersistError as err:
        logger.error("Confession insert failed for client %s", state.store.client_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(err),
        ) from err


@router.post("/{confession_id}/reactions", response_model=MutationResponse)
async def react(
    confession_id: str,
    reaction: ReactionCreate,
    state: AppStateDep,
) -> MutationResponse:
    """Toggle or swap the caller's reaction on a confession."""
    try:
        return _to_response(state.react(confession_id, reaction.kind))
    except ConfessionNotFoundError as err:
        raise _not_found(confession_id) from err


@router.post(
    "/{confession_id}/comments",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    confession_id: str,
    comment: CommentCreate,
    state: AppStateDep,
) -> MutationResponse:
    try:
        return _to_response(state.comment(confession_id, comment.text))
    except ConfessionNotFoundError as err:
        raise _not_found(confession_id) from err
    except InvalidInputError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err


@router.post("/{confession_id}/votes", response_model=MutationResponse)
async def cast_vote(
    confession_id: str,
    vote: VoteCreate,
    state: AppStateDep,
) -> MutationResponse:
    """Record the caller's vote on a poll; repeat votes are ignored."""
    try:
        return _to_response(state.vote(confession_id, vote.option_id))
    except ConfessionNotFoundError as err:
        raise _not_found(confession_id) from err
    except InvalidInputError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
