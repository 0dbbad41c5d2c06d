"""Search endpoints for the Confess.io API."""

from fastapi import APIRouter, Query

from confessio.api.v1.dependencies import AppStateDep
from confessio.schemas.confession import Confession

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/", response_model=list[Confession])
async def search(
    state: AppStateDep,
    q: str = Query("", max_length=200, description="Text or tag fragment"),
) -> list[Confession]:
    """Return confessions whose text or tags contain ``q``, ignoring case.

    A blank query returns no results.
    """
    state.set_search_query(q)
    return state.search_results()


@router.get("/trending", response_model=list[str])
async def trending_tags(state: AppStateDep) -> list[str]:
    """Return the ten most used tags across loaded confessions."""
    return state.trending_tags()
