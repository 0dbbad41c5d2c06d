"""Client session endpoints for the Confess.io API."""

from fastapi import APIRouter

from confessio.api.v1.dependencies import AppStateDep
from confessio.schemas.session import SessionResponse, TabUpdate
from confessio.services.app_state import AppState

router = APIRouter(prefix="/session", tags=["session"])


def _snapshot(state: AppState) -> SessionResponse:
    return SessionResponse(
        session=state.session,
        theme=state.theme,
        active_tab=state.active_tab,
        feed_filter=state.feed_filter,
        search_query=state.search_query,
    )


@router.get("/", response_model=SessionResponse)
async def get_session(state: AppStateDep) -> SessionResponse:
    """Return the caller's avatar, points, choices and UI state."""
    return _snapshot(state)


@router.put("/tab", response_model=SessionResponse)
async def set_tab(update: TabUpdate, state: AppStateDep) -> SessionResponse:
    """Switch the active view.

    Opening the matchmaker acquires the camera; leaving it releases it.
    """
    state.set_active_tab(update.tab)
    return _snapshot(state)


@router.post("/theme/toggle", response_model=SessionResponse)
async def toggle_theme(state: AppStateDep) -> SessionResponse:
    state.toggle_theme()
    return _snapshot(state)
