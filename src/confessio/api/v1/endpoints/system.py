"""System and transparency endpoints for the Confess.io API."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import func, select

from confessio.api.v1.dependencies import RegistryDep, SessionDep
from confessio.core.settings import settings
from confessio.models import ConfessionRow
from confessio.services.app_state import (
    XP_COMMENT,
    XP_FIRST_REACTION,
    XP_PER_LEVEL,
    XP_POST,
    XP_VOTE,
)

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config(db: SessionDep, registry: RegistryDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; suitable for transparency UIs.
    Analysis fails open, so ``moderation.fail_open`` is always true.
    """
    confession_count = db.execute(select(func.count()).select_from(ConfessionRow)).scalar() or 0
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "ai": {
            "enabled": settings.gemini_enabled,
            "analysis_model": settings.gemini_analysis_model,
            "image_model": settings.gemini_image_model,
        },
        "moderation": {
            "fail_open": True,
            "server_enforced": False,
        },
        "points": {
            "post": XP_POST,
            "first_reaction": XP_FIRST_REACTION,
            "comment": XP_COMMENT,
            "vote": XP_VOTE,
            "per_level": XP_PER_LEVEL,
        },
        "stats": {
            "confessions": int(confession_count),
            "loaded_clients": len(registry),
        },
    }
