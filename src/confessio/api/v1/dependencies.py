"""Shared API dependencies for client identity and common functionality."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from confessio.db.session import get_db
from confessio.services.app_state import AppState
from confessio.services.registry import ClientStateRegistry, get_client_registry

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_registry() -> ClientStateRegistry:
    """Return the shared client state registry."""
    return get_client_registry()


RegistryDep = Annotated[ClientStateRegistry, Depends(get_registry)]


def get_app_state(
    x_client_id: Annotated[
        str,
        Header(
            min_length=8,
            max_length=128,
            description="Pseudonymous per-browser identifier",
        ),
    ],
    registry: RegistryDep,
) -> AppState:
    """Resolve the caller's view-model from the ``X-Client-Id`` header.

    There is no authentication; the identifier only selects which locally
    persisted session and UI state the request operates on.
    """
    return registry.get(x_client_id)


# Type alias for the current client's view-model
AppStateDep = Annotated[AppState, Depends(get_app_state)]
