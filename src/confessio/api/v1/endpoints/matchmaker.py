"""Matchmaker photo booth endpoints for the Confess.io API."""

from fastapi import APIRouter, HTTPException, Response, status

from confessio.api.v1.dependencies import AppStateDep
from confessio.schemas.session import CaptureRequest, MatchmakerStatus, PowerRequest, SavedPhoto
from confessio.services.app_state import AppState
from confessio.services.matchmaker import Matchmaker
from confessio.services.media import MediaDeviceError, UploadedFrameDevice, decode_image_data_url

router = APIRouter(prefix="/matchmaker", tags=["matchmaker"])


def _open_matchmaker(state: AppState) -> Matchmaker:
    if state.matchmaker is None or state.active_tab != "matchmaker":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Matchmaker is not open",
        )
    return state.matchmaker


def _require_matchmaker(state: AppState) -> Matchmaker:
    if state.matchmaker is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Matchmaker is not available",
        )
    return state.matchmaker


@router.get("/", response_model=MatchmakerStatus)
async def get_status(state: AppStateDep) -> MatchmakerStatus:
    return _require_matchmaker(state).status()


@router.post("/power", response_model=MatchmakerStatus)
async def set_power(request: PowerRequest, state: AppStateDep) -> MatchmakerStatus:
    matchmaker = _open_matchmaker(state)
    if request.on != matchmaker.camera_on:
        matchmaker.toggle_power()
    return matchmaker.status()


@router.post("/filter", response_model=MatchmakerStatus)
async def cycle_filter(state: AppStateDep) -> MatchmakerStatus:
    matchmaker = _require_matchmaker(state)
    matchmaker.cycle_filter()
    return matchmaker.status()


@router.post("/capture", response_model=MatchmakerStatus)
async def capture(request: CaptureRequest, state: AppStateDep) -> MatchmakerStatus:
    """Take the pushed frame as the camera's current frame and develop it.

    Raises:
        HTTPException: 409 when the booth is closed, the camera is off, or a
            previous photo is still pending; 422 for undecodable frames.
    """
    matchmaker = _open_matchmaker(state)
    try:
        frame = decode_image_data_url(request.frame)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(err),
        ) from err

    device = matchmaker.camera.device
    if not isinstance(device, UploadedFrameDevice):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Camera does not accept uploaded frames",
        )
    try:
        device.push(frame)
    except MediaDeviceError as err:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(err)) from err

    photo = await matchmaker.capture()
    if photo is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Save or discard the current photo before taking another",
        )
    return matchmaker.status()


@router.post("/save", response_model=SavedPhoto, status_code=status.HTTP_201_CREATED)
async def save_photo(state: AppStateDep) -> SavedPhoto:
    """Pin the developed photo to the gallery."""
    photo = _require_matchmaker(state).save_current()
    if photo is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No developed photo to save",
        )
    return photo


@router.post("/discard", response_model=MatchmakerStatus)
async def discard_photo(state: AppStateDep) -> MatchmakerStatus:
    matchmaker = _require_matchmaker(state)
    matchmaker.discard_current()
    return matchmaker.status()


@router.delete("/gallery/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(photo_id: str, state: AppStateDep) -> Response:
    if not _require_matchmaker(state).delete_photo(photo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
