"""Capture-and-style "matchmaker" photo booth.

The booth holds the camera only while its view is open, turns a mirrored
still into a styled polaroid through the image model, and keeps a gallery
of saved polaroids in the client's local storage.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from datetime import date
from typing import Final, Protocol

from confessio.schemas.session import MatchmakerStatus, SavedPhoto, StyleFilter
from confessio.services.gemini import GeminiError
from confessio.services.local_store import GALLERY_KEY, LocalStore
from confessio.services.media import (
    MediaDevice,
    MediaDeviceError,
    MediaSession,
    encode_jpeg_data_url,
    mirror_frame,
)

logger = logging.getLogger(__name__)

FILTER_CYCLE: Final[tuple[StyleFilter, ...]] = ("cartoon", "anime", "kawaii", "sketch")
FILTER_LABELS: Final[dict[StyleFilter, str]] = {
    "cartoon": "Pixar 3D",
    "sketch": "Pencil",
    "kawaii": "Soft Cute",
    "anime": "Anime",
}
FORTUNES: Final[tuple[str, ...]] = (
    "Your soulmate is in the library.",
    "Love is closer than you think.",
    "Study date imminent.",
    "Someone has a crush on you.",
    "Your vibe attracts your tribe.",
    "Lucky color: Red.",
    "Focus on yourself today.",
    "A surprise is coming.",
)
DEVELOP_SECONDS: Final[float] = 3.0


class ImageStyler(Protocol):
    async def generate_styled_image(self, image: str, style: StyleFilter) -> str: ...


class Matchmaker:
    """Camera lifecycle, capture pipeline and gallery for one client."""

    def __init__(
        self,
        device: MediaDevice,
        store: LocalStore,
        styler: ImageStyler,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.camera = MediaSession(device)
        self.store = store
        self.styler = styler
        self.rng = rng or random.Random()
        self.clock = clock

        self.filter_mode: StyleFilter = "cartoon"
        self.gallery: list[SavedPhoto] = self._load_gallery()
        self.current_photo: str | None = None
        self.pending_capture: str | None = None
        self.processing = False
        self._developing_until = 0.0

    @property
    def camera_on(self) -> bool:
        return self.camera.active

    @property
    def developing(self) -> bool:
        return self.current_photo is not None and self.clock() < self._developing_until

    # --- view lifecycle -----------------------------------------------------------
    def enter(self) -> None:
        """Open the booth: restore the gallery and start the camera."""
        self.gallery = self._load_gallery()
        self.start_camera()

    def exit(self) -> None:
        """Leave the booth; the camera is always released."""
        self.stop_camera()

    def start_camera(self) -> bool:
        if self.camera.active:
            return True
        try:
            self.camera.acquire()
        except MediaDeviceError as exc:
            logger.error("Camera error: %s", exc)
            return False
        return True

    def stop_camera(self) -> None:
        self.camera.release()

    def toggle_power(self) -> bool:
        """Switch the camera on or off and return the new state."""
        if self.camera.active:
            self.stop_camera()
        else:
            self.start_camera()
        return self.camera.active

    def cycle_filter(self) -> StyleFilter:
        idx = FILTER_CYCLE.index(self.filter_mode)
        self.filter_mode = FILTER_CYCLE[(idx + 1) % len(FILTER_CYCLE)]
        return self.filter_mode

    # --- capture ------------------------------------------------------------------
    async def capture(self) -> str | None:
        """Snap, mirror and style a still.

        Returns the developed photo, or None when capture is not possible
        (camera off, a capture in flight, or an unsaved photo pending).
        """
        if not self.camera.active or self.processing or self.pending_capture:
            return None

        try:
            frame = self.camera.stream.read_frame()
        except MediaDeviceError as exc:
            logger.error("Camera frame unavailable: %s", exc)
            return None

        original = encode_jpeg_data_url(mirror_frame(frame))
        self.pending_capture = original
        self.current_photo = None
        self.processing = True
        try:
            photo = await self.styler.generate_styled_image(original, self.filter_mode)
        except GeminiError as exc:
            logger.error("AI generation failed, showing original capture: %s", exc)
            photo = original
        except Exception:
            # Leave the booth ready for a retake.
            self.pending_capture = None
            raise
        finally:
            self.processing = False

        self.current_photo = photo
        self._developing_until = self.clock() + DEVELOP_SECONDS
        return photo

    def save_current(self) -> SavedPhoto | None:
        """Pin the developed photo to the gallery."""
        if self.current_photo is None:
            return None
        photo = SavedPhoto(
            id=str(int(time.time() * 1000)),
            url=self.current_photo,
            date=date.today().isoformat(),
            rotation=self.rng.uniform(-5, 5),
            x_offset=self.rng.uniform(-10, 10),
            y_offset=self.rng.uniform(-10, 10),
            filter=self.filter_mode,
            caption=self.rng.choice(FORTUNES),
        )
        self.gallery = [photo, *self.gallery]
        self._persist_gallery()
        self.pending_capture = None
        self.current_photo = None
        return photo

    def discard_current(self) -> None:
        self.pending_capture = None
        self.current_photo = None

    def delete_photo(self, photo_id: str) -> bool:
        remaining = [photo for photo in self.gallery if photo.id != photo_id]
        if len(remaining) == len(self.gallery):
            return False
        self.gallery = remaining
        self._persist_gallery()
        return True

    def status(self) -> MatchmakerStatus:
        return MatchmakerStatus(
            camera_on=self.camera_on,
            processing=self.processing,
            developing=self.developing,
            filter=self.filter_mode,
            current_photo=self.current_photo,
            gallery=list(self.gallery),
        )

    # --- storage ------------------------------------------------------------------
    def _load_gallery(self) -> list[SavedPhoto]:
        saved = self.store.get_item(GALLERY_KEY)
        if not isinstance(saved, list):
            return []
        photos: list[SavedPhoto] = []
        for entry in saved:
            try:
                photos.append(SavedPhoto.model_validate(entry))
            except ValueError:
                logger.warning("Skipping malformed gallery entry")
        return photos

    def _persist_gallery(self) -> None:
        self.store.set_item(
            GALLERY_KEY,
            [photo.model_dump(by_alias=True) for photo in self.gallery],
        )
