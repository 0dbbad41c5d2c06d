"""Media device abstractions and scoped stream acquisition."""

from __future__ import annotations

import base64
import binascii
import io
from collections.abc import Mapping
from types import TracebackType
from typing import Any, Final, Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

CAMERA_CONSTRAINTS: Final[dict[str, Any]] = {
    "video": {"facingMode": "user", "width": {"ideal": 720}, "height": {"ideal": 720}},
}
JPEG_QUALITY: Final[int] = 80


class MediaDeviceError(RuntimeError):
    """Raised when a device is unavailable or access is denied."""


class MediaStream(Protocol):
    def read_frame(self) -> Image.Image: ...

    def stop(self) -> None: ...


class MediaDevice(Protocol):
    def open(self, constraints: Mapping[str, Any]) -> MediaStream: ...


class MediaSession:
    """Exclusive hold on a device stream with guaranteed release.

    ``acquire`` is a no-op while a stream is held and ``release`` is safe to
    call repeatedly. Used as a context manager it releases on every exit path.
    """

    def __init__(
        self,
        device: MediaDevice,
        constraints: Mapping[str, Any] | None = None,
    ) -> None:
        self.device = device
        self.constraints = dict(constraints or CAMERA_CONSTRAINTS)
        self._stream: MediaStream | None = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    @property
    def stream(self) -> MediaStream:
        if self._stream is None:
            raise MediaDeviceError("No active media stream")
        return self._stream

    def acquire(self) -> MediaStream:
        if self._stream is None:
            self._stream = self.device.open(self.constraints)
        return self._stream

    def release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()

    def __enter__(self) -> MediaSession:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class UploadedFrameStream:
    """Stream whose frames are pushed by the browser over HTTP."""

    def __init__(self) -> None:
        self._frame: Image.Image | None = None
        self.stopped = False

    def push(self, frame: Image.Image) -> None:
        if self.stopped:
            raise MediaDeviceError("Stream has been stopped")
        self._frame = frame

    def read_frame(self) -> Image.Image:
        if self.stopped:
            raise MediaDeviceError("Stream has been stopped")
        if self._frame is None:
            raise MediaDeviceError("No frame has been received yet")
        return self._frame

    def stop(self) -> None:
        self.stopped = True
        self._frame = None


class UploadedFrameDevice:
    """Camera stand-in for a remote browser; the latest opened stream receives pushes."""

    def __init__(self) -> None:
        self._current: UploadedFrameStream | None = None

    def open(self, constraints: Mapping[str, Any]) -> UploadedFrameStream:
        if "video" not in constraints:
            raise MediaDeviceError("Only video capture is supported")
        self._current = UploadedFrameStream()
        return self._current

    def push(self, frame: Image.Image) -> None:
        if self._current is None or self._current.stopped:
            raise MediaDeviceError("Camera is off")
        self._current.push(frame)


def decode_image_data_url(data_url: str) -> Image.Image:
    """Decode a base64 image (data URL or bare payload) into an RGB image."""
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(payload, validate=True)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as exc:
        raise ValueError("Frame is not a decodable image") from exc
    return image.convert("RGB")


def encode_jpeg_data_url(image: Image.Image, quality: int = JPEG_QUALITY) -> str:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def mirror_frame(image: Image.Image) -> Image.Image:
    """Flip horizontally so the still matches the mirrored live preview."""
    return ImageOps.mirror(image)
