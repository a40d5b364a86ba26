from __future__ import annotations

import io
import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from typing import Union

from PIL import Image

from .camera import CameraFactory, CameraUnavailable, Camera, Frame, build_camera_factory


logger = logging.getLogger(__name__)

UPLOADED_FILE = "uploaded"
CAPTURED_FRAME = "captured"

DISPLAY_URL_PREFIX = "/ui/image"


@dataclass(frozen=True)
class ImageSource:
    """The single image payload awaiting (or done with) analysis."""

    kind: str
    data: bytes
    mime: str
    display_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    filename: str | None = None

    @property
    def display_url(self) -> str:
        return f"{DISPLAY_URL_PREFIX}/{self.display_id}"

    @property
    def upload_name(self) -> str:
        if self.filename:
            return self.filename
        extension = mimetypes.guess_extension(self.mime) or ".jpg"
        if extension == ".jpe":
            extension = ".jpg"
        return f"{self.kind}{extension}"


class CameraSession:
    """Open camera handle; exists only while the controller is in camera mode."""

    def __init__(self, camera: Camera) -> None:
        self._camera: Camera | None = camera

    @property
    def active(self) -> bool:
        return self._camera is not None

    def read_frame(self) -> Frame:
        if self._camera is None:
            raise RuntimeError("Camera session already released")
        return self._camera.read_frame()

    def release(self) -> None:
        camera, self._camera = self._camera, None
        if camera is None:
            return
        try:
            camera.release()
        except Exception as exc:  # pragma: no cover - driver specific
            logger.warning("Camera release failed: %s", exc)


@dataclass(frozen=True)
class IdleMode:
    name: str = "idle"


@dataclass(frozen=True)
class CameraMode:
    session: CameraSession
    name: str = "camera"


@dataclass(frozen=True)
class ImageMode:
    source: ImageSource
    name: str = "image"


AcquisitionMode = Union[IdleMode, CameraMode, ImageMode]


def sniff_mime(data: bytes, filename: str | None = None) -> str:
    """Best-effort MIME type for an uploaded payload; never rejects the data."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (OSError, ValueError):
        image_format = None
    if image_format:
        mime = Image.MIME.get(image_format)
        if mime:
            return mime
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return "application/octet-stream"


class AcquisitionController:
    """Switches between idle, live camera and image modes.

    Every mode change goes through ``_set_mode`` which releases the camera
    session being left, so no exit path can leak an open capture device.
    """

    def __init__(self, camera_factory: CameraFactory | None = None) -> None:
        self._camera_factory = camera_factory or build_camera_factory("stub", "")
        self._mode: AcquisitionMode = IdleMode()
        self._generation = 0
        self._picker_token = 0

    @property
    def mode(self) -> AcquisitionMode:
        return self._mode

    @property
    def source(self) -> ImageSource | None:
        if isinstance(self._mode, ImageMode):
            return self._mode.source
        return None

    @property
    def camera_open(self) -> bool:
        return isinstance(self._mode, CameraMode)

    @property
    def generation(self) -> int:
        """Incremented whenever the image source is replaced or dropped."""
        return self._generation

    @property
    def picker_token(self) -> int:
        """Changes on ``clear`` so a file input can be reset and re-used."""
        return self._picker_token

    def upload_file(
        self, data: bytes, mime: str | None = None, filename: str | None = None
    ) -> ImageSource:
        source = ImageSource(
            kind=UPLOADED_FILE,
            data=data,
            mime=mime or sniff_mime(data, filename),
            filename=filename,
        )
        self._set_mode(ImageMode(source=source))
        logger.info(
            "Image uploaded name=%s mime=%s size=%d", filename, source.mime, len(data)
        )
        return source

    def open_camera(self) -> None:
        self._set_mode(IdleMode())
        try:
            camera = self._camera_factory()
        except (CameraUnavailable, RuntimeError, OSError, ValueError) as exc:
            logger.warning("Camera unavailable: %s", exc)
            raise CameraUnavailable("Camera access denied or not available") from exc
        self._set_mode(CameraMode(session=CameraSession(camera)))
        logger.info("Camera mode entered")

    def capture(self) -> ImageSource | None:
        mode = self._mode
        if not isinstance(mode, CameraMode):
            return None
        try:
            frame = mode.session.read_frame()
        except RuntimeError as exc:
            logger.warning("Frame capture failed: %s", exc)
            self._set_mode(IdleMode())
            return None
        source = ImageSource(kind=CAPTURED_FRAME, data=frame.data, mime=frame.mime)
        self._set_mode(ImageMode(source=source))
        logger.info("Captured frame size=%d", len(frame.data))
        return source

    def preview(self) -> Frame | None:
        mode = self._mode
        if not isinstance(mode, CameraMode):
            return None
        try:
            return mode.session.read_frame()
        except RuntimeError as exc:
            logger.debug("Preview frame unavailable: %s", exc)
            return None

    def close_camera(self) -> None:
        if isinstance(self._mode, CameraMode):
            self._set_mode(IdleMode())
            logger.info("Camera closed")

    def clear(self) -> None:
        self._set_mode(IdleMode())
        self._picker_token += 1

    def lookup(self, display_id: str) -> ImageSource | None:
        source = self.source
        if source is not None and source.display_id == display_id:
            return source
        return None

    def close(self) -> None:
        self._set_mode(IdleMode())

    def _set_mode(self, new_mode: AcquisitionMode) -> None:
        previous = self._mode
        if isinstance(previous, CameraMode):
            previous.session.release()
        if isinstance(previous, ImageMode) or isinstance(new_mode, ImageMode):
            self._generation += 1
        self._mode = new_mode


__all__ = [
    "AcquisitionController",
    "AcquisitionMode",
    "CAPTURED_FRAME",
    "CameraMode",
    "CameraSession",
    "DISPLAY_URL_PREFIX",
    "IdleMode",
    "ImageMode",
    "ImageSource",
    "UPLOADED_FILE",
    "sniff_mime",
]
