from __future__ import annotations

from dataclasses import dataclass
import io
import logging
import pathlib
from typing import Callable, Protocol

from PIL import Image


logger = logging.getLogger(__name__)

JPEG_QUALITY = 95


class CameraUnavailable(RuntimeError):
    """Raised when the camera cannot be opened (permission or missing device)."""


@dataclass
class Frame:
    """Container for a captured frame."""

    data: bytes
    mime: str = "image/jpeg"


class Camera(Protocol):
    def read_frame(self) -> Frame: ...

    def release(self) -> None: ...


CameraFactory = Callable[[], Camera]


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class StubCamera:
    """Camera stand-in that serves a sample image or a generated placeholder."""

    def __init__(self, sample_path: pathlib.Path | None = None) -> None:
        self._sample_path = sample_path
        self.released = False
        self.frames_read = 0

    def read_frame(self) -> Frame:
        if self.released:
            raise RuntimeError("Camera has been released")
        self.frames_read += 1
        if self._sample_path and self._sample_path.exists():
            with Image.open(self._sample_path) as image:
                return Frame(data=encode_jpeg(image))
        placeholder = Image.new("RGB", (64, 48), color=(196, 110, 118))
        return Frame(data=encode_jpeg(placeholder))

    def release(self) -> None:
        self.released = True


class OpenCVCamera:
    """Capture frames from an OpenCV-compatible source (USB/RTSP)."""

    _BACKEND_ALIASES = {
        "any": "CAP_ANY",
        "auto": "CAP_ANY",
        "dshow": "CAP_DSHOW",
        "directshow": "CAP_DSHOW",
        "msmf": "CAP_MSMF",
        "mediafoundation": "CAP_MSMF",
        "v4l2": "CAP_V4L2",
        "avfoundation": "CAP_AVFOUNDATION",
        "opencv": "CAP_ANY",
    }

    def __init__(
        self,
        source: int | str = 0,
        *,
        resolution: tuple[int, int] | None = None,
        backend: str | int | None = None,
        warmup_frames: int = 2,
        quality: int = JPEG_QUALITY,
    ) -> None:
        try:
            import cv2  # type: ignore
        except ImportError as exc:  # pragma: no cover - depends on optional dep
            raise CameraUnavailable("opencv-python is required for OpenCVCamera") from exc

        self._cv2 = cv2
        self._quality = quality
        self._source = source
        self._cap = cv2.VideoCapture(source, self._resolve_backend(backend, cv2))
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise CameraUnavailable(f"Unable to open camera source {source!r}")
        if resolution:
            width, height = resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        if warmup_frames > 0:
            self._warmup(warmup_frames)
        logger.info("Opened camera source %r", source)

    def _resolve_backend(self, backend: str | int | None, cv2_module) -> int:
        if backend is None:
            return cv2_module.CAP_ANY
        if isinstance(backend, int):
            return backend
        key = backend.strip().lower()
        attr_name = self._BACKEND_ALIASES.get(key)
        if attr_name is None:
            raise ValueError(f"Unknown OpenCV backend alias: {backend!r}")
        return getattr(cv2_module, attr_name, cv2_module.CAP_ANY)

    def _warmup(self, warmup_frames: int) -> None:
        for _ in range(warmup_frames):
            ok, _ = self._cap.read()
            if not ok:
                break

    def read_frame(self) -> Frame:
        if self._cap is None:
            raise RuntimeError("Camera has been released")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise RuntimeError("Failed to capture frame from camera")
        success, buffer = self._cv2.imencode(
            ".jpg", frame, [int(self._cv2.IMWRITE_JPEG_QUALITY), self._quality]
        )
        if not success:
            raise RuntimeError("OpenCV failed to encode frame as JPEG")
        return Frame(data=buffer.tobytes())

    def release(self) -> None:
        if getattr(self, "_cap", None) is not None:
            self._cap.release()
            self._cap = None
            logger.info("Released camera source %r", self._source)

    def __del__(self) -> None:  # pragma: no cover - destructor best effort
        try:
            self.release()
        except Exception:
            pass


def parse_resolution(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise ValueError("resolution must be WIDTHxHEIGHT")
    width, height = parts
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise ValueError("resolution must be numeric") from exc


def parse_backend(value: str | None) -> str | int | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return value


def check_backend(backend: str | int | None) -> str | int | None:
    """Reject OpenCV backend aliases that `OpenCVCamera` would not resolve."""
    aliases = OpenCVCamera._BACKEND_ALIASES
    if isinstance(backend, str) and backend.strip().lower() not in aliases:
        known = ", ".join(sorted(aliases))
        raise ValueError(
            f"Unknown OpenCV backend alias: {backend!r} (expected one of {known} or an integer)"
        )
    return backend


def build_camera_factory(
    kind: str,
    source: str,
    resolution: tuple[int, int] | None = None,
    backend: str | int | None = None,
    warmup_frames: int = 2,
) -> CameraFactory:
    """Return a callable that opens a fresh camera each time camera mode starts."""
    if kind == "opencv":
        try:
            converted_source: int | str = int(source)
        except ValueError:
            converted_source = source

        def open_opencv() -> Camera:
            return OpenCVCamera(
                source=converted_source,
                resolution=resolution,
                backend=backend,
                warmup_frames=warmup_frames,
            )

        return open_opencv

    sample = pathlib.Path(source) if source else None

    def open_stub() -> Camera:
        return StubCamera(sample_path=sample if sample and sample.exists() else None)

    return open_stub


__all__ = [
    "Camera",
    "CameraFactory",
    "CameraUnavailable",
    "Frame",
    "JPEG_QUALITY",
    "OpenCVCamera",
    "StubCamera",
    "build_camera_factory",
    "check_backend",
    "encode_jpeg",
    "parse_backend",
    "parse_resolution",
]
