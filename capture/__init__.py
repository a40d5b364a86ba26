from __future__ import annotations

from .acquisition import AcquisitionController, CameraSession, ImageSource
from .camera import CameraUnavailable, Frame, OpenCVCamera, StubCamera

__all__ = [
    "AcquisitionController",
    "CameraSession",
    "CameraUnavailable",
    "Frame",
    "ImageSource",
    "OpenCVCamera",
    "StubCamera",
]
