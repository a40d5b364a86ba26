from __future__ import annotations

from capture.camera import CameraUnavailable


class AnalysisError(RuntimeError):
    """Base class for failures surfaced to the user as a single message."""

    @property
    def user_message(self) -> str:
        return f"Failed to analyze image: {self}"


class NoImageSelected(AnalysisError):
    def __init__(self) -> None:
        super().__init__("Please upload or capture an image first")

    @property
    def user_message(self) -> str:
        return str(self)


class AnalysisInProgress(AnalysisError):
    def __init__(self) -> None:
        super().__init__("An analysis is already in progress")

    @property
    def user_message(self) -> str:
        return str(self)


class ApiError(AnalysisError):
    def __init__(self, status: int, detail: str | None = None) -> None:
        self.status = status
        self.detail = detail
        super().__init__(f"API error: {status}")


class MalformedResponse(ApiError):
    """The service answered 2xx but the body is missing expected fields."""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(status, detail)
        self.args = (f"API error: {status} (unexpected response: {detail})",)


class TransportError(AnalysisError):
    """Network failure, timeout or an unparseable response body."""


def user_message(exc: Exception) -> str:
    if isinstance(exc, AnalysisError):
        return exc.user_message
    if isinstance(exc, CameraUnavailable):
        return "Camera access denied or not available"
    return f"Unexpected error: {exc}"


__all__ = [
    "AnalysisError",
    "AnalysisInProgress",
    "ApiError",
    "CameraUnavailable",
    "MalformedResponse",
    "NoImageSelected",
    "TransportError",
    "user_message",
]
