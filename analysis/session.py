from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Union

from capture.acquisition import AcquisitionController, ImageSource
from capture.camera import CameraFactory, CameraUnavailable, Frame

from .client import AnalysisApi
from .errors import AnalysisInProgress, NoImageSelected, user_message
from .render import build_view
from .schemas import AnalysisResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    name: str = "idle"


@dataclass(frozen=True)
class Submitting:
    name: str = "submitting"


@dataclass(frozen=True)
class Succeeded:
    result: AnalysisResult
    name: str = "succeeded"


@dataclass(frozen=True)
class Failed:
    message: str
    name: str = "failed"


RequestState = Union[Idle, Submitting, Succeeded, Failed]


class AnalyzerSession:
    """Coordinates acquisition -> submission -> result for one page.

    State changes happen under a lock; the network call itself runs outside
    it so the page stays readable while a submission is in flight.
    """

    def __init__(
        self,
        api: AnalysisApi,
        camera_factory: CameraFactory | None = None,
        controller: AcquisitionController | None = None,
    ) -> None:
        self._api = api
        self._controller = controller or AcquisitionController(camera_factory)
        self._lock = threading.Lock()
        self._request: RequestState = Idle()
        self._error: str | None = None

    @property
    def controller(self) -> AcquisitionController:
        return self._controller

    @property
    def request_state(self) -> RequestState:
        return self._request

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def source(self) -> ImageSource | None:
        return self._controller.source

    @property
    def result(self) -> AnalysisResult | None:
        request = self._request
        if isinstance(request, Succeeded):
            return request.result
        return None

    def upload_file(
        self, data: bytes, mime: str | None = None, filename: str | None = None
    ) -> ImageSource:
        with self._lock:
            source = self._controller.upload_file(data, mime=mime, filename=filename)
            self._reset_result()
            return source

    def open_camera(self) -> None:
        with self._lock:
            self._reset_result()
            try:
                self._controller.open_camera()
            except CameraUnavailable as exc:
                self._error = user_message(exc)
                raise

    def capture(self) -> ImageSource | None:
        with self._lock:
            return self._controller.capture()

    def preview(self) -> Frame | None:
        with self._lock:
            return self._controller.preview()

    def close_camera(self) -> None:
        with self._lock:
            self._controller.close_camera()

    def clear(self) -> None:
        with self._lock:
            self._controller.clear()
            self._reset_result()

    def analyze(self) -> AnalysisResult:
        with self._lock:
            if isinstance(self._request, Submitting):
                raise AnalysisInProgress()
            source = self._controller.source
            if source is None:
                exc = NoImageSelected()
                self._error = exc.user_message
                raise exc
            generation = self._controller.generation
            self._request = Submitting()
            self._error = None

        try:
            result = self._api.analyze(source)
        except Exception as exc:
            message = user_message(exc)
            logger.warning("Analysis failed: %s", message)
            with self._lock:
                if self._controller.generation == generation:
                    self._request = Failed(message=message)
                    self._error = message
                else:
                    self._request = Idle()
            raise

        with self._lock:
            if self._controller.generation == generation:
                self._request = Succeeded(result=result)
            else:
                logger.info("Discarding analysis result for a replaced image")
                self._request = Idle()
        return result

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            controller = self._controller
            source = controller.source
            request = self._request
            result = self.result
            image = None
            if source is not None:
                image = {
                    "url": source.display_url,
                    "kind": source.kind,
                    "mime": source.mime,
                    "filename": source.filename,
                    "size": len(source.data),
                }
            submitting = isinstance(request, Submitting)
            return {
                "mode": controller.mode.name,
                "camera_open": controller.camera_open,
                "image": image,
                "picker_token": controller.picker_token,
                "request": {
                    "state": request.name,
                    "message": request.message if isinstance(request, Failed) else None,
                },
                "loading": submitting,
                "can_analyze": source is not None and not submitting,
                "error": self._error,
                "result": build_view(result).to_dict() if result is not None else None,
                "raw_result": result.model_dump() if result is not None else None,
            }

    def close(self) -> None:
        with self._lock:
            self._controller.close()

    def _reset_result(self) -> None:
        self._error = None
        if not isinstance(self._request, Submitting):
            self._request = Idle()


__all__ = [
    "AnalyzerSession",
    "Failed",
    "Idle",
    "RequestState",
    "Submitting",
    "Succeeded",
]
