from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests
from pydantic import ValidationError

from capture.acquisition import ImageSource

from .config import (
    ANALYZE_PATH,
    DEFAULT_API_BASE_URL,
    DEFAULT_API_TIMEOUT,
    DEFAULT_CONF,
    DEFAULT_IOU,
    AnalyzerConfig,
)
from .errors import ApiError, MalformedResponse, TransportError
from .schemas import AnalysisResult, describe_validation_error, parse_analysis_result


logger = logging.getLogger(__name__)


class AnalysisApi(Protocol):
    def analyze(self, source: ImageSource) -> AnalysisResult:
        ...


@dataclass
class TongueApiHttpClient:
    base_url: str = DEFAULT_API_BASE_URL
    timeout: float = DEFAULT_API_TIMEOUT
    conf: str = DEFAULT_CONF
    iou: str = DEFAULT_IOU
    session: requests.Session = field(default_factory=requests.Session)

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> TongueApiHttpClient:
        return cls(
            base_url=config.api_base_url,
            timeout=config.api_timeout,
            conf=config.conf,
            iou=config.iou,
        )

    @property
    def analyze_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{ANALYZE_PATH}"

    def analyze(self, source: ImageSource) -> AnalysisResult:
        files = {"file": (source.upload_name, source.data, source.mime)}
        data = {"conf": self.conf, "iou": self.iou}
        logger.info(
            "Submitting %s image (%d bytes) to %s", source.kind, len(source.data), self.analyze_url
        )
        try:
            response = self.session.post(
                self.analyze_url,
                files=files,
                data=data,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError("Timed out waiting for analysis response") from exc
        except requests.RequestException as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        status = response.status_code
        if not 200 <= status < 300:
            logger.warning("Analysis API returned status %s", status)
            raise ApiError(status, response.text[:500] if response.text else None)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON in analysis response: {exc}") from exc

        try:
            return parse_analysis_result(payload)
        except ValidationError as exc:
            detail = describe_validation_error(exc)
            logger.warning("Analysis response failed validation: %s", detail)
            raise MalformedResponse(status, detail) from exc

    def close(self) -> None:
        self.session.close()


__all__ = ["AnalysisApi", "TongueApiHttpClient"]
