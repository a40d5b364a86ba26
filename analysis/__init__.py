from __future__ import annotations

from .client import AnalysisApi, TongueApiHttpClient
from .errors import (
    AnalysisError,
    AnalysisInProgress,
    ApiError,
    MalformedResponse,
    NoImageSelected,
    TransportError,
)
from .render import severity_of
from .schemas import AnalysisResult
from .session import AnalyzerSession

__all__ = [
    "AnalysisApi",
    "AnalysisError",
    "AnalysisInProgress",
    "AnalysisResult",
    "AnalyzerSession",
    "ApiError",
    "MalformedResponse",
    "NoImageSelected",
    "TongueApiHttpClient",
    "TransportError",
    "severity_of",
]
