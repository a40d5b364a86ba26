from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from capture.acquisition import ImageSource

from .errors import MalformedResponse
from .schemas import AnalysisResult, describe_validation_error, parse_analysis_result


SAMPLE_RESPONSE: Dict[str, Any] = {
    "crack": {
        "class_scores": {"light": 1.204, "moderate": 0.873, "severe": 0.112},
        "total_crack_score": 2.19,
    },
    "fungi": {
        "class_scores": {"white_coating": 4.512, "yellow_coating": 1.337},
        "weighted_average_score": 3.92,
    },
    "ncf": {"predicted_class": "Fissure", "confidence": 0.82},
}


@dataclass
class MockTongueApi:
    """Offline stand-in for the analysis service that replays a canned response."""

    response: Dict[str, Any] = field(default_factory=lambda: dict(SAMPLE_RESPONSE))
    records: List[ImageSource] = field(default_factory=list)

    def analyze(self, source: ImageSource) -> AnalysisResult:
        self.records.append(source)
        try:
            return parse_analysis_result(self.response)
        except ValidationError as exc:
            raise MalformedResponse(200, describe_validation_error(exc)) from exc


__all__ = ["MockTongueApi", "SAMPLE_RESPONSE"]
