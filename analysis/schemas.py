from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError


class CrackScores(BaseModel):
    class_scores: Dict[str, float] = Field(..., description="Score per crack class")
    total_crack_score: float


class FungiScores(BaseModel):
    class_scores: Dict[str, float] = Field(..., description="Score per fungi class")
    weighted_average_score: float


class NcfPrediction(BaseModel):
    predicted_class: str | None = Field(
        default=None, description="Normal/Crescent/Fissure label, if any"
    )
    confidence: float | None = None


class AnalysisResult(BaseModel):
    crack: CrackScores
    fungi: FungiScores
    ncf: NcfPrediction


def describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        problems.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(problems)


def parse_analysis_result(payload: Any) -> AnalysisResult:
    """Validate a decoded JSON body; raises ``ValidationError`` on bad shape."""
    return AnalysisResult.model_validate(payload)


__all__ = [
    "AnalysisResult",
    "CrackScores",
    "FungiScores",
    "NcfPrediction",
    "describe_validation_error",
    "parse_analysis_result",
]
