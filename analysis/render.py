from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .schemas import AnalysisResult

LOW = "low"
MEDIUM = "medium"
HIGH = "high"

# Display colour per severity bucket.
SEVERITY_COLORS = {LOW: "green", MEDIUM: "yellow", HIGH: "red"}

NO_CLASS_DETECTED = "No class detected"


def severity_of(score: float) -> str:
    if score < 3.5:
        return LOW
    if score < 7:
        return MEDIUM
    return HIGH


@dataclass(frozen=True)
class ScoreRow:
    label: str
    value: str


@dataclass(frozen=True)
class ScoreGroup:
    title: str
    rows: List[ScoreRow]
    aggregate_label: str
    aggregate_value: str
    severity: str

    @property
    def color(self) -> str:
        return SEVERITY_COLORS[self.severity]


@dataclass(frozen=True)
class NcfView:
    detected: bool
    text: str


@dataclass(frozen=True)
class ResultView:
    crack: ScoreGroup
    fungi: ScoreGroup
    ncf: NcfView

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crack": _group_dict(self.crack),
            "fungi": _group_dict(self.fungi),
            "ncf": {"detected": self.ncf.detected, "text": self.ncf.text},
        }


def _group_dict(group: ScoreGroup) -> Dict[str, Any]:
    return {
        "title": group.title,
        "rows": [{"label": row.label, "value": row.value} for row in group.rows],
        "aggregate_label": group.aggregate_label,
        "aggregate_value": group.aggregate_value,
        "severity": group.severity,
        "color": group.color,
    }


def _score_group(
    title: str, class_scores: Dict[str, float], aggregate_label: str, aggregate: float
) -> ScoreGroup:
    return ScoreGroup(
        title=title,
        rows=[ScoreRow(label=name, value=f"{score:.3f}") for name, score in class_scores.items()],
        aggregate_label=aggregate_label,
        aggregate_value=f"{aggregate:.2f}",
        severity=severity_of(aggregate),
    )


def ncf_text(result: AnalysisResult) -> NcfView:
    predicted = result.ncf.predicted_class
    if not predicted:
        return NcfView(detected=False, text=NO_CLASS_DETECTED)
    confidence = result.ncf.confidence
    if confidence is None:
        return NcfView(detected=True, text=predicted)
    return NcfView(detected=True, text=f"{predicted} ({confidence:.2f})")


def build_view(result: AnalysisResult) -> ResultView:
    return ResultView(
        crack=_score_group(
            "Crack Detection",
            result.crack.class_scores,
            "Total Crack Score",
            result.crack.total_crack_score,
        ),
        fungi=_score_group(
            "Fungi Detection",
            result.fungi.class_scores,
            "Weighted Average Fungi Score",
            result.fungi.weighted_average_score,
        ),
        ncf=ncf_text(result),
    )


def render_text(result: AnalysisResult) -> str:
    """Plain-text report used by the command line client."""
    view = build_view(result)
    lines = ["Analysis Results", ""]
    for group in (view.crack, view.fungi):
        lines.append(group.title)
        for row in group.rows:
            lines.append(f"  {row.label}: {row.value}")
        lines.append(
            f"  {group.aggregate_label}: {group.aggregate_value} [{group.severity}]"
        )
        lines.append("")
    lines.append("Normal/Crescent/Fissure")
    if view.ncf.detected:
        lines.append(f"  Predicted Class: {view.ncf.text}")
    else:
        lines.append(f"  {view.ncf.text}")
    return "\n".join(lines)


__all__ = [
    "HIGH",
    "LOW",
    "MEDIUM",
    "NO_CLASS_DETECTED",
    "NcfView",
    "ResultView",
    "SEVERITY_COLORS",
    "ScoreGroup",
    "ScoreRow",
    "build_view",
    "ncf_text",
    "render_text",
    "severity_of",
]
