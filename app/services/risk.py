"""
Risk classifier collaborator.

The engine only depends on `classify(moods) -> RiskAssessment`. The default
implementation is a heuristic over the 30-day mood window; an AI-backed
classifier can be injected through EngineContext instead.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from app.models.user import RiskLevel

_LOW_MOOD = 2
_LOW_MEAN = 2.5
_LOW_RUN  = 3

_HIGH_THRESHOLD   = Decimal("0.7")
_MEDIUM_THRESHOLD = Decimal("0.4")


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    score: Decimal


class RiskClassifier(Protocol):
    def classify(self, moods: Sequence[int]) -> RiskAssessment:
        """`moods` is ordered oldest first."""
        ...


def _trailing_low_run(moods: Sequence[int]) -> int:
    run = 0
    for mood in reversed(moods):
        if mood > _LOW_MOOD:
            break
        run += 1
    return run


class HeuristicRiskClassifier:
    def classify(self, moods: Sequence[int]) -> RiskAssessment:
        if not moods:
            return RiskAssessment(RiskLevel.low, Decimal("0.000"))

        score = Decimal("0")
        if sum(moods) / len(moods) < _LOW_MEAN:
            score += Decimal("0.4")
        if _trailing_low_run(moods) >= _LOW_RUN:
            score += Decimal("0.3")
        if moods[-1] <= _LOW_MOOD:
            score += Decimal("0.3")
        score = score.quantize(Decimal("0.001"))

        if score >= _HIGH_THRESHOLD:
            level = RiskLevel.high
        elif score >= _MEDIUM_THRESHOLD:
            level = RiskLevel.medium
        else:
            level = RiskLevel.low
        return RiskAssessment(level, score)
