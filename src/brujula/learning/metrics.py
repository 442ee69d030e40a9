"""
Métricas de calidad del ranking contra conversiones reales.
"""

from typing import Iterable

from pydantic import BaseModel, Field

from brujula.config import HIGH_SCORE_THRESHOLD
from brujula.models import PropertyScore


class RankingMetrics(BaseModel):
    """Precision/recall de los scores altos respecto de las conversiones."""

    precision: float = Field(..., ge=0, le=1)
    recall: float = Field(..., ge=0, le=1)
    f1: float = Field(..., ge=0, le=1)
    total_scores: int
    high_scores: int
    conversions: int
    average_score: float
    threshold: float


def compute_ranking_metrics(
    scores: Iterable[PropertyScore],
    converted_ids: Iterable[str],
    threshold: float = HIGH_SCORE_THRESHOLD,
) -> RankingMetrics:
    """
    Calcula precision, recall y F1 de los listings con score >= threshold.

    - precision: fracción de scores altos que convirtieron
    - recall: fracción de conversiones que tenían score alto
    """
    scores = list(scores)
    converted = set(converted_ids)

    high = [s for s in scores if s.final_score >= threshold]
    hits = sum(1 for s in high if s.listing_id in converted)

    precision = hits / len(high) if high else 0.0
    recall = hits / len(converted) if converted else 0.0
    f1 = (
        2 * precision * recall / (precision + recall)
        if precision + recall > 0
        else 0.0
    )
    average = sum(s.final_score for s in scores) / len(scores) if scores else 0.0

    return RankingMetrics(
        precision=precision,
        recall=recall,
        f1=f1,
        total_scores=len(scores),
        high_scores=len(high),
        conversions=len(converted),
        average_score=average,
        threshold=threshold,
    )
