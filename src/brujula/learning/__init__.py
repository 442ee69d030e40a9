"""
Aprendizaje de pesos a partir de outcomes observados.
"""

from brujula.learning.metrics import RankingMetrics, compute_ranking_metrics
from brujula.learning.optimizer import (
    ABTestResult,
    EvaluationReport,
    WeightOptimizer,
    WeightSuggestion,
    evaluate_weights,
)

__all__ = [
    "ABTestResult",
    "EvaluationReport",
    "RankingMetrics",
    "WeightOptimizer",
    "WeightSuggestion",
    "compute_ranking_metrics",
    "evaluate_weights",
]
