"""
Scoring de listings.

Tres scorers independientes (compatibilidad, comportamiento, temporal)
y el motor que los combina en un score final explicado.
"""

from brujula.scoring.behavior import BehaviorScorer, recency_multiplier
from brujula.scoring.compatibility import CompatibilityScorer
from brujula.scoring.engine import EngineConfig, ScoringEngine
from brujula.scoring.reasons import explain_score, merge_reasons
from brujula.scoring.temporal import TemporalScorer

__all__ = [
    "BehaviorScorer",
    "CompatibilityScorer",
    "EngineConfig",
    "ScoringEngine",
    "TemporalScorer",
    "explain_score",
    "merge_reasons",
    "recency_multiplier",
]
