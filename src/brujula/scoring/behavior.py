"""
Score de comportamiento a partir del historial de interacción.

- Frecuencia de visualizaciones (0-30)
- Duración de visualizaciones (0-30)
- Interacciones (0-40): guardar, compartir, contactar, agendar, preguntar

El multiplicador de recencia se calcula aparte (recency_multiplier) y lo
aplica el ScoringEngine sobre el total; no está incluido en el desglose.
"""

from datetime import datetime
from typing import Optional

from brujula.models import BehaviorBreakdown, BehaviorScore, UserBehavior
from brujula.models.scoring import (
    INTERACTIONS_MAX,
    VIEW_DURATION_MAX,
    VIEW_FREQUENCY_MAX,
)
from brujula.scoring.numeric import band, clamp, days_since, utcnow
from brujula.scoring.reasons import behavior_reasons

# Desglose neutro (total 50) para listings sin historial
NEUTRAL_BREAKDOWN = BehaviorBreakdown(view_frequency=15.0, view_duration=15.0, interactions=20.0)

# Visualizaciones -> puntos (5 o más = máximo)
VIEW_FREQUENCY_TABLE: dict[int, float] = {0: 0.0, 1: 10.0, 2: 18.0, 3: 23.0, 4: 27.0}

# Tiempo total acumulado (segundos) -> puntos, de mayor a menor
TOTAL_TIME_TABLE: list[tuple[float, float]] = [
    (300, 15.0),
    (180, 12.0),
    (120, 10.0),
    (60, 7.0),
    (30, 5.0),
]
TOTAL_TIME_FLOOR = 2.0

IDEAL_AVG_MIN_SECONDS = 60
IDEAL_AVG_MAX_SECONDS = 180

ACTION_POINTS: dict[str, float] = {
    "scheduled": 15.0,
    "contacted": 12.0,
    "inquired": 10.0,
    "saved": 8.0,
    "shared": 5.0,
}

# Días desde la última visualización -> multiplicador
RECENCY_TABLE: list[tuple[float, float]] = [
    (1, 1.0),
    (3, 0.95),
    (7, 0.85),
    (14, 0.75),
    (30, 0.6),
    (60, 0.4),
]
RECENCY_FLOOR = 0.2


def view_frequency_points(view_count: int) -> float:
    if view_count <= 0:
        return 0.0
    return VIEW_FREQUENCY_TABLE.get(view_count, VIEW_FREQUENCY_MAX)


def recency_multiplier(
    behavior: Optional[UserBehavior],
    now: Optional[datetime] = None,
) -> float:
    """
    Factor de decaimiento del interés según la última visualización.

    1.0 hasta 1 día, baja por escalones hasta 0.2 pasados los 60 días.
    Sin comportamiento o sin fecha de última visualización no hay decaimiento.
    """
    if behavior is None:
        return 1.0
    elapsed = days_since(behavior.last_viewed_at, now or utcnow())
    if elapsed is None:
        return 1.0
    return band(elapsed, RECENCY_TABLE, RECENCY_FLOOR)


class BehaviorScorer:
    """Calcula el score de comportamiento (0-100)."""

    def calculate(
        self,
        behavior: Optional[UserBehavior] = None,
        now: Optional[datetime] = None,
    ) -> BehaviorScore:
        now = now or utcnow()
        if behavior is None:
            return BehaviorScore(
                breakdown=NEUTRAL_BREAKDOWN,
                reasons=behavior_reasons(None, NEUTRAL_BREAKDOWN, now),
            )

        breakdown = BehaviorBreakdown(
            view_frequency=clamp(
                view_frequency_points(behavior.view_count), 0.0, VIEW_FREQUENCY_MAX
            ),
            view_duration=clamp(self.view_duration_score(behavior), 0.0, VIEW_DURATION_MAX),
            interactions=clamp(self.interactions_score(behavior), 0.0, INTERACTIONS_MAX),
        )
        return BehaviorScore(
            breakdown=breakdown,
            reasons=behavior_reasons(behavior, breakdown, now),
        )

    def view_duration_score(self, behavior: UserBehavior) -> float:
        avg = behavior.avg_view_seconds
        total = behavior.total_view_seconds

        # Tiempo promedio (0-15): la mejor banda es 60-180s
        if IDEAL_AVG_MIN_SECONDS <= avg <= IDEAL_AVG_MAX_SECONDS:
            score = 15.0
        elif avg > IDEAL_AVG_MAX_SECONDS:
            score = 12.0
        elif avg >= 30:
            score = 10.0
        elif avg >= 10:
            score = 5.0
        else:
            score = 0.0

        # Tiempo total (0-15)
        for threshold, points in TOTAL_TIME_TABLE:
            if total >= threshold:
                score += points
                break
        else:
            score += TOTAL_TIME_FLOOR

        return score

    def interactions_score(self, behavior: UserBehavior) -> float:
        flags = behavior.actions
        score = sum(
            points for action, points in ACTION_POINTS.items() if getattr(flags, action)
        )

        images = behavior.images_viewed
        if images > 5:
            score += 3
        elif images > 2:
            score += 2
        elif images > 0:
            score += 1

        if behavior.details_expanded:
            score += 2
        if behavior.map_viewed:
            score += 2

        return min(score, INTERACTIONS_MAX)
