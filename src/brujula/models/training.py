"""
Modelos del aprendizaje de pesos.

- Outcome: resultado discreto observado tras mostrar un listing.
- TrainingSample: sub-scores al momento del scoring + outcome.
- OutcomeEvent: evento del canal de feedback.
- ModelState: estado serializable del optimizador.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from brujula.models.scoring import PropertyScore, WeightVector


class Outcome(str, Enum):
    CONVERTED = "converted"
    CONTACTED = "contacted"
    VIEWED = "viewed"
    IGNORED = "ignored"


# Score objetivo (0-100) asociado a cada outcome
OUTCOME_TARGETS: dict[Outcome, float] = {
    Outcome.CONVERTED: 100.0,
    Outcome.CONTACTED: 70.0,
    Outcome.VIEWED: 30.0,
    Outcome.IGNORED: 0.0,
}

SUCCESSFUL_OUTCOMES = frozenset({Outcome.CONVERTED, Outcome.CONTACTED})


class TrainingSample(BaseModel):
    """
    Unidad de entrenamiento del optimizador.

    Los sub-scores no se acotan en la validación: una muestra corrupta
    (NaN, fuera de rango) se descarta durante el entrenamiento sin abortar
    el lote.
    """

    listing_id: str
    compatibility: float
    behavior: float
    temporal: float
    outcome: Outcome
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def target(self) -> float:
        return OUTCOME_TARGETS[self.outcome]

    @property
    def features(self) -> tuple[float, float, float]:
        return (self.compatibility, self.behavior, self.temporal)


class OutcomeEvent(BaseModel):
    """Feedback emitido por el canal de outcomes."""

    user_id: Optional[str] = None
    listing_id: str = Field(..., min_length=1)
    outcome: Outcome
    compatibility: float = Field(..., ge=0, le=100)
    behavior: float = Field(..., ge=0, le=100)
    temporal: float = Field(..., ge=0, le=100)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_score(
        cls,
        score: PropertyScore,
        outcome: Outcome,
        occurred_at: Optional[datetime] = None,
    ) -> "OutcomeEvent":
        """Construye el evento con los sub-scores que tenía el listing al mostrarse."""
        data = {
            "user_id": score.user_id,
            "listing_id": score.listing_id,
            "outcome": outcome,
            "compatibility": score.compatibility.total,
            "behavior": score.effective_behavior,
            "temporal": score.temporal.total,
        }
        if occurred_at is not None:
            data["occurred_at"] = occurred_at
        return cls(**data)

    def to_sample(self) -> TrainingSample:
        return TrainingSample(
            listing_id=self.listing_id,
            compatibility=self.compatibility,
            behavior=self.behavior,
            temporal=self.temporal,
            outcome=self.outcome,
            timestamp=self.occurred_at,
        )


class ModelState(BaseModel):
    """Estado del optimizador: único estado mutable del core."""

    weights: WeightVector = Field(default_factory=WeightVector)
    samples: list[TrainingSample] = Field(default_factory=list)
    last_trained_at: Optional[datetime] = None
    accuracy: Optional[float] = Field(None, ge=0, le=1)
