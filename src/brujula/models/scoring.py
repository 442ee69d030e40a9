"""
Modelos de resultado del scoring.

Cada sub-score guarda su desglose por dimensión; el total se deriva
siempre de la suma del desglose, por lo que nunca pueden divergir.
Los topes por dimensión se validan en el propio modelo.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from brujula.errors import ConfigurationError

# Topes de cada dimensión
LOCATION_MAX = 30.0
PRICE_MAX = 25.0
TYPE_MAX = 15.0
CHARACTERISTICS_MAX = 30.0

VIEW_FREQUENCY_MAX = 30.0
VIEW_DURATION_MAX = 30.0
INTERACTIONS_MAX = 40.0

URGENCY_MAX = 40.0
AVAILABILITY_MAX = 35.0
MARKET_TREND_MAX = 25.0

COMPONENT_MAX = 100.0
MAX_REASONS = 5


class ScoreComponent(str, Enum):
    COMPATIBILITY = "compatibility"
    BEHAVIOR = "behavior"
    TEMPORAL = "temporal"


class WeightVector(BaseModel):
    """Pesos de mezcla de los tres sub-scores. Inmutable."""

    model_config = ConfigDict(frozen=True)

    compatibility: float = Field(0.4, ge=0)
    behavior: float = Field(0.3, ge=0)
    temporal: float = Field(0.3, ge=0)

    @property
    def total(self) -> float:
        return self.compatibility + self.behavior + self.temporal

    def normalized(self) -> "WeightVector":
        """
        Devuelve los pesos escalados para sumar 1.0.

        Raises:
            ConfigurationError: si algún peso no es finito o todos son cero.
        """
        values = (self.compatibility, self.behavior, self.temporal)
        if not all(math.isfinite(v) for v in values):
            raise ConfigurationError(f"Pesos no finitos: {values}")
        total = sum(values)
        if total <= 0:
            raise ConfigurationError("Los pesos no pueden ser todos cero")
        return WeightVector(
            compatibility=self.compatibility / total,
            behavior=self.behavior / total,
            temporal=self.temporal / total,
        )

    def blend(self, compatibility: float, behavior: float, temporal: float) -> float:
        """Producto escalar pesos · sub-scores."""
        return (
            self.compatibility * compatibility
            + self.behavior * behavior
            + self.temporal * temporal
        )

    def weight_for(self, component: ScoreComponent) -> float:
        return getattr(self, component.value)


class ScoreReason(BaseModel):
    """Explicación legible asociada a una dimensión de un sub-score."""

    model_config = ConfigDict(frozen=True)

    component: ScoreComponent
    text: str
    points: float = Field(
        0.0, ge=0, description="Puntos de la dimensión que origina la razón"
    )
    impact: float = Field(
        0.0, ge=0, description="Contribución ponderada (peso del componente x puntos)"
    )


class CompatibilityBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: float = Field(..., ge=0, le=LOCATION_MAX)
    price: float = Field(..., ge=0, le=PRICE_MAX)
    property_type: float = Field(..., ge=0, le=TYPE_MAX)
    characteristics: float = Field(..., ge=0, le=CHARACTERISTICS_MAX)

    @computed_field
    @property
    def total(self) -> float:
        return self.location + self.price + self.property_type + self.characteristics


class BehaviorBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    view_frequency: float = Field(..., ge=0, le=VIEW_FREQUENCY_MAX)
    view_duration: float = Field(..., ge=0, le=VIEW_DURATION_MAX)
    interactions: float = Field(..., ge=0, le=INTERACTIONS_MAX)

    @computed_field
    @property
    def total(self) -> float:
        return self.view_frequency + self.view_duration + self.interactions


class TemporalBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    urgency: float = Field(..., ge=0, le=URGENCY_MAX)
    availability: float = Field(..., ge=0, le=AVAILABILITY_MAX)
    market_trend: float = Field(..., ge=0, le=MARKET_TREND_MAX)

    @computed_field
    @property
    def total(self) -> float:
        return self.urgency + self.availability + self.market_trend


class CompatibilityScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    breakdown: CompatibilityBreakdown
    reasons: list[ScoreReason] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return self.breakdown.total


class BehaviorScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    breakdown: BehaviorBreakdown
    reasons: list[ScoreReason] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return self.breakdown.total


class TemporalScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    breakdown: TemporalBreakdown
    reasons: list[ScoreReason] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return self.breakdown.total


class PropertyScore(BaseModel):
    """
    Score final de un listing para un usuario.

    Inmutable una vez producido. El sub-score de comportamiento se guarda
    sin decaimiento; el multiplicador de recencia aplicado en la mezcla
    queda registrado aparte en recency_multiplier.
    """

    model_config = ConfigDict(frozen=True)

    listing_id: str
    user_id: Optional[str] = None
    final_score: float = Field(..., ge=0, le=100)

    compatibility: CompatibilityScore
    behavior: BehaviorScore
    temporal: TemporalScore
    recency_multiplier: float = Field(1.0, ge=0, le=1)

    weights: WeightVector
    reasons: list[ScoreReason] = Field(default_factory=list, max_length=MAX_REASONS)
    confidence: float = Field(0.5, ge=0, le=1)

    version: str = "2.0"
    calculated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def effective_behavior(self) -> float:
        """Sub-score de comportamiento con el decaimiento por recencia aplicado."""
        return self.behavior.total * self.recency_multiplier

    @property
    def component_totals(self) -> dict[str, float]:
        return {
            ScoreComponent.COMPATIBILITY.value: self.compatibility.total,
            ScoreComponent.BEHAVIOR.value: self.behavior.total,
            ScoreComponent.TEMPORAL.value: self.temporal.total,
        }

    @property
    def top_reasons(self) -> list[str]:
        return [reason.text for reason in self.reasons]
