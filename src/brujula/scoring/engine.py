"""
Motor de scoring.

Combina los tres sub-scores (compatibilidad, comportamiento, temporal)
en un score final 0-100 usando un vector de pesos normalizado.

La configuración del motor (EngineConfig) es un valor inmutable: cambiar
los pesos produce una configuración nueva y nunca muta estado compartido,
por lo que un mismo motor puede usarse desde varios threads.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from brujula.config import Settings, get_settings
from brujula.errors import ConfigurationError, InputValidationError
from brujula.models import (
    Listing,
    PropertyScore,
    UserBehavior,
    UserPreferences,
    WeightVector,
)
from brujula.models.scoring import (
    BehaviorScore,
    CompatibilityScore,
    TemporalScore,
)
from brujula.scoring.behavior import BehaviorScorer, recency_multiplier
from brujula.scoring.compatibility import CompatibilityScorer
from brujula.scoring.numeric import clamp, utcnow
from brujula.scoring.reasons import merge_reasons
from brujula.scoring.temporal import TemporalScorer

# Aportes a la confianza según completitud de datos
BASE_CONFIDENCE = 0.5
CONFIDENCE_BONUS = {
    "coordinates": 0.1,
    "price": 0.1,
    "typology": 0.05,
    "area": 0.05,
    "behavior": 0.1,
    "first_seen": 0.1,
}


class EngineConfig(BaseModel):
    """Configuración inmutable del motor."""

    model_config = ConfigDict(frozen=True)

    weights: WeightVector = Field(default_factory=WeightVector)
    quick_weights: WeightVector = Field(
        default_factory=lambda: WeightVector(compatibility=0.6, behavior=0.0, temporal=0.4)
    )
    version: str = "2.0"
    max_workers: int = Field(4, ge=1)
    parallel_threshold: int = Field(64, ge=1)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EngineConfig":
        """
        Construye la configuración a partir de los settings.

        Raises:
            ConfigurationError: si los pesos configurados no se pueden normalizar.
        """
        settings = settings or get_settings()
        weights = WeightVector(
            compatibility=settings.weight_compatibility,
            behavior=settings.weight_behavior,
            temporal=settings.weight_temporal,
        ).normalized()
        quick_weights = WeightVector(
            compatibility=settings.quick_weight_compatibility,
            behavior=0.0,
            temporal=settings.quick_weight_temporal,
        ).normalized()
        return cls(
            weights=weights,
            quick_weights=quick_weights,
            version=settings.scoring_version,
            max_workers=settings.ranking_max_workers,
            parallel_threshold=settings.ranking_parallel_threshold,
        )

    def with_weights(self, weights: WeightVector) -> "EngineConfig":
        """Copia de la configuración con otros pesos (normalizados)."""
        return self.model_copy(update={"weights": weights.normalized()})


def require_listing(listing) -> Listing:
    """Valida que el input sea un Listing (acepta dicts con la forma canónica)."""
    if listing is None:
        raise InputValidationError("El listing es requerido")
    if isinstance(listing, Listing):
        return listing
    if isinstance(listing, dict):
        return Listing.model_validate(listing)
    raise InputValidationError(
        f"Se esperaba un Listing, se recibió {type(listing).__name__}"
    )


def require_preferences(preferences) -> UserPreferences:
    """Valida que el input sea un UserPreferences (acepta dicts)."""
    if preferences is None:
        raise InputValidationError("Las preferencias del usuario son requeridas")
    if isinstance(preferences, UserPreferences):
        return preferences
    if isinstance(preferences, dict):
        return UserPreferences.model_validate(preferences)
    raise InputValidationError(
        f"Se esperaba UserPreferences, se recibió {type(preferences).__name__}"
    )


def quick_weights_from(weights: WeightVector) -> WeightVector:
    """Fuerza behavior=0 y renormaliza compatibilidad/temporal."""
    quick = WeightVector(
        compatibility=weights.compatibility,
        behavior=0.0,
        temporal=weights.temporal,
    )
    if quick.total <= 0:
        raise ConfigurationError(
            "Quick score necesita peso de compatibilidad o temporal mayor a cero"
        )
    return quick.normalized()


class ScoringEngine:
    """
    Motor de scoring de listings.

    Uso:
        engine = ScoringEngine()
        score = engine.score(listing, preferences, behavior)
        print(score.final_score, score.top_reasons)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.from_settings()
        self.compatibility_scorer = CompatibilityScorer()
        self.behavior_scorer = BehaviorScorer()
        self.temporal_scorer = TemporalScorer()

    @property
    def default_weights(self) -> WeightVector:
        return self.config.weights

    def with_weights(self, weights: WeightVector) -> "ScoringEngine":
        """Nuevo motor con los pesos dados; este queda intacto."""
        return ScoringEngine(self.config.with_weights(weights))

    def score(
        self,
        listing: Listing,
        preferences: UserPreferences,
        behavior: Optional[UserBehavior] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> PropertyScore:
        """
        Calcula el score completo de un listing para un usuario.

        Args:
            listing: Listing canónico
            preferences: Preferencias declaradas
            behavior: Historial de interacción con este listing (opcional)
            weights: Pesos a usar; por defecto los de la configuración
            now: Instante de referencia para las bandas temporales

        Returns:
            PropertyScore inmutable

        Raises:
            InputValidationError: listing o preferencias ausentes o inválidos
            ConfigurationError: pesos imposibles de normalizar
        """
        listing = require_listing(listing)
        preferences = require_preferences(preferences)
        if behavior is not None and behavior.listing_id != listing.id:
            raise InputValidationError(
                f"El comportamiento es del listing {behavior.listing_id}, no de {listing.id}"
            )
        weights = (weights or self.config.weights).normalized()
        return self._score(listing, preferences, behavior, weights, now or utcnow())

    def quick_score(
        self,
        listing: Listing,
        preferences: UserPreferences,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> PropertyScore:
        """
        Score para listings sin historial de interacción.

        El peso de comportamiento se fuerza a 0 y compatibilidad/temporal
        se renormalizan (0.6/0.4 por defecto).
        """
        listing = require_listing(listing)
        preferences = require_preferences(preferences)
        weights = quick_weights_from(weights or self.config.quick_weights)
        return self._score(listing, preferences, None, weights, now or utcnow())

    def score_batch(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        behaviors: Optional[dict[str, UserBehavior]] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
        quick: bool = False,
    ) -> list[PropertyScore]:
        """
        Calcula el score de varios listings. El resultado respeta el orden de entrada.

        Los listings se validan antes de empezar; por encima del umbral de
        paralelismo el cálculo se reparte en un pool de threads.
        """
        if listings is None:
            raise InputValidationError("La lista de listings es requerida")
        items = [require_listing(listing) for listing in listings]
        preferences = require_preferences(preferences)
        behaviors = behaviors or {}
        now = now or utcnow()

        if quick:
            weights = quick_weights_from(weights or self.config.quick_weights)
        else:
            weights = (weights or self.config.weights).normalized()

        def score_one(listing: Listing) -> PropertyScore:
            behavior = None if quick else behaviors.get(listing.id)
            return self._score(listing, preferences, behavior, weights, now)

        if len(items) > self.config.parallel_threshold and self.config.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                return list(executor.map(score_one, items))

        return [score_one(listing) for listing in items]

    def confidence(self, listing: Listing, behavior: Optional[UserBehavior] = None) -> float:
        """Confianza (0-1) según la completitud de los datos disponibles."""
        confidence = BASE_CONFIDENCE

        if listing.location.coordinates is not None:
            confidence += CONFIDENCE_BONUS["coordinates"]
        if listing.price.value:
            confidence += CONFIDENCE_BONUS["price"]
        if listing.characteristics.typology:
            confidence += CONFIDENCE_BONUS["typology"]
        if listing.characteristics.area:
            confidence += CONFIDENCE_BONUS["area"]
        if behavior is not None and (
            behavior.view_count > 0
            or behavior.total_view_seconds > 0
            or behavior.action_count > 0
        ):
            confidence += CONFIDENCE_BONUS["behavior"]
        if listing.metadata.first_seen is not None:
            confidence += CONFIDENCE_BONUS["first_seen"]

        return min(confidence, 1.0)

    def _score(
        self,
        listing: Listing,
        preferences: UserPreferences,
        behavior: Optional[UserBehavior],
        weights: WeightVector,
        now: datetime,
    ) -> PropertyScore:
        compatibility = self.compatibility_scorer.calculate(listing, preferences)
        behavior_score = self.behavior_scorer.calculate(behavior, now)
        temporal = self.temporal_scorer.calculate(listing, now)
        multiplier = recency_multiplier(behavior, now)

        return self._combine(
            listing,
            preferences,
            behavior,
            compatibility,
            behavior_score,
            temporal,
            multiplier,
            weights,
            now,
        )

    def _combine(
        self,
        listing: Listing,
        preferences: UserPreferences,
        behavior: Optional[UserBehavior],
        compatibility: CompatibilityScore,
        behavior_score: BehaviorScore,
        temporal: TemporalScore,
        multiplier: float,
        weights: WeightVector,
        now: datetime,
    ) -> PropertyScore:
        final = weights.blend(
            clamp(compatibility.total, 0.0, 100.0),
            clamp(behavior_score.total * multiplier, 0.0, 100.0),
            clamp(temporal.total, 0.0, 100.0),
        )
        reasons = merge_reasons(
            [compatibility.reasons, behavior_score.reasons, temporal.reasons],
            weights,
        )

        return PropertyScore(
            listing_id=listing.id,
            user_id=preferences.user_id,
            final_score=clamp(final, 0.0, 100.0),
            compatibility=compatibility,
            behavior=behavior_score,
            temporal=temporal,
            recency_multiplier=clamp(multiplier, 0.0, 1.0),
            weights=weights,
            reasons=reasons,
            confidence=self.confidence(listing, behavior),
            version=self.config.version,
            calculated_at=now,
        )
