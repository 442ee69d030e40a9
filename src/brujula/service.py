"""
Fachada del core de scoring.

Conecta motor, ranking y optimizador detrás de la superficie que usan
los colaboradores externos: score, rank, submit_feedback, get_weights.
Los pesos por defecto son siempre los vigentes del optimizador.
"""

from datetime import datetime
from typing import Optional

import structlog
from pydantic import ValidationError

from brujula.learning import WeightOptimizer
from brujula.models import (
    Listing,
    OutcomeEvent,
    PropertyScore,
    UserBehavior,
    UserPreferences,
    WeightVector,
)
from brujula.ranking import (
    RankingOptions,
    RankingResult,
    RankingService,
    SimilarListing,
)
from brujula.scoring import EngineConfig, ScoringEngine

logger = structlog.get_logger()


class ScoringService:
    """
    Punto de entrada del core.

    Uso:
        service = ScoringService()
        result = service.rank(listings, preferences, behaviors)
        service.submit_feedback(OutcomeEvent.from_score(score, Outcome.CONTACTED))
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        optimizer: Optional[WeightOptimizer] = None,
    ):
        self.config = config or EngineConfig.from_settings()
        self.optimizer = optimizer or WeightOptimizer(initial_weights=self.config.weights)

    @property
    def engine(self) -> ScoringEngine:
        """Motor con los pesos vigentes del optimizador."""
        return ScoringEngine(self.config.with_weights(self.optimizer.weights))

    @property
    def ranking(self) -> RankingService:
        return RankingService(self.engine)

    def score(
        self,
        listing: Listing,
        preferences: UserPreferences,
        behavior: Optional[UserBehavior] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> PropertyScore:
        return self.engine.score(listing, preferences, behavior, weights=weights, now=now)

    def rank(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        behaviors: Optional[dict[str, UserBehavior]] = None,
        options: Optional[RankingOptions] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        return self.ranking.rank(
            listings, preferences, behaviors, options, weights=weights, now=now
        )

    def quick_rank(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        options: Optional[RankingOptions] = None,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        return self.ranking.quick_rank(listings, preferences, options, now=now)

    def rerank(self, result: RankingResult, behavior: UserBehavior) -> RankingResult:
        return self.ranking.rerank(result, behavior)

    def find_similar(
        self,
        target: Listing,
        candidates: list[Listing],
        preferences: UserPreferences,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> list[SimilarListing]:
        return self.ranking.find_similar(target, candidates, preferences, limit, now=now)

    def submit_feedback(self, event) -> bool:
        """
        Registra un outcome como muestra de entrenamiento.

        Acepta un OutcomeEvent o un dict con su forma. Un evento inválido
        se descarta y devuelve False.

        Returns:
            True si el evento fue aceptado
        """
        if not isinstance(event, OutcomeEvent):
            try:
                event = OutcomeEvent.model_validate(event)
            except ValidationError as e:
                logger.warning("Feedback descartado", error=str(e))
                return False

        trained = self.optimizer.add_sample(event.to_sample())
        logger.debug(
            "Feedback registrado",
            listing_id=event.listing_id,
            outcome=event.outcome.value,
            trained=trained,
        )
        return True

    def get_weights(self) -> WeightVector:
        return self.optimizer.weights
