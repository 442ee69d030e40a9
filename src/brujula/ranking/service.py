"""
Servicio de ranking.

Implementa:
- Ranking: score por listing, filtro por score mínimo, orden, ranks densos
- Diversificación: intercalado round-robin por una clave categórica
- Re-rank incremental: recalcula un solo listing y reordena todo
- Búsqueda de similares: distancia entre sub-scores de quick score
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from brujula.config import SCORE_TIERS, get_settings
from brujula.models import (
    Listing,
    PropertyScore,
    UserBehavior,
    UserPreferences,
    WeightVector,
)
from brujula.scoring.engine import (
    ScoringEngine,
    quick_weights_from,
    require_listing,
    require_preferences,
)
from brujula.scoring.numeric import ensure_utc, utcnow

logger = structlog.get_logger()

# Diferencia mínima (puntos) para declarar un ganador en la comparación
COMPARISON_TIE_POINTS = 1.0


class SortBy(str, Enum):
    SCORE = "score"
    PRICE = "price"
    RECENCY = "recency"
    POPULARITY = "popularity"


class SortDirection(str, Enum):
    DESC = "desc"
    ASC = "asc"


class GroupKey(str, Enum):
    PROPERTY_TYPE = "property_type"
    MUNICIPALITY = "municipality"
    DISTRICT = "district"
    TYPOLOGY = "typology"
    TIER = "tier"


class RankingOptions(BaseModel):
    """Opciones de un ranking. Todas opcionales."""

    min_score: Optional[float] = Field(None, ge=0, le=100)
    sort_by: SortBy = SortBy.SCORE
    sort_direction: SortDirection = SortDirection.DESC
    max_results: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0, description="Paginación, se aplica después de asignar ranks")
    group_by: Optional[GroupKey] = Field(None, description="Diversificar por esta clave")


@dataclass
class RankedListing:
    """Listing con su score y posición en el ranking."""

    listing: Listing
    score: PropertyScore
    rank: int
    group: Optional[str] = None

    @property
    def listing_id(self) -> str:
        return self.listing.id

    @property
    def final_score(self) -> float:
        return self.score.final_score


@dataclass
class RankingMetadata:
    """Estadísticas de las entradas devueltas; válidas aun con resultado vacío."""

    count: int
    average_score: float
    min_score: float
    max_score: float
    generated_at: datetime
    total_candidates: int = 0
    total_matched: int = 0


@dataclass
class RankingResult:
    """
    Resultado de un ranking.

    Guarda todos los candidatos evaluados para poder re-rankear sin
    recalcular el resto. El lock serializa los re-rank sobre la misma
    instancia.
    """

    entries: list[RankedListing]
    metadata: RankingMetadata
    preferences: UserPreferences
    options: RankingOptions
    weights: WeightVector
    scored_at: datetime
    quick: bool = False
    behaviors: dict[str, UserBehavior] = field(default_factory=dict, repr=False)
    candidates: list[tuple[Listing, PropertyScore]] = field(default_factory=list, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def listing_ids(self) -> list[str]:
        return [entry.listing_id for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class SimilarListing:
    listing: Listing
    score: PropertyScore
    similarity: float  # 0.0 a 1.0


@dataclass
class ListingComparison:
    """Comparación lado a lado. winner es None si hay empate."""

    first: PropertyScore
    second: PropertyScore
    winner: Optional[str]
    score_difference: float


def tier_for(score: float) -> str:
    """Banda de calidad del score (excellent/good/fair/poor)."""
    for tier, threshold in SCORE_TIERS.items():
        if score >= threshold:
            return tier
    return "poor"


def _sort_value(listing: Listing, score: PropertyScore, sort_by: SortBy) -> Optional[Any]:
    if sort_by == SortBy.SCORE:
        return score.final_score
    if sort_by == SortBy.PRICE:
        return listing.price.value
    if sort_by == SortBy.RECENCY:
        first_seen = listing.metadata.first_seen
        return ensure_utc(first_seen) if first_seen is not None else None
    return listing.metadata.view_count


def _group_value(listing: Listing, score: PropertyScore, key: GroupKey) -> str:
    if key == GroupKey.PROPERTY_TYPE:
        return listing.property_type.value
    if key == GroupKey.MUNICIPALITY:
        return listing.location.address.municipality.strip().casefold()
    if key == GroupKey.DISTRICT:
        return listing.location.address.district.strip().casefold()
    if key == GroupKey.TYPOLOGY:
        return (listing.characteristics.typology or "").strip().casefold()
    return tier_for(score.final_score)


def sort_candidates(
    candidates: list[tuple[Listing, PropertyScore]],
    sort_by: SortBy,
    direction: SortDirection,
) -> list[tuple[Listing, PropertyScore]]:
    """
    Orden estable por la clave pedida.

    Los listings sin valor para la clave van al final en ambas direcciones,
    en su orden original.
    """
    present = []
    missing = []
    for item in candidates:
        value = _sort_value(item[0], item[1], sort_by)
        if value is None:
            missing.append(item)
        else:
            present.append((value, item))

    present.sort(key=lambda pair: pair[0], reverse=direction == SortDirection.DESC)
    return [item for _, item in present] + missing


def interleave_groups(
    candidates: list[tuple[Listing, PropertyScore]],
    key_func: Callable[[Listing, PropertyScore], str],
    round_size: int = 2,
) -> list[tuple[str, tuple[Listing, PropertyScore]]]:
    """
    Intercala grupos en rondas: hasta round_size listings de cada grupo por ronda.

    Los grupos se recorren en el orden de su mejor listing y dentro de cada
    grupo se respeta el orden recibido.
    """
    groups: dict[str, list[tuple[Listing, PropertyScore]]] = {}
    for item in candidates:
        groups.setdefault(key_func(*item), []).append(item)

    result = []
    position = 0
    while len(result) < len(candidates):
        for group, items in groups.items():
            for item in items[position:position + round_size]:
                result.append((group, item))
        position += round_size
    return result


class RankingService:
    """
    Ordena listings por score para un usuario.

    Uso:
        service = RankingService()
        result = service.rank(listings, preferences, behaviors,
                              RankingOptions(min_score=60, max_results=20))
        for entry in result.entries:
            print(entry.rank, entry.listing_id, entry.final_score)
    """

    def __init__(
        self,
        engine: Optional[ScoringEngine] = None,
        group_round_size: Optional[int] = None,
    ):
        self.engine = engine or ScoringEngine()
        self.group_round_size = group_round_size or get_settings().ranking_group_round_size

    def rank(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        behaviors: Optional[dict[str, UserBehavior]] = None,
        options: Optional[RankingOptions] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        """
        Rankea listings para un usuario.

        Args:
            listings: Listings candidatos
            preferences: Preferencias del usuario
            behaviors: Comportamiento por listing_id (opcional)
            options: Filtro, orden, paginación y diversificación
            weights: Pesos a usar; por defecto los del motor
            now: Instante de referencia para el scoring

        Returns:
            RankingResult con entradas y metadata
        """
        weights = (weights or self.engine.default_weights).normalized()
        return self._rank(listings, preferences, behaviors, options, weights, now, quick=False)

    def quick_rank(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        options: Optional[RankingOptions] = None,
        weights: Optional[WeightVector] = None,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        """Ranking cold-start: quick score, sin comportamiento (peso behavior = 0)."""
        weights = quick_weights_from(weights or self.engine.config.quick_weights)
        return self._rank(listings, preferences, None, options, weights, now, quick=True)

    def rerank(
        self,
        result: RankingResult,
        behavior: UserBehavior,
        now: Optional[datetime] = None,
    ) -> RankingResult:
        """
        Re-rank incremental tras actualizar el comportamiento sobre un listing.

        Solo se recalcula el score de ese listing; después se reordena y se
        reasignan todos los ranks sobre el mismo resultado. Un listing_id que
        no está en el resultado no modifica nada.
        Sobre un resultado de quick_rank el listing se recalcula con quick score.
        """
        now = now or result.scored_at
        with result.lock:
            index = next(
                (
                    i
                    for i, (listing, _) in enumerate(result.candidates)
                    if listing.id == behavior.listing_id
                ),
                None,
            )
            if index is None:
                logger.warning(
                    "Re-rank ignorado: listing fuera del resultado",
                    listing_id=behavior.listing_id,
                )
                return result

            listing, previous = result.candidates[index]
            if result.quick:
                # Un ranking cold-start sigue siendo quick score: el comportamiento no entra
                updated = self.engine.quick_score(
                    listing, result.preferences, weights=result.weights, now=now
                )
            else:
                updated = self.engine.score(
                    listing,
                    result.preferences,
                    behavior,
                    weights=result.weights,
                    now=now,
                )
            result.candidates[index] = (listing, updated)
            result.behaviors[listing.id] = behavior

            entries, metadata = self._arrange(result.candidates, result.options, now)
            result.entries = entries
            result.metadata = metadata

        logger.info(
            "Re-rank aplicado",
            listing_id=listing.id,
            previous_score=round(previous.final_score, 2),
            new_score=round(updated.final_score, 2),
        )
        return result

    def find_similar(
        self,
        target: Listing,
        candidates: list[Listing],
        preferences: UserPreferences,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> list[SimilarListing]:
        """
        Listings con perfil de score parecido al target.

        similarity = 1 - promedio(|Δ sub-score| / 100) sobre los tres
        componentes del quick score. Orden descendente y estable.
        """
        target = require_listing(target)
        now = now or utcnow()
        target_score = self.engine.quick_score(target, preferences, now=now)

        pool = [
            listing
            for listing in (require_listing(c) for c in candidates or [])
            if listing.id != target.id
        ]
        scores = self.engine.score_batch(pool, preferences, now=now, quick=True)

        reference = target_score.component_totals
        similar = []
        for listing, score in zip(pool, scores):
            totals = score.component_totals
            distance = sum(abs(totals[key] - reference[key]) / 100 for key in reference)
            similarity = 1 - distance / len(reference)
            similar.append(SimilarListing(listing=listing, score=score, similarity=similarity))

        similar.sort(key=lambda s: s.similarity, reverse=True)
        return similar[:limit]

    def group_by_tier(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        behaviors: Optional[dict[str, UserBehavior]] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, list[RankedListing]]:
        """Agrupa el ranking en excellent (>=80), good (>=60), fair (>=40) y poor."""
        result = self.rank(listings, preferences, behaviors, now=now)
        grouped: dict[str, list[RankedListing]] = {tier: [] for tier in SCORE_TIERS}
        for entry in result.entries:
            grouped[tier_for(entry.final_score)].append(entry)
        return grouped

    def top_listings(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        n: int = 10,
        behaviors: Optional[dict[str, UserBehavior]] = None,
        now: Optional[datetime] = None,
    ) -> list[RankedListing]:
        """Los n mejores listings por score."""
        result = self.rank(
            listings, preferences, behaviors, RankingOptions(max_results=n), now=now
        )
        return result.entries

    def compare_listings(
        self,
        first: Listing,
        second: Listing,
        preferences: UserPreferences,
        first_behavior: Optional[UserBehavior] = None,
        second_behavior: Optional[UserBehavior] = None,
        now: Optional[datetime] = None,
    ) -> ListingComparison:
        """Compara dos listings; empate si la diferencia es menor a 1 punto."""
        now = now or utcnow()
        first_score = self.engine.score(first, preferences, first_behavior, now=now)
        second_score = self.engine.score(second, preferences, second_behavior, now=now)

        difference = abs(first_score.final_score - second_score.final_score)
        if difference < COMPARISON_TIE_POINTS:
            winner = None
        elif first_score.final_score > second_score.final_score:
            winner = first_score.listing_id
        else:
            winner = second_score.listing_id

        return ListingComparison(
            first=first_score,
            second=second_score,
            winner=winner,
            score_difference=round(difference, 2),
        )

    def _rank(
        self,
        listings: list[Listing],
        preferences: UserPreferences,
        behaviors: Optional[dict[str, UserBehavior]],
        options: Optional[RankingOptions],
        weights: WeightVector,
        now: Optional[datetime],
        quick: bool,
    ) -> RankingResult:
        preferences = require_preferences(preferences)
        options = options or RankingOptions()
        behaviors = dict(behaviors or {})
        now = now or utcnow()

        items = [require_listing(listing) for listing in listings or []]
        scores = self.engine.score_batch(
            items,
            preferences,
            behaviors=behaviors,
            weights=weights,
            now=now,
            quick=quick,
        )
        candidates = list(zip(items, scores))
        entries, metadata = self._arrange(candidates, options, now)

        logger.info(
            "Ranking calculado",
            user_id=preferences.user_id,
            candidates=metadata.total_candidates,
            matched=metadata.total_matched,
            returned=metadata.count,
            quick=quick,
        )

        return RankingResult(
            entries=entries,
            metadata=metadata,
            preferences=preferences,
            options=options,
            weights=weights,
            scored_at=now,
            quick=quick,
            behaviors=behaviors,
            candidates=candidates,
        )

    def _arrange(
        self,
        candidates: list[tuple[Listing, PropertyScore]],
        options: RankingOptions,
        now: datetime,
    ) -> tuple[list[RankedListing], RankingMetadata]:
        """Filtro -> orden -> diversificación -> ranks -> paginación."""
        matched = candidates
        if options.min_score is not None:
            matched = [item for item in candidates if item[1].final_score >= options.min_score]

        ordered = sort_candidates(matched, options.sort_by, options.sort_direction)

        if options.group_by is not None:
            group_by = options.group_by
            grouped = interleave_groups(
                ordered,
                lambda listing, score: _group_value(listing, score, group_by),
                self.group_round_size,
            )
        else:
            grouped = [(None, item) for item in ordered]

        ranked = [
            RankedListing(listing=listing, score=score, rank=position, group=group)
            for position, (group, (listing, score)) in enumerate(grouped, start=1)
        ]

        end = None if options.max_results is None else options.offset + options.max_results
        entries = ranked[options.offset:end]

        return entries, self._metadata(entries, len(candidates), len(matched), now)

    @staticmethod
    def _metadata(
        entries: list[RankedListing],
        total_candidates: int,
        total_matched: int,
        now: datetime,
    ) -> RankingMetadata:
        scores = [entry.final_score for entry in entries]
        if not scores:
            return RankingMetadata(
                count=0,
                average_score=0.0,
                min_score=0.0,
                max_score=0.0,
                generated_at=now,
                total_candidates=total_candidates,
                total_matched=total_matched,
            )
        return RankingMetadata(
            count=len(scores),
            average_score=sum(scores) / len(scores),
            min_score=min(scores),
            max_score=max(scores),
            generated_at=now,
            total_candidates=total_candidates,
            total_matched=total_matched,
        )
