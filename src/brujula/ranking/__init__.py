"""
Ranking de listings.

Ordena, filtra, diversifica y pagina listings según su score,
con re-rank incremental y búsqueda de similares.
"""

from brujula.ranking.service import (
    GroupKey,
    ListingComparison,
    RankedListing,
    RankingMetadata,
    RankingOptions,
    RankingResult,
    RankingService,
    SimilarListing,
    SortBy,
    SortDirection,
    tier_for,
)

__all__ = [
    "GroupKey",
    "ListingComparison",
    "RankedListing",
    "RankingMetadata",
    "RankingOptions",
    "RankingResult",
    "RankingService",
    "SimilarListing",
    "SortBy",
    "SortDirection",
    "tier_for",
]
