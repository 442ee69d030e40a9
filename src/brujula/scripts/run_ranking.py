"""
Script para rankear listings de un usuario.

Lee listings, preferencias y (opcionalmente) comportamientos desde
archivos JSON e imprime el ranking como JSON por stdout.

Uso:
    python -m brujula.scripts.run_ranking --listings listings.json --preferences prefs.json
    brujula-rank --listings listings.json --preferences prefs.json --min-score 60 --max-results 10
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

import structlog

from brujula.config import get_settings
from brujula.log_config import configure_logging
from brujula.models import Listing, UserBehavior, UserPreferences, WeightVector
from brujula.ranking import GroupKey, RankingOptions, RankingResult, SortBy, SortDirection
from brujula.service import ScoringService

logger = structlog.get_logger()


def load_json(path: str):
    with Path(path).open(encoding="utf-8") as f:
        return json.load(f)


def result_to_dict(result: RankingResult) -> dict:
    """Serializa el ranking a un dict apto para JSON."""
    metadata = result.metadata
    return {
        "entries": [
            {
                "rank": entry.rank,
                "listing_id": entry.listing_id,
                "final_score": round(entry.final_score, 2),
                "compatibility": round(entry.score.compatibility.total, 2),
                "behavior": round(entry.score.effective_behavior, 2),
                "temporal": round(entry.score.temporal.total, 2),
                "confidence": round(entry.score.confidence, 2),
                "group": entry.group,
                "reasons": entry.score.top_reasons,
            }
            for entry in result.entries
        ],
        "metadata": {
            "count": metadata.count,
            "average_score": round(metadata.average_score, 2),
            "min_score": round(metadata.min_score, 2),
            "max_score": round(metadata.max_score, 2),
            "total_candidates": metadata.total_candidates,
            "total_matched": metadata.total_matched,
            "generated_at": metadata.generated_at.isoformat(),
        },
        "weights": result.weights.model_dump(),
    }


def run_ranking(
    listings_path: str,
    preferences_path: str,
    behaviors_path: Optional[str] = None,
    options: Optional[RankingOptions] = None,
    weights: Optional[WeightVector] = None,
    quick: bool = False,
) -> dict:
    """
    Rankea los listings de los archivos dados.

    Returns:
        Ranking serializado (entries + metadata + weights)
    """
    listings = [Listing.model_validate(item) for item in load_json(listings_path)]
    preferences = UserPreferences.model_validate(load_json(preferences_path))

    behaviors = {}
    if behaviors_path:
        for item in load_json(behaviors_path):
            behavior = UserBehavior.model_validate(item)
            behaviors[behavior.listing_id] = behavior

    logger.info(
        "Iniciando ranking",
        listings=len(listings),
        behaviors=len(behaviors),
        quick=quick,
    )

    service = ScoringService()
    if quick:
        result = service.ranking.quick_rank(listings, preferences, options, weights=weights)
    else:
        result = service.rank(listings, preferences, behaviors, options, weights=weights)

    return result_to_dict(result)


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Rankea listings para un usuario")
    parser.add_argument("--listings", required=True, help="JSON con la lista de listings")
    parser.add_argument("--preferences", required=True, help="JSON con las preferencias")
    parser.add_argument("--behaviors", help="JSON con la lista de comportamientos")
    parser.add_argument("--min-score", type=float, help="Score mínimo (0-100)")
    parser.add_argument(
        "--sort-by",
        choices=[s.value for s in SortBy],
        default=SortBy.SCORE.value,
        help="Criterio de orden",
    )
    parser.add_argument(
        "--direction",
        choices=[d.value for d in SortDirection],
        default=SortDirection.DESC.value,
        help="Dirección del orden",
    )
    parser.add_argument("--max-results", type=int, help="Máximo de resultados")
    parser.add_argument("--offset", type=int, default=0, help="Saltear los primeros N")
    parser.add_argument(
        "--group-by",
        choices=[g.value for g in GroupKey],
        help="Diversificar intercalando por esta clave",
    )
    parser.add_argument(
        "--weights",
        type=float,
        nargs=3,
        metavar=("COMPAT", "BEHAVIOR", "TEMPORAL"),
        help="Pesos explícitos (se normalizan)",
    )
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Quick score: ignora comportamiento (cold start)",
    )

    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    try:
        options = RankingOptions(
            min_score=args.min_score,
            sort_by=SortBy(args.sort_by),
            sort_direction=SortDirection(args.direction),
            max_results=args.max_results,
            offset=args.offset,
            group_by=GroupKey(args.group_by) if args.group_by else None,
        )
        weights = None
        if args.weights:
            compatibility, behavior, temporal = args.weights
            weights = WeightVector(
                compatibility=compatibility, behavior=behavior, temporal=temporal
            )

        output = run_ranking(
            args.listings,
            args.preferences,
            args.behaviors,
            options=options,
            weights=weights,
            quick=args.quick,
        )
        print(json.dumps(output, ensure_ascii=False, indent=2))

        logger.info("Ranking completado", returned=output["metadata"]["count"])
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Ranking interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en ranking", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
