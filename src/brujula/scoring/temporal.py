"""
Score temporal a partir de los metadatos del listing.

- Urgencia (0-40): antigüedad de la publicación y de la última actualización
- Disponibilidad (0-35): probabilidad IA o última vez visto, portales, calidad
- Tendencia de mercado (0-25): divergencia entre portales, €/m², demanda

Todas las bandas son tablas fijas. Un dato opcional ausente vale la
mitad del máximo de su banda.
"""

from datetime import datetime
from typing import Optional

from brujula.models import DataQuality, Listing, TemporalBreakdown, TemporalScore
from brujula.models.scoring import AVAILABILITY_MAX, MARKET_TREND_MAX, URGENCY_MAX
from brujula.scoring.numeric import band, clamp, days_since, utcnow
from brujula.scoring.reasons import temporal_reasons

# Días desde la primera detección -> puntos (0-25)
FIRST_SEEN_TABLE = [(1, 25.0), (3, 22.0), (7, 18.0), (14, 14.0), (30, 10.0), (60, 5.0)]
FIRST_SEEN_FLOOR = 2.0
FIRST_SEEN_NEUTRAL = 12.5

# Días desde la última actualización -> puntos (0-15)
LAST_UPDATE_TABLE = [(1, 15.0), (3, 12.0), (7, 9.0), (14, 6.0), (30, 3.0)]
LAST_UPDATE_FLOOR = 1.0
LAST_UPDATE_NEUTRAL = 7.5

# Días desde la última vez visto activo -> puntos (0-20)
LAST_SEEN_TABLE = [(1, 20.0), (3, 17.0), (7, 14.0), (14, 10.0), (30, 6.0)]
LAST_SEEN_FLOOR = 2.0
LAST_SEEN_NEUTRAL = 10.0
AI_AVAILABILITY_POINTS = 20.0

PORTALS_NEUTRAL = 5.0

DATA_QUALITY_POINTS: dict[DataQuality, float] = {
    DataQuality.HIGH: 5.0,
    DataQuality.MEDIUM: 3.0,
    DataQuality.LOW: 1.0,
    DataQuality.INVALID: 0.0,
}
DATA_QUALITY_NEUTRAL = 2.5

# Divergencia de precio entre portales (%) -> puntos (0-10)
DIVERGENCE_TABLE = [(5, 10.0), (10, 7.0), (20, 4.0)]
DIVERGENCE_FLOOR = 2.0
DIVERGENCE_NEUTRAL = 5.0

# €/m² de referencia del mercado
TYPICAL_PPA_MIN = 1500.0
TYPICAL_PPA_MAX = 3500.0
HIGH_PPA_MAX = 5000.0
PPA_NEUTRAL = 5.0

# Visualizaciones del listing -> puntos (0-5), de mayor a menor
VIEW_COUNT_TABLE = [(100, 5.0), (50, 4.0), (20, 3.0), (10, 2.0)]
VIEW_COUNT_FLOOR = 1.0
VIEW_COUNT_NEUTRAL = 2.5


class TemporalScorer:
    """Calcula el score temporal (0-100)."""

    def calculate(self, listing: Listing, now: Optional[datetime] = None) -> TemporalScore:
        now = now or utcnow()
        breakdown = TemporalBreakdown(
            urgency=clamp(self.urgency_score(listing, now), 0.0, URGENCY_MAX),
            availability=clamp(self.availability_score(listing, now), 0.0, AVAILABILITY_MAX),
            market_trend=clamp(self.market_trend_score(listing), 0.0, MARKET_TREND_MAX),
        )
        return TemporalScore(
            breakdown=breakdown,
            reasons=temporal_reasons(listing, breakdown, now),
        )

    def urgency_score(self, listing: Listing, now: datetime) -> float:
        meta = listing.metadata

        on_market = days_since(meta.first_seen, now)
        if on_market is None:
            score = FIRST_SEEN_NEUTRAL
        else:
            score = band(on_market, FIRST_SEEN_TABLE, FIRST_SEEN_FLOOR)

        since_update = days_since(meta.last_updated, now)
        if since_update is None:
            score += LAST_UPDATE_NEUTRAL
        else:
            score += band(since_update, LAST_UPDATE_TABLE, LAST_UPDATE_FLOOR)

        return score

    def availability_score(self, listing: Listing, now: datetime) -> float:
        meta = listing.metadata

        if meta.availability_probability is not None:
            score = meta.availability_probability * AI_AVAILABILITY_POINTS
        else:
            unseen = days_since(meta.last_seen, now)
            if unseen is None:
                score = LAST_SEEN_NEUTRAL
            else:
                score = band(unseen, LAST_SEEN_TABLE, LAST_SEEN_FLOOR)

        score += self.portal_points(meta.portal_count)

        if meta.data_quality is None:
            score += DATA_QUALITY_NEUTRAL
        else:
            score += DATA_QUALITY_POINTS[meta.data_quality]

        return score

    @staticmethod
    def portal_points(portal_count: Optional[int]) -> float:
        """Más portales, más chances de que siga activo (0-10)."""
        if portal_count is None:
            return PORTALS_NEUTRAL
        if portal_count >= 5:
            return 10.0
        if portal_count >= 3:
            return 7.0
        if portal_count >= 2:
            return 5.0
        return 3.0

    def market_trend_score(self, listing: Listing) -> float:
        price = listing.price

        if price.price_range is None:
            score = DIVERGENCE_NEUTRAL
        else:
            score = band(price.price_range.divergence_percentage, DIVERGENCE_TABLE, DIVERGENCE_FLOOR)

        score += self.price_per_area_points(price.price_per_m2)

        views = listing.metadata.view_count
        if views is None:
            score += VIEW_COUNT_NEUTRAL
        else:
            for threshold, points in VIEW_COUNT_TABLE:
                if views >= threshold:
                    score += points
                    break
            else:
                score += VIEW_COUNT_FLOOR

        return score

    @staticmethod
    def price_per_area_points(price_per_m2: Optional[float]) -> float:
        """
        €/m² (0-10): por debajo del rango típico es oportunidad y puntúa más
        que el rango típico; por encima puntúa menos.
        """
        if not price_per_m2:
            return PPA_NEUTRAL
        if price_per_m2 < TYPICAL_PPA_MIN:
            return 10.0
        if price_per_m2 <= TYPICAL_PPA_MAX:
            return 8.0
        if price_per_m2 <= HIGH_PPA_MAX:
            return 5.0
        return 3.0
