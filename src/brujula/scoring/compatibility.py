"""
Score de compatibilidad listing <-> preferencias declaradas.

Dimensiones:
- Ubicación (0-30): municipio, distrito y distancia a un punto de referencia
- Precio (0-25): gaussiana sobre el precio ideal, o rango min/max
- Tipo (0-15): tipo de inmueble o tipología
- Características (0-30): dormitorios, baños, superficie y features

Cualquier preferencia ausente vale la mitad del máximo de su dimensión.
"""

import math
import re
import unicodedata
from typing import Optional

from brujula.models import (
    CompatibilityBreakdown,
    CompatibilityScore,
    Listing,
    UserPreferences,
)
from brujula.models.scoring import (
    CHARACTERISTICS_MAX,
    LOCATION_MAX,
    PRICE_MAX,
    TYPE_MAX,
)
from brujula.scoring.numeric import clamp, haversine_km
from brujula.scoring.reasons import compatibility_reasons

# Ubicación
MUNICIPALITY_POINTS = 15.0
DISTRICT_POINTS = 10.0
DISTANCE_POINTS = 5.0

# Características
BEDROOMS_POINTS = 8.0
BATHROOMS_POINTS = 5.0
AREA_POINTS = 7.0
FEATURES_POINTS = 10.0

# Desvío respecto al precio ideal (fracción del ideal) usado como ancho de la gaussiana
IDEAL_PRICE_SPREAD = 0.5


def _normalize(text: Optional[str]) -> str:
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"\s+", " ", ascii_text).strip().casefold()


def _matches_any(value: Optional[str], options: list[str]) -> bool:
    target = _normalize(value)
    return bool(target) and any(_normalize(option) == target for option in options)


class CompatibilityScorer:
    """Calcula el score de compatibilidad (0-100)."""

    def calculate(self, listing: Listing, preferences: UserPreferences) -> CompatibilityScore:
        breakdown = CompatibilityBreakdown(
            location=clamp(self.location_score(listing, preferences), 0.0, LOCATION_MAX),
            price=clamp(self.price_score(listing, preferences), 0.0, PRICE_MAX),
            property_type=clamp(self.type_score(listing, preferences), 0.0, TYPE_MAX),
            characteristics=clamp(
                self.characteristics_score(listing, preferences), 0.0, CHARACTERISTICS_MAX
            ),
        )
        return CompatibilityScore(
            breakdown=breakdown,
            reasons=compatibility_reasons(listing, preferences, breakdown),
        )

    def location_score(self, listing: Listing, preferences: UserPreferences) -> float:
        prefs = preferences.location
        if prefs is None:
            return LOCATION_MAX * 0.5

        address = listing.location.address
        score = 0.0

        if prefs.preferred_municipalities:
            if _matches_any(address.municipality, prefs.preferred_municipalities):
                score += MUNICIPALITY_POINTS
        else:
            score += MUNICIPALITY_POINTS * 0.5

        if prefs.preferred_districts:
            if _matches_any(address.district, prefs.preferred_districts):
                score += DISTRICT_POINTS
        else:
            score += DISTRICT_POINTS * 0.5

        coords = listing.location.coordinates
        if prefs.reference_point and prefs.max_distance_km and coords:
            distance = haversine_km(
                prefs.reference_point.latitude,
                prefs.reference_point.longitude,
                coords.latitude,
                coords.longitude,
            )
            if distance <= prefs.max_distance_km:
                # Decae linealmente hasta 0 en la distancia máxima
                score += DISTANCE_POINTS * (1 - distance / prefs.max_distance_km)
        else:
            score += DISTANCE_POINTS * 0.5

        return score

    def price_score(self, listing: Listing, preferences: UserPreferences) -> float:
        prefs = preferences.price
        price = listing.price.value
        if prefs is None or price is None:
            return PRICE_MAX * 0.5

        if prefs.ideal_price:
            deviation = abs(price - prefs.ideal_price)
            spread = prefs.ideal_price * IDEAL_PRICE_SPREAD
            return PRICE_MAX * math.exp(-((deviation / spread) ** 2))

        min_price, max_price = prefs.min_price, prefs.max_price
        if min_price is None and max_price is None:
            return PRICE_MAX * 0.5

        if min_price is not None and price < min_price:
            deviation = (min_price - price) / min_price if min_price > 0 else 0.0
            return PRICE_MAX * max(0.0, 1 - deviation)
        if max_price is not None and price > max_price:
            if max_price <= 0:
                return 0.0
            deviation = (price - max_price) / max_price
            return PRICE_MAX * max(0.0, 1 - deviation)
        return PRICE_MAX

    def type_score(self, listing: Listing, preferences: UserPreferences) -> float:
        wanted = preferences.property_types
        if not wanted:
            return TYPE_MAX * 0.5

        if _matches_any(listing.property_type.value, wanted):
            return TYPE_MAX
        if _matches_any(listing.characteristics.typology, wanted):
            return TYPE_MAX
        return 0.0

    def characteristics_score(self, listing: Listing, preferences: UserPreferences) -> float:
        prefs = preferences.characteristics
        if prefs is None:
            return CHARACTERISTICS_MAX * 0.5

        chars = listing.characteristics
        score = 0.0

        # Dormitorios
        score += self._range_credit(
            chars.bedrooms, prefs.min_bedrooms, prefs.max_bedrooms, BEDROOMS_POINTS
        )

        # Baños
        if prefs.min_bathrooms is not None and chars.bathrooms is not None:
            score += BATHROOMS_POINTS if chars.bathrooms >= prefs.min_bathrooms else 2.0
        else:
            score += BATHROOMS_POINTS * 0.5

        # Superficie
        score += self._range_credit(chars.area, prefs.min_area, prefs.max_area, AREA_POINTS)

        # Features
        if prefs.required_features:
            matched = len(prefs.required_features & chars.features)
            score += FEATURES_POINTS * matched / len(prefs.required_features)
        elif prefs.preferred_features:
            matched = len(prefs.preferred_features & chars.features)
            score += FEATURES_POINTS * 0.5 * (1 + matched / len(prefs.preferred_features))
        else:
            score += FEATURES_POINTS * 0.5

        return score

    @staticmethod
    def _range_credit(
        value: Optional[float],
        minimum: Optional[float],
        maximum: Optional[float],
        points: float,
    ) -> float:
        """Crédito completo dentro del rango, mitad si cumple un solo extremo o falta el dato."""
        if (minimum is None and maximum is None) or value is None:
            return points * 0.5

        meets_min = minimum is None or value >= minimum
        meets_max = maximum is None or value <= maximum
        if meets_min and meets_max:
            return points
        if meets_min or meets_max:
            return points * 0.5
        return 0.0
