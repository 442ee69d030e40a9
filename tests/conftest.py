"""
Configuración de pytest y fixtures compartidas.

Todos los tests usan un instante fijo (NOW) para que las bandas
temporales sean deterministas.
"""

from datetime import datetime, timedelta, timezone

import pytest

from brujula.models import (
    Listing,
    TrainingSample,
    UserBehavior,
    UserPreferences,
)
from brujula.scoring import EngineConfig, ScoringEngine

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def _merge(base: dict, overrides: dict) -> dict:
    data = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return data


def listing_data(listing_id: str = "listing-1") -> dict:
    """T2 en Lisboa, 250.000 €, datos completos."""
    return {
        "id": listing_id,
        "title": "Apartamento T2 em Arroios",
        "property_type": "apartment",
        "location": {
            "address": {
                "street": "Rua Morais Soares 10",
                "parish": "Arroios",
                "municipality": "Lisboa",
                "district": "Lisboa",
            },
            "coordinates": {"latitude": 38.7223, "longitude": -9.1393},
        },
        "price": {
            "value": 250000,
            "price_per_m2": 2500,
            "price_range": {"min": 245000, "max": 255000, "divergence_percentage": 4.0},
        },
        "characteristics": {
            "total_area": 100,
            "bedrooms": 2,
            "bathrooms": 1,
            "typology": "T2",
            "features": ["elevator", "balcony"],
        },
        "metadata": {
            "first_seen": days_ago(2),
            "last_seen": days_ago(0.5),
            "last_updated": days_ago(1),
            "portal_count": 3,
            "view_count": 60,
            "data_quality": "high",
        },
    }


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_listing():
    """Factory de listings: las secciones dict se mezclan con el listing base."""

    def factory(listing_id: str = "listing-1", **sections) -> Listing:
        return Listing.model_validate(_merge(listing_data(listing_id), sections))

    return factory


@pytest.fixture
def make_preferences():
    """Factory de preferencias: busca T2 en Lisboa entre 200.000 y 300.000 €."""

    def factory(**overrides) -> UserPreferences:
        data = {
            "user_id": "user-1",
            "location": {
                "preferred_municipalities": ["Lisboa"],
                "preferred_districts": ["Lisboa"],
            },
            "price": {"min_price": 200000, "max_price": 300000},
            "property_types": ["apartment"],
            "characteristics": {
                "min_bedrooms": 2,
                "min_bathrooms": 1,
                "min_area": 80,
            },
        }
        return UserPreferences.model_validate(_merge(data, overrides))

    return factory


@pytest.fixture
def make_behavior():
    """Factory de comportamiento: 3 vistas, 6 minutos, guardado, visto hace 2 días."""

    def factory(listing_id: str = "listing-1", **overrides) -> UserBehavior:
        data = {
            "user_id": "user-1",
            "listing_id": listing_id,
            "view_count": 3,
            "total_view_seconds": 360,
            "first_viewed_at": days_ago(5),
            "last_viewed_at": days_ago(2),
            "actions": {"saved": True},
            "images_viewed": 4,
            "details_expanded": True,
        }
        return UserBehavior.model_validate(_merge(data, overrides))

    return factory


@pytest.fixture
def make_sample():
    def factory(
        compatibility: float,
        behavior: float,
        temporal: float,
        outcome: str,
        listing_id: str = "listing-1",
    ) -> TrainingSample:
        return TrainingSample(
            listing_id=listing_id,
            compatibility=compatibility,
            behavior=behavior,
            temporal=temporal,
            outcome=outcome,
            timestamp=NOW,
        )

    return factory


@pytest.fixture
def listing(make_listing) -> Listing:
    return make_listing()


@pytest.fixture
def preferences(make_preferences) -> UserPreferences:
    return make_preferences()


@pytest.fixture
def behavior(make_behavior) -> UserBehavior:
    return make_behavior()


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine(EngineConfig())
