"""
Modelos de datos del sistema.

- Entrada: Listing, UserPreferences, UserBehavior
- Salida: PropertyScore y sus desgloses
- Aprendizaje: TrainingSample, OutcomeEvent, ModelState
"""

from brujula.models.listing import (
    Address,
    Characteristics,
    Coordinates,
    DataQuality,
    Feature,
    Listing,
    ListingLocation,
    ListingMetadata,
    ListingPrice,
    PriceRange,
    PropertyType,
)
from brujula.models.user import (
    CharacteristicPreferences,
    InteractionFlags,
    LocationPreferences,
    PricePreferences,
    UserBehavior,
    UserPreferences,
)
from brujula.models.scoring import (
    BehaviorBreakdown,
    BehaviorScore,
    CompatibilityBreakdown,
    CompatibilityScore,
    PropertyScore,
    ScoreComponent,
    ScoreReason,
    TemporalBreakdown,
    TemporalScore,
    WeightVector,
)
from brujula.models.training import (
    OUTCOME_TARGETS,
    ModelState,
    Outcome,
    OutcomeEvent,
    TrainingSample,
)

__all__ = [
    # Listing
    "Address",
    "Characteristics",
    "Coordinates",
    "DataQuality",
    "Feature",
    "Listing",
    "ListingLocation",
    "ListingMetadata",
    "ListingPrice",
    "PriceRange",
    "PropertyType",
    # Usuario
    "CharacteristicPreferences",
    "InteractionFlags",
    "LocationPreferences",
    "PricePreferences",
    "UserBehavior",
    "UserPreferences",
    # Scoring
    "BehaviorBreakdown",
    "BehaviorScore",
    "CompatibilityBreakdown",
    "CompatibilityScore",
    "PropertyScore",
    "ScoreComponent",
    "ScoreReason",
    "TemporalBreakdown",
    "TemporalScore",
    "WeightVector",
    # Aprendizaje
    "OUTCOME_TARGETS",
    "ModelState",
    "Outcome",
    "OutcomeEvent",
    "TrainingSample",
]
