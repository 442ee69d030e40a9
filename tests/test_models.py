"""
Tests de los modelos de datos.
"""

import math

import pytest
from pydantic import ValidationError

from brujula.errors import ConfigurationError
from brujula.models import (
    Characteristics,
    CharacteristicPreferences,
    CompatibilityBreakdown,
    Feature,
    ModelState,
    Outcome,
    OutcomeEvent,
    PricePreferences,
    TrainingSample,
    UserBehavior,
    WeightVector,
)


class TestWeightVector:
    """Tests del vector de pesos"""

    @pytest.mark.parametrize(
        "weights",
        [
            (0.4, 0.3, 0.3),
            (1.0, 1.0, 1.0),
            (2.0, 1.0, 1.0),
            (0.001, 0.0, 0.0),
            (1e6, 3.0, 0.5),
            (0.33, 0.33, 0.33),
        ],
    )
    def test_normalized_sums_to_one(self, weights):
        c, b, t = weights
        normalized = WeightVector(compatibility=c, behavior=b, temporal=t).normalized()
        assert normalized.total == pytest.approx(1.0, abs=1e-6)

    def test_normalized_keeps_proportions(self):
        normalized = WeightVector(compatibility=2, behavior=1, temporal=1).normalized()
        assert normalized.compatibility == pytest.approx(0.5)
        assert normalized.behavior == pytest.approx(0.25)
        assert normalized.temporal == pytest.approx(0.25)

    def test_all_zero_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            WeightVector(compatibility=0, behavior=0, temporal=0).normalized()

    def test_infinite_weight_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            WeightVector(compatibility=math.inf, behavior=0.3, temporal=0.3).normalized()

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            WeightVector(compatibility=-0.1, behavior=0.5, temporal=0.6)

    def test_is_immutable(self):
        weights = WeightVector()
        with pytest.raises(ValidationError):
            weights.compatibility = 0.9

    def test_blend(self):
        weights = WeightVector(compatibility=0.5, behavior=0.25, temporal=0.25)
        assert weights.blend(80, 40, 60) == pytest.approx(65.0)


class TestFeatures:
    """Tests del set cerrado de features"""

    def test_features_from_dict(self):
        chars = Characteristics(features={"elevator": True, "pool": False, "garden": True})
        assert chars.features == {Feature.ELEVATOR, Feature.GARDEN}

    def test_features_from_list(self):
        chars = Characteristics(features=["balcony", "parking"])
        assert chars.features == {Feature.BALCONY, Feature.PARKING}

    def test_unknown_feature_rejected(self):
        with pytest.raises(ValidationError):
            Characteristics(features=["helipad"])

    def test_preferences_accept_dict(self):
        prefs = CharacteristicPreferences(required_features={"terrace": True})
        assert prefs.required_features == {Feature.TERRACE}

    def test_area_falls_back_to_useful_area(self):
        assert Characteristics(useful_area=70).area == 70
        assert Characteristics(total_area=90, useful_area=70).area == 90
        assert Characteristics().area is None


class TestPreferences:
    def test_min_price_above_max_rejected(self):
        with pytest.raises(ValidationError):
            PricePreferences(min_price=300000, max_price=200000)


class TestUserBehavior:
    def test_average_derived_from_total(self):
        behavior = UserBehavior(listing_id="x", view_count=4, total_view_seconds=200)
        assert behavior.avg_view_seconds == 50

    def test_explicit_average_wins(self):
        behavior = UserBehavior(
            listing_id="x", view_count=4, total_view_seconds=200, average_view_seconds=90
        )
        assert behavior.avg_view_seconds == 90

    def test_no_views_average_zero(self):
        assert UserBehavior(listing_id="x").avg_view_seconds == 0

    def test_action_count(self):
        behavior = UserBehavior(listing_id="x", actions={"saved": True, "contacted": True})
        assert behavior.action_count == 2


class TestBreakdowns:
    def test_total_is_sum_of_dimensions(self):
        breakdown = CompatibilityBreakdown(
            location=27.5, price=25, property_type=15, characteristics=12.25
        )
        assert breakdown.total == 79.75
        assert breakdown.model_dump()["total"] == 79.75

    def test_dimension_above_maximum_rejected(self):
        with pytest.raises(ValidationError):
            CompatibilityBreakdown(location=31, price=0, property_type=0, characteristics=0)


class TestTraining:
    def test_sample_target(self, make_sample):
        assert make_sample(50, 50, 50, "converted").target == 100
        assert make_sample(50, 50, 50, "contacted").target == 70
        assert make_sample(50, 50, 50, "viewed").target == 30
        assert make_sample(50, 50, 50, "ignored").target == 0

    def test_outcome_event_from_score(self, engine, listing, preferences, behavior, now):
        score = engine.score(listing, preferences, behavior, now=now)
        event = OutcomeEvent.from_score(score, Outcome.CONTACTED, occurred_at=now)

        assert event.listing_id == listing.id
        assert event.user_id == preferences.user_id
        assert event.compatibility == score.compatibility.total
        assert event.behavior == pytest.approx(score.effective_behavior)

        sample = event.to_sample()
        assert isinstance(sample, TrainingSample)
        assert sample.target == 70
        assert sample.timestamp == now

    def test_model_state_json_roundtrip(self, make_sample):
        state = ModelState(
            weights=WeightVector(compatibility=0.5, behavior=0.2, temporal=0.3),
            samples=[make_sample(80, 40, 60, "converted")],
            accuracy=0.75,
        )
        restored = ModelState.model_validate_json(state.model_dump_json())
        assert restored == state
