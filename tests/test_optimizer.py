"""
Tests del optimizador de pesos y de las métricas de ranking.
"""

import math
import threading
from types import SimpleNamespace

import pytest

from brujula.errors import InsufficientDataError
from brujula.learning import WeightOptimizer, compute_ranking_metrics, evaluate_weights
from brujula.models import ModelState, WeightVector


def predictive_samples(make_sample, n: int = 10):
    """Compatibilidad predice perfectamente el outcome; el resto es constante."""
    samples = []
    for i in range(n):
        if i % 2 == 0:
            samples.append(make_sample(100, 50, 50, "converted", f"good-{i}"))
        else:
            samples.append(make_sample(0, 50, 50, "ignored", f"bad-{i}"))
    return samples


def make_optimizer(**kwargs) -> WeightOptimizer:
    params = {"learning_rate": 0.01, "min_samples": 10, "train_every": 10}
    params.update(kwargs)
    return WeightOptimizer(**params)


def load(optimizer: WeightOptimizer, samples) -> WeightOptimizer:
    optimizer.load_state(ModelState(weights=optimizer.weights, samples=samples))
    return optimizer


def assert_weights(weights: WeightVector, compatibility: float, behavior: float, temporal: float):
    assert weights.compatibility == pytest.approx(compatibility)
    assert weights.behavior == pytest.approx(behavior)
    assert weights.temporal == pytest.approx(temporal)


class TestTraining:
    """Tests de WeightOptimizer.train"""

    def test_below_minimum_is_noop(self, make_sample):
        optimizer = make_optimizer()
        load(optimizer, predictive_samples(make_sample, 4))

        assert optimizer.train() is None
        assert_weights(optimizer.weights, 0.4, 0.3, 0.3)
        assert optimizer.state.last_trained_at is None

    def test_below_minimum_strict_raises(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample, 4))

        with pytest.raises(InsufficientDataError) as exc:
            optimizer.train(strict=True)
        assert exc.value.required == 10
        assert exc.value.available == 4

    def test_converges_toward_compatibility(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))

        for _ in range(5):
            optimizer.train()

        weights = optimizer.weights
        assert weights.compatibility > 0.8
        assert weights.behavior < 0.1
        assert weights.behavior == pytest.approx(weights.temporal)
        assert weights.total == pytest.approx(1.0)

    def test_floor_before_renormalization(self, make_sample):
        optimizer = load(
            make_optimizer(
                initial_weights=WeightVector(compatibility=0.9, behavior=0.05, temporal=0.05)
            ),
            predictive_samples(make_sample),
        )
        optimizer.train()

        # Los pesos que caen por debajo de 0.1 quedan en 0.1 antes de normalizar
        weights = optimizer.weights
        assert weights.behavior == pytest.approx(weights.temporal)
        # 0.9 + 0.01 * 250 = 3.4 para compatibilidad; 0.05 sube al piso 0.1
        assert_weights(weights, 3.4 / 3.6, 0.1 / 3.6, 0.1 / 3.6)

    def test_records_accuracy_and_timestamp(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))

        report = optimizer.train()

        state = optimizer.state
        assert report is not None
        assert state.last_trained_at is not None
        # Primer paso con pesos 0.4/0.3/0.3: error absoluto 30 en cada muestra
        assert state.accuracy == pytest.approx(0.7)
        assert report.accuracy == pytest.approx(0.7)

    def test_malformed_samples_skipped(self, make_sample):
        samples = predictive_samples(make_sample) + [
            make_sample(math.nan, 50, 50, "converted", "nan"),
            make_sample(150, 50, 50, "converted", "too-high"),
            make_sample(50, -5, 50, "ignored", "negative"),
        ]
        optimizer = load(make_optimizer(), samples)

        report = optimizer.train()

        assert report is not None
        assert report.sample_count == 10
        assert all(math.isfinite(w) for w in optimizer.weights.model_dump().values())

    def test_all_malformed_is_noop(self, make_sample):
        samples = [make_sample(math.inf, 50, 50, "converted", f"x{i}") for i in range(10)]
        optimizer = load(make_optimizer(), samples)

        assert optimizer.train() is None
        assert_weights(optimizer.weights, 0.4, 0.3, 0.3)


class TestAutoTraining:
    def test_trains_at_minimum_then_periodically(self, make_sample):
        optimizer = make_optimizer(min_samples=4, train_every=2)
        samples = predictive_samples(make_sample, 8)

        triggered = [optimizer.add_sample(sample) for sample in samples]

        assert triggered == [False, False, False, True, False, True, False, True]
        assert optimizer.state.last_trained_at is not None

    def test_concurrent_appends(self, make_sample):
        optimizer = make_optimizer(min_samples=20, train_every=5)
        samples = predictive_samples(make_sample, 200)

        def worker(chunk):
            for sample in chunk:
                optimizer.add_sample(sample)

        threads = [threading.Thread(target=worker, args=(samples[i::4],)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert optimizer.sample_count == 200
        assert optimizer.weights.total == pytest.approx(1.0)


class TestEvaluation:
    def test_does_not_mutate_state(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))
        before = optimizer.export_state()

        optimizer.evaluate()

        assert optimizer.export_state() == before

    def test_accuracy_is_one_minus_mae(self, make_sample):
        samples = [
            make_sample(100, 100, 100, "converted"),
            make_sample(0, 0, 0, "ignored"),
            make_sample(60, 60, 60, "viewed"),
        ]
        report = evaluate_weights(WeightVector(), samples)

        assert report.avg_error == pytest.approx(10)
        assert report.accuracy == pytest.approx(0.9)
        assert report.hit_rate == pytest.approx(2 / 3)
        assert report.sample_count == 3

    def test_empty(self):
        report = make_optimizer().evaluate()
        assert report.sample_count == 0
        assert report.accuracy == 0


class TestABTest:
    def test_better_weights_win(self, make_sample):
        optimizer = make_optimizer()
        samples = predictive_samples(make_sample)
        compat_heavy = WeightVector(compatibility=0.9, behavior=0.05, temporal=0.05)
        temporal_heavy = WeightVector(compatibility=0.1, behavior=0.1, temporal=0.8)

        result = optimizer.ab_test(compat_heavy, temporal_heavy, samples)

        assert result.winner == "A"
        assert result.winner_weights == compat_heavy.normalized()
        assert result.report_a.accuracy > result.report_b.accuracy

        reversed_result = optimizer.ab_test(temporal_heavy, compat_heavy, samples)
        assert reversed_result.winner == "B"

    def test_same_weights_tie(self, make_sample):
        optimizer = make_optimizer()
        weights = WeightVector()

        result = optimizer.ab_test(weights, weights, predictive_samples(make_sample))

        assert result.winner == "tie"
        assert result.accuracy_difference == 0

    def test_difference_equal_to_margin_is_tie(self, make_sample):
        # Solo compatibilidad predice 100 (accuracy 1.0); solo temporal predice 50 (0.5)
        samples = [make_sample(100, 0, 50, "converted")]
        compatibility_only = WeightVector(compatibility=1, behavior=0, temporal=0)
        temporal_only = WeightVector(compatibility=0, behavior=0, temporal=1)

        tied = make_optimizer(tie_margin=0.5).ab_test(compatibility_only, temporal_only, samples)
        decided = make_optimizer(tie_margin=0.49).ab_test(compatibility_only, temporal_only, samples)

        assert tied.accuracy_difference == pytest.approx(0.5)
        assert tied.winner == "tie"
        assert tied.winner_weights == compatibility_only.normalized()
        assert decided.winner == "A"

    def test_default_tie_margin(self):
        assert make_optimizer().tie_margin == 0.05

    def test_does_not_touch_optimizer(self, make_sample):
        optimizer = make_optimizer()
        optimizer.ab_test(WeightVector(), WeightVector(), predictive_samples(make_sample))
        assert optimizer.sample_count == 0


class TestSuggestions:
    def test_correlated_component_dominates(self, make_sample):
        samples = [
            make_sample(90, 50, 20, "converted", "a"),
            make_sample(70, 50, 40, "contacted", "b"),
            make_sample(40, 50, 60, "viewed", "c"),
            make_sample(10, 50, 80, "ignored", "d"),
        ] * 3
        optimizer = load(make_optimizer(), samples)

        suggestion = optimizer.suggest_weights()

        # behavior es constante y temporal correlaciona negativamente
        assert suggestion.correlations["behavior"] == 0
        assert suggestion.correlations["temporal"] < 0
        assert suggestion.suggested.compatibility == pytest.approx(1.0)
        assert "compatibilidad" in suggestion.rationale
        assert suggestion.current == optimizer.weights

    def test_insufficient_data(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample, 3))

        suggestion = optimizer.suggest_weights()

        assert suggestion.suggested == suggestion.current
        assert suggestion.rationale.startswith("Datos insuficientes")


class TestState:
    def test_export_load_roundtrip(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))
        optimizer.train()
        dumped = optimizer.export_state().model_dump_json()

        restored = make_optimizer()
        restored.load_state(ModelState.model_validate_json(dumped))

        assert restored.weights.model_dump() == pytest.approx(optimizer.weights.model_dump())
        assert restored.sample_count == optimizer.sample_count
        assert restored.state.accuracy == optimizer.state.accuracy

    def test_export_is_a_copy(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))
        state = optimizer.export_state()
        state.samples.clear()
        assert optimizer.sample_count == 10

    def test_reset(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))
        optimizer.train()

        optimizer.reset()

        assert optimizer.sample_count == 0
        assert_weights(optimizer.weights, 0.4, 0.3, 0.3)
        assert optimizer.state.accuracy is None

    def test_feature_importance_matches_weights(self):
        optimizer = make_optimizer(
            initial_weights=WeightVector(compatibility=2, behavior=1, temporal=1)
        )
        assert optimizer.feature_importance() == pytest.approx(
            {"compatibility": 0.5, "behavior": 0.25, "temporal": 0.25}
        )

    def test_success_rate(self, make_sample):
        optimizer = load(make_optimizer(), predictive_samples(make_sample))
        assert optimizer.success_rate() == pytest.approx(0.5)


class TestRankingMetrics:
    def test_precision_recall_f1(self):
        scores = [
            SimpleNamespace(listing_id="a", final_score=90),
            SimpleNamespace(listing_id="b", final_score=75),
            SimpleNamespace(listing_id="c", final_score=72),
            SimpleNamespace(listing_id="d", final_score=40),
        ]

        metrics = compute_ranking_metrics(scores, {"a", "b", "d"})

        assert metrics.high_scores == 3
        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(2 / 3)
        assert metrics.f1 == pytest.approx(2 / 3)
        assert metrics.average_score == pytest.approx(69.25)

    def test_no_data(self):
        metrics = compute_ranking_metrics([], set())
        assert metrics.precision == 0
        assert metrics.recall == 0
        assert metrics.f1 == 0
