"""
Tests de los scripts de línea de comandos.
"""

import json
import sys

import pytest

from brujula.models import ModelState
from brujula.scripts import run_ranking, run_training

from conftest import listing_data


def write_json(path, data):
    path.write_text(json.dumps(data, default=str), encoding="utf-8")
    return str(path)


def run_main(module, monkeypatch, *args) -> int:
    monkeypatch.setattr(sys, "argv", [module.__name__, *args])
    with pytest.raises(SystemExit) as exc:
        module.main()
    return exc.value.code


@pytest.fixture
def ranking_files(tmp_path):
    listings = [
        listing_data("a"),
        {**listing_data("b"), "price": {"value": 650000}},
        listing_data("c"),
    ]
    preferences = {
        "user_id": "user-1",
        "location": {"preferred_municipalities": ["Lisboa"]},
        "price": {"min_price": 200000, "max_price": 300000},
        "property_types": ["apartment"],
    }
    behaviors = [{"listing_id": "c", "view_count": 5, "actions": {"contacted": True}}]
    return {
        "listings": write_json(tmp_path / "listings.json", listings),
        "preferences": write_json(tmp_path / "preferences.json", preferences),
        "behaviors": write_json(tmp_path / "behaviors.json", behaviors),
    }


@pytest.fixture
def samples_file(tmp_path):
    samples = []
    for i in range(12):
        good = i % 2 == 0
        samples.append(
            {
                "listing_id": f"l{i}",
                "compatibility": 100 if good else 0,
                "behavior": 50,
                "temporal": 50,
                "outcome": "converted" if good else "ignored",
            }
        )
    return write_json(tmp_path / "samples.json", samples)


class TestRunRanking:
    def test_prints_ranking(self, ranking_files, monkeypatch, capsys):
        code = run_main(
            run_ranking,
            monkeypatch,
            "--listings", ranking_files["listings"],
            "--preferences", ranking_files["preferences"],
            "--behaviors", ranking_files["behaviors"],
            "--max-results", "2",
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert [e["rank"] for e in output["entries"]] == [1, 2]
        assert output["metadata"]["count"] == 2
        assert output["metadata"]["total_candidates"] == 3
        assert "b" not in [e["listing_id"] for e in output["entries"]]

    def test_quick_mode(self, ranking_files, monkeypatch, capsys):
        code = run_main(
            run_ranking,
            monkeypatch,
            "--listings", ranking_files["listings"],
            "--preferences", ranking_files["preferences"],
            "--quick",
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["weights"]["behavior"] == 0

    def test_missing_file_exits_with_error(self, ranking_files, monkeypatch, tmp_path):
        code = run_main(
            run_ranking,
            monkeypatch,
            "--listings", str(tmp_path / "nope.json"),
            "--preferences", ranking_files["preferences"],
        )
        assert code == 1

    def test_zero_weights_exit_with_error(self, ranking_files, monkeypatch):
        code = run_main(
            run_ranking,
            monkeypatch,
            "--listings", ranking_files["listings"],
            "--preferences", ranking_files["preferences"],
            "--weights", "0", "0", "0",
        )
        assert code == 1


class TestRunTraining:
    def test_trains_and_saves_state(self, samples_file, monkeypatch, capsys, tmp_path):
        state_path = tmp_path / "model.json"

        code = run_main(
            run_training,
            monkeypatch,
            "--samples", samples_file,
            "--min-samples", "10",
            "--epochs", "3",
            "--state-out", str(state_path),
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        weights = output["weights"]
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["compatibility"] > output["initial_weights"]["compatibility"]
        assert output["evaluation"]["sample_count"] == 12

        state = ModelState.model_validate_json(state_path.read_text(encoding="utf-8"))
        assert len(state.samples) == 12
        assert state.last_trained_at is not None

    def test_insufficient_samples_exit_with_error(self, samples_file, monkeypatch):
        code = run_main(
            run_training,
            monkeypatch,
            "--samples", samples_file,
            "--min-samples", "50",
        )
        assert code == 1

    def test_resumes_from_state(self, samples_file, monkeypatch, capsys, tmp_path):
        state_path = tmp_path / "model.json"
        run_main(
            run_training, monkeypatch,
            "--samples", samples_file, "--min-samples", "10", "--state-out", str(state_path),
        )
        capsys.readouterr()

        code = run_main(
            run_training, monkeypatch,
            "--samples", samples_file, "--min-samples", "10", "--state-in", str(state_path),
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["evaluation"]["sample_count"] == 24
