"""
Unit Tests for qmgraph/config/settings.py
"""

import pytest

from qmgraph.config import Settings, default_severity_weights
from qmgraph.core import AggregationKind, CombinationPolicy, CyclePolicy


class TestDefaults:
    """Default policies and the severity curve."""

    def test_default_policies(self):
        settings = Settings()
        assert settings.combination_policy is CombinationPolicy.WEIGHTED_AVERAGE
        assert settings.cycle_policy is CyclePolicy.FIXED_POINT
        assert settings.variance_ddof == 0
        assert settings.default_findings_aggregation is AggregationKind.FINDINGS_UNION
        assert settings.default_number_aggregation is AggregationKind.NUMBER_MEAN

    def test_severity_curve(self):
        weights = default_severity_weights()
        assert [weights[v] for v in range(1, 6)] == pytest.approx([1.0, 0.8, 0.6, 0.4, 0.2])

    def test_unset_severity_uses_default(self):
        settings = Settings(default_severity=5)
        assert settings.severity_weight(None) == pytest.approx(0.2)
        assert settings.severity_weight(1) == pytest.approx(1.0)


class TestValidation:
    """Invalid settings are rejected at construction."""

    @pytest.mark.parametrize("overrides", [
        {"max_iterations": 0},
        {"tolerance": 0},
        {"variance_ddof": 2},
        {"base_weight": -1},
        {"max_workers": 0},
        {"default_severity": 6},
        {"severity_weights": {1: 0.2, 2: 0.4, 3: 0.6, 4: 0.8, 5: 1.0}},
        {"severity_weights": {1: 1.0, 2: 0.5}},
        {"default_number_aggregation": AggregationKind.FINDINGS_UNION},
        {"combination_policy": "sum"},
    ])
    def test_rejected(self, overrides):
        with pytest.raises(ValueError):
            Settings(**overrides)


class TestLoading:
    """dict, environment and YAML sources."""

    def test_from_dict_ignores_unknown_keys(self):
        settings = Settings.from_dict({"cycle_policy": "reject", "colour": "blue"})
        assert settings.cycle_policy is CyclePolicy.REJECT

    def test_round_trip_through_dict(self):
        settings = Settings(combination_policy=CombinationPolicy.BOUNDED_SUM, max_workers=3)
        assert Settings.from_dict(settings.to_dict()) == settings

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("QMGRAPH_COMBINATION_POLICY", "bounded_sum")
        monkeypatch.setenv("QMGRAPH_MAX_ITERATIONS", "25")
        monkeypatch.setenv("QMGRAPH_INCLUDE_REFINEMENTS", "false")
        monkeypatch.setenv("QMGRAPH_VALIDATE_BEFORE_EVALUATE", "yes")
        settings = Settings.from_env()
        assert settings.combination_policy is CombinationPolicy.BOUNDED_SUM
        assert settings.max_iterations == 25
        assert settings.include_refinements is False
        assert settings.validate_before_evaluate is True

    def test_from_yaml_section(self, tmp_path):
        path = tmp_path / "evaluation.yaml"
        path.write_text(
            "evaluation:\n"
            "  cycle_policy: reject\n"
            "  tolerance: 1.0e-6\n"
            "  severity_weights: {1: 1.0, 2: 0.9, 3: 0.5, 4: 0.3, 5: 0.1}\n"
        )
        settings = Settings.from_yaml(path)
        assert settings.cycle_policy is CyclePolicy.REJECT
        assert settings.tolerance == pytest.approx(1e-6)
        assert settings.severity_weight(2) == pytest.approx(0.9)

    def test_from_yaml_top_level(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("max_workers: 4\n")
        assert Settings.from_yaml(path).max_workers == 4
