"""
Unit Tests for qmgraph/analysis/propagation.py

Tests for:
    - base scores from measures and refining factors
    - severity-weighted combination of incoming impacts
    - cycle handling (fixed point and rejection)
    - memoization and parallel evaluation
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from qmgraph.analysis import FactorScore, PropagationEngine, QualityEvaluator, ScoreCache, evaluate
from qmgraph.config import Settings
from qmgraph.core import (
    NO_DATA,
    CombinationPolicy,
    CycleError,
    CyclePolicy,
    InfluenceEffect,
    NonConvergenceError,
    QualityModel,
    RawInput,
)
from qmgraph.core import model_builder as qm

from conftest import link, scored_factor


def severity_model():
    """F receives a POSITIVE severity-1 and a NEGATIVE severity-5 impact from sources scoring 0.8"""
    f = qm.factor("F", "f").create()
    p, mp, fp = scored_factor("P", identifier="p")
    n, mn, fn = scored_factor("N", identifier="n")
    positive = link(p, f, InfluenceEffect.POSITIVE, 1, identifier="p-f")
    negative = link(n, f, InfluenceEffect.NEGATIVE, 5, identifier="n-f")
    model = QualityModel("severity", [f, p, n, mp, mn, fp, fn, positive, negative])
    raw = {"m-p": [RawInput.number(0.8)], "m-n": [RawInput.number(0.8)]}
    return model, raw


# =============================================================================
# Scenario Tests
# =============================================================================

class TestScenarios:
    """End-to-end propagation scenarios."""

    def test_positive_impact_raises_composite_above_base(self, mean_scenario):
        result = QualityEvaluator(mean_scenario["model"]).evaluate(mean_scenario["raw"])
        f_score = result.factor_scores["f"]
        assert result.measure_values["m-f"] == pytest.approx(0.5)
        assert f_score.base_score == pytest.approx(0.5)
        assert result.scores["g"] == pytest.approx(0.9)
        assert f_score.composite_score > f_score.base_score
        # 0.5 + (1.0 * 0.9) / (1.0 + 1.0)
        assert f_score.composite_score == pytest.approx(0.95)

    def test_measure_without_inputs_gives_no_data(self):
        h, mh, fh = scored_factor("H", identifier="h")
        k = qm.factor("K", "k").create()
        impact = link(h, k, InfluenceEffect.POSITIVE, 1)
        scores = evaluate(QualityModel("no-data", [h, mh, fh, k, impact]), {})
        assert scores["h"] is NO_DATA
        assert scores["k"] is NO_DATA
        assert scores["h"] != 0.0

    def test_severity_weighting_favours_severe_impact(self):
        model, raw = severity_model()
        result = QualityEvaluator(model).evaluate(raw)
        composite = result.scores["f"]
        positive_contribution = 0.8
        # both impacts counted with equal weight cancel out
        unweighted = 0.8 - 0.8
        assert abs(composite - positive_contribution) < abs(unweighted - positive_contribution)
        # (1.0 * 0.8 - 0.2 * 0.8) / 1.2
        assert composite == pytest.approx(0.64 / 1.2)

    def test_contributions_recorded(self):
        model, raw = severity_model()
        contributions = QualityEvaluator(model).evaluate(raw).factor_scores["f"].contributions
        assert [c.impact_id for c in contributions] == ["n-f", "p-f"]
        negative, positive = contributions
        assert negative.weight == pytest.approx(0.2)
        assert negative.signed_contribution == pytest.approx(-0.16)
        assert positive.source_name == "P"
        assert positive.justification == "P influences F"
        assert positive.to_dict()["effect"] == "POSITIVE"

    def test_determinism(self, mean_scenario):
        first = evaluate(mean_scenario["model"], mean_scenario["raw"])
        second = evaluate(mean_scenario["model"], mean_scenario["raw"])
        assert first == second


# =============================================================================
# Combination Policy Tests
# =============================================================================

class TestCombinationPolicies:
    """Weighted average (default) and bounded sum."""

    def test_bounded_sum_clamps(self, mean_scenario):
        settings = Settings(combination_policy=CombinationPolicy.BOUNDED_SUM)
        scores = evaluate(mean_scenario["model"], mean_scenario["raw"], settings)
        # 0.5 + 1.0 * 0.9 clamped
        assert scores["f"] == 1.0

    def test_bounded_sum_severity(self):
        model, raw = severity_model()
        settings = Settings(combination_policy="bounded_sum")
        # 0 + 1.0 * 0.8 - 0.2 * 0.8
        assert evaluate(model, raw, settings)["f"] == pytest.approx(0.64)

    def test_base_weight(self, mean_scenario):
        settings = Settings(base_weight=3.0)
        # 0.5 + 0.9 / (3 + 1)
        assert evaluate(mean_scenario["model"], mean_scenario["raw"], settings)["f"] == pytest.approx(0.725)

    def test_unset_severity_uses_default(self):
        f, mf, ff = scored_factor("F", identifier="f")
        g, mg, fg = scored_factor("G", identifier="g")
        impact = (qm.impact().origin(g).target(f).effect(InfluenceEffect.NEGATIVE)
                  .justification("no severity given").create())
        model = QualityModel("default-severity", [f, mf, ff, g, mg, fg, impact])
        result = QualityEvaluator(model).evaluate({
            "m-f": [RawInput.number(0.5)],
            "m-g": [RawInput.number(0.25)],
        })
        contribution = result.factor_scores["f"].contributions[0]
        assert contribution.severity is None
        assert contribution.weight == pytest.approx(0.6)
        # 0.5 - 0.25 * 0.6 / (1 + 0.6)
        assert result.scores["f"] == pytest.approx(0.40625)

    def test_negative_impact_alone_gives_no_credit(self):
        f = qm.factor("F", "f").create()
        g, mg, fg = scored_factor("G", identifier="g")
        impact = link(g, f, InfluenceEffect.NEGATIVE, 1)
        model = QualityModel("negative-only", [f, g, mg, fg, impact])
        assert evaluate(model, {"m-g": [RawInput.number(0.9)]})["f"] == 0.0

    @pytest.mark.parametrize("policy", list(CombinationPolicy))
    @pytest.mark.parametrize("source_score", [0.0, 0.1, 0.5, 0.9, 1.0])
    @pytest.mark.parametrize("severity", [1, 5])
    def test_impact_direction_respected(self, policy, source_score, severity):
        settings = Settings(combination_policy=policy)
        for effect in InfluenceEffect:
            f, mf, ff = scored_factor("F", identifier="f")
            s, ms, fs = scored_factor("S", identifier="s")
            impact = link(s, f, effect, severity)
            model = QualityModel("direction", [f, mf, ff, s, ms, fs, impact])
            raw = {"m-f": [RawInput.number(0.5)], "m-s": [RawInput.number(source_score)]}
            composite = evaluate(model, raw, settings)["f"]
            if effect is InfluenceEffect.POSITIVE:
                assert composite >= 0.5
            else:
                assert composite <= 0.5

    @pytest.mark.parametrize("policy", list(CombinationPolicy))
    def test_scores_stay_in_unit_interval(self, policy):
        model, raw = severity_model()
        for value in (0.0, 0.3, 1.0):
            raw = {"m-p": [RawInput.number(value)], "m-n": [RawInput.number(1 - value)]}
            for score in evaluate(model, raw, Settings(combination_policy=policy)).values():
                assert score is NO_DATA or 0.0 <= score <= 1.0


# =============================================================================
# Base Score Tests
# =============================================================================

class TestBaseScores:
    """Measure weights and refinements."""

    def test_measure_weights(self):
        f = qm.factor("F", "f").create()
        fn = qm.linear_increasing().lower_bound(0).upper_bound(1).create()
        m1 = qm.measure("M1", "m1").measure_type("NUMBER").measures(f).function(fn).create()
        m2 = qm.measure("M2", "m2").measure_type("NUMBER").measures(f).function(fn).create()
        model = QualityModel("weights", [f, fn, m1, m2])
        raw = {"m1": [RawInput.number(0.2)], "m2": [RawInput.number(0.8)]}
        assert evaluate(model, raw)["f"] == pytest.approx(0.5)
        # (3 * 0.2 + 1 * 0.8) / 4
        assert evaluate(model, raw, measure_weights={"m1": 3.0})["f"] == pytest.approx(0.35)

    def test_refining_factors_feed_parent(self):
        parent = qm.quality_aspect("Maintainability", "p").create()
        c, mc, fc = scored_factor("C", identifier="c")
        d, md, fd = scored_factor("D", identifier="d")
        c.add_refines(parent)
        d.add_refines(parent)
        model = QualityModel("refinement", [parent, c, d, mc, md, fc, fd])
        raw = {"m-c": [RawInput.number(0.4)], "m-d": [RawInput.number(0.8)]}

        assert evaluate(model, raw)["p"] == pytest.approx(0.6)
        assert evaluate(model, raw, Settings(include_refinements=False))["p"] is NO_DATA


# =============================================================================
# Cycle Tests
# =============================================================================

class TestCycles:
    """A impacts B impacts A."""

    @pytest.mark.slow
    def test_fixed_point_converges(self, cycle_scenario):
        result = QualityEvaluator(cycle_scenario["model"]).evaluate(cycle_scenario["raw"])
        # a = 0.6 - 0.4 * b / 1.4 and b = 0.3 + 0.8 * a / 1.8
        expected_a = 32.4 / 71
        expected_b = 0.3 + 0.8 * expected_a / 1.8
        assert result.scores["a"] == pytest.approx(expected_a, abs=1e-6)
        assert result.scores["b"] == pytest.approx(expected_b, abs=1e-6)

        a_score = result.factor_scores["a"]
        assert a_score.cyclic
        assert 1 < a_score.iterations <= Settings().max_iterations

    def test_reject_policy_raises(self, cycle_scenario):
        settings = Settings(cycle_policy=CyclePolicy.REJECT)
        with pytest.raises(CycleError) as exc:
            evaluate(cycle_scenario["model"], cycle_scenario["raw"], settings)
        assert exc.value.members == ["a", "b"]

    def test_iteration_bound_exceeded(self, cycle_scenario):
        settings = Settings(max_iterations=1)
        with pytest.raises(NonConvergenceError) as exc:
            evaluate(cycle_scenario["model"], cycle_scenario["raw"], settings)
        assert exc.value.members == ["a", "b"]
        assert exc.value.iterations == 1

    def test_downstream_of_cycle_sees_solved_scores(self, cycle_scenario):
        model = cycle_scenario["model"]
        downstream = qm.factor("Z", "z").create()
        model.add(downstream, link(cycle_scenario["b"], downstream, InfluenceEffect.POSITIVE, 1))
        scores = evaluate(model, cycle_scenario["raw"])
        assert scores["z"] == pytest.approx(scores["b"])

    def test_cycle_without_data_stays_no_data(self, cycle_scenario):
        scores = evaluate(cycle_scenario["model"], {})
        assert scores == {"a": NO_DATA, "b": NO_DATA}


# =============================================================================
# Memoization & Concurrency Tests
# =============================================================================

class TestScoreCache:
    """Compute-once semantics."""

    def test_compute_once_under_contention(self):
        cache = ScoreCache()
        calls = []
        lock = threading.Lock()

        def compute():
            with lock:
                calls.append(1)
            return FactorScore("f", "F", 0.5, 0.5)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: cache.get_or_compute("f", compute), range(32)))

        assert len(calls) == 1
        assert cache.compute_counts["f"] == 1
        assert all(r is results[0] for r in results)
        assert cache.composite("f") == 0.5
        assert "f" in cache


@pytest.mark.slow
class TestParallelPropagation:
    """Independent components evaluated on worker threads."""

    def _forest(self, size=6):
        elements = []
        raw = {}
        for i in range(size):
            root, m_root, fn_root = scored_factor(f"R{i}", identifier=f"r{i}")
            leaf = qm.factor(f"L{i}", f"l{i}").create()
            elements += [root, m_root, fn_root, leaf, link(root, leaf, InfluenceEffect.POSITIVE, 2)]
            raw[f"m-r{i}"] = [RawInput.number(i / size)]
        return QualityModel("forest", elements), raw

    def _cycle_with_neighbours(self, cycle_scenario):
        model, raw = cycle_scenario["model"], dict(cycle_scenario["raw"])
        for i in range(3):
            factor, measure, function = scored_factor(f"X{i}", identifier=f"x{i}")
            model.add(factor, measure, function)
            raw[f"m-x{i}"] = [RawInput.number(0.1 * (i + 1))]
        return model, raw

    def test_parallel_cycle_matches_sequential(self, cycle_scenario):
        model, raw = self._cycle_with_neighbours(cycle_scenario)
        sequential = QualityEvaluator(model).evaluate(raw)
        parallel = QualityEvaluator(model, Settings(max_workers=4)).evaluate(raw)
        assert parallel.scores == sequential.scores
        assert parallel.factor_scores["a"].iterations == sequential.factor_scores["a"].iterations

    def test_parallel_reject_raises(self, cycle_scenario):
        model, raw = self._cycle_with_neighbours(cycle_scenario)
        settings = Settings(cycle_policy=CyclePolicy.REJECT, max_workers=4)
        with pytest.raises(CycleError) as exc:
            evaluate(model, raw, settings)
        assert exc.value.members == ["a", "b"]

    def test_parallel_matches_sequential(self):
        model, raw = self._forest()
        sequential = evaluate(model, raw)
        parallel = evaluate(model, raw, Settings(max_workers=4))
        assert parallel == sequential
        assert list(parallel) == sorted(parallel)

    def test_engine_scores_every_factor_once(self):
        model, raw = self._forest(3)
        engine = PropagationEngine(model, Settings(max_workers=3))
        utilities = {f"m-r{i}": i / 3 for i in range(3)}
        scores = engine.propagate(utilities)
        assert set(scores) == set(model.factors)
        # 0 + (2/3 * 0.8) / 0.8
        assert scores["l2"].composite_score == pytest.approx(2 / 3)
