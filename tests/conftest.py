"""
Test Configuration and Fixtures
================================

Shared pytest fixtures for testing the quality model graph project.

Usage:
    pytest tests/                    # Run all tests
    pytest tests/ -v                 # Verbose output
    pytest tests/ -k "propagation"   # Run only propagation tests
    pytest tests/ --quick            # Quick subset
"""

import pytest
from pathlib import Path
from typing import Dict, Any

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from qmgraph.core import InfluenceEffect, MeasureType, QualityModel, RawInput
from qmgraph.core import model_builder as qm


# =============================================================================
# Custom Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


def pytest_addoption(parser):
    """Add custom command line options"""
    parser.addoption(
        "--quick",
        action="store_true",
        default=False,
        help="Skip slow tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests if --quick is specified"""
    if config.getoption("--quick"):
        skip_slow = pytest.mark.skip(reason="Skipped with --quick")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


# =============================================================================
# Model Helpers
# =============================================================================

def unit_function():
    """LinearIncreasing over [0, 1]: utility equals the raw value"""
    return qm.linear_increasing().lower_bound(0).upper_bound(1).create()


def scored_factor(name: str, function=None, identifier: str = None):
    """A factor with one NUMBER measure; returns (factor, measure, function)"""
    factor = qm.factor(name, identifier).create()
    function = function or unit_function()
    measure = (qm.measure(f"{name} measure", f"m-{identifier}" if identifier else None)
               .measure_type(MeasureType.NUMBER)
               .measures(factor)
               .function(function)
               .create())
    return factor, measure, function


def link(origin, target, effect=InfluenceEffect.POSITIVE, severity=1, identifier=None):
    return (qm.impact(identifier)
            .origin(origin)
            .target(target)
            .effect(effect)
            .severity(severity)
            .justification(f"{origin.name} influences {target.name}")
            .create())


# =============================================================================
# Model Fixtures
# =============================================================================

@pytest.fixture
def mean_scenario() -> Dict[str, Any]:
    """
    F measured by M (NumberMean over 0.2 and 0.8, LinearIncreasing [0, 1]);
    G (score 0.9) impacts F positively with severity 1.
    """
    f, m, fn_f = scored_factor("F", identifier="f")
    g, mg, fn_g = scored_factor("G", identifier="g")
    mean = qm.number_mean().aggregates(m).create()
    impact = link(g, f, InfluenceEffect.POSITIVE, 1, identifier="g-f")

    tool_a = qm.source("tool-a").create()
    tool_b = qm.source("tool-b").create()
    model = QualityModel("mean-scenario", [f, g, m, mg, fn_f, fn_g, mean, impact, tool_a, tool_b])
    raw = {
        m.identifier: [RawInput.number(0.2, tool_a), RawInput.number(0.8, tool_b)],
        mg.identifier: [RawInput.number(0.9, tool_a)],
    }
    return {"model": model, "raw": raw, "f": f, "g": g, "m": m, "mg": mg, "impact": impact}


@pytest.fixture
def cycle_scenario() -> Dict[str, Any]:
    """A impacts B impacts A, both with their own measure"""
    a, ma, fa = scored_factor("A", identifier="a")
    b, mb, fb = scored_factor("B", identifier="b")
    ab = link(a, b, InfluenceEffect.POSITIVE, 2, identifier="a-b")
    ba = link(b, a, InfluenceEffect.NEGATIVE, 4, identifier="b-a")
    model = QualityModel("cycle", [a, b, ma, mb, fa, fb, ab, ba])
    raw = {
        ma.identifier: [RawInput.number(0.6)],
        mb.identifier: [RawInput.number(0.3)],
    }
    return {"model": model, "raw": raw, "a": a, "b": b}
