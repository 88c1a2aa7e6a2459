"""
Quality Model Analysis Module - Version 1.0

Evaluation pipeline for quality models.

Stages:
    1. Aggregation: raw findings / numbers reduced per measure
    2. Normalization: aggregated values mapped to utilities in [0, 1]
    3. Propagation: utilities combined into base scores and pushed along
       impacts into composite factor scores

Usage:
    from qmgraph.analysis import QualityEvaluator, evaluate
    from qmgraph.core import RawInput

    scores = evaluate(model, {loc.identifier: [RawInput.number(1200, "cloc")]})

    result = QualityEvaluator(model).evaluate(raw_inputs)
    print(result.summary())
"""

from .aggregation import (
    aggregate,
    MeasureAggregator,
)

from .normalization import (
    clamp,
    check_bounds,
    normalize,
    measure_magnitude,
    measure_utility,
)

from .propagation import (
    ImpactContribution,
    FactorScore,
    ScoreCache,
    PropagationEngine,
)

from .evaluator import (
    EvaluationResult,
    QualityEvaluator,
    evaluate,
)

__all__ = [
    # Aggregation
    "aggregate",
    "MeasureAggregator",
    # Normalization
    "clamp",
    "check_bounds",
    "normalize",
    "measure_magnitude",
    "measure_utility",
    # Propagation
    "ImpactContribution",
    "FactorScore",
    "ScoreCache",
    "PropagationEngine",
    # Evaluation
    "EvaluationResult",
    "QualityEvaluator",
    "evaluate",
]

__version__ = "1.0.0"
