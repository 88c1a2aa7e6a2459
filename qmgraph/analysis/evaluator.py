"""
Quality Evaluator

Runs a full evaluation pass over a quality model:

    raw inputs -> MeasureAggregator -> measure values
               -> normalization     -> measure utilities
               -> PropagationEngine -> base and composite factor scores

A pass either returns a complete result or raises; no partial mapping is
ever returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from qmgraph.config.settings import Settings
from qmgraph.core.errors import InvalidModelError
from qmgraph.core.quality_model import QualityModel
from qmgraph.core.values import NO_DATA, MeasureValue
from qmgraph.validation import ModelValidator

from .aggregation import MeasureAggregator, RawInputs
from .normalization import Utility, measure_utility
from .propagation import FactorScore, PropagationEngine, Score


def _value_to_dict(value: MeasureValue) -> Any:
    if value is NO_DATA:
        return None
    if isinstance(value, frozenset):
        return sorted(f.location for f in value)
    return value


@dataclass
class EvaluationResult:
    """Everything computed during one evaluation pass"""
    model_name: str
    measure_values: Dict[str, MeasureValue]
    measure_utilities: Dict[str, Utility]
    factor_scores: Dict[str, FactorScore]
    settings: Settings
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def scores(self) -> Dict[str, Score]:
        """Composite score (or NO_DATA) per factor identifier"""
        return {fid: fs.composite_score for fid, fs in self.factor_scores.items()}

    @property
    def base_scores(self) -> Dict[str, Score]:
        return {fid: fs.base_score for fid, fs in self.factor_scores.items()}

    def score_by_name(self, name: str) -> Score:
        for fs in self.factor_scores.values():
            if fs.name == name:
                return fs.composite_score
        raise KeyError(name)

    def summary(self) -> str:
        with_data = [fs for fs in self.factor_scores.values() if fs.has_data]
        lines = [f"Evaluation: {self.model_name or '<unnamed>'}", "=" * 40]
        lines.append(f"Measures with data: "
                     f"{sum(1 for v in self.measure_values.values() if v is not NO_DATA)}"
                     f"/{len(self.measure_values)}")
        lines.append(f"Factors with data:  {len(with_data)}/{len(self.factor_scores)}")
        for fs in sorted(with_data, key=lambda s: s.composite_score):
            lines.append(f"  {fs.name:<30} {fs.composite_score:.3f}")
        return '\n'.join(lines)

    def to_dict(self) -> Dict:
        return {
            'model': self.model_name,
            'timestamp': self.timestamp,
            'settings': self.settings.to_dict(),
            'measures': {
                mid: {
                    'value': _value_to_dict(value),
                    'utility': None if self.measure_utilities.get(mid, NO_DATA) is NO_DATA
                    else round(self.measure_utilities[mid], 6),
                }
                for mid, value in self.measure_values.items()
            },
            'factors': {fid: fs.to_dict() for fid, fs in self.factor_scores.items()},
        }


class QualityEvaluator:
    """Evaluates a quality model against raw measurement inputs"""

    def __init__(self, model: QualityModel, settings: Optional[Settings] = None,
                 validator=None):
        self.model = model
        self.settings = settings or Settings()
        self.validator = validator
        self.logger = logging.getLogger(__name__)

    def _validate(self) -> None:
        validator = self.validator
        if validator is None:
            validator = ModelValidator(self.model)
        result = validator.validate()
        if not result.is_valid:
            self.logger.error(f"Refusing to evaluate invalid model:\n{result.summary()}")
            raise InvalidModelError(result.errors)

    def evaluate(self, raw_inputs: Optional[RawInputs] = None,
                 measure_weights: Optional[Mapping[str, float]] = None) -> EvaluationResult:
        """
        Evaluate every factor of the model.

        Args:
            raw_inputs: RawInput iterables keyed by measure identifier
            measure_weights: optional weight per measure for base scores

        Returns:
            EvaluationResult with values, utilities and factor scores

        Raises:
            InvalidModelError: validation is enabled and the model is invalid
            CycleError: a cycle was found under the REJECT cycle policy
            NonConvergenceError: a cycle did not reach a fixed point
        """
        if self.settings.validate_before_evaluate:
            self._validate()

        aggregator = MeasureAggregator(
            self.model,
            ddof=self.settings.variance_ddof,
            default_findings=self.settings.default_findings_aggregation,
            default_number=self.settings.default_number_aggregation,
        )
        values = aggregator.aggregate_all(raw_inputs)

        utilities: Dict[str, Utility] = {}
        for mid in sorted(self.model.measures):
            measure = self.model.measures[mid]
            function = self.model.functions.get(measure.function_id) if measure.function_id else None
            utilities[mid] = measure_utility(measure, function, values)

        engine = PropagationEngine(self.model, self.settings, measure_weights)
        scores = engine.propagate(utilities)

        result = EvaluationResult(
            model_name=self.model.name,
            measure_values=values,
            measure_utilities=utilities,
            factor_scores=scores,
            settings=self.settings,
        )
        self.logger.info(
            f"Evaluated '{self.model.name}': "
            f"{sum(1 for s in scores.values() if s.has_data)}/{len(scores)} factors scored"
        )
        return result


def evaluate(model: QualityModel, raw_inputs: Optional[RawInputs] = None,
             settings: Optional[Settings] = None,
             measure_weights: Optional[Mapping[str, float]] = None) -> Dict[str, Score]:
    """Composite score (or NO_DATA) per factor identifier"""
    return QualityEvaluator(model, settings).evaluate(raw_inputs, measure_weights).scores
