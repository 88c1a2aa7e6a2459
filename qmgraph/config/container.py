"""
Dependency Injection Container

Wires validator, aggregator, propagation engine and evaluator from a single
Settings instance.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from .settings import Settings

from qmgraph.core.quality_model import QualityModel
from qmgraph.validation.model_validator import ModelValidator
from qmgraph.analysis.aggregation import MeasureAggregator
from qmgraph.analysis.propagation import PropagationEngine
from qmgraph.analysis.evaluator import QualityEvaluator


@dataclass
class Container:
    """
    Dependency injection container.

    Every service built by the container shares the same settings, so
    policies configured once (environment, YAML, dict) apply to the whole
    evaluation pipeline.
    """
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Container":
        """Create container from settings."""
        return cls(settings=settings)

    @classmethod
    def from_env(cls) -> "Container":
        return cls(settings=Settings.from_env())

    def validator(self, model: QualityModel) -> ModelValidator:
        return ModelValidator(model)

    def aggregator(self, model: QualityModel) -> MeasureAggregator:
        return MeasureAggregator(
            model,
            ddof=self.settings.variance_ddof,
            default_findings=self.settings.default_findings_aggregation,
            default_number=self.settings.default_number_aggregation,
        )

    def propagation_engine(self, model: QualityModel,
                           measure_weights: Optional[Mapping[str, float]] = None) -> PropagationEngine:
        return PropagationEngine(model, self.settings, measure_weights)

    def evaluator(self, model: QualityModel) -> QualityEvaluator:
        return QualityEvaluator(model, self.settings, validator=self.validator(model))
