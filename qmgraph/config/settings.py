"""
Evaluation Settings

Engine policies and tuning knobs, loadable from the environment, a
dictionary or a YAML file.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

from qmgraph.core.enums import AggregationKind, CombinationPolicy, CyclePolicy, MeasureType


def default_severity_weights() -> Dict[int, float]:
    """w(V) = (6 - V) / 5: severity 1 weighs 1.0, severity 5 weighs 0.2"""
    return {v: (6 - v) / 5 for v in range(1, 6)}


@dataclass
class Settings:
    """Evaluation settings."""

    # Propagation policies
    combination_policy: CombinationPolicy = CombinationPolicy.WEIGHTED_AVERAGE
    cycle_policy: CyclePolicy = CyclePolicy.FIXED_POINT
    max_iterations: int = 100
    tolerance: float = 1e-9

    # Impact weighting
    severity_weights: Dict[int, float] = field(default_factory=default_severity_weights)
    default_severity: int = 3
    base_weight: float = 1.0
    include_refinements: bool = True

    # Aggregation
    variance_ddof: int = 0
    default_findings_aggregation: AggregationKind = AggregationKind.FINDINGS_UNION
    default_number_aggregation: AggregationKind = AggregationKind.NUMBER_MEAN

    # Execution
    validate_before_evaluate: bool = True
    max_workers: int = 1

    ENV_PREFIX = "QMGRAPH_"

    def __post_init__(self):
        self.combination_policy = CombinationPolicy(self.combination_policy)
        self.cycle_policy = CyclePolicy(self.cycle_policy)
        self.default_findings_aggregation = AggregationKind(self.default_findings_aggregation)
        self.default_number_aggregation = AggregationKind(self.default_number_aggregation)
        self.severity_weights = {int(k): float(v) for k, v in self.severity_weights.items()}

        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be > 0, got {self.tolerance}")
        if self.variance_ddof not in (0, 1):
            raise ValueError(f"variance_ddof must be 0 (population) or 1 (sample), got {self.variance_ddof}")
        if self.base_weight < 0:
            raise ValueError(f"base_weight must be >= 0, got {self.base_weight}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if set(self.severity_weights) != set(range(1, 6)):
            raise ValueError("severity_weights must define severities 1 to 5")
        ordered = [self.severity_weights[v] for v in range(1, 6)]
        if any(a < b for a, b in zip(ordered, ordered[1:])) or ordered[-1] < 0:
            raise ValueError("severity_weights must be non-negative and non-increasing from 1 to 5")
        if self.default_severity not in self.severity_weights:
            raise ValueError(f"default_severity must be between 1 and 5, got {self.default_severity}")
        if self.default_findings_aggregation.input_type is not MeasureType.FINDINGS:
            raise ValueError("default_findings_aggregation must be a findings strategy")
        if self.default_number_aggregation.input_type is not MeasureType.NUMBER:
            raise ValueError("default_number_aggregation must be a number strategy")

    def severity_weight(self, severity) -> float:
        if severity is None:
            severity = self.default_severity
        return self.severity_weights[severity]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create settings from a dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from QMGRAPH_* environment variables."""
        defaults = cls()
        env = os.environ
        prefix = cls.ENV_PREFIX
        return cls(
            combination_policy=env.get(f"{prefix}COMBINATION_POLICY", defaults.combination_policy.value),
            cycle_policy=env.get(f"{prefix}CYCLE_POLICY", defaults.cycle_policy.value),
            max_iterations=int(env.get(f"{prefix}MAX_ITERATIONS", defaults.max_iterations)),
            tolerance=float(env.get(f"{prefix}TOLERANCE", defaults.tolerance)),
            default_severity=int(env.get(f"{prefix}DEFAULT_SEVERITY", defaults.default_severity)),
            base_weight=float(env.get(f"{prefix}BASE_WEIGHT", defaults.base_weight)),
            include_refinements=_parse_bool(env.get(f"{prefix}INCLUDE_REFINEMENTS"), defaults.include_refinements),
            variance_ddof=int(env.get(f"{prefix}VARIANCE_DDOF", defaults.variance_ddof)),
            validate_before_evaluate=_parse_bool(
                env.get(f"{prefix}VALIDATE_BEFORE_EVALUATE"), defaults.validate_before_evaluate
            ),
            max_workers=int(env.get(f"{prefix}MAX_WORKERS", defaults.max_workers)),
        )

    @classmethod
    def from_yaml(cls, filepath: Union[str, Path]) -> "Settings":
        """
        Load settings from a YAML file.

        The settings may sit at the top level or under an 'evaluation' key.
        """
        import yaml

        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}
        if 'evaluation' in data and isinstance(data['evaluation'], dict):
            data = data['evaluation']
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'combination_policy': self.combination_policy.value,
            'cycle_policy': self.cycle_policy.value,
            'max_iterations': self.max_iterations,
            'tolerance': self.tolerance,
            'severity_weights': dict(self.severity_weights),
            'default_severity': self.default_severity,
            'base_weight': self.base_weight,
            'include_refinements': self.include_refinements,
            'variance_ddof': self.variance_ddof,
            'default_findings_aggregation': self.default_findings_aggregation.value,
            'default_number_aggregation': self.default_number_aggregation.value,
            'validate_before_evaluate': self.validate_before_evaluate,
            'max_workers': self.max_workers,
        }


def _parse_bool(value, default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
