"""
Model Validator

Structural checks over a QualityModel. Problems are collected into a
ValidationResult instead of failing on the first one.

Errors:
    - references to elements the model does not contain
    - impacts without target (and without future target), justification,
      effect or origin
    - aggregation / measure and sub-measure / parent type mismatches
    - measures claimed by more than one aggregation
    - functions with missing or inverted bounds
    - measures quantifying a factor without a normalizing function
    - self-refinement and cyclic refinement

Warnings:
    - impacts kept inert until their future target exists
    - impacts without severity (the default severity applies)
    - NONE-typed measures quantifying a factor (they never yield data)
"""

import logging
from typing import Dict, List, Optional

import networkx as nx

from qmgraph.core.enums import MeasureType, StructuralErrorKind
from qmgraph.core.errors import StructuralError
from qmgraph.core.quality_model import QualityModel


# =============================================================================
# Validation Result
# =============================================================================

class ValidationResult:
    """Result of model validation with error and warning tracking"""

    def __init__(self):
        self.errors: List[StructuralError] = []
        self.warnings: List[str] = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, kind: StructuralErrorKind, cause: str, element_id: Optional[str] = None) -> None:
        error = StructuralError(kind, cause, element_id)
        if error not in self.errors:
            self.errors.append(error)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def merge(self, other: 'ValidationResult') -> None:
        for error in other.errors:
            if error not in self.errors:
                self.errors.append(error)
        self.warnings.extend(other.warnings)

    def errors_of_kind(self, kind: StructuralErrorKind) -> List[StructuralError]:
        return [e for e in self.errors if e.kind is kind]

    def summary(self) -> str:
        """Get a summary of the validation result"""
        lines = [f"Valid: {self.is_valid}"]
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            for e in self.errors[:5]:
                lines.append(f"  - {e.kind.value}: {e}")
            if len(self.errors) > 5:
                lines.append(f"  ... and {len(self.errors) - 5} more")
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            for w in self.warnings[:5]:
                lines.append(f"  - {w}")
            if len(self.warnings) > 5:
                lines.append(f"  ... and {len(self.warnings) - 5} more")
        return '\n'.join(lines)

    def to_dict(self) -> Dict:
        return {
            'is_valid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
            'warnings': list(self.warnings),
        }

    def __repr__(self) -> str:
        return f"ValidationResult(valid={self.is_valid}, errors={len(self.errors)}, warnings={len(self.warnings)})"


# =============================================================================
# Model Validator
# =============================================================================

class ModelValidator:
    """Runs every structural check against a model"""

    def __init__(self, model: QualityModel):
        self.model = model
        self.logger = logging.getLogger(__name__)

    def validate(self) -> ValidationResult:
        result = ValidationResult()
        self._check_factors(result)
        self._check_measures(result)
        self._check_aggregations(result)
        self._check_functions(result)
        self._check_impacts(result)
        self._check_refinement_cycles(result)

        if result.is_valid:
            self.logger.info(f"Model '{self.model.name}' is valid ({len(result.warnings)} warning(s))")
        else:
            self.logger.info(
                f"Model '{self.model.name}' has {len(result.errors)} error(s) "
                f"and {len(result.warnings)} warning(s)"
            )
        return result

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _dangling(self, result: ValidationResult, owner_id: str, relation: str,
                  ref_id: Optional[str], store: Dict) -> bool:
        if ref_id is None or ref_id in store:
            return False
        result.add_error(
            StructuralErrorKind.DANGLING_REFERENCE,
            f"{relation} references unknown element {ref_id}",
            owner_id,
        )
        return True

    def _check_factors(self, result: ValidationResult) -> None:
        m = self.model
        for fid in sorted(m.factors):
            factor = m.factors[fid]
            self._dangling(result, fid, "characterizes", factor.characterizes, m.entities)
            for parent_id in factor.refines:
                if parent_id == fid:
                    result.add_error(StructuralErrorKind.SELF_REFINEMENT,
                                     f"Factor '{factor.name}' refines itself", fid)
                else:
                    self._dangling(result, fid, "refines", parent_id, m.factors)
            for measure_id in factor.measured_by:
                self._dangling(result, fid, "measured_by", measure_id, m.measures)
            for impact_id in factor.impacts:
                self._dangling(result, fid, "impacts", impact_id, m.impacts)

    def _check_measures(self, result: ValidationResult) -> None:
        m = self.model
        for mid in sorted(m.measures):
            measure = m.measures[mid]
            self._dangling(result, mid, "characterizes", measure.characterizes, m.entities)

            for factor_id in measure.measures:
                self._dangling(result, mid, "measures", factor_id, m.factors)

            for parent_id in measure.refines:
                if parent_id == mid:
                    result.add_error(StructuralErrorKind.SELF_REFINEMENT,
                                     f"Measure '{measure.name}' refines itself", mid)
                    continue
                if self._dangling(result, mid, "refines", parent_id, m.measures):
                    continue
                parent = m.measures[parent_id]
                if MeasureType.NONE not in (parent.measure_type, measure.measure_type) \
                        and parent.measure_type is not measure.measure_type:
                    result.add_error(
                        StructuralErrorKind.TYPE_MISMATCH,
                        f"Sub-measure '{measure.name}' ({measure.measure_type.value}) cannot feed "
                        f"'{parent.name}' ({parent.measure_type.value})",
                        mid,
                    )

            if not self._dangling(result, mid, "function", measure.function_id, m.functions):
                if measure.function_id is None and measure.measures \
                        and measure.measure_type is not MeasureType.NONE:
                    result.add_error(StructuralErrorKind.MISSING_FUNCTION,
                                     f"Measure '{measure.name}' quantifies a factor but has no function", mid)

            if not self._dangling(result, mid, "normalizer", measure.normalizer_id, m.measures):
                normalizer = m.measures.get(measure.normalizer_id) if measure.normalizer_id else None
                if normalizer is not None and normalizer.measure_type is MeasureType.FINDINGS:
                    result.add_error(StructuralErrorKind.TYPE_MISMATCH,
                                     f"Normalizer '{normalizer.name}' must be a number measure", mid)

            claimed = m.aggregations_for(mid)
            if len(claimed) > 1:
                result.add_error(
                    StructuralErrorKind.AMBIGUOUS_AGGREGATION,
                    f"Measure '{measure.name}' is aggregated by {len(claimed)} aggregations",
                    mid,
                )

            if measure.measure_type is MeasureType.NONE and measure.measures:
                result.add_warning(f"Measure '{measure.name}' has type NONE and never yields data")

    def _check_aggregations(self, result: ValidationResult) -> None:
        m = self.model
        for aid in sorted(m.aggregations):
            aggregation = m.aggregations[aid]
            for measure_id in aggregation.aggregates:
                if self._dangling(result, aid, "aggregates", measure_id, m.measures):
                    continue
                measure = m.measures[measure_id]
                if measure.measure_type is not aggregation.input_type:
                    result.add_error(
                        StructuralErrorKind.TYPE_MISMATCH,
                        f"{aggregation.kind.value} aggregation expects {aggregation.input_type.value} "
                        f"but measure '{measure.name}' is {measure.measure_type.value}",
                        aid,
                    )

    def _check_functions(self, result: ValidationResult) -> None:
        for fid in sorted(self.model.functions):
            function = self.model.functions[fid]
            if not function.has_bounds:
                result.add_error(StructuralErrorKind.MISSING_BOUNDS,
                                 f"{function.kind.value} function requires both bounds", fid)
            elif not function.has_valid_bounds:
                result.add_error(
                    StructuralErrorKind.INVERTED_BOUNDS,
                    f"Lower bound {function.lower_bound} must be below upper bound {function.upper_bound}",
                    fid,
                )

    def _check_impacts(self, result: ValidationResult) -> None:
        m = self.model
        for iid in sorted(m.impacts):
            impact = m.impacts[iid]
            if impact.target_id is None:
                if impact.future_target:
                    result.add_warning(f"Impact {iid} is inert until '{impact.future_target}' exists")
                else:
                    result.add_error(StructuralErrorKind.MISSING_TARGET, "Impact has no target", iid)
            else:
                self._dangling(result, iid, "target", impact.target_id, m.factors)

            if impact.origin_id is None:
                result.add_error(StructuralErrorKind.MISSING_ORIGIN, "Impact has no origin", iid)
            else:
                self._dangling(result, iid, "origin", impact.origin_id, m.factors)

            if not (impact.justification or "").strip():
                result.add_error(StructuralErrorKind.MISSING_JUSTIFICATION, "Impact has no justification", iid)
            if impact.effect is None:
                result.add_error(StructuralErrorKind.MISSING_EFFECT, "Impact has no effect", iid)
            if impact.severity is None:
                result.add_warning(f"Impact {iid} has no severity; the default severity applies")

    def _check_refinement_cycles(self, result: ValidationResult) -> None:
        factor_refinements = nx.DiGraph([
            (f.identifier, parent_id)
            for f in self.model.factors.values()
            for parent_id in f.refines
            if parent_id in self.model.factors and parent_id != f.identifier
        ])
        measure_refinements = nx.DiGraph([
            (u, v) for u, v in self.model.measure_graph().edges() if u != v
        ])
        graphs = (("Factor", factor_refinements), ("Measure", measure_refinements))
        for label, graph in graphs:
            for component in nx.strongly_connected_components(graph):
                if len(component) < 2:
                    continue
                members = sorted(component)
                result.add_error(
                    StructuralErrorKind.CYCLIC_REFINEMENT,
                    f"{label} refinement cycle: {', '.join(members)}",
                    members[0],
                )


def validate(model: QualityModel) -> List[StructuralError]:
    """Every structural error of a model; empty when the model is valid"""
    return ModelValidator(model).validate().errors
