"""
Exception hierarchy for construction, validation and evaluation.

Every error carries the identifier of the offending element (when there is
one) and a human-readable cause.
"""

from typing import Iterable, List, Optional

from .enums import StructuralErrorKind


class QualityModelError(Exception):
    """Base class for all quality model errors"""

    def __init__(self, cause: str, element_id: Optional[str] = None):
        self.cause = cause
        self.element_id = element_id
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.element_id:
            return f"{self.cause} [{self.element_id}]"
        return self.cause

    def to_dict(self) -> dict:
        return {
            'type': type(self).__name__,
            'element_id': self.element_id,
            'cause': self.cause,
        }


class ConstructionError(QualityModelError):
    """A builder could not produce an entity (missing mandatory field, reuse, duplicate id)"""


class StructuralError(QualityModelError):
    """A graph-level defect found by the validation pass"""

    def __init__(self, kind: StructuralErrorKind, cause: str, element_id: Optional[str] = None):
        self.kind = kind
        super().__init__(cause, element_id)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['kind'] = self.kind.value
        return data

    def __eq__(self, other) -> bool:
        if not isinstance(other, StructuralError):
            return NotImplemented
        return (self.kind, self.element_id, self.cause) == (other.kind, other.element_id, other.cause)

    def __hash__(self) -> int:
        return hash((self.kind, self.element_id, self.cause))


class CycleError(QualityModelError):
    """Raised when the cycle policy is REJECT and a cycle is found"""

    def __init__(self, members: Iterable[str], cause: str = "Cyclic dependency between factors"):
        self.members: List[str] = sorted(members)
        super().__init__(f"{cause}: {', '.join(self.members)}", self.members[0] if self.members else None)


class NonConvergenceError(QualityModelError):
    """Fixed-point iteration over a cyclic component did not stabilize"""

    def __init__(self, members: Iterable[str], iterations: int, delta: float):
        self.members: List[str] = sorted(members)
        self.iterations = iterations
        self.delta = delta
        super().__init__(
            f"No convergence after {iterations} iterations (max delta {delta:.3g}) "
            f"for component {', '.join(self.members)}",
            self.members[0] if self.members else None,
        )


class InvalidModelError(QualityModelError):
    """Evaluation was requested for a model that fails validation"""

    def __init__(self, errors: List[StructuralError]):
        self.errors = list(errors)
        first = self.errors[0] if self.errors else None
        summary = f"Model has {len(self.errors)} structural error(s)"
        if first is not None:
            summary += f"; first: {first}"
        super().__init__(summary, first.element_id if first is not None else None)
