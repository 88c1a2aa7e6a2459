"""
Measurement values flowing through the evaluation engines.

- NO_DATA: the absence of a value, distinct from zero
- Finding: a located occurrence of interest, equal by location
- RawInput: one raw value reported for a Measure, tagged by its Source
"""

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Union

from .elements import Source


class NoData:
    """Singleton marking a value that could not be computed"""

    _instance: Optional['NoData'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DATA"

    def __reduce__(self):
        return (NoData, ())


NO_DATA = NoData()


def is_no_data(value) -> bool:
    return value is NO_DATA


@dataclass(frozen=True)
class Finding:
    """A rule violation or other located occurrence; identity is the location"""
    location: str
    message: str = field(default="", compare=False)
    rule: str = field(default="", compare=False)

    def to_dict(self):
        return {'location': self.location, 'message': self.message, 'rule': self.rule}


FindingSet = FrozenSet[Finding]
MeasureValue = Union[FindingSet, float, NoData]


def as_findings(values: Iterable) -> FindingSet:
    """Coerce an iterable of Finding objects or location strings into a finding set"""
    findings = set()
    for v in values:
        findings.add(v if isinstance(v, Finding) else Finding(location=str(v)))
    return frozenset(findings)


@dataclass(frozen=True)
class RawInput:
    """
    A raw value for a Measure, as produced by a tool or manual assessment.

    Two inputs are equal only when both value and source match, so equal
    values reported by different sources stay distinct in a set. Inputs
    without a source still collapse; pass a list to keep repeats.
    """
    value: Union[FindingSet, float]
    source: Optional[Source] = None

    @classmethod
    def findings(cls, locations: Iterable, source: Optional[Source] = None) -> 'RawInput':
        return cls(value=as_findings(locations), source=source)

    @classmethod
    def number(cls, value: float, source: Optional[Source] = None) -> 'RawInput':
        return cls(value=float(value), source=source)

    @property
    def is_findings(self) -> bool:
        return isinstance(self.value, frozenset)

    @property
    def is_number(self) -> bool:
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)

    @property
    def is_nan(self) -> bool:
        return self.is_number and math.isnan(self.value)
