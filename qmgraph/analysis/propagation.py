"""
Propagation Engine

Computes a composite quality score for every factor from the normalized
measure utilities and the impact graph.

Base score:
    Weighted mean of the utilities of the measures quantifying the factor
    (equal weights unless measure weights are supplied) and, when
    refinements are included, of the composite scores of refining factors.

Impact weighting:
    Each incoming impact contributes its source's score weighted by
    w(severity), which decreases from severity 1 (1.0) to severity 5 (0.2).

Every impact contributes the signed term sign(effect) * s_i * w_i, so a
POSITIVE impact never lowers a factor and a NEGATIVE one never raises it.

Combination policies:
    WEIGHTED_AVERAGE:
        composite = clamp(base + sum(sign_i * s_i * w_i) / (b + sum(w_i)), 0, 1)
        (b is the base weight, dropped from the denominator without a base)
    BOUNDED_SUM:
        composite = clamp(base + sum(sign_i * s_i * w_i), 0, 1)

Base counts as 0 when the factor has no base score. Sources with NO_DATA
do not contribute; a factor without base score and without contributing
impacts reports NO_DATA.

Cycles:
    The factor graph is condensed into strongly connected components and
    evaluated in topological order. A cyclic component is either rejected
    (CycleError) or solved by Jacobi fixed-point iteration, bounded by
    max_iterations (NonConvergenceError when exceeded).

Independent (weakly disconnected) parts of the graph can be evaluated in
parallel; a shared ScoreCache computes each factor at most once per pass.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import networkx as nx

from qmgraph.config.settings import Settings
from qmgraph.core.enums import CombinationPolicy, CyclePolicy, InfluenceEffect
from qmgraph.core.errors import CycleError, NonConvergenceError
from qmgraph.core.quality_model import Factor, QualityModel
from qmgraph.core.values import NO_DATA, NoData

from .normalization import clamp

Score = Union[float, NoData]
ScoreLookup = Callable[[str], Score]


def _round(value: Score) -> Any:
    return None if value is NO_DATA else round(value, 6)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ImpactContribution:
    """Trace of one impact folded into a factor's composite score"""
    impact_id: str
    source_id: str
    source_name: str
    target_id: str
    effect: InfluenceEffect
    severity: Optional[int]
    weight: float
    source_score: float
    justification: Optional[str] = None

    @property
    def signed_contribution(self) -> float:
        return self.effect.sign * self.source_score * self.weight

    def to_dict(self) -> Dict:
        return {
            'impact_id': self.impact_id,
            'source_id': self.source_id,
            'source_name': self.source_name,
            'target_id': self.target_id,
            'effect': self.effect.value,
            'severity': self.severity,
            'weight': round(self.weight, 4),
            'source_score': round(self.source_score, 6),
            'justification': self.justification,
        }


@dataclass
class FactorScore:
    """Base and composite score of a factor"""
    factor_id: str
    name: str
    base_score: Score
    composite_score: Score
    contributions: List[ImpactContribution] = field(default_factory=list)
    cyclic: bool = False
    iterations: int = 0

    @property
    def has_data(self) -> bool:
        return self.composite_score is not NO_DATA

    def to_dict(self) -> Dict:
        return {
            'factor_id': self.factor_id,
            'name': self.name,
            'base_score': _round(self.base_score),
            'composite_score': _round(self.composite_score),
            'contributions': [c.to_dict() for c in self.contributions],
            'cyclic': self.cyclic,
            'iterations': self.iterations,
        }


# =============================================================================
# Score Cache
# =============================================================================

class ScoreCache:
    """Compute-once-per-key memo, safe to share between worker threads"""

    def __init__(self):
        self._values: Dict[str, FactorScore] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.compute_counts: Dict[str, int] = defaultdict(int)

    def get_or_compute(self, key: str, compute: Callable[[], FactorScore]) -> FactorScore:
        with self._guard:
            if key in self._values:
                return self._values[key]
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            with self._guard:
                if key in self._values:
                    return self._values[key]
            value = compute()
            with self._guard:
                self._values[key] = value
                self.compute_counts[key] += 1
            return value

    def composite(self, key: str) -> Score:
        with self._guard:
            return self._values[key].composite_score

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._values

    def snapshot(self) -> Dict[str, FactorScore]:
        with self._guard:
            return dict(self._values)


# =============================================================================
# Propagation Engine
# =============================================================================

class PropagationEngine:
    """Propagates normalized scores along refinements and impacts"""

    def __init__(self, model: QualityModel, settings: Optional[Settings] = None,
                 measure_weights: Optional[Mapping[str, float]] = None):
        self.model = model
        self.settings = settings or Settings()
        self.measure_weights = dict(measure_weights or {})
        self.logger = logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def propagate(self, utilities: Mapping[str, Score]) -> Dict[str, FactorScore]:
        """
        Score every factor in the model.

        Args:
            utilities: normalized utility (or NO_DATA) per measure identifier

        Returns:
            FactorScore per factor identifier, sorted by identifier
        """
        graph = self.model.factor_graph(self.settings.include_refinements)
        cache = ScoreCache()
        components = sorted(
            (sorted(c) for c in nx.weakly_connected_components(graph)),
            key=lambda c: c[0],
        )

        workers = min(self.settings.max_workers, len(components))
        if workers > 1:
            self.logger.debug(f"Propagating {len(components)} components on {workers} workers")
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [
                    pool.submit(self._propagate_component, graph.subgraph(c), utilities, cache)
                    for c in components
                ]
                for future in futures:
                    future.result()
        else:
            for component in components:
                self._propagate_component(graph.subgraph(component), utilities, cache)

        scores = cache.snapshot()
        with_data = sum(1 for s in scores.values() if s.has_data)
        self.logger.info(f"Propagated scores for {len(scores)} factors ({with_data} with data)")
        return {fid: scores[fid] for fid in sorted(scores)}

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def _propagate_component(self, graph: nx.DiGraph, utilities: Mapping[str, Score],
                             cache: ScoreCache) -> None:
        condensed = nx.condensation(graph)
        order = nx.lexicographical_topological_sort(
            condensed, key=lambda n: min(condensed.nodes[n]['members'])
        )
        for node in order:
            members = sorted(condensed.nodes[node]['members'])
            if len(members) == 1 and not graph.has_edge(members[0], members[0]):
                fid = members[0]
                cache.get_or_compute(fid, lambda fid=fid: self.score_factor(fid, utilities, cache.composite))
                continue

            if self.settings.cycle_policy is CyclePolicy.REJECT:
                raise CycleError(members, "Cyclic impact graph")
            solved = self._solve_cycle(members, utilities, cache)
            for fid in members:
                cache.get_or_compute(fid, lambda fid=fid: solved[fid])

    def _solve_cycle(self, members: List[str], utilities: Mapping[str, Score],
                     cache: ScoreCache) -> Dict[str, FactorScore]:
        """Jacobi iteration over one strongly connected component"""
        member_set = set(members)
        current: Dict[str, Score] = {fid: NO_DATA for fid in members}
        delta = float('inf')

        for iteration in range(1, self.settings.max_iterations + 1):
            def lookup(fid: str) -> Score:
                return current[fid] if fid in member_set else cache.composite(fid)

            solved = {fid: self.score_factor(fid, utilities, lookup) for fid in members}
            delta = max(_distance(current[fid], solved[fid].composite_score) for fid in members)
            current = {fid: solved[fid].composite_score for fid in members}
            if delta <= self.settings.tolerance:
                self.logger.debug(f"Cycle {members} converged after {iteration} iteration(s)")
                for score in solved.values():
                    score.cyclic = True
                    score.iterations = iteration
                return solved

        raise NonConvergenceError(members, self.settings.max_iterations, delta)

    # -------------------------------------------------------------------------
    # Factor scoring
    # -------------------------------------------------------------------------

    def score_factor(self, factor_id: str, utilities: Mapping[str, Score],
                     score_of: ScoreLookup) -> FactorScore:
        factor = self.model.factors[factor_id]
        base = self.base_score(factor, utilities, score_of)
        contributions = self.contributions(factor, score_of)
        composite = self.combine(base, contributions)
        return FactorScore(
            factor_id=factor_id,
            name=factor.name,
            base_score=base,
            composite_score=composite,
            contributions=contributions,
        )

    def base_score(self, factor: Factor, utilities: Mapping[str, Score],
                   score_of: ScoreLookup) -> Score:
        terms = []
        for measure in self.model.measures_of(factor.identifier):
            terms.append((utilities.get(measure.identifier, NO_DATA),
                          self.measure_weights.get(measure.identifier, 1.0)))
        if self.settings.include_refinements:
            for child in self.model.refining_factors(factor.identifier):
                terms.append((score_of(child.identifier), 1.0))

        terms = [(value, weight) for value, weight in terms if value is not NO_DATA and weight > 0]
        total_weight = sum(weight for _, weight in terms)
        if total_weight == 0:
            return NO_DATA
        return clamp(sum(value * weight for value, weight in terms) / total_weight)

    def contributions(self, factor: Factor, score_of: ScoreLookup) -> List[ImpactContribution]:
        contributions = []
        for impact in self.model.incoming_impacts(factor.identifier):
            if impact.effect is None or impact.origin_id not in self.model.factors:
                self.logger.debug(f"Skipping incomplete impact {impact.identifier}")
                continue
            source_score = score_of(impact.origin_id)
            if source_score is NO_DATA:
                continue
            contributions.append(ImpactContribution(
                impact_id=impact.identifier,
                source_id=impact.origin_id,
                source_name=self.model.factors[impact.origin_id].name,
                target_id=factor.identifier,
                effect=impact.effect,
                severity=impact.severity,
                weight=self.settings.severity_weight(impact.severity),
                source_score=source_score,
                justification=impact.justification,
            ))
        return contributions

    def combine(self, base: Score, contributions: List[ImpactContribution]) -> Score:
        if self.settings.combination_policy is CombinationPolicy.BOUNDED_SUM:
            if base is NO_DATA and not contributions:
                return NO_DATA
            start = 0.0 if base is NO_DATA else base
            return clamp(start + sum(c.signed_contribution for c in contributions))

        if not contributions:
            return base
        denominator = sum(c.weight for c in contributions)
        if base is not NO_DATA:
            denominator += self.settings.base_weight
        if denominator == 0:
            return base
        start = 0.0 if base is NO_DATA else base
        return clamp(start + sum(c.signed_contribution for c in contributions) / denominator)


def _distance(old: Score, new: Score) -> float:
    if old is NO_DATA and new is NO_DATA:
        return 0.0
    if old is NO_DATA or new is NO_DATA:
        return float('inf')
    return abs(new - old)
