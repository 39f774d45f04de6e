"""Pluggable scoring used by the relationship graph builder.

Contract for every :class:`ScoringStrategy`:

- ``edge_strength(source, target, imp)`` returns a float in ``[0.0, 1.0]``
  weighting one resolved import edge.
- ``cycle_risk(node, cycles)`` returns a float in ``[0.0, 1.0]`` for one node,
  given the list of strongly connected components that form real cycles.
- ``risk_score(factor)`` returns a non-negative number for one qualitative
  risk factor. Critical paths are ranked by the sum over their factors.
"""

from __future__ import annotations

from typing import List, Protocol, Set

from .models import ImportDescriptor, RiskFactor


class ScoringStrategy(Protocol):
    def edge_strength(self, source: str, target: str, imp: ImportDescriptor) -> float:
        ...

    def cycle_risk(self, node: str, cycles: List[Set[str]]) -> float:
        ...

    def risk_score(self, factor: RiskFactor) -> float:
        ...


class DefaultScoring:
    """Baseline strategy.

    ``edge_strength`` and ``risk_score`` are constant placeholders: every
    edge weighs 1.0 and every risk factor counts 1. A richer strategy can be
    passed to the builder without touching the graph code. ``cycle_risk`` is
    real: 1.0 for nodes on a dependency cycle, 0.0 otherwise.
    """

    def edge_strength(self, source: str, target: str, imp: ImportDescriptor) -> float:
        # TODO: weight by the number of imported names once call-site data exists
        return 1.0

    def cycle_risk(self, node: str, cycles: List[Set[str]]) -> float:
        return 1.0 if any(node in component for component in cycles) else 0.0

    def risk_score(self, factor: RiskFactor) -> float:
        return 1.0
