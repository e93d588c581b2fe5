"""
Risk model for the simulator's consequence engine.

Computes risk-vector updates with cross-category amplification. One
weakness enables others: poor access control makes data exposure worse,
and blind detection makes everything worse.

Pure function design: (vector, delta) -> vector
No globals, no side effects, no mutation of the input vector.

Invariants:
- Amplification is applied to the delta BEFORE clamping
- Rules fire on the vector as it was before the update, so the result
  doesn't depend on which category of the delta is processed first
- Rules are an explicit ordered list from config, not scattered branches
- Every magnitude is clamped to [0, 100] after the update
"""

from __future__ import annotations

import logging

from ..config import DEFAULT_CONFIG, AmplificationRule, RiskConfig
from ..state.schemas.metrics import (
    DELTA_LIMIT,
    RiskCategory,
    RiskDelta,
    RiskVector,
    clamp,
)

logger = logging.getLogger(__name__)


class RiskModel:
    """
    Applies risk deltas and derives aggregate exposure.

    Amplification pipeline for a single apply():
    1. Clamp each delta component to [-100, 100]
    2. Collect the rules whose trigger is at/above threshold
    3. In rule order, multiply positive target components by the factor
    4. Add to the current levels and clamp to [0, 100]

    Only risk increases are amplified. A mitigation (negative delta)
    lands at face value regardless of how weak other controls are.
    """

    def __init__(self, config: RiskConfig | None = None):
        self._config = config or DEFAULT_CONFIG.risk

    @property
    def config(self) -> RiskConfig:
        return self._config

    def initial_vector(self) -> RiskVector:
        """Risk vector a new game starts with."""
        return RiskVector(levels=dict(self._config.initial_levels))

    def active_rules(self, vector: RiskVector) -> list[AmplificationRule]:
        """Rules that would fire against this vector, in priority order."""
        return [
            rule for rule in self._config.amplification_rules
            if vector.level(rule.trigger) >= rule.threshold
        ]

    def amplified_delta(self, vector: RiskVector, delta: RiskDelta) -> dict[RiskCategory, float]:
        """
        The per-category change that apply() would add, after amplification
        and before clamping to the vector's bounds.
        """
        changes = {
            category: clamp(delta.changes.get(category, 0.0), -DELTA_LIMIT, DELTA_LIMIT)
            for category in RiskCategory
        }

        for rule in self.active_rules(vector):
            targets = rule.targets if rule.targets is not None else tuple(RiskCategory)
            for category in targets:
                if changes[category] > 0:
                    changes[category] *= rule.factor
            logger.debug(
                f"Amplification '{rule.name}' fired "
                f"({rule.trigger.value}={vector.level(rule.trigger):.1f} >= {rule.threshold})"
            )

        return changes

    def apply(self, vector: RiskVector, delta: RiskDelta) -> RiskVector:
        """
        Apply a risk delta, returning a new vector.

        Never fails: out-of-range input is clamped, not rejected.
        """
        changes = self.amplified_delta(vector, delta)
        return RiskVector(levels={
            category: vector.level(category) + changes[category]
            for category in RiskCategory
        })

    def total_exposure(self, vector: RiskVector) -> float:
        """Weighted sum of all categories. Always within [0, 500]."""
        return sum(
            self._config.weights[category] * vector.level(category)
            for category in RiskCategory
        )

    def critical_categories(self, vector: RiskVector) -> list[RiskCategory]:
        """Categories at or above the critical threshold."""
        return [
            category for category in RiskCategory
            if vector.level(category) >= self._config.critical_threshold
        ]
