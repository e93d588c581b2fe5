"""
Schema contracts for the simulator core.

- metrics: risk vector, business/political state, deltas and effects
- decision: the read-only decision catalog (Decision, Choice, Impact)
- turn_result: ViewState and TurnResult, the engine's output artifacts
  (imported directly; it depends on EngineState)
"""

from .metrics import (
    RiskCategory,
    IntegrityKind,
    AuditTrailTag,
    RiskVector,
    RiskDelta,
    BusinessState,
    BusinessDelta,
    PoliticalState,
    PoliticalDelta,
    BudgetCategory,
    Budget,
    IntegrityEffect,
    Effect,
)
from .decision import (
    DecisionCategory,
    RiskIndicator,
    ImpactPreview,
    DelayedEffect,
    Impact,
    Choice,
    Decision,
)

__all__ = [
    # Metrics
    "RiskCategory",
    "IntegrityKind",
    "AuditTrailTag",
    "RiskVector",
    "RiskDelta",
    "BusinessState",
    "BusinessDelta",
    "PoliticalState",
    "PoliticalDelta",
    "BudgetCategory",
    "Budget",
    "IntegrityEffect",
    "Effect",
    # Decisions
    "DecisionCategory",
    "RiskIndicator",
    "ImpactPreview",
    "DelayedEffect",
    "Impact",
    "Choice",
    "Decision",
]
