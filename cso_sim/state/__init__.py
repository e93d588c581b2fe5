"""
State management for the consequence engine.

Only the leaf modules are re-exported here. EngineState (schema), the
encrypted persistence layer and the stores depend on the systems package
and are imported from their own modules, or from the top-level package.
"""

from .schemas import (
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
    DecisionCategory,
    RiskIndicator,
    ImpactPreview,
    DelayedEffect,
    Impact,
    Choice,
    Decision,
)
from .event_bus import (
    EventBus,
    EventType,
    GameEvent,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    # Schemas
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
    "DecisionCategory",
    "RiskIndicator",
    "ImpactPreview",
    "DelayedEffect",
    "Impact",
    "Choice",
    "Decision",
    # Event bus
    "EventBus",
    "EventType",
    "GameEvent",
    "get_event_bus",
    "reset_event_bus",
]
