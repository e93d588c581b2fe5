"""
Engine systems for the consequence simulator.

Each system owns one concern and operates on EngineState or its parts.
Import order matters: turns depends on every other system.
"""

from .risk import RiskModel
from .integrity import IntegrityLedger, IntegrityEvent, AuditTrailQuality
from .scheduler import ConsequenceScheduler, PendingConsequence
from .catalog import DecisionCatalog
from .endings import EndingResolver, Ending, EndingKind
from .turns import TurnEngine, Notice, NoticeSeverity

__all__ = [
    "RiskModel",
    "IntegrityLedger",
    "IntegrityEvent",
    "AuditTrailQuality",
    "ConsequenceScheduler",
    "PendingConsequence",
    "DecisionCatalog",
    "EndingResolver",
    "Ending",
    "EndingKind",
    # Turn engine
    "TurnEngine",
    "Notice",
    "NoticeSeverity",
]
