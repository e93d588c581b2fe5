"""
Narrative integrity ledger.

An append-only record of how honest the player has been. The score is
derived from the events every time it is asked for; nothing is cached,
so a ledger rebuilt from a save yields exactly the same score.

Penalties are linear in magnitude, except buried incidents: each one
after the first costs `buried_escalation_step` more than the previous.
The escalation depends only on the count, so recording the same events
in a different order yields the same score.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_CONFIG, IntegrityConfig
from ..state.schemas.metrics import IntegrityKind, clamp

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100


class AuditTrailQuality(str, Enum):
    CLEAN = "Clean"
    FLAGGED = "Flagged"
    TOXIC = "Toxic"


class IntegrityEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: IntegrityKind
    turn: int = Field(ge=1)
    magnitude: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)
    description: str = ""


class IntegrityLedger(BaseModel):
    """
    Append-only event log.

    record() never rejects an event; the ledger is the player's history,
    not a validator of it.
    """
    events: tuple[IntegrityEvent, ...] = ()

    def record(self, event: IntegrityEvent) -> None:
        self.events = self.events + (event,)
        logger.debug(f"Recorded {event.kind.value} x{event.magnitude} at turn {event.turn}")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def buried_incident_count(self) -> int:
        return sum(1 for e in self.events if e.kind == IntegrityKind.BURIED_INCIDENT)

    def events_of(self, kind: IntegrityKind) -> list[IntegrityEvent]:
        return [e for e in self.events if e.kind == kind]

    def events_at(self, turn: int) -> list[IntegrityEvent]:
        return [e for e in self.events if e.turn == turn]

    def score(self, config: IntegrityConfig | None = None) -> int:
        """
        Integrity score in [0, 100]. Starts at 100 and only goes down.

        score = 100 - sum(penalty[kind] * magnitude) - step * k(k-1)/2
        where k is the number of buried incidents.
        """
        config = config or DEFAULT_CONFIG.integrity

        buried = self.buried_incident_count()
        penalty = math.fsum(
            [config.penalties.get(e.kind, 0.0) * e.magnitude for e in self.events]
            + [config.buried_escalation_step * buried * (buried - 1) / 2]
        )

        return int(round(clamp(SCORE_MAX - penalty, SCORE_MIN, SCORE_MAX)))

    def audit_quality(self, config: IntegrityConfig | None = None) -> AuditTrailQuality:
        """How the full history would look to an auditor."""
        config = config or DEFAULT_CONFIG.integrity
        score = self.score(config)
        buried = self.buried_incident_count()

        if score < config.toxic_below or buried >= config.toxic_buried_count:
            return AuditTrailQuality.TOXIC
        if score < config.flagged_below or buried >= config.flagged_buried_count:
            return AuditTrailQuality.FLAGGED
        return AuditTrailQuality.CLEAN
