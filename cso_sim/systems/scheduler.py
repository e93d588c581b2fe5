"""
Delayed consequence scheduler.

Every choice can plant effects that land later. The scheduler holds them
until their trigger turn and hands them back in a deterministic order:
by trigger turn, then by the order they were scheduled.

The scheduler is part of EngineState, so it is a pydantic model and
round-trips through save files unchanged.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from ..errors import SchedulingError
from ..state.schemas.metrics import Effect

logger = logging.getLogger(__name__)


class PendingConsequence(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger_turn: int = Field(ge=1)
    sequence: int = Field(default=0, ge=0)  # Assigned by the scheduler
    origin_decision_id: str = ""
    origin_choice_id: str = ""
    description: str = ""
    effect: Effect

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.trigger_turn, self.sequence)


class ConsequenceScheduler(BaseModel):
    """Holds pending consequences keyed by trigger turn."""

    pending: tuple[PendingConsequence, ...] = ()
    next_sequence: int = 0
    last_drained_turn: int = 0

    def schedule(self, consequence: PendingConsequence, current_turn: int) -> PendingConsequence:
        """
        Queue a consequence. Returns it with its sequence number assigned.

        Raises:
            SchedulingError: trigger_turn is before current_turn
        """
        if consequence.trigger_turn < current_turn:
            raise SchedulingError(
                f"trigger turn {consequence.trigger_turn} is before current turn {current_turn}"
            )

        queued = consequence.model_copy(update={"sequence": self.next_sequence})
        self.next_sequence += 1
        self.pending = self.pending + (queued,)

        logger.debug(
            f"Scheduled {queued.effect.kind} effect for turn {queued.trigger_turn} "
            f"(seq {queued.sequence}, from {queued.origin_decision_id or 'unknown'})"
        )
        return queued

    def peek_due(self, turn: int) -> list[PendingConsequence]:
        """Consequences that would be drained at this turn, without removing them."""
        return sorted(
            (c for c in self.pending if c.trigger_turn <= turn),
            key=lambda c: c.sort_key,
        )

    def drain_due(self, turn: int) -> list[PendingConsequence]:
        """
        Remove and return every consequence with trigger_turn <= turn.

        Ordered by (trigger_turn, sequence). A second drain at the same
        turn returns nothing.
        """
        due = self.peek_due(turn)
        if due:
            self.pending = tuple(c for c in self.pending if c.trigger_turn > turn)
            logger.debug(f"Drained {len(due)} consequence(s) at turn {turn}")
        self.last_drained_turn = max(self.last_drained_turn, turn)
        return due

    def drain_all(self) -> list[PendingConsequence]:
        """Remove and return everything still pending, in drain order."""
        last = max((c.trigger_turn for c in self.pending), default=self.last_drained_turn)
        return self.drain_due(last)

    def pending_count(self) -> int:
        return len(self.pending)

    def next_trigger_turn(self) -> int | None:
        if not self.pending:
            return None
        return min(c.trigger_turn for c in self.pending)
