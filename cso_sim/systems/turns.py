"""
Turn engine for the consequence simulator.

Sequences one turn as a single transaction:
    validate → immediate effects → budget → tag event → schedule delayed
    → increment turn → materialize due consequences → trail

When the turn ends the run, every consequence still pending lands at
once. Nothing scheduled is lost to the end of the game.

Design principles:
- All-or-nothing. The pipeline runs on a deep copy; the caller's state is
  never touched, and a failure anywhere discards the copy.
- The engine sequences and delegates. RiskModel does the risk math, the
  ledger does the scoring, the scheduler does the ordering.
- Bus events are emitted only after the turn has committed, so listeners
  never see a turn that later failed.
- Failures are opaque. InvalidAction for a bad choice, ConfigurationError
  for broken content or an internal contract violation. The cause goes to
  the log, never onto the error.

Usage:
    engine = TurnEngine(config)
    state = new_game(config)

    result = engine.play_turn(state, catalog, "patch_now")
    render(result.view)
    state = result.state
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..config import DEFAULT_CONFIG, EngineConfig
from ..errors import ConfigurationError, InvalidAction
from ..state.event_bus import EventBus, EventType, get_event_bus
from ..state.schema import DecisionRecord, EngineState
from ..state.schemas.decision import Choice, Decision
from ..state.schemas.metrics import (
    BusinessDelta,
    IntegrityEffect,
    IntegrityKind,
    PoliticalDelta,
    RiskDelta,
)
from ..state.schemas.turn_result import ChoiceView, GamePhase, TurnResult, ViewState
from .endings import EndingResolver
from .integrity import IntegrityEvent
from .risk import RiskModel
from .scheduler import PendingConsequence

if TYPE_CHECKING:
    from .catalog import DecisionCatalog

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Player feed
# -----------------------------------------------------------------------------

class NoticeSeverity(str, Enum):
    """Severity levels for player-facing notices."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Notice:
    """
    Player-facing summary of something that happened this turn.

    The player sees: "An old decision caught up with you."
    Not: "PendingConsequence seq=4 trigger=7 kind=risk".
    """
    headline: str
    details: list[str] = field(default_factory=list)
    severity: NoticeSeverity = NoticeSeverity.INFO

    def model_dump(self) -> dict:
        """Serialize for JSON (matches Pydantic convention)."""
        return {
            "headline": self.headline,
            "details": self.details,
            "severity": self.severity.value,
        }


@dataclass
class _Resolution:
    """Everything a turn produced, before it is published."""
    state: EngineState
    record: DecisionRecord
    materialized: list[PendingConsequence] = field(default_factory=list)
    budget_refused: bool = False
    events: list[tuple[EventType, dict[str, Any]]] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

class TurnEngine:
    """
    Advances EngineState one decision at a time.

    Stateless between calls: everything that persists lives in EngineState.
    """

    def __init__(self, config: EngineConfig | None = None, bus: EventBus | None = None):
        self._config = config or DEFAULT_CONFIG
        self._bus = bus or get_event_bus()
        self._risk = RiskModel(self._config.risk)
        self._endings = EndingResolver(self._config)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def risk_model(self) -> RiskModel:
        return self._risk

    # -------------------------------------------------------------------------
    # Phase / terminal
    # -------------------------------------------------------------------------

    def phase_for_turn(self, turn: int) -> GamePhase:
        cfg = self._config.turns
        if turn > cfg.final_turn:
            return GamePhase.ENDED
        if turn <= cfg.inheritance_until:
            return GamePhase.INHERITANCE_DISASTER
        if turn <= cfg.operations_until:
            return GamePhase.OPERATIONAL_TEMPO
        return GamePhase.DISCOVERY

    def is_terminal(self, state: EngineState, catalog: DecisionCatalog | None = None) -> bool:
        """
        Whether the run is over: past the final turn, or past the last
        decision the catalog has to offer.
        """
        if state.turn > self._config.turns.final_turn:
            return True
        return catalog is not None and state.turn > catalog.last_turn

    # -------------------------------------------------------------------------
    # Core transaction
    # -------------------------------------------------------------------------

    def advance_turn(self, state: EngineState, decision: Decision, choice: Choice) -> EngineState:
        """
        Apply a choice and return the next state.

        Raises:
            InvalidAction: decision is not for the current turn, or the
                choice is not one of its options. State is unchanged.
            ConfigurationError: decision data is malformed or an internal
                contract was violated. State is unchanged.
        """
        return self._commit(self._resolve(state, decision, choice)).state

    def _validate(self, state: EngineState, decision: Decision, choice: Choice) -> None:
        if state.turn > self._config.turns.final_turn:
            logger.warning(f"Game {state.game_id} is over; turn {state.turn} cannot be played")
            raise InvalidAction
        if decision.turn != state.turn:
            logger.warning(
                f"Decision '{decision.id}' is for turn {decision.turn}, "
                f"game {state.game_id} is on turn {state.turn}"
            )
            raise InvalidAction
        if not decision.offers(choice):
            logger.warning(f"Choice '{choice.id}' is not an option of decision '{decision.id}'")
            raise InvalidAction

    def _resolve(
        self,
        state: EngineState,
        decision: Decision,
        choice: Choice,
        catalog: DecisionCatalog | None = None,
    ) -> _Resolution:
        self._validate(state, decision, choice)

        try:
            return self._run_pipeline(state.model_copy(deep=True), decision, choice, catalog)
        except (ValueError, TypeError, KeyError) as e:
            # SchedulingError and pydantic ValidationError are both ValueErrors
            logger.error(
                f"Turn {state.turn} of game {state.game_id} aborted "
                f"({type(e).__name__}: {e})"
            )
            raise ConfigurationError from None

    def _run_pipeline(
        self,
        new: EngineState,
        decision: Decision,
        choice: Choice,
        catalog: DecisionCatalog | None,
    ) -> _Resolution:
        impact = choice.impact
        played_turn = new.turn
        events: list[tuple[EventType, dict[str, Any]]] = []

        # 1. Immediate effects
        new.risk = self._risk.apply(new.risk, impact.risk)
        new.business = new.business.apply(impact.business)
        new.political = new.political.apply(impact.political)

        # 2. Budget. A refused spend does not block the choice
        budget_refused = False
        if impact.budget_cost > 0:
            spent = new.budget.spend(impact.budget_cost, impact.budget_category)
            if spent is None:
                budget_refused = True
                logger.info(
                    f"Game {new.game_id}: {impact.budget_cost}M {impact.budget_category.value} "
                    f"spend refused, {new.budget.available():.2f}M available"
                )
            else:
                new.budget = spent

        # 3. Integrity event implied by the audit-trail tag
        tag_event = self._config.integrity.tag_events[impact.audit_trail]
        integrity_event = IntegrityEvent(
            kind=tag_event.kind,
            turn=played_turn,
            magnitude=tag_event.magnitude,
            description=impact.narrative_reason,
        )
        new.ledger.record(integrity_event)
        events.append((EventType.INTEGRITY_RECORDED, {
            "kind": integrity_event.kind.value,
            "magnitude": integrity_event.magnitude,
            "source": "audit_trail",
        }))

        # 4. Delayed effects
        for delayed in impact.delayed:
            delay = delayed.delay if delayed.delay is not None else self._config.turns.consequence_delay
            queued = new.scheduler.schedule(
                PendingConsequence(
                    trigger_turn=played_turn + delay,
                    origin_decision_id=decision.id,
                    origin_choice_id=choice.id,
                    description=delayed.description,
                    effect=delayed.effect,
                ),
                current_turn=played_turn,
            )
            events.append((EventType.CONSEQUENCE_SCHEDULED, {
                "trigger_turn": queued.trigger_turn,
                "effect": queued.effect.kind,
            }))

        # 5. Advance, then materialize what is due at the new turn
        new.turn = played_turn + 1
        if self.is_terminal(new, catalog):
            materialized = new.scheduler.drain_all()
        else:
            materialized = new.scheduler.drain_due(new.turn)
        for consequence in materialized:
            self._apply_consequence(new, consequence, events)

        # 6. Trail
        record = DecisionRecord(turn=played_turn, decision_id=decision.id, choice_id=choice.id)
        new.trail = new.trail + (record,)

        return _Resolution(
            state=new,
            record=record,
            materialized=materialized,
            budget_refused=budget_refused,
            events=events,
        )

    def _apply_consequence(
        self,
        state: EngineState,
        consequence: PendingConsequence,
        events: list[tuple[EventType, dict[str, Any]]],
    ) -> None:
        effect = consequence.effect

        if isinstance(effect, RiskDelta):
            state.risk = self._risk.apply(state.risk, effect)
        elif isinstance(effect, BusinessDelta):
            state.business = state.business.apply(effect)
        elif isinstance(effect, PoliticalDelta):
            state.political = state.political.apply(effect)
        elif isinstance(effect, IntegrityEffect):
            state.ledger.record(IntegrityEvent(
                kind=effect.event_kind,
                turn=consequence.trigger_turn,
                magnitude=effect.magnitude,
                description=effect.description or consequence.description,
            ))
            events.append((EventType.INTEGRITY_RECORDED, {
                "kind": effect.event_kind.value,
                "magnitude": effect.magnitude,
                "source": "consequence",
            }))
        else:
            raise TypeError(f"unsupported effect type {type(effect).__name__}")

        events.append((EventType.CONSEQUENCE_MATERIALIZED, {
            "trigger_turn": consequence.trigger_turn,
            "origin_decision_id": consequence.origin_decision_id,
            "effect": effect.kind,
        }))

    def _commit(self, resolution: _Resolution) -> _Resolution:
        """Publish bus events for a turn that has fully resolved."""
        state = resolution.state
        for event_type, data in resolution.events:
            self._bus.emit(event_type, game_id=state.game_id, turn=resolution.record.turn, **data)

        self._bus.emit(
            EventType.TURN_RESOLVED,
            game_id=state.game_id,
            turn=resolution.record.turn,
            decision_id=resolution.record.decision_id,
            choice_id=resolution.record.choice_id,
            materialized=len(resolution.materialized),
        )

        old_phase = self.phase_for_turn(resolution.record.turn)
        new_phase = self.phase_for_turn(state.turn)
        if new_phase != old_phase and new_phase != GamePhase.ENDED:
            self._bus.emit(
                EventType.PHASE_CHANGED,
                game_id=state.game_id,
                turn=state.turn,
                before=old_phase.value,
                after=new_phase.value,
            )

        logger.debug(
            f"Game {state.game_id} turn {resolution.record.turn}: "
            f"'{resolution.record.choice_id}' on '{resolution.record.decision_id}', "
            f"{len(resolution.materialized)} consequence(s) materialized"
        )
        return resolution

    # -------------------------------------------------------------------------
    # Host-facing API
    # -------------------------------------------------------------------------

    def view(self, state: EngineState, catalog: DecisionCatalog) -> ViewState:
        """
        Read-only projection for rendering.

        Raises:
            ConfigurationError: the game is not over but the catalog has
                no decision for the current turn
        """
        terminal = self.is_terminal(state, catalog)
        decision = None if terminal else catalog.get(state.turn)

        fields: dict[str, Any] = {}
        if decision is not None:
            fields = {
                "decision_id": decision.id,
                "decision_title": decision.title,
                "decision_context": decision.context,
                "decision_category": decision.category,
                "is_board_pressure": decision.is_board_pressure,
                "choices": [
                    ChoiceView(id=c.id, label=c.label, description=c.description, preview=c.preview)
                    for c in decision.choices
                ],
            }

        return ViewState(
            game_id=state.game_id,
            turn=state.turn,
            phase=GamePhase.ENDED if terminal else self.phase_for_turn(state.turn),
            risk_levels=dict(state.risk.levels),
            total_exposure=self._risk.total_exposure(state.risk),
            critical_categories=self._risk.critical_categories(state.risk),
            business=state.business,
            political=state.political,
            budget_available=state.budget.available(),
            **fields,
        )

    def play_turn(self, state: EngineState, catalog: DecisionCatalog, choice_id: str) -> TurnResult:
        """
        Play the current turn by choice id.

        Looks up the current decision, resolves the choice, advances the
        state and builds the view, the notices and (when the run is over)
        the ending.

        Raises:
            InvalidAction: the game is over or choice_id is not offered
            ConfigurationError: the catalog has no decision for this turn
        """
        if self.is_terminal(state, catalog):
            logger.warning(f"Game {state.game_id} is over; no turn to play")
            raise InvalidAction

        decision = catalog.get(state.turn)
        choice = decision.get_choice(choice_id)
        if choice is None:
            logger.warning(f"Unknown choice '{choice_id}' for decision '{decision.id}'")
            raise InvalidAction

        resolution = self._resolve(state, decision, choice, catalog)
        after = resolution.state

        # Build everything that can fail before anything is published
        view = self.view(after, catalog)
        ending = self._endings.resolve(after) if self.is_terminal(after, catalog) else None
        notices = self._build_notices(state, resolution)

        self._commit(resolution)
        if ending is not None:
            self._bus.emit(
                EventType.GAME_ENDED,
                game_id=after.game_id,
                turn=resolution.record.turn,
                ending=ending.kind.value,
                penalty_multiplier=ending.penalty_multiplier,
            )

        return TurnResult(
            turn_number=resolution.record.turn,
            decision_id=decision.id,
            choice_id=choice.id,
            state=after,
            view=view,
            notices=[n.model_dump() for n in notices],
            materialized=len(resolution.materialized),
            ending=ending,
        )

    def _build_notices(self, before: EngineState, resolution: _Resolution) -> list[Notice]:
        notices: list[Notice] = []
        after = resolution.state

        for consequence in resolution.materialized:
            effect = consequence.effect
            detail = consequence.description or "An earlier decision has consequences."
            if isinstance(effect, IntegrityEffect) and effect.event_kind == IntegrityKind.BURIED_INCIDENT:
                notices.append(Notice(
                    headline="Buried Incident Surfaced",
                    details=[detail],
                    severity=NoticeSeverity.CRITICAL,
                ))
            elif isinstance(effect, RiskDelta) and any(v > 0 for v in effect.changes.values()):
                notices.append(Notice(
                    headline="Risk Materialized",
                    details=[detail],
                    severity=NoticeSeverity.WARNING,
                ))
            else:
                notices.append(Notice(headline="Consequence Landed", details=[detail]))

        if resolution.budget_refused:
            notices.append(Notice(
                headline="Budget Denied",
                details=[f"Only ${after.budget.available():.2f}M left this year; the spend did not happen."],
                severity=NoticeSeverity.WARNING,
            ))

        newly_critical = [
            c for c in self._risk.critical_categories(after.risk)
            if c not in self._risk.critical_categories(before.risk)
        ]
        if newly_critical:
            notices.append(Notice(
                headline="Critical Risk",
                details=[f"{c.value} is now critical" for c in newly_critical],
                severity=NoticeSeverity.CRITICAL,
            ))

        old_phase = self.phase_for_turn(resolution.record.turn)
        new_phase = self.phase_for_turn(after.turn)
        if new_phase != old_phase and new_phase != GamePhase.ENDED:
            notices.append(Notice(headline="New Phase", details=[new_phase.value]))

        return notices
