"""
ViewState and TurnResult: what the engine hands back to its host.

ViewState is the read-only projection a renderer works from. It carries
current metrics, the decision on the table and its choices with their
previews. It never carries the full Impact of a choice, the pending
consequence queue or the integrity ledger; the player discovers those
through play.

TurnResult wraps one resolved turn: the new authoritative state, its
view, the player feed of notices and, when the game is over, the ending.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ...systems.endings import Ending
from ..schema import EngineState
from .decision import DecisionCategory, ImpactPreview
from .metrics import BusinessState, PoliticalState, RiskCategory


class GamePhase(str, Enum):
    """Narrative arc of a run, derived from the turn number."""
    INHERITANCE_DISASTER = "InheritanceDisaster"
    OPERATIONAL_TEMPO = "OperationalTempo"
    DISCOVERY = "Discovery"
    ENDED = "Ended"


class ChoiceView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str = ""
    preview: ImpactPreview


class ViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: str
    turn: int
    phase: GamePhase

    risk_levels: dict[RiskCategory, float]
    total_exposure: float
    critical_categories: list[RiskCategory] = Field(default_factory=list)
    business: BusinessState
    political: PoliticalState
    budget_available: float  # Millions left to spend this year

    # None once the game is over
    decision_id: str | None = None
    decision_title: str | None = None
    decision_context: str = ""
    decision_category: DecisionCategory | None = None
    is_board_pressure: bool = False
    choices: list[ChoiceView] = Field(default_factory=list)

    @property
    def awaiting_decision(self) -> bool:
        return self.decision_id is not None


class TurnResult(BaseModel):
    """
    Complete result of a resolved turn.

    state is authoritative; the host persists it and renders only from view.
    """
    turn_number: int  # The turn that was just played
    decision_id: str
    choice_id: str

    state: EngineState
    view: ViewState

    # Player feed, e.g. [{"headline": "Consequence Landed", "details": [...], "severity": "warning"}]
    notices: list[dict] = Field(default_factory=list)
    materialized: int = 0  # Delayed consequences that landed this turn

    ending: Ending | None = None
    resolved_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_final(self) -> bool:
        return self.ending is not None
