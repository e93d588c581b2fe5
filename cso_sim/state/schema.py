"""
Root game state for the consequence engine.

EngineState is the only mutable aggregate in the simulator. Each sub-model
owns one concern (risk, business, political, integrity, pending
consequences) and the trail records which choice was taken on which turn.

All state is versioned for migration support and serializes to JSON for
encrypted persistence.
"""

from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_CONFIG, EngineConfig
from ..systems.integrity import IntegrityLedger
from ..systems.scheduler import ConsequenceScheduler
from .schemas.metrics import Budget, BusinessState, PoliticalState, RiskVector


def generate_id() -> str:
    return str(uuid4())[:8]


class DecisionRecord(BaseModel):
    """One entry of the decision trail."""
    model_config = ConfigDict(frozen=True)

    turn: int = Field(ge=1)
    decision_id: str
    choice_id: str


class EngineState(BaseModel):
    """
    Complete simulator state.

    turn is the turn awaiting a decision. After the final decision it is
    one past the final turn, which is how a finished game is recognized.
    """
    SCHEMA_VERSION: ClassVar[str] = "1.0.0"

    schema_version: str = SCHEMA_VERSION
    game_id: str = Field(default_factory=generate_id)
    turn: int = Field(default=1, ge=1)

    risk: RiskVector = Field(default_factory=RiskVector)
    business: BusinessState = Field(default_factory=BusinessState)
    political: PoliticalState = Field(default_factory=PoliticalState)
    budget: Budget = Field(default_factory=Budget)

    ledger: IntegrityLedger = Field(default_factory=IntegrityLedger)
    scheduler: ConsequenceScheduler = Field(default_factory=ConsequenceScheduler)
    trail: tuple[DecisionRecord, ...] = ()

    def choice_on(self, turn: int) -> DecisionRecord | None:
        """Trail entry for a given turn, if that turn has been played."""
        for record in self.trail:
            if record.turn == turn:
                return record
        return None


def new_game(config: EngineConfig | None = None, game_id: str | None = None) -> EngineState:
    """
    Fresh state at turn 1: initial metrics and budget from config, empty ledger
    (score 100), nothing scheduled, empty trail.
    """
    config = config or DEFAULT_CONFIG
    state = EngineState(
        risk=RiskVector(levels=dict(config.risk.initial_levels)),
        budget=config.budget,
    )
    if game_id is not None:
        state.game_id = game_id
    return state
