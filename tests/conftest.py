"""
Pytest fixtures for consequence engine tests.

Provides a private event bus, a fast persistence config and a small
decision catalog for isolated testing.
"""

import pytest
from pathlib import Path

# Add repo root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from cso_sim.config import EngineConfig, PersistenceConfig
from cso_sim.state.event_bus import EventBus, reset_event_bus
from cso_sim.state.schema import new_game
from cso_sim.state.schemas import (
    AuditTrailTag,
    Choice,
    Decision,
    DelayedEffect,
    Impact,
    IntegrityEffect,
    IntegrityKind,
    RiskCategory,
    RiskDelta,
    BusinessDelta,
    PoliticalDelta,
)
from cso_sim.systems import DecisionCatalog, TurnEngine


@pytest.fixture(autouse=True)
def fresh_global_bus():
    """Nothing leaks through the global bus between tests."""
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def bus():
    """Private event bus so tests can inspect emitted events."""
    return EventBus()


@pytest.fixture
def config():
    """Default engine config (a copy, safe to modify)."""
    return EngineConfig()


@pytest.fixture
def fast_persistence():
    """Persistence config with a cheap scrypt work factor."""
    return PersistenceConfig(scrypt_n=2 ** 10)


@pytest.fixture
def state(config):
    """Fresh game at turn 1."""
    return new_game(config, game_id="test0001")


@pytest.fixture
def engine(config, bus):
    return TurnEngine(config, bus=bus)


def _standard_choices(turn: int) -> tuple[Choice, ...]:
    return (
        Choice(
            id="invest",
            label="Fund the fix",
            impact=Impact(
                risk=RiskDelta(changes={RiskCategory.ACCESS_CONTROL: -5.0}),
                business=BusinessDelta(arr=-0.5, velocity=-5.0),
                political=PoliticalDelta(political_capital=-5.0),
                audit_trail=AuditTrailTag.CLEAN,
                narrative_reason="Paid for the fix up front",
            ),
        ),
        Choice(
            id="defer",
            label="Defer to next quarter",
            impact=Impact(
                risk=RiskDelta(changes={RiskCategory.DATA_EXPOSURE: 5.0}),
                business=BusinessDelta(arr=0.5),
                audit_trail=AuditTrailTag.FLAGGED,
                narrative_reason="Told the board the risk was handled",
            ),
        ),
        Choice(
            id="bury",
            label="Keep it quiet",
            impact=Impact(
                risk=RiskDelta(changes={RiskCategory.DETECTION: 10.0}),
                business=BusinessDelta(board_confidence=5.0),
                audit_trail=AuditTrailTag.TOXIC,
                narrative_reason="Withheld the incident from the board",
                delayed=(
                    DelayedEffect(
                        description=f"The incident from turn {turn} surfaced",
                        effect=IntegrityEffect(event_kind=IntegrityKind.BURIED_INCIDENT),
                    ),
                ),
            ),
        ),
    )


@pytest.fixture
def decisions():
    """Sixteen decisions, one per turn, each offering invest / defer / bury."""
    return [
        Decision(
            id=f"decision_{turn:02d}",
            turn=turn,
            title=f"Decision {turn}",
            context="Something needs your attention.",
            choices=_standard_choices(turn),
        )
        for turn in range(1, 17)
    ]


@pytest.fixture
def catalog(decisions):
    return DecisionCatalog(decisions)
