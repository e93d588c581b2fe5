"""Tests for the turn engine transaction and host-facing API."""

import pytest

from cso_sim.config import EngineConfig, IntegrityConfig, TagEvent
from cso_sim.errors import ConfigurationError, InvalidAction
from cso_sim.state.event_bus import EventType
from cso_sim.state.schema import new_game
from cso_sim.state.schemas import (
    AuditTrailTag,
    BudgetCategory,
    BusinessDelta,
    Choice,
    Decision,
    DecisionCategory,
    DelayedEffect,
    Impact,
    ImpactPreview,
    IntegrityEffect,
    IntegrityKind,
    PoliticalDelta,
    RiskCategory,
    RiskDelta,
)
from cso_sim.state.schemas.turn_result import GamePhase
from cso_sim.systems import AuditTrailQuality, DecisionCatalog, EndingKind, TurnEngine

DE = RiskCategory.DATA_EXPOSURE


def neutral_decision(turn: int) -> Decision:
    return Decision(
        id=f"neutral_{turn}",
        turn=turn,
        title="Quiet week",
        choices=(Choice(id="carry_on", label="Carry on"),),
    )


@pytest.fixture
def breach_decision():
    """Turn 1: accept exposure and bury the incident."""
    return Decision(
        id="inherited_breach",
        turn=1,
        title="The breach you inherited",
        choices=(
            Choice(
                id="sit_on_it",
                label="Sit on it",
                impact=Impact(
                    risk=RiskDelta(changes={DE: 35.0}),
                    delayed=(
                        DelayedEffect(
                            description="A journalist asks about the old breach",
                            effect=IntegrityEffect(event_kind=IntegrityKind.BURIED_INCIDENT),
                        ),
                    ),
                ),
            ),
            Choice(id="disclose", label="Disclose"),
        ),
    )


class TestAdvanceTurn:
    """Core single-turn transaction."""

    def test_starting_state(self, engine, state):
        assert state.turn == 1
        assert state.ledger.score() == 100
        assert engine.risk_model.total_exposure(state.risk) == 35.0

    def test_buried_incident_surfaces_two_turns_later(self, engine, state, breach_decision):
        choice = breach_decision.get_choice("sit_on_it")

        after_1 = engine.advance_turn(state, breach_decision, choice)
        assert after_1.turn == 2
        assert engine.risk_model.total_exposure(after_1.risk) == 70.0
        assert after_1.ledger.audit_quality() == AuditTrailQuality.CLEAN
        assert after_1.ledger.score() == 100

        decision_2 = neutral_decision(2)
        after_2 = engine.advance_turn(after_1, decision_2, decision_2.choices[0])
        assert after_2.turn == 3
        assert after_2.ledger.audit_quality() == AuditTrailQuality.FLAGGED
        assert after_2.ledger.score() == 100 - 20
        assert after_2.ledger.events_of(IntegrityKind.BURIED_INCIDENT)[0].turn == 3

    def test_input_state_not_mutated(self, engine, state, breach_decision):
        before = state.model_dump()
        engine.advance_turn(state, breach_decision, breach_decision.choices[0])
        assert state.model_dump() == before

    def test_immediate_business_and_political(self, engine, state, catalog):
        decision = catalog.get(1)
        after = engine.advance_turn(state, decision, decision.get_choice("invest"))
        assert after.business.arr == pytest.approx(11.5)
        assert after.business.velocity == pytest.approx(95.0)
        assert after.political.political_capital == pytest.approx(45.0)
        assert after.risk.level(RiskCategory.ACCESS_CONTROL) == pytest.approx(5.0)

    def test_trail_appended(self, engine, state, catalog):
        decision = catalog.get(1)
        after = engine.advance_turn(state, decision, decision.get_choice("defer"))
        assert len(after.trail) == 1
        record = after.trail[0]
        assert (record.turn, record.decision_id, record.choice_id) == (1, "decision_01", "defer")


class TestAuditTrailTags:
    """Integrity events implied by a choice's audit-trail tag."""

    def test_clean_records_consistent(self, engine, state, catalog):
        decision = catalog.get(1)
        after = engine.advance_turn(state, decision, decision.get_choice("invest"))
        assert [e.kind for e in after.ledger.events] == [IntegrityKind.CONSISTENT]
        assert after.ledger.score() == 100

    def test_flagged_records_lie(self, engine, state, catalog):
        decision = catalog.get(1)
        after = engine.advance_turn(state, decision, decision.get_choice("defer"))
        assert after.ledger.score() == 85

    def test_toxic_records_double_lie(self, engine, state, catalog):
        decision = catalog.get(1)
        after = engine.advance_turn(state, decision, decision.get_choice("bury"))
        assert after.ledger.score() == 70
        assert after.ledger.events[0].description == "Withheld the incident from the board"

    def test_toxic_delayed_buried_lands(self, engine, state, catalog):
        d1, d2 = catalog.get(1), catalog.get(2)
        s = engine.advance_turn(state, d1, d1.get_choice("bury"))
        s = engine.advance_turn(s, d2, d2.get_choice("invest"))
        assert s.ledger.buried_incident_count() == 1
        assert s.ledger.score() == 70 - 20


class TestDelayedEffects:
    """Scheduling and materialization."""

    def _decision_with(self, *delayed: DelayedEffect, turn: int = 1) -> Decision:
        return Decision(
            id="delayed",
            turn=turn,
            title="Delayed",
            choices=(Choice(id="go", label="Go", impact=Impact(delayed=delayed)),),
        )

    def test_zero_delay_lands_next_turn(self, engine, state):
        decision = self._decision_with(
            DelayedEffect(delay=0, effect=BusinessDelta(arr=-2.0)),
        )
        after = engine.advance_turn(state, decision, decision.choices[0])
        assert after.business.arr == pytest.approx(10.0)
        assert after.scheduler.pending_count() == 0

    def test_default_delay_from_config(self, state, bus):
        config = EngineConfig()
        config.turns.consequence_delay = 4
        engine = TurnEngine(config, bus=bus)
        decision = self._decision_with(DelayedEffect(effect=PoliticalDelta(team_morale=-10.0)))

        after = engine.advance_turn(state, decision, decision.choices[0])
        assert after.scheduler.next_trigger_turn() == 5

    def test_delayed_risk_goes_through_amplification(self, engine, state):
        decision = Decision(
            id="blind",
            turn=1,
            title="Turn off the SIEM",
            choices=(Choice(
                id="go",
                label="Go",
                impact=Impact(
                    risk=RiskDelta(changes={RiskCategory.DETECTION: 60.0}),
                    delayed=(DelayedEffect(delay=0, effect=RiskDelta(changes={DE: 10.0})),),
                ),
            ),),
        )
        after = engine.advance_turn(state, decision, decision.choices[0])
        # Detection was 65 when the delayed delta landed
        assert after.risk.level(DE) == pytest.approx(25.0)

    def test_final_turn_lands_everything_pending(self, engine, state):
        state.turn = 16
        decision = self._decision_with(
            DelayedEffect(delay=5, effect=BusinessDelta(arr=-2.0)),
            DelayedEffect(effect=IntegrityEffect(event_kind=IntegrityKind.BURIED_INCIDENT)),
            turn=16,
        )
        after = engine.advance_turn(state, decision, decision.choices[0])
        assert after.turn == 17
        assert after.scheduler.pending_count() == 0
        assert after.business.arr == pytest.approx(10.0)
        assert after.ledger.buried_incident_count() == 1


class TestFailures:
    """InvalidAction and ConfigurationError paths."""

    def test_choice_from_other_decision(self, engine, state, catalog, breach_decision):
        foreign = catalog.get(2).get_choice("invest")
        with pytest.raises(InvalidAction):
            engine.advance_turn(state, breach_decision, foreign)

    def test_wrong_turn(self, engine, state, catalog):
        decision = catalog.get(2)
        with pytest.raises(InvalidAction):
            engine.advance_turn(state, decision, decision.choices[0])
        assert state.turn == 1

    def test_public_message_is_fixed(self, engine, state, catalog):
        decision = catalog.get(2)
        with pytest.raises(InvalidAction) as exc_info:
            engine.advance_turn(state, decision, decision.choices[0])
        assert str(exc_info.value) == InvalidAction.message

    def test_broken_config_is_configuration_error(self, state, catalog, bus):
        config = EngineConfig(integrity=IntegrityConfig(tag_events={
            AuditTrailTag.CLEAN: TagEvent(kind=IntegrityKind.CONSISTENT),
        }))
        engine = TurnEngine(config, bus=bus)
        decision = catalog.get(1)

        with pytest.raises(ConfigurationError):
            engine.advance_turn(state, decision, decision.get_choice("defer"))
        assert state.turn == 1
        assert state.ledger.events == ()
        assert bus.get_history() == []


class TestEvents:
    """Bus events for a committed turn."""

    def test_turn_resolved_emitted(self, engine, state, catalog, bus):
        decision = catalog.get(1)
        engine.advance_turn(state, decision, decision.get_choice("bury"))

        resolved = bus.get_history(EventType.TURN_RESOLVED)
        assert len(resolved) == 1
        assert resolved[0].data["choice_id"] == "bury"
        assert resolved[0].game_id == "test0001"
        assert len(bus.get_history(EventType.CONSEQUENCE_SCHEDULED)) == 1
        assert len(bus.get_history(EventType.INTEGRITY_RECORDED)) == 1

    def test_materialized_emitted(self, engine, state, catalog, bus):
        d1, d2 = catalog.get(1), catalog.get(2)
        s = engine.advance_turn(state, d1, d1.get_choice("bury"))
        engine.advance_turn(s, d2, d2.get_choice("invest"))

        landed = bus.get_history(EventType.CONSEQUENCE_MATERIALIZED)
        assert len(landed) == 1
        assert landed[0].data["origin_decision_id"] == "decision_01"

    def test_invalid_action_emits_nothing(self, engine, state, catalog, bus):
        with pytest.raises(InvalidAction):
            engine.advance_turn(state, catalog.get(3), catalog.get(3).choices[0])
        assert bus.get_history() == []


class TestPhases:
    """Phase derivation."""

    @pytest.mark.parametrize("turn,phase", [
        (1, GamePhase.INHERITANCE_DISASTER),
        (3, GamePhase.INHERITANCE_DISASTER),
        (4, GamePhase.OPERATIONAL_TEMPO),
        (12, GamePhase.OPERATIONAL_TEMPO),
        (13, GamePhase.DISCOVERY),
        (16, GamePhase.DISCOVERY),
        (17, GamePhase.ENDED),
    ])
    def test_phase_for_turn(self, engine, turn, phase):
        assert engine.phase_for_turn(turn) == phase

    def test_phase_change_emitted(self, engine, catalog, bus):
        state = new_game(engine.config)
        for _ in range(3):
            state = engine.play_turn(state, catalog, "invest").state
        changes = bus.get_history(EventType.PHASE_CHANGED)
        assert len(changes) == 1
        assert changes[0].data["after"] == GamePhase.OPERATIONAL_TEMPO.value


class TestPlayTurn:
    """Host-facing play_turn / view."""

    def test_view_hides_impact(self, engine, state, catalog):
        view = engine.view(state, catalog)
        assert view.decision_id == "decision_01"
        assert [c.id for c in view.choices] == ["invest", "defer", "bury"]
        assert not hasattr(view.choices[0], "impact")
        assert view.total_exposure == 35.0

    def test_unknown_choice_id(self, engine, state, catalog):
        with pytest.raises(InvalidAction):
            engine.play_turn(state, catalog, "nope")

    def test_result_carries_next_view(self, engine, state, catalog):
        result = engine.play_turn(state, catalog, "invest")
        assert result.turn_number == 1
        assert result.state.turn == 2
        assert result.view.decision_id == "decision_02"
        assert result.ending is None

    def test_notice_for_surfaced_incident(self, engine, state, catalog):
        s = engine.play_turn(state, catalog, "bury").state
        result = engine.play_turn(s, catalog, "invest")
        assert result.materialized == 1
        assert result.notices[0]["headline"] == "Buried Incident Surfaced"
        assert result.notices[0]["severity"] == "critical"

    def test_missing_turn_in_catalog(self, engine, state):
        catalog = DecisionCatalog([neutral_decision(1), neutral_decision(3)])
        s = engine.advance_turn(state, catalog.get(1), catalog.get(1).choices[0])
        with pytest.raises(ConfigurationError):
            engine.view(s, catalog)

    def test_empty_catalog_is_configuration_error(self, engine, state):
        with pytest.raises(ConfigurationError):
            engine.play_turn(state, DecisionCatalog([]), "carry_on")

    def test_missing_next_turn_publishes_nothing(self, engine, state, bus):
        catalog = DecisionCatalog([neutral_decision(1), neutral_decision(3)])
        with pytest.raises(ConfigurationError):
            engine.play_turn(state, catalog, "carry_on")
        assert bus.get_history() == []


class TestFullGame:
    """Sixteen-turn runs end to end."""

    def _play(self, engine, catalog, choice_id):
        state = new_game(engine.config)
        result = None
        while not engine.is_terminal(state, catalog):
            result = engine.play_turn(state, catalog, choice_id)
            state = result.state
        return result

    def test_honest_run_is_golden(self, engine, catalog, bus):
        result = self._play(engine, catalog, "invest")
        assert result.state.turn == 17
        assert len(result.state.trail) == 16
        assert result.ending.kind == EndingKind.GOLDEN_CISO
        assert result.ending.penalty_multiplier == 1.0
        assert result.view.phase == GamePhase.ENDED
        assert result.view.decision_id is None
        assert len(bus.get_history(EventType.GAME_ENDED)) == 1

    def test_burying_everything_is_criminal(self, engine, catalog):
        result = self._play(engine, catalog, "bury")
        assert result.ending.kind == EndingKind.CRIMINAL_INVESTIGATION
        assert result.ending.integrity_score == 0
        assert 0.0 <= result.ending.total_exposure <= 500.0

    def test_burying_on_the_last_turns_is_still_discovered(self, engine, state, catalog):
        result = None
        for turn in range(1, 17):
            result = engine.play_turn(state, catalog, "invest" if turn <= 14 else "bury")
            state = result.state

        assert result.materialized == 2
        assert state.scheduler.pending_count() == 0
        assert state.ledger.buried_incident_count() == 2
        assert [n["headline"] for n in result.notices[:2]] == ["Buried Incident Surfaced"] * 2
        assert result.ending.buried_incidents == 2
        assert result.ending.kind == EndingKind.CRIMINAL_INVESTIGATION

    def test_no_play_after_end(self, engine, catalog):
        final_state = self._play(engine, catalog, "invest").state
        with pytest.raises(InvalidAction):
            engine.play_turn(final_state, catalog, "invest")

    def test_short_catalog_ends_early(self, engine, state):
        catalog = DecisionCatalog([neutral_decision(1), neutral_decision(2)])
        s = engine.play_turn(state, catalog, "carry_on").state
        result = engine.play_turn(s, catalog, "carry_on")
        assert result.ending is not None
        assert engine.is_terminal(result.state, catalog)


class TestBudget:
    """Budget spending on a choice."""

    def _spend(self, cost: float, category: BudgetCategory) -> Decision:
        return Decision(
            id="buy_edr",
            turn=1,
            title="Buy an EDR platform",
            category=DecisionCategory.BUDGET_ALLOCATION,
            choices=(Choice(
                id="buy",
                label="Buy it",
                preview=ImpactPreview(budget_cost=cost),
                impact=Impact(
                    risk=RiskDelta(changes={RiskCategory.DETECTION: -5.0}),
                    budget_cost=cost,
                    budget_category=category,
                ),
            ),),
        )

    def test_spend_reduces_available(self, engine, state):
        catalog = DecisionCatalog([self._spend(0.3, BudgetCategory.TOOLING), neutral_decision(2)])
        result = engine.play_turn(state, catalog, "buy")

        assert result.state.budget.spent == pytest.approx(0.3)
        assert result.state.budget.allowances[BudgetCategory.TOOLING] == pytest.approx(0.3)
        assert result.view.budget_available == pytest.approx(1.4)
        assert state.budget.spent == 0.0

    def test_unaffordable_spend_refused(self, engine, state):
        # Project allowance is 0.4
        catalog = DecisionCatalog([self._spend(0.5, BudgetCategory.PROJECT), neutral_decision(2)])
        result = engine.play_turn(state, catalog, "buy")

        assert result.state.budget == state.budget
        assert result.state.risk.level(RiskCategory.DETECTION) == pytest.approx(0.0)
        assert result.state.choice_on(1).choice_id == "buy"
        denied = [n for n in result.notices if n["headline"] == "Budget Denied"]
        assert len(denied) == 1
        assert denied[0]["severity"] == "warning"

    def test_no_cost_no_spend(self, engine, state, catalog):
        after = engine.play_turn(state, catalog, "invest").state
        assert after.budget == state.budget
