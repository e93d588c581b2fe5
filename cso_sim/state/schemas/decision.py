"""
Decision catalog schemas.

A Decision is one turn's dilemma; each Choice carries two views of itself:
- ImpactPreview: what the player sees before committing (business info only)
- Impact: what actually happens, including delayed effects the player
  does not see until they materialize

These are read-only configuration for the engine. The catalog supplier
(content files, tests, mods) builds them; the engine never mutates them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .metrics import (
    AuditTrailTag,
    BudgetCategory,
    BusinessDelta,
    Effect,
    PoliticalDelta,
    RiskDelta,
)


class DecisionCategory(str, Enum):
    STRATEGIC_DIRECTION = "StrategicDirection"
    INCIDENT_RESPONSE = "IncidentResponse"
    BUDGET_ALLOCATION = "BudgetAllocation"
    COMPLIANCE_APPROACH = "ComplianceApproach"
    TEAM_MANAGEMENT = "TeamManagement"
    VENDOR_SELECTION = "VendorSelection"
    RISK_ACCEPTANCE = "RiskAcceptance"
    POLITICAL_NAVIGATION = "PoliticalNavigation"


class RiskIndicator(str, Enum):
    """Traffic-light hint shown in the preview."""
    REDUCES = "Reduces"
    NEUTRAL = "Neutral"
    INCREASES = "Increases"
    SIGNIFICANT = "Significant"


class ImpactPreview(BaseModel):
    """What the player sees before choosing. No hidden costs, no hidden risk."""
    model_config = ConfigDict(frozen=True)

    estimated_arr_change: float = 0.0
    budget_cost: float = 0.0
    timeline_weeks: int | None = None
    political_note: str | None = None
    risk_indicator: RiskIndicator = RiskIndicator.NEUTRAL


class DelayedEffect(BaseModel):
    """
    An effect that lands some turns after the choice is made.

    delay=None means "use the engine's configured delay".
    """
    model_config = ConfigDict(frozen=True)

    delay: int | None = Field(default=None, ge=0)
    description: str = ""
    effect: Effect


class Impact(BaseModel):
    """Full consequences of a choice."""
    model_config = ConfigDict(frozen=True)

    risk: RiskDelta = Field(default_factory=RiskDelta)
    business: BusinessDelta = Field(default_factory=BusinessDelta)
    political: PoliticalDelta = Field(default_factory=PoliticalDelta)
    budget_cost: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)  # Millions
    budget_category: BudgetCategory = BudgetCategory.PROJECT
    audit_trail: AuditTrailTag = AuditTrailTag.CLEAN
    narrative_reason: str = ""  # Recorded as the ledger entry's description
    delayed: tuple[DelayedEffect, ...] = ()


class Choice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    label: str
    description: str = ""
    preview: ImpactPreview = Field(default_factory=ImpactPreview)
    impact: Impact = Field(default_factory=Impact)

    @model_validator(mode="after")
    def _preview_shows_cost(self) -> "Choice":
        if self.preview.budget_cost != self.impact.budget_cost:
            raise ValueError(
                f"preview budget cost {self.preview.budget_cost} does not match "
                f"impact budget cost {self.impact.budget_cost}"
            )
        return self


class Decision(BaseModel):
    """One turn's decision point."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    turn: int = Field(ge=1)
    title: str
    context: str = ""
    category: DecisionCategory = DecisionCategory.STRATEGIC_DIRECTION
    is_board_pressure: bool = False
    choices: tuple[Choice, ...]

    @field_validator("choices")
    @classmethod
    def _unique_non_empty(cls, choices: tuple[Choice, ...]) -> tuple[Choice, ...]:
        if not choices:
            raise ValueError("decision has no choices")
        ids = [c.id for c in choices]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate choice ids")
        return choices

    def get_choice(self, choice_id: str) -> Choice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    def offers(self, choice: Choice) -> bool:
        """Whether this exact choice is one of this decision's options."""
        return self.get_choice(choice.id) == choice
