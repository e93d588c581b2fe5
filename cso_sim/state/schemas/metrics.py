"""
Metric models for the simulator: risk vector, business and political state,
and the delta/effect types that move them.

All models are pydantic so they validate on construction and serialize to
JSON as part of EngineState. Every metric is clamped to its valid range
after mutation; callers never see an out-of-range value.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class RiskCategory(str, Enum):
    DATA_EXPOSURE = "DataExposure"
    ACCESS_CONTROL = "AccessControl"
    DETECTION = "Detection"
    VENDOR_RISK = "VendorRisk"
    INSIDER_THREAT = "InsiderThreat"


class IntegrityKind(str, Enum):
    """Kinds of entries in the narrative integrity ledger."""
    LIE = "Lie"
    BURIED_INCIDENT = "BuriedIncident"
    DELAYED_ESCALATION = "DelayedEscalation"
    CONSISTENT = "Consistent"


class AuditTrailTag(str, Enum):
    """How a choice looks to a later discovery process."""
    CLEAN = "Clean"
    FLAGGED = "Flagged"
    TOXIC = "Toxic"


RISK_MIN = 0.0
RISK_MAX = 100.0
DELTA_LIMIT = 100.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# -----------------------------------------------------------------------------
# Risk
# -----------------------------------------------------------------------------

class RiskVector(BaseModel):
    """
    Magnitude per risk category, each in [0, 100].

    Immutable from the outside: RiskModel.apply() returns a new vector.
    """
    model_config = ConfigDict(frozen=True)

    levels: dict[RiskCategory, float] = Field(default_factory=dict, validate_default=True)

    @field_validator("levels")
    @classmethod
    def _complete_and_clamp(cls, levels: dict[RiskCategory, float]) -> dict[RiskCategory, float]:
        return {
            category: clamp(float(levels.get(category, 0.0)), RISK_MIN, RISK_MAX)
            for category in RiskCategory
        }

    def level(self, category: RiskCategory) -> float:
        return self.levels[category]


class RiskDelta(BaseModel):
    """Signed change per risk category. Out-of-range changes are clamped."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["risk"] = "risk"
    changes: dict[RiskCategory, float] = Field(default_factory=dict)

    @field_validator("changes")
    @classmethod
    def _clamp_changes(cls, changes: dict[RiskCategory, float]) -> dict[RiskCategory, float]:
        return {
            category: clamp(float(value), -DELTA_LIMIT, DELTA_LIMIT)
            for category, value in changes.items()
        }

    @property
    def is_zero(self) -> bool:
        return all(v == 0 for v in self.changes.values())


# -----------------------------------------------------------------------------
# Business / Political
# -----------------------------------------------------------------------------

class BusinessDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["business"] = "business"
    arr: float = 0.0
    board_confidence: float = 0.0
    velocity: float = 0.0
    churn: float = 0.0


class PoliticalDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["political"] = "political"
    political_capital: float = 0.0
    team_morale: float = 0.0
    industry_standing: float = 0.0
    vendor_relationships: float = 0.0


class _BoundedState(BaseModel):
    """Shared clamping discipline for business and political metrics."""
    model_config = ConfigDict(frozen=True)

    BOUNDS: ClassVar[dict[str, tuple[float, float]]] = {}

    @model_validator(mode="before")
    @classmethod
    def _clamp_fields(cls, data):
        if not isinstance(data, dict):
            return data
        clamped = dict(data)
        for name, (low, high) in cls.BOUNDS.items():
            if name in clamped and isinstance(clamped[name], (int, float)):
                clamped[name] = clamp(float(clamped[name]), low, high)
        return clamped

    def apply(self, delta: BaseModel):
        """Return a new instance with the delta added and every field clamped."""
        values = {
            name: getattr(self, name) + getattr(delta, name, 0.0)
            for name in self.BOUNDS
        }
        return type(self)(**values)


class BusinessState(_BoundedState):
    BOUNDS: ClassVar[dict[str, tuple[float, float]]] = {
        "arr": (0.0, 1000.0),            # ARR in millions
        "board_confidence": (0.0, 100.0),
        "velocity": (0.0, 200.0),        # Roadmap velocity, percent of plan
        "churn": (0.0, 100.0),           # Customer churn probability, percent
    }

    arr: float = 12.0
    board_confidence: float = 70.0
    velocity: float = 100.0
    churn: float = 5.0


class PoliticalState(_BoundedState):
    BOUNDS: ClassVar[dict[str, tuple[float, float]]] = {
        "political_capital": (0.0, 100.0),
        "team_morale": (0.0, 100.0),
        "industry_standing": (0.0, 100.0),
        "vendor_relationships": (0.0, 100.0),
    }

    political_capital: float = 50.0
    team_morale: float = 50.0
    industry_standing: float = 60.0
    vendor_relationships: float = 40.0


# -----------------------------------------------------------------------------
# Budget
# -----------------------------------------------------------------------------

class BudgetCategory(str, Enum):
    HEADCOUNT = "Headcount"
    TOOLING = "Tooling"
    PROJECT = "Project"
    EMERGENCY = "Emergency"


class Budget(BaseModel):
    """
    Annual security budget, in millions. Always insufficient.

    A spend must fit both what is left overall and what is left in its
    category. spend() never overdraws; an unaffordable spend is refused.
    """
    model_config = ConfigDict(frozen=True)

    total_annual: float = Field(default=2.5, ge=0.0, allow_inf_nan=False)
    spent: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    committed: float = Field(default=0.8, ge=0.0, allow_inf_nan=False)
    allowances: dict[BudgetCategory, float] = Field(
        default_factory=lambda: {
            BudgetCategory.HEADCOUNT: 1.2,
            BudgetCategory.TOOLING: 0.6,
            BudgetCategory.PROJECT: 0.4,
            BudgetCategory.EMERGENCY: 0.3,
        },
        validate_default=True,
    )

    @field_validator("allowances")
    @classmethod
    def _every_category(cls, allowances: dict[BudgetCategory, float]) -> dict[BudgetCategory, float]:
        return {c: max(0.0, allowances.get(c, 0.0)) for c in BudgetCategory}

    def available(self) -> float:
        return self.total_annual - self.spent - self.committed

    def can_spend(self, amount: float, category: BudgetCategory) -> bool:
        return self.available() >= amount and self.allowances[category] >= amount

    def spend(self, amount: float, category: BudgetCategory) -> Budget | None:
        """New budget with the amount spent, or None if it cannot be afforded."""
        if not self.can_spend(amount, category):
            return None
        allowances = dict(self.allowances)
        allowances[category] -= amount
        return self.model_copy(update={"spent": self.spent + amount, "allowances": allowances})


# -----------------------------------------------------------------------------
# Integrity effect (template for a ledger event)
# -----------------------------------------------------------------------------

class IntegrityEffect(BaseModel):
    """
    An integrity event waiting to happen.

    The turn is not known until the effect materializes, so the ledger
    event is built from this template at application time.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["integrity"] = "integrity"
    event_kind: IntegrityKind
    magnitude: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)
    description: str = ""


Effect = Annotated[
    Union[RiskDelta, BusinessDelta, PoliticalDelta, IntegrityEffect],
    Field(discriminator="kind"),
]
