"""
Engine configuration.

Scenario numbers are opaque tuning data: every threshold, weight and
multiplier the engine uses lives here, not in the systems that use them.
Overrides are stored as a JSON file merged over the defaults.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError, SystemFailure
from .state.schemas.metrics import AuditTrailTag, Budget, IntegrityKind, RiskCategory

logger = logging.getLogger(__name__)


# ─── Risk ────────────────────────────────────────────────────

class AmplificationRule(BaseModel):
    """
    Cross-category amplification.

    When `trigger` is at or above `threshold` (before the update), the
    positive delta of every target category is multiplied by `factor`.
    targets=None means every category.
    """
    name: str
    trigger: RiskCategory
    threshold: float = Field(ge=0.0, le=100.0)
    targets: tuple[RiskCategory, ...] | None = None
    factor: float = Field(ge=1.0)


DEFAULT_AMPLIFICATION_RULES = (
    AmplificationRule(
        name="access_control_weakness",
        trigger=RiskCategory.ACCESS_CONTROL,
        threshold=60.0,
        targets=(RiskCategory.DATA_EXPOSURE,),
        factor=1.2,
    ),
    AmplificationRule(
        name="detection_blind_spot",
        trigger=RiskCategory.DETECTION,
        threshold=60.0,
        targets=None,
        factor=1.5,
    ),
)


class RiskConfig(BaseModel):
    initial_levels: dict[RiskCategory, float] = Field(default_factory=lambda: {
        RiskCategory.DATA_EXPOSURE: 10.0,
        RiskCategory.ACCESS_CONTROL: 10.0,
        RiskCategory.DETECTION: 5.0,
        RiskCategory.VENDOR_RISK: 5.0,
        RiskCategory.INSIDER_THREAT: 5.0,
    })
    weights: dict[RiskCategory, float] = Field(
        default_factory=lambda: {c: 1.0 for c in RiskCategory},
    )
    # Evaluated in list order; the order is part of the contract
    amplification_rules: tuple[AmplificationRule, ...] = DEFAULT_AMPLIFICATION_RULES
    critical_threshold: float = Field(default=80.0, ge=0.0, le=100.0)

    @field_validator("weights")
    @classmethod
    def _weights_in_unit_range(cls, weights: dict[RiskCategory, float]) -> dict[RiskCategory, float]:
        # Keeps total_exposure inside [0, 100 * len(RiskCategory)]
        for category, weight in weights.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"weight for {category.value} must be in [0, 1]")
        return {c: weights.get(c, 1.0) for c in RiskCategory}


# ─── Integrity ───────────────────────────────────────────────

class TagEvent(BaseModel):
    """Ledger entry implied by a choice's audit-trail tag."""
    kind: IntegrityKind
    magnitude: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)


class IntegrityConfig(BaseModel):
    # Penalty per unit magnitude. Negative values would act as credit.
    penalties: dict[IntegrityKind, float] = Field(default_factory=lambda: {
        IntegrityKind.LIE: 15.0,
        IntegrityKind.BURIED_INCIDENT: 20.0,
        IntegrityKind.DELAYED_ESCALATION: 5.0,
        IntegrityKind.CONSISTENT: 0.0,
    })
    # Each buried incident after the first costs this much more than the last
    buried_escalation_step: float = Field(default=10.0, ge=0.0)

    flagged_below: int = 90
    toxic_below: int = 50
    flagged_buried_count: int = 1
    toxic_buried_count: int = 2

    tag_events: dict[AuditTrailTag, TagEvent] = Field(default_factory=lambda: {
        AuditTrailTag.CLEAN: TagEvent(kind=IntegrityKind.CONSISTENT, magnitude=1.0),
        AuditTrailTag.FLAGGED: TagEvent(kind=IntegrityKind.LIE, magnitude=1.0),
        AuditTrailTag.TOXIC: TagEvent(kind=IntegrityKind.LIE, magnitude=2.0),
    })


# ─── Turns ───────────────────────────────────────────────────

class TurnConfig(BaseModel):
    consequence_delay: int = Field(default=2, ge=0)
    final_turn: int = Field(default=16, ge=1)
    # Phase boundaries (inclusive last turn of each phase)
    inheritance_until: int = 3
    operations_until: int = 12


# ─── Endings ─────────────────────────────────────────────────

class EndingConfig(BaseModel):
    criminal_score_below: int = 30
    criminal_buried_at_least: int = 2
    golden_score_above: int = 85
    golden_exposure_below: float = 150.0
    breach_score_below: int = 50

    golden_multiplier: float = 1.0
    lawsuit_multiplier: float = 1.8
    breach_multiplier: float = 3.2
    criminal_multiplier: float = 3.2


# ─── Persistence ─────────────────────────────────────────────

class PersistenceConfig(BaseModel):
    """
    Save-format parameters.

    The scrypt work factor is deliberately expensive; tests use a lower n.
    """
    format_version: int = Field(default=1, ge=1, le=0xFFFF)
    scrypt_n: int = 2 ** 15
    scrypt_r: int = Field(default=8, ge=1)
    scrypt_p: int = Field(default=1, ge=1)
    salt_bytes: int = Field(default=16, ge=16)

    @field_validator("scrypt_n")
    @classmethod
    def _power_of_two(cls, n: int) -> int:
        if n < 2 or n & (n - 1):
            raise ValueError("scrypt_n must be a power of two greater than 1")
        return n


# ─── Root ────────────────────────────────────────────────────

class EngineConfig(BaseModel):
    risk: RiskConfig = Field(default_factory=RiskConfig)
    integrity: IntegrityConfig = Field(default_factory=IntegrityConfig)
    turns: TurnConfig = Field(default_factory=TurnConfig)
    endings: EndingConfig = Field(default_factory=EndingConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    # Starting budget for a new game
    budget: Budget = Field(default_factory=Budget)


DEFAULT_CONFIG = EngineConfig()


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | str) -> EngineConfig:
    """
    Load config overrides from a JSON file, merged over defaults.

    A missing file yields the defaults. Unreadable, malformed or invalid
    files raise ConfigurationError.
    """
    path = Path(path)

    if not path.exists():
        return DEFAULT_CONFIG.model_copy(deep=True)

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not read engine config: {e}")
        raise ConfigurationError from None

    if not isinstance(saved, dict):
        logger.warning("Engine config root is not an object")
        raise ConfigurationError

    merged = _deep_merge(DEFAULT_CONFIG.model_dump(mode="json"), saved)
    try:
        return EngineConfig.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Invalid engine config: {e.error_count()} error(s)")
        logger.debug(str(e))
        raise ConfigurationError from None


def save_config(config: EngineConfig, path: Path | str) -> None:
    """Write the full config to a JSON file. OS errors propagate as SystemFailure."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(config.model_dump_json(indent=2))
    except OSError as e:
        logger.warning(f"Could not write engine config: {e}")
        raise SystemFailure from None
