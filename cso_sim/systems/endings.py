"""
Ending determination.

Maps the final integrity score, buried-incident count and total risk
exposure to one of four endings. The table is checked top to bottom and
the first matching row wins:

    score < 30 and buried >= 2       CriminalInvestigation
    score > 85 and exposure < 150    GoldenCISO
    score < 50                       PostBreachCleanup
    anything else                    LawsuitSurvivor

A high score with high exposure is not golden: you were honest about a
company that still got breached, which lands in LawsuitSurvivor.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ..config import DEFAULT_CONFIG, EngineConfig
from .risk import RiskModel

if TYPE_CHECKING:
    from ..state.schema import EngineState

logger = logging.getLogger(__name__)


class EndingKind(str, Enum):
    GOLDEN_CISO = "GoldenCISO"
    LAWSUIT_SURVIVOR = "LawsuitSurvivor"
    POST_BREACH_CLEANUP = "PostBreachCleanup"
    CRIMINAL_INVESTIGATION = "CriminalInvestigation"


HEADLINES: dict[EndingKind, str] = {
    EndingKind.GOLDEN_CISO: "Trusted CISO: the board and the industry vouch for you",
    EndingKind.LAWSUIT_SURVIVOR: "Breach litigation: you survive discovery, barely",
    EndingKind.POST_BREACH_CLEANUP: "Post-breach cleanup: your record is under review",
    EndingKind.CRIMINAL_INVESTIGATION: "Criminal investigation: the buried incidents surfaced",
}


class Ending(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EndingKind
    penalty_multiplier: float
    integrity_score: int
    total_exposure: float
    buried_incidents: int
    headline: str = ""


class EndingResolver:
    """Deterministic ending table over a finished (or any) EngineState."""

    def __init__(self, config: EngineConfig | None = None):
        self._config = config or DEFAULT_CONFIG
        self._risk = RiskModel(self._config.risk)

    def classify(self, score: int, buried: int, exposure: float) -> tuple[EndingKind, float]:
        """Ending kind and penalty multiplier for raw inputs."""
        cfg = self._config.endings

        if score < cfg.criminal_score_below and buried >= cfg.criminal_buried_at_least:
            return EndingKind.CRIMINAL_INVESTIGATION, cfg.criminal_multiplier
        if score > cfg.golden_score_above and exposure < cfg.golden_exposure_below:
            return EndingKind.GOLDEN_CISO, cfg.golden_multiplier
        if score < cfg.breach_score_below:
            return EndingKind.POST_BREACH_CLEANUP, cfg.breach_multiplier
        return EndingKind.LAWSUIT_SURVIVOR, cfg.lawsuit_multiplier

    def resolve(self, state: EngineState) -> Ending:
        score = state.ledger.score(self._config.integrity)
        buried = state.ledger.buried_incident_count()
        exposure = self._risk.total_exposure(state.risk)

        kind, multiplier = self.classify(score, buried, exposure)
        logger.info(
            f"Game {state.game_id} ended: {kind.value} "
            f"(score={score}, buried={buried}, exposure={exposure:.1f})"
        )
        return Ending(
            kind=kind,
            penalty_multiplier=multiplier,
            integrity_score=score,
            total_exposure=exposure,
            buried_incidents=buried,
            headline=HEADLINES[kind],
        )
