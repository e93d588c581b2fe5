"""
Decision catalog.

The ordered list of decisions a run plays through, one per turn. Content
authoring and file discovery live outside the engine; whatever loads the
content hands the records here and gets back a validated, read-only
catalog or a ConfigurationError.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..state.schemas.decision import Decision

logger = logging.getLogger(__name__)


class DecisionCatalog:
    """Decisions keyed by turn. At most one decision per turn, at least one in all."""

    def __init__(self, decisions: Iterable[Decision]):
        self._by_turn: dict[int, Decision] = {}
        for decision in decisions:
            if decision.turn in self._by_turn:
                logger.warning(
                    f"Duplicate decision for turn {decision.turn}: "
                    f"'{self._by_turn[decision.turn].id}' and '{decision.id}'"
                )
                raise ConfigurationError
            self._by_turn[decision.turn] = decision
        if not self._by_turn:
            logger.warning("Decision catalog is empty")
            raise ConfigurationError
        self._by_turn = dict(sorted(self._by_turn.items()))

    @classmethod
    def from_records(cls, records: Iterable[Decision | dict[str, Any]]) -> "DecisionCatalog":
        """
        Build a catalog from Decision models or plain dicts.

        Raises:
            ConfigurationError: a record fails validation, two share a turn
                or there are no records
        """
        decisions = []
        for index, record in enumerate(records):
            if isinstance(record, Decision):
                decisions.append(record)
                continue
            try:
                decisions.append(Decision.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Decision record {index} is invalid: {e.error_count()} error(s)")
                logger.debug(str(e))
                raise ConfigurationError from None
        return cls(decisions)

    def get(self, turn: int) -> Decision:
        """
        Decision for a turn.

        Raises:
            ConfigurationError: the catalog has no decision for this turn
        """
        decision = self._by_turn.get(turn)
        if decision is None:
            logger.warning(f"No decision in catalog for turn {turn}")
            raise ConfigurationError
        return decision

    def has_turn(self, turn: int) -> bool:
        return turn in self._by_turn

    def turns(self) -> list[int]:
        return list(self._by_turn)

    @property
    def last_turn(self) -> int:
        return max(self._by_turn)

    def __len__(self) -> int:
        return len(self._by_turn)

    def __iter__(self) -> Iterator[Decision]:
        return iter(self._by_turn.values())
