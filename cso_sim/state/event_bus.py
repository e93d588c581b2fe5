"""
Event bus for simulator state changes.

Provides decoupled communication between the engine and whatever hosts
it (renderer, save manager, analytics). Components subscribe to events
and react without the engine knowing they exist.

Usage:
    from .event_bus import get_event_bus, EventType

    bus = get_event_bus()
    bus.on(EventType.CONSEQUENCE_MATERIALIZED, my_handler)

    # TurnEngine emits as consequences land
    bus.emit(EventType.CONSEQUENCE_MATERIALIZED, game_id="a1b2", turn=5, effect="risk")

    def my_handler(event: GameEvent):
        logger.info(f"Consequence landed on turn {event.turn}")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Engine events that can be published."""

    # Turn events
    TURN_RESOLVED = "turn.resolved"
    PHASE_CHANGED = "turn.phase_changed"

    # Consequence events
    CONSEQUENCE_SCHEDULED = "consequence.scheduled"
    CONSEQUENCE_MATERIALIZED = "consequence.materialized"

    # Integrity events
    INTEGRITY_RECORDED = "integrity.recorded"

    # Lifecycle
    GAME_ENDED = "game.ended"


@dataclass
class GameEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type (from EventType enum)
        data: Event-specific payload as dict
        game_id: ID of the game this event belongs to
        turn: Turn number when the event occurred
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    game_id: str = ""
    turn: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners are called immediately on emit(), in subscription order.
    A failing listener is logged and skipped; it never aborts a turn.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[GameEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type. Subscribing twice is a no-op."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(
        self,
        event_type: EventType,
        game_id: str = "",
        turn: int = 0,
        **data,
    ) -> GameEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted GameEvent (for chaining/testing)
        """
        event = GameEvent(type=event_type, data=data, game_id=game_id, turn=turn)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {event_type.value}")

        return event

    def clear(self) -> None:
        """Clear all listeners and history. Useful for testing."""
        self._listeners.clear()
        self._history.clear()

    def get_history(
        self,
        event_type: EventType | None = None,
        game_id: str | None = None,
    ) -> list[GameEvent]:
        """Recent events, optionally filtered by type and by game."""
        return [
            e for e in self._history
            if (event_type is None or e.type == event_type)
            and (game_id is None or e.game_id == game_id)
        ]


# Global singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """
    Get the global event bus instance.

    Returns the same instance across all calls (singleton pattern).
    """
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global event bus. Useful for testing."""
    global _event_bus
    _event_bus = None
