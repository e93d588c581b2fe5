"""
Consequence engine for a CISO decision simulator.

Public API:
    config = load_config("engine.json")
    catalog = DecisionCatalog.from_records(records)
    engine = TurnEngine(config)

    state = new_game(config)
    result = engine.play_turn(state, catalog, "patch_now")

    store = EncryptedFileStore("saves", secret)
    store.save("autosave", result.state)
"""

from .errors import (
    GameError,
    InvalidAction,
    StateCorruption,
    SystemFailure,
    ConfigurationError,
)
from .config import EngineConfig, DEFAULT_CONFIG, load_config, save_config
from .systems import (
    RiskModel,
    IntegrityLedger,
    IntegrityEvent,
    AuditTrailQuality,
    ConsequenceScheduler,
    PendingConsequence,
    DecisionCatalog,
    EndingResolver,
    Ending,
    EndingKind,
    TurnEngine,
    Notice,
    NoticeSeverity,
)
from .state.schema import EngineState, DecisionRecord, new_game
from .state.schemas.turn_result import GamePhase, ViewState, ChoiceView, TurnResult
from .state.persistence import PersistenceManager
from .state.store import StateStore, EncryptedFileStore, MemoryStateStore

__version__ = "0.1.0"

__all__ = [
    # Errors
    "GameError",
    "InvalidAction",
    "StateCorruption",
    "SystemFailure",
    "ConfigurationError",
    # Config
    "EngineConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "save_config",
    # Systems
    "RiskModel",
    "IntegrityLedger",
    "IntegrityEvent",
    "AuditTrailQuality",
    "ConsequenceScheduler",
    "PendingConsequence",
    "DecisionCatalog",
    "EndingResolver",
    "Ending",
    "EndingKind",
    "TurnEngine",
    "Notice",
    "NoticeSeverity",
    # State
    "EngineState",
    "DecisionRecord",
    "new_game",
    "GamePhase",
    "ViewState",
    "ChoiceView",
    "TurnResult",
    "PersistenceManager",
    "StateStore",
    "EncryptedFileStore",
    "MemoryStateStore",
]
