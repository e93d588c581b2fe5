"""
Save-slot storage abstraction.

Separates persistence from engine logic for testability.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..config import PersistenceConfig
from ..errors import InvalidAction, SystemFailure
from .persistence import PersistenceManager
from .schema import EngineState

logger = logging.getLogger(__name__)

SAVE_SUFFIX = ".save"


@runtime_checkable
class StateStore(Protocol):
    """
    Abstract storage interface for engine state.

    Implementations:
    - EncryptedFileStore: encrypted files on disk (production)
    - MemoryStateStore: in-memory storage (testing)
    """

    def save(self, slot: str, state: EngineState) -> None:
        """Persist a state under a slot name."""
        ...

    def load(self, slot: str) -> EngineState | None:
        """Load a slot. Returns None if the slot does not exist."""
        ...

    def delete(self, slot: str) -> bool:
        """Delete a slot. Returns True if deleted."""
        ...

    def exists(self, slot: str) -> bool:
        ...

    def list_slots(self) -> list[dict]:
        """List slots with metadata."""
        ...


class EncryptedFileStore:
    """
    One encrypted file per slot.

    Features:
    - Automatic backup on save (<slot>.save.bak)
    - Slot listing by modification time

    A slot that exists but fails to decrypt raises StateCorruption rather
    than returning None; the caller decides whether to start over.
    """

    def __init__(
        self,
        saves_dir: Path | str,
        secret: str | bytes,
        config: PersistenceConfig | None = None,
    ):
        self.saves_dir = Path(saves_dir)
        self._secret = secret
        self._persistence = PersistenceManager(config)
        try:
            self.saves_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            raise SystemFailure from None

    def _path(self, slot: str) -> Path:
        if not slot or "/" in slot or "\\" in slot or slot.startswith("."):
            logger.warning(f"Rejected save slot name {slot!r}")
            raise InvalidAction
        return self.saves_dir / f"{slot}{SAVE_SUFFIX}"

    def save(self, slot: str, state: EngineState) -> None:
        self._persistence.save_file(state, self._secret, self._path(slot))

    def load(self, slot: str) -> EngineState | None:
        path = self._path(slot)
        if not path.exists():
            return None
        return self._persistence.load_file(path, self._secret)

    def delete(self, slot: str) -> bool:
        path = self._path(slot)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError:
            raise SystemFailure from None
        return True

    def exists(self, slot: str) -> bool:
        return self._path(slot).exists()

    def list_slots(self) -> list[dict]:
        """
        List slots sorted by modification time, newest first.

        Contents are encrypted, so only file metadata is reported.
        Returns list of dicts with: slot, size, updated_at
        """
        slots = []
        for f in sorted(
            self.saves_dir.glob(f"*{SAVE_SUFFIX}"),
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        ):
            stat = f.stat()
            slots.append({
                "slot": f.name[: -len(SAVE_SUFFIX)],
                "size": stat.st_size,
                "updated_at": datetime.fromtimestamp(stat.st_mtime),
            })
        return slots


class MemoryStateStore:
    """
    In-memory state storage for testing.

    No file I/O and no encryption. Stored states are deep copies, so later
    changes by the caller never leak into the store.
    """

    def __init__(self):
        self.states: dict[str, EngineState] = {}
        self._updated: dict[str, datetime] = {}

    def save(self, slot: str, state: EngineState) -> None:
        self.states[slot] = state.model_copy(deep=True)
        self._updated[slot] = datetime.now()

    def load(self, slot: str) -> EngineState | None:
        state = self.states.get(slot)
        return state.model_copy(deep=True) if state is not None else None

    def delete(self, slot: str) -> bool:
        if slot in self.states:
            del self.states[slot]
            del self._updated[slot]
            return True
        return False

    def exists(self, slot: str) -> bool:
        return slot in self.states

    def list_slots(self) -> list[dict]:
        return [
            {
                "slot": slot,
                "game_id": state.game_id,
                "turn": state.turn,
                "updated_at": self._updated[slot],
            }
            for slot, state in sorted(
                self.states.items(),
                key=lambda item: self._updated[item[0]],
                reverse=True,
            )
        ]
