"""
Encrypted, authenticated persistence for EngineState.

Blob layout (all integers big endian):

    version (2) | salt (16) | nonce (12) | AES-256-GCM ciphertext + tag

The 30-byte header is passed to AES-GCM as associated data, so changing
the version, the salt or the nonce fails authentication like any other
tampering would.

The key is derived with scrypt from the player's secret and the per-save
salt. Salt and nonce are both fresh random values per save, so a
(key, nonce) pair is never reused.

load() fails closed. Wrong secret, flipped bit, truncated file, unknown
version, bad JSON and schema mismatch all surface as the same
StateCorruption; which check failed is only ever written to the debug log.
"""

import logging
import os
import secrets
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..config import DEFAULT_CONFIG, PersistenceConfig
from ..errors import StateCorruption, SystemFailure
from .schema import EngineState

logger = logging.getLogger(__name__)

VERSION_BYTES = 2
NONCE_BYTES = 12
KEY_BYTES = 32
TAG_BYTES = 16


def _wipe(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


def _secret_bytes(secret: str | bytes) -> bytearray:
    if isinstance(secret, str):
        return bytearray(secret.encode("utf-8"))
    return bytearray(secret)


class PersistenceManager:
    """
    Serializes EngineState to an opaque encrypted blob and back.

    Key derivation is deliberately slow (scrypt, n=2**15 by default).
    Callers should not save or load on a path where blocking matters.
    """

    def __init__(self, config: PersistenceConfig | None = None):
        self._config = config or DEFAULT_CONFIG.persistence

    @property
    def header_size(self) -> int:
        return VERSION_BYTES + self._config.salt_bytes + NONCE_BYTES

    def _derive_key(self, secret: str | bytes, salt: bytes) -> bytearray:
        """Derive the AES key. The caller owns the returned buffer and must wipe it."""
        password = _secret_bytes(secret)
        try:
            kdf = Scrypt(
                salt=salt,
                length=KEY_BYTES,
                n=self._config.scrypt_n,
                r=self._config.scrypt_r,
                p=self._config.scrypt_p,
            )
            return bytearray(kdf.derive(bytes(password)))
        finally:
            _wipe(password)

    # -------------------------------------------------------------------------
    # Blob API
    # -------------------------------------------------------------------------

    def save(self, state: EngineState, secret: str | bytes) -> bytes:
        """Encrypt a state snapshot. Never mutates the state."""
        salt = secrets.token_bytes(self._config.salt_bytes)
        nonce = secrets.token_bytes(NONCE_BYTES)
        header = self._config.format_version.to_bytes(VERSION_BYTES, "big") + salt + nonce

        plaintext = bytearray(state.model_dump_json().encode("utf-8"))
        key = self._derive_key(secret, salt)
        try:
            ciphertext = AESGCM(key).encrypt(nonce, bytes(plaintext), header)
        finally:
            _wipe(key)
            _wipe(plaintext)

        logger.debug(f"Encrypted game {state.game_id} at turn {state.turn} ({len(ciphertext)} bytes)")
        return header + ciphertext

    def load(self, blob: bytes, secret: str | bytes) -> EngineState:
        """
        Decrypt and validate a blob produced by save().

        Raises:
            StateCorruption: for any failure at all
        """
        if len(blob) < self.header_size + TAG_BYTES:
            logger.debug("Save blob rejected: too short")
            raise StateCorruption

        version = int.from_bytes(blob[:VERSION_BYTES], "big")
        if version != self._config.format_version:
            logger.debug(f"Save blob rejected: format version {version}")
            raise StateCorruption

        salt_end = VERSION_BYTES + self._config.salt_bytes
        salt = blob[VERSION_BYTES:salt_end]
        nonce = blob[salt_end:self.header_size]
        header = blob[:self.header_size]

        key = self._derive_key(secret, salt)
        try:
            plaintext = bytearray(AESGCM(key).decrypt(nonce, blob[self.header_size:], header))
        except InvalidTag:
            logger.debug("Save blob rejected: authentication failed")
            raise StateCorruption from None
        finally:
            _wipe(key)

        try:
            state = EngineState.model_validate_json(bytes(plaintext))
        except ValueError:
            logger.debug("Save blob rejected: payload does not match schema")
            raise StateCorruption from None
        finally:
            _wipe(plaintext)

        if state.schema_version != EngineState.SCHEMA_VERSION:
            logger.debug(f"Save blob rejected: schema version {state.schema_version}")
            raise StateCorruption

        return state

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def save_file(self, state: EngineState, secret: str | bytes, path: Path | str) -> None:
        """
        Write an encrypted save, keeping the previous one as <name>.bak.

        The new file is written beside the target and moved into place, so
        a crash mid-write never leaves a half-written save.

        Raises:
            SystemFailure: the file system refused
        """
        path = Path(path)
        blob = self.save(state, secret)
        tmp = path.with_name(path.name + ".tmp")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                backup = path.with_name(path.name + ".bak")
                backup.write_bytes(path.read_bytes())
            tmp.write_bytes(blob)
            os.replace(tmp, path)
        except OSError as e:
            logger.warning(f"Could not write save: {e.strerror}")
            raise SystemFailure from None

        logger.info(f"Saved game {state.game_id} at turn {state.turn}")

    def load_file(self, path: Path | str, secret: str | bytes) -> EngineState:
        """
        Raises:
            SystemFailure: the file could not be read
            StateCorruption: the contents failed any check
        """
        path = Path(path)
        try:
            blob = path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read save: {e.strerror}")
            raise SystemFailure from None

        state = self.load(blob, secret)
        logger.info(f"Loaded game {state.game_id} at turn {state.turn}")
        return state
