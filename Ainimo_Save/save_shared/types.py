import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.errors import PersistenceError

@dataclass
class GameParameters:
    level:          float
    xp:             float
    intelligence:   float
    memory:         float
    friendliness:   float
    energy:         float
    mood:           float
    extras:         dict[str, Any] = field(default_factory=dict)

@dataclass
class Message:
    id:         str
    speaker:    str
    text:       str
    timestamp:  int
    extras:     dict[str, Any] = field(default_factory=dict)

@dataclass
class GameState:
    parameters:         GameParameters
    messages:           list[Any]            # Message, or the raw item when it is not one
    created_at:         int
    last_action_time:   int
    extras:             dict[str, Any] = field(default_factory=dict)

@dataclass(frozen=True)
class CryptoConfig:
    enabled:                    bool
    key_derivation_iterations:  int
    allow_plaintext_migration:  bool = False

    def __post_init__(self):
        if self.key_derivation_iterations <= 0:
            raise ValueError(
                f"key_derivation_iterations must be positive, got {self.key_derivation_iterations}"
            )

    @classmethod
    def from_env(cls) -> "CryptoConfig":
        """Build the process-wide config from the environment.

        Read once at startup; the value is then passed into the controller.
        """
        return cls(
            enabled=_env_flag(config.ENV_ENCRYPTION_ENABLED, True),
            key_derivation_iterations=int(
                os.environ.get(config.ENV_KDF_ITERATIONS, config.PBKDF2_ITERATIONS)
            ),
            allow_plaintext_migration=_env_flag(config.ENV_ALLOW_PLAINTEXT, False),
        )

@dataclass(frozen=True)
class EncryptedPayload:
    version:    int
    iv:         bytes
    salt:       bytes
    ciphertext: bytes
    hmac:       bytes

class LoadSource(str, Enum):
    SAVED = "SAVED"
    PLAINTEXT = "PLAINTEXT"
    FRESH = "FRESH"

@dataclass
class LoadResult:
    state:  GameState
    source: LoadSource
    error:  Optional[PersistenceError] = None

    @property
    def restored(self) -> bool:
        return self.source is not LoadSource.FRESH

@dataclass
class PersistenceStats:
    saves_completed:    int = 0
    saves_failed:       int = 0
    saves_coalesced:    int = 0
    clears:             int = 0
    last_saved_at:      Optional[float] = None

@dataclass
class StorageHealth:
    connected:      bool
    key_count:      int
    has_save:       bool
    uptime_seconds: float


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_secret() -> Optional[str]:
    return os.environ.get(config.ENV_STORAGE_SECRET) or None


def now_ms() -> int:
    return int(time.time() * 1000)


def new_game_state(created_at: Optional[int] = None) -> GameState:
    """Fresh default state, used whenever no usable save exists."""
    ts = now_ms() if created_at is None else created_at
    return GameState(
        parameters=GameParameters(**config.INITIAL_PARAMETERS),
        messages=[],
        created_at=ts,
        last_action_time=ts,
    )
