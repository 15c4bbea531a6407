"""
PersistenceController — load once, save debounced, clear on demand.

Load   → storage.get → StateSealer.open (worker thread) → decode → validate → LoadResult
Save   → notify_state_changed() re-arms the debounce timer; when it fires the
         *current* state is encoded on the loop, sealed in a worker thread and
         written with storage.set
Clear  → storage.delete immediately, pending save cancelled

Nothing raised by storage, envelope, cipher or validator escapes load(),
the debounced save or clear(). Failures are logged on the injected logger and
counted in `stats`; the running session keeps its in-memory state.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from Ainimo_Save.save_shared import config, errors
from Ainimo_Save.save_shared.codec import decode_state, encode_state
from Ainimo_Save.save_shared.sealing import StateSealer
from Ainimo_Save.save_shared.types import (
    CryptoConfig,
    GameState,
    LoadResult,
    LoadSource,
    PersistenceStats,
    new_game_state,
)
from Ainimo_Save.save_shared.validator import validate_state
from Ainimo_Save.save_db.storage import SaveStorage
from Ainimo_Save.session.debounce import AsyncioScheduler, DebounceTimer, Scheduler

_logger = logging.getLogger(__name__)


class PersistenceController:
    """Owns the save lifecycle for one running game session."""

    def __init__(
        self,
        storage: SaveStorage,
        crypto_config: CryptoConfig,
        secret: Optional[str],
        *,
        storage_key: str = config.STORAGE_KEY,
        save_delay: float = config.SAVE_DEBOUNCE_SECONDS,
        scheduler: Optional[Scheduler] = None,
        on_loaded: Optional[Callable[[GameState], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.log = logger or _logger
        self.stats = PersistenceStats()

        # Raises SecretMissingError before any session starts
        self._sealer = StateSealer(crypto_config, secret)
        self._timer = DebounceTimer(scheduler or AsyncioScheduler(), save_delay, self._on_timer)
        self._on_loaded = on_loaded

        self._state: Optional[GameState] = None
        self._load_lock = asyncio.Lock()
        self._load_result: Optional[LoadResult] = None
        self._active_save: Optional[asyncio.Task] = None
        self._save_again = False
        self._last_save_ok = False
        self._generation = 0
        self._requested_generation = 0
        self._closed = False

    @property
    def loaded(self) -> bool:
        return self._load_result is not None

    @property
    def pending_save(self) -> bool:
        return self._timer.pending

    @property
    def saving(self) -> bool:
        return self._active_save is not None and not self._active_save.done()

    # ─── Load ───

    async def load(self) -> LoadResult:
        """Read the saved state once. Later calls return the first result."""
        async with self._load_lock:
            if self._load_result is not None:
                return self._load_result

            result = await self._read_saved_state()
            self._load_result = result

        if result.restored:
            self._state = result.state
            if self._on_loaded is not None:
                self._on_loaded(result.state)
        elif self._state is not None and not self._closed:
            # Changes made while the load was running were held back; save them now
            self._timer.schedule()
        return result

    async def _read_saved_state(self) -> LoadResult:
        try:
            raw = await self.storage.get(self.storage_key)
        except errors.PersistenceError as e:
            return self._fresh(e)

        if raw is None:
            self.log.info("No saved state under %r, starting fresh", self.storage_key)
            return LoadResult(state=new_game_state(), source=LoadSource.FRESH)

        try:
            from_plaintext = self._sealer.is_plaintext_record(raw)
            plaintext = await asyncio.to_thread(self._sealer.open, raw)
            state = validate_state(decode_state(plaintext))
        except errors.PersistenceError as e:
            return self._fresh(e)
        except Exception as e:
            self.log.exception("Unexpected error while loading game state")
            return LoadResult(state=new_game_state(), source=LoadSource.FRESH, error=errors.PersistenceError(str(e)))

        if from_plaintext:
            if self._sealer.encrypting:
                self.log.warning("Loaded unencrypted save; it will be encrypted on next save")
            return LoadResult(state=state, source=LoadSource.PLAINTEXT)

        self.log.info("Loaded saved state (%d messages)", len(state.messages))
        return LoadResult(state=state, source=LoadSource.SAVED)

    def _fresh(self, error: errors.PersistenceError) -> LoadResult:
        self.log.warning("Failed to load game state, starting fresh (%s): %s", type(error).__name__, error)
        return LoadResult(state=new_game_state(), source=LoadSource.FRESH, error=error)

    # ─── Save ───

    def notify_state_changed(self, state: GameState) -> None:
        """Record the latest state and restart the quiescence window."""
        if self._closed:
            self.log.debug("State change after close ignored")
            return

        self._state = state
        if self._load_result is None:
            self.log.debug("State change before initial load completed, save deferred")
            return

        if self._timer.schedule():
            self.stats.saves_coalesced += 1

    async def save_now(self) -> bool:
        """Write the current state immediately, skipping the debounce window."""
        if self._closed:
            self.log.debug("save_now() after close ignored")
            return False
        if self._load_result is None:
            self.log.debug("save_now() before initial load completed, skipped")
            return False
        self._timer.cancel()
        await self._start_save()
        return self._last_save_ok

    async def flush(self) -> None:
        """Wait until no save is executing."""
        while self.saving:
            await asyncio.shield(self._active_save)

    def _on_timer(self) -> None:
        self._start_save()

    def _start_save(self) -> asyncio.Task:
        self._requested_generation = self._generation
        if self.saving:
            # Serialize behind the running save; it re-reads the state when done
            self._save_again = True
            return self._active_save

        self._active_save = asyncio.get_running_loop().create_task(self._run_saves())
        return self._active_save

    async def _run_saves(self) -> None:
        while True:
            self._save_again = False
            self._last_save_ok = await self._save_once()
            if not self._save_again:
                break

    async def _save_once(self) -> bool:
        state = self._state
        if state is None:
            return False
        generation = self._requested_generation

        try:
            plaintext = encode_state(state)
            record = await asyncio.to_thread(self._sealer.seal, plaintext)
            if generation != self._generation:
                self.log.debug("Save superseded by clear, discarded")
                return False
            await self.storage.set(self.storage_key, record)
        except errors.PersistenceError as e:
            self.stats.saves_failed += 1
            self.log.warning("Failed to save game state: %s", e)
            return False
        except Exception:
            self.stats.saves_failed += 1
            self.log.exception("Unexpected error while saving game state")
            return False

        self.stats.saves_completed += 1
        self.stats.last_saved_at = time.time()
        self.log.debug("Saved game state (%d bytes)", len(record))
        return True

    # ─── Clear ───

    async def clear(self) -> bool:
        """Delete the saved record now. In-memory state is left untouched."""
        self._timer.cancel()
        self._generation += 1
        try:
            await self.storage.delete(self.storage_key)
        except errors.PersistenceError as e:
            self.log.warning("Failed to clear game state: %s", e)
            return False

        self.stats.clears += 1
        self.log.info("Cleared saved state under %r", self.storage_key)
        return True

    # ─── Teardown ───

    async def close(self) -> None:
        """Cancel the pending save. A save already executing is left to finish."""
        self._closed = True
        self._timer.cancel()

    async def __aenter__(self) -> "PersistenceController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
