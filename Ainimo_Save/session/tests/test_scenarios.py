"""
End-to-end session scenarios at production key-derivation cost.

Two controllers share one storage backend the way two page loads share the
browser's store: the first saves, the second reloads.
"""

import asyncio
import json

import pytest

from Ainimo_Save.save_shared import config, errors
from Ainimo_Save.save_shared.types import (
    CryptoConfig,
    GameParameters,
    GameState,
    LoadSource,
)
from Ainimo_Save.save_db.storage import MemoryStorage
from Ainimo_Save.session.controller import PersistenceController

pytestmark = pytest.mark.asyncio

PRODUCTION_CONFIG = CryptoConfig(enabled=True, key_derivation_iterations=100_000)


def _starting_pet():
    return GameState(
        parameters=GameParameters(
            level=1, xp=0, intelligence=5, memory=5, friendliness=5, energy=80, mood=50,
        ),
        messages=[],
        created_at=1000,
        last_action_time=1000,
    )


async def _save_session(storage, secret, state):
    async with PersistenceController(storage, PRODUCTION_CONFIG, secret) as controller:
        await controller.load()
        controller.notify_state_changed(state)
        assert await controller.save_now() is True


async def test_reload_with_same_secret_restores_state():
    storage = MemoryStorage()
    original = _starting_pet()
    await _save_session(storage, "s3cret", original)

    reloaded = PersistenceController(storage, PRODUCTION_CONFIG, "s3cret")
    result = await reloaded.load()
    assert result.source is LoadSource.SAVED
    assert result.error is None
    assert result.state == original


async def test_reload_with_wrong_secret_starts_fresh():
    storage = MemoryStorage()
    await _save_session(storage, "s3cret", _starting_pet())

    reloaded = PersistenceController(storage, PRODUCTION_CONFIG, "wrong")
    result = await reloaded.load()
    assert result.source is LoadSource.FRESH
    assert isinstance(result.error, errors.AuthFailure)
    assert result.state.parameters.energy == config.INITIAL_PARAMETERS["energy"]
    assert result.state.messages == []


async def test_stored_record_is_versioned_envelope():
    storage = MemoryStorage()
    await _save_session(storage, "s3cret", _starting_pet())

    record = json.loads(await storage.get(config.STORAGE_KEY))
    assert set(record) == {"version", "iv", "salt", "ciphertext", "hmac"}
    assert record["version"] == config.PAYLOAD_VERSION
    assert "mood" not in await storage.get(config.STORAGE_KEY)


async def test_real_timer_coalesces_burst():
    storage = MemoryStorage()
    config_fast = CryptoConfig(enabled=True, key_derivation_iterations=1_000)
    state = _starting_pet()

    controller = PersistenceController(storage, config_fast, "s3cret", save_delay=0.05)
    await controller.load()
    for xp in range(5):
        state.parameters.xp = xp
        controller.notify_state_changed(state)
        await asyncio.sleep(0.01)

    await asyncio.sleep(0.15)
    await controller.flush()
    assert storage.writes == 1

    reloaded = await PersistenceController(storage, config_fast, "s3cret").load()
    assert reloaded.state.parameters.xp == 4
    await controller.close()
