import pytest

from Ainimo_Save.save_shared.types import (
    CryptoConfig,
    GameParameters,
    GameState,
    Message,
)

# Low iteration count keeps PBKDF2 out of the way in unit tests.
FAST_ITERATIONS = 1_000


@pytest.fixture
def crypto_config():
    return CryptoConfig(enabled=True, key_derivation_iterations=FAST_ITERATIONS)


@pytest.fixture
def plaintext_config():
    return CryptoConfig(enabled=False, key_derivation_iterations=FAST_ITERATIONS)


@pytest.fixture
def secret():
    return "s3cret"


@pytest.fixture
def sample_state():
    return GameState(
        parameters=GameParameters(
            level=1, xp=0, intelligence=5, memory=5, friendliness=5, energy=80, mood=50,
        ),
        messages=[],
        created_at=1000,
        last_action_time=1000,
    )


@pytest.fixture
def chatty_state():
    return GameState(
        parameters=GameParameters(
            level=3, xp=42.5, intelligence=17, memory=9, friendliness=61, energy=35, mood=72,
        ),
        messages=[
            Message(id="m1", speaker="user", text="こんにちは", timestamp=1_700_000_000_000),
            Message(id="m2", speaker="pet", text="Hi! <3 & \"quotes\"", timestamp=1_700_000_000_500),
            Message(id="m3", speaker="user", text="", timestamp=1_700_000_001_000),
        ],
        created_at=1_699_999_000_000,
        last_action_time=1_700_000_001_000,
        extras={
            "restLimit": {"count": 2, "lastResetDate": "2026-10-19"},
            "currentActivity": None,
        },
    )
