"""Tests for StateSealer — full encrypt/decrypt of serialized state."""

import base64
import json
from dataclasses import replace

import pytest

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.codec import decode_state, encode_state
from Ainimo_Save.save_shared.errors import (
    AuthFailure,
    FormatError,
    SecretMissingError,
    UnsupportedVersionError,
)
from Ainimo_Save.save_shared.sealing import StateSealer
from Ainimo_Save.save_shared.validator import validate_state


@pytest.fixture
def sealer(crypto_config, secret):
    return StateSealer(crypto_config, secret)


def _reencode(raw: str, **changes) -> str:
    fields = json.loads(raw)
    fields.update(changes)
    return json.dumps(fields)


def _flip_b64(value: str, index: int) -> str:
    buf = bytearray(base64.b64decode(value))
    buf[index] ^= 0x80
    return base64.b64encode(bytes(buf)).decode("ascii")


# ─── Round trip ───

def test_round_trip(sealer, chatty_state):
    raw = sealer.seal(encode_state(chatty_state))
    assert validate_state(decode_state(sealer.open(raw))) == chatty_state


def test_record_hides_plaintext(sealer, chatty_state):
    raw = sealer.seal(encode_state(chatty_state))
    assert "parameters" not in raw
    assert "restLimit" not in raw


def test_record_is_version_1_envelope(sealer, sample_state):
    fields = json.loads(sealer.seal(encode_state(sample_state)))
    assert fields["version"] == config.PAYLOAD_VERSION
    assert len(base64.b64decode(fields["iv"])) == 12
    assert len(base64.b64decode(fields["salt"])) == 16
    assert len(base64.b64decode(fields["hmac"])) == 32


def test_fresh_salt_and_nonce_per_seal(sealer, sample_state):
    plaintext = encode_state(sample_state)
    a = json.loads(sealer.seal(plaintext))
    b = json.loads(sealer.seal(plaintext))
    assert a["salt"] != b["salt"]
    assert a["iv"] != b["iv"]
    assert a["ciphertext"] != b["ciphertext"]


def test_separate_sealers_share_secret(crypto_config, secret, sample_state):
    raw = StateSealer(crypto_config, secret).seal(encode_state(sample_state))
    assert StateSealer(crypto_config, secret).open(raw) == encode_state(sample_state)


# ─── Tamper detection ───

def test_flipping_any_ciphertext_byte_fails(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    ciphertext = json.loads(raw)["ciphertext"]
    size = len(base64.b64decode(ciphertext))
    for i in range(size):
        tampered = _reencode(raw, ciphertext=_flip_b64(ciphertext, i))
        with pytest.raises(AuthFailure):
            sealer.open(tampered)


def test_flipping_any_tag_byte_fails(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    tag = json.loads(raw)["hmac"]
    for i in range(config.HMAC_LENGTH):
        with pytest.raises(AuthFailure):
            sealer.open(_reencode(raw, hmac=_flip_b64(tag, i)))


def test_flipping_iv_fails(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(AuthFailure):
        sealer.open(_reencode(raw, iv=_flip_b64(json.loads(raw)["iv"], 0)))


def test_flipping_salt_fails(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(AuthFailure):
        sealer.open(_reencode(raw, salt=_flip_b64(json.loads(raw)["salt"], 5)))


def test_truncated_ciphertext_fails(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    short = base64.b64decode(json.loads(raw)["ciphertext"])[:-4]
    with pytest.raises(AuthFailure):
        sealer.open(_reencode(raw, ciphertext=base64.b64encode(short).decode("ascii")))


def test_wrong_secret_fails(crypto_config, sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(AuthFailure):
        StateSealer(crypto_config, "wrong").open(raw)


def test_different_iterations_fail(crypto_config, secret, sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    other = replace(crypto_config, key_derivation_iterations=crypto_config.key_derivation_iterations + 1)
    with pytest.raises(AuthFailure):
        StateSealer(other, secret).open(raw)


# ─── Format failures ───

def test_unknown_version_is_format_error(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(UnsupportedVersionError):
        sealer.open(_reencode(raw, version=7))


def test_garbage_is_format_error(sealer):
    with pytest.raises(FormatError):
        sealer.open("\x00garbage")


def test_short_salt_is_format_error_not_auth_failure(sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(FormatError):
        sealer.open(_reencode(raw, salt=base64.b64encode(b"short").decode("ascii")))


# ─── Secret handling ───

@pytest.mark.parametrize("missing", [None, ""])
def test_enabled_without_secret_raises(crypto_config, missing):
    with pytest.raises(SecretMissingError):
        StateSealer(crypto_config, missing)


def test_disabled_without_secret_allowed(plaintext_config):
    assert StateSealer(plaintext_config, None).encrypting is False


# ─── Plaintext records ───

def test_disabled_sealer_writes_plaintext(plaintext_config, sample_state):
    sealer = StateSealer(plaintext_config, None)
    raw = sealer.seal(encode_state(sample_state))
    assert json.loads(raw)["parameters"]["mood"] == 50
    assert sealer.open(raw) == encode_state(sample_state)


def test_enabled_sealer_refuses_plaintext(sealer, sample_state):
    raw = encode_state(sample_state).decode("utf-8")
    assert not sealer.is_plaintext_record(raw)
    with pytest.raises(FormatError):
        sealer.open(raw)


def test_migration_flag_accepts_plaintext(crypto_config, secret, sample_state):
    sealer = StateSealer(replace(crypto_config, allow_plaintext_migration=True), secret)
    raw = encode_state(sample_state).decode("utf-8")
    assert sealer.is_plaintext_record(raw)
    assert sealer.open(raw) == encode_state(sample_state)


def test_disabled_sealer_without_secret_cannot_open_envelope(plaintext_config, sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    with pytest.raises(SecretMissingError):
        StateSealer(plaintext_config, None).open(raw)


def test_disabled_sealer_with_secret_still_opens_envelope(plaintext_config, secret, sealer, sample_state):
    raw = sealer.seal(encode_state(sample_state))
    assert StateSealer(plaintext_config, secret).open(raw) == encode_state(sample_state)
