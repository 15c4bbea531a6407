"""
Versioned envelope — the only object written to storage.

Transport form is a JSON object with base64 binary fields:

    {"version": 1, "iv": b64(12), "salt": b64(16), "ciphertext": b64(n), "hmac": b64(32)}

decode_payload() dispatches on version through _DECODERS. A version with no
registered decoder is rejected outright, never parsed with a guessed layout.
Length and encoding problems are FormatErrors; tag problems are left to the
cipher (AuthFailure).
"""

import base64
import binascii
import json
import struct
from typing import Any, Callable, Optional

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.errors import FormatError, UnsupportedVersionError
from Ainimo_Save.save_shared.types import EncryptedPayload

ENVELOPE_FIELDS = ("iv", "salt", "ciphertext", "hmac")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(field_name: str, value: Any) -> bytes:
    if not isinstance(value, str):
        raise FormatError(f"field {field_name!r} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise FormatError(f"field {field_name!r} is not valid base64")


def _require_length(field_name: str, value: bytes, expected: int) -> None:
    if len(value) != expected:
        raise FormatError(f"field {field_name!r} must be {expected} bytes, got {len(value)}")


def associated_data(version: int, salt: bytes) -> bytes:
    """Header bytes authenticated alongside the ciphertext."""
    return struct.pack(">H", version) + salt


def encode_payload(payload: EncryptedPayload) -> str:
    return json.dumps(
        {
            "version": payload.version,
            "iv": _b64(payload.iv),
            "salt": _b64(payload.salt),
            "ciphertext": _b64(payload.ciphertext),
            "hmac": _b64(payload.hmac),
        },
        sort_keys=True,
        separators=(",", ":"),
    )


def _decode_v1(obj: dict) -> EncryptedPayload:
    missing = [f for f in ENVELOPE_FIELDS if f not in obj]
    if missing:
        raise FormatError(f"missing fields: {', '.join(missing)}")

    iv = _unb64("iv", obj["iv"])
    salt = _unb64("salt", obj["salt"])
    ciphertext = _unb64("ciphertext", obj["ciphertext"])
    tag = _unb64("hmac", obj["hmac"])

    _require_length("iv", iv, config.IV_LENGTH)
    _require_length("salt", salt, config.SALT_LENGTH)
    _require_length("hmac", tag, config.HMAC_LENGTH)

    return EncryptedPayload(version=1, iv=iv, salt=salt, ciphertext=ciphertext, hmac=tag)


_DECODERS: dict[int, Callable[[dict], EncryptedPayload]] = {
    1: _decode_v1,
}


def decode_payload(raw: str) -> EncryptedPayload:
    try:
        obj = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise FormatError("record is not a JSON document")

    if not isinstance(obj, dict):
        raise FormatError("record is not a JSON object")

    version = obj.get("version")
    # bool is an int subclass; True must not pass as version 1
    if not isinstance(version, int) or isinstance(version, bool):
        raise FormatError("missing or non-integer version")

    decoder = _DECODERS.get(version)
    if decoder is None:
        raise UnsupportedVersionError(version)
    return decoder(obj)


# ─── Raw record classification ───

def _parse_object(raw: str) -> Optional[dict]:
    try:
        obj = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    return obj if isinstance(obj, dict) else None


def looks_like_envelope(raw: str) -> bool:
    obj = _parse_object(raw)
    if obj is None:
        return False
    return "version" in obj and "ciphertext" in obj


def looks_like_plaintext_state(raw: str) -> bool:
    """True for an unencrypted GameState record (pre-encryption saves)."""
    obj = _parse_object(raw)
    if obj is None:
        return False
    return "parameters" in obj and "ciphertext" not in obj
