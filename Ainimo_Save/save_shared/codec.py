"""
Canonical byte form of a GameState.

Sorted keys and compact separators make the encoding deterministic, so equal
states always produce identical plaintext. Field names are camelCase on the
wire to match the records the browser client writes.
"""

import json
from dataclasses import fields
from typing import Any

from Ainimo_Save.save_shared.errors import FormatError, SerializationError
from Ainimo_Save.save_shared.types import GameState, Message


def _with_extras(obj) -> dict[str, Any]:
    """Dataclass fields over its `extras`; declared fields win on collision."""
    data = dict(obj.extras)
    data.update({f.name: getattr(obj, f.name) for f in fields(obj) if f.name != "extras"})
    return data


def parameters_to_dict(parameters) -> dict[str, Any]:
    return _with_extras(parameters)


def state_to_dict(state: GameState) -> dict[str, Any]:
    data = dict(state.extras)
    data.update({
        "parameters": _with_extras(state.parameters),
        # Items that did not validate as messages are written back untouched
        "messages": [_with_extras(m) if isinstance(m, Message) else m for m in state.messages],
        "createdAt": state.created_at,
        "lastActionTime": state.last_action_time,
    })
    return data


def encode_state(state: GameState) -> bytes:
    try:
        text = json.dumps(
            state_to_dict(state),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e))
    return text.encode("utf-8")


def decode_state(data: bytes) -> Any:
    """Parse plaintext back into plain Python values.

    The result is untrusted; run it through the validator before use.
    """
    try:
        return json.loads(data.decode("utf-8"))
    except UnicodeDecodeError:
        raise FormatError("plaintext is not valid UTF-8")
    except json.JSONDecodeError as e:
        raise FormatError(f"plaintext is not valid JSON ({e.msg})")
