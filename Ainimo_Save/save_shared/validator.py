"""
Structural validation of decoded save data.

Only presence and primitive type are checked here. Value ranges (mood 0-100,
non-negative xp, ...) belong to the simulation layer.

A save is rejected only when its top-level shape is wrong: timestamps,
the seven parameters, and `messages` being a list. Individual message items
are never grounds for rejection; items that do not look like messages are
carried through as raw values so the rest of the save is not lost.
"""

from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from Ainimo_Save.save_shared import config
from Ainimo_Save.save_shared.errors import ValidationRejected
from Ainimo_Save.save_shared.types import GameParameters, GameState, Message

# Older records name the pet by its character name.
LEGACY_SPEAKERS = {"ainimo": "pet"}


def _reject_bool(v):
    if isinstance(v, bool):
        raise ValueError("boolean is not a number")
    return v


Number = Annotated[Union[StrictInt, StrictFloat], BeforeValidator(_reject_bool)]


# ── Pydantic shape models ──


class ParametersModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    level: Number
    xp: Number
    intelligence: Number
    memory: Number
    friendliness: Number
    energy: Number
    mood: Number


class MessageModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: StrictStr
    speaker: StrictStr
    text: StrictStr
    timestamp: Number

    @field_validator("speaker")
    @classmethod
    def validate_speaker(cls, v):
        if v not in config.VALID_SPEAKERS:
            raise ValueError(f"Invalid speaker: {v}")
        return v


class GameStateModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    parameters: ParametersModel
    messages: list[Any]
    created_at: Number = Field(alias="createdAt")
    last_action_time: Number = Field(alias="lastActionTime")


def _describe(err: ValidationError) -> str:
    first = err.errors()[0]
    loc = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{loc}: {first['msg']}"


def _message(item: Any) -> Any:
    """Message for a well-formed item, otherwise the item itself."""
    if not isinstance(item, dict):
        return item

    speaker = item.get("speaker")
    if isinstance(speaker, str) and speaker in LEGACY_SPEAKERS:
        item = {**item, "speaker": LEGACY_SPEAKERS[speaker]}

    try:
        model = MessageModel.model_validate(item)
    except ValidationError:
        return item
    return Message(
        id=model.id,
        speaker=model.speaker,
        text=model.text,
        timestamp=model.timestamp,
        extras=dict(model.model_extra or {}),
    )


def validate_state(candidate: Any) -> GameState:
    """Return a GameState for a well-shaped candidate, else raise ValidationRejected."""
    try:
        model = GameStateModel.model_validate(candidate)
    except ValidationError as e:
        raise ValidationRejected(_describe(e))

    params = model.parameters
    return GameState(
        parameters=GameParameters(
            level=params.level,
            xp=params.xp,
            intelligence=params.intelligence,
            memory=params.memory,
            friendliness=params.friendliness,
            energy=params.energy,
            mood=params.mood,
            extras=dict(params.model_extra or {}),
        ),
        messages=[_message(item) for item in model.messages],
        created_at=model.created_at,
        last_action_time=model.last_action_time,
        extras=dict(model.model_extra or {}),
    )


def is_valid_state(candidate: Any) -> bool:
    try:
        validate_state(candidate)
    except ValidationRejected:
        return False
    return True
