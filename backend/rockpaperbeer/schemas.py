"""Payload schemas for client actions."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, model_validator

from rockpaperbeer.errors import ValidationError
from rockpaperbeer.services.games.rules import Move


class ActionPayload(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


class CreateRoomPayload(ActionPayload):
    playerName: str = Field(min_length=1, max_length=20)
    avatar: Optional[str] = None


class GetRoomPayload(ActionPayload):
    roomId: str = Field(min_length=1)


class JoinRoomPayload(ActionPayload):
    roomId: Optional[str] = None
    roomCode: Optional[str] = Field(default=None, max_length=8)
    playerName: str = Field(min_length=1, max_length=20)
    avatar: Optional[str] = None

    @model_validator(mode='after')
    def _room_reference(self):
        if not self.roomId and not self.roomCode:
            raise ValueError('Room ID or code required')
        return self


class StartRoundPayload(ActionPayload):
    roomId: str = Field(min_length=1)


class SubmitMovePayload(ActionPayload):
    roomId: str = Field(min_length=1)
    move: Move


class LeaveRoomPayload(ActionPayload):
    roomId: str = Field(min_length=1)


def parse_payload(schema, data):
    """Validate ``data`` against ``schema`` or raise ``ValidationError``."""
    if not isinstance(data, dict):
        raise ValidationError('Payload must be an object')
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_error(exc)) from exc


def describe_error(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    field = '.'.join(str(part) for part in first.get('loc', ()))
    message = first.get('msg', 'is invalid')
    if message.startswith('Value error, '):
        message = message[len('Value error, '):]
    return f'"{field}" {message}' if field else message
