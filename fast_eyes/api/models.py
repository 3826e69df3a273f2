"""Requests and Response models"""

from datetime import datetime
from typing import Optional, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fast_eyes.core.config import get_settings
from fast_eyes.core.exceptions import InvalidRequestError
from fast_eyes.core.models import (
    ChatEntryModel,
    ColoredClaim,
    ParticipantModel,
    RoomModel,
    RoomSnapshot,
)
from fast_eyes.core.shared_types import PlayerColor, RoomStatus
from fast_eyes.layout.generator import NumberPosition
from fast_eyes.rooms.codes import normalize_room_code


def _clean_display_name(value: str) -> str:
    name = value.strip()
    max_length = get_settings().display_name_max_length
    if not name:
        raise InvalidRequestError("Please enter a player name.")
    if len(name) > max_length:
        raise InvalidRequestError(
            f"Player name can be at most {max_length} characters."
        )
    return name


def _check_session_id(value: str) -> str:
    if not value.strip():
        raise InvalidRequestError("A session id is required.")
    return value


# --- REQUEST MODELS ---
class CreateRoomRequest(BaseModel):
    display_name: str
    session_id: str
    max_numbers: int = Field(default_factory=lambda: get_settings().default_numbers)

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        return _clean_display_name(value)

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, value: str) -> str:
        return _check_session_id(value)

    @field_validator("max_numbers")
    @classmethod
    def validate_max_numbers(cls, value: int) -> int:
        settings = get_settings()
        if not settings.min_numbers <= value <= settings.max_numbers:
            raise InvalidRequestError(
                f"Grid size must be between {settings.min_numbers} and {settings.max_numbers} numbers, got {value}."
            )
        return value


class JoinRoomRequest(BaseModel):
    room_code: str
    display_name: str
    session_id: str

    @field_validator("room_code")
    @classmethod
    def validate_room_code(cls, value: str) -> str:
        return normalize_room_code(value)

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        return _clean_display_name(value)

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, value: str) -> str:
        return _check_session_id(value)


class SessionRequest(BaseModel):
    """Host actions (start / reset): the session is all the server needs to check the role."""

    session_id: str


class ClaimNumberRequest(BaseModel):
    participant_id: UUID
    number: int
    session_id: str


class ChatMessageRequest(BaseModel):
    participant_id: UUID
    session_id: str
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, value: str) -> str:
        text = value.strip()
        max_length = get_settings().chat_max_length
        if not text:
            raise InvalidRequestError("Cannot send an empty message.")
        if len(text) > max_length:
            raise InvalidRequestError(
                f"Messages can be at most {max_length} characters."
            )
        return text


# --- RESPONSE MODELS ---
class RoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    host_id: Optional[UUID]
    max_numbers: int
    status: RoomStatus
    current_target: int
    layout_seed: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_model(self) -> RoomModel:
        return RoomModel(**self.model_dump())


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    display_name: str
    color: PlayerColor
    score: int
    is_host: bool
    session_id: str
    created_at: Optional[datetime] = None

    def to_model(self) -> ParticipantModel:
        return ParticipantModel(**self.model_dump())


class ClaimedNumberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    participant_id: UUID
    color: PlayerColor
    claimed_at: datetime

    def to_model(self) -> ColoredClaim:
        return ColoredClaim(**self.model_dump())


class ChatEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    participant_id: Optional[UUID]
    display_name: str
    text: str
    is_system: bool
    created_at: datetime

    def to_model(self) -> ChatEntryModel:
        return ChatEntryModel(**self.model_dump())


class RoomSessionResponse(BaseModel):
    """A room together with the participant of the requesting session (create / join)."""

    room: RoomResponse
    participant: ParticipantResponse


class RoomSnapshotResponse(BaseModel):
    room: RoomResponse
    participants: list[ParticipantResponse]
    claims: list[ClaimedNumberResponse]
    chat: list[ChatEntryResponse]

    @classmethod
    def from_snapshot(cls, snapshot: RoomSnapshot) -> Self:
        return cls(
            room=RoomResponse.model_validate(snapshot.room),
            participants=[
                ParticipantResponse.model_validate(p) for p in snapshot.participants
            ],
            claims=[ClaimedNumberResponse.model_validate(c) for c in snapshot.claims],
            chat=[ChatEntryResponse.model_validate(c) for c in snapshot.chat],
        )

    def to_model(self) -> RoomSnapshot:
        return RoomSnapshot(
            room=self.room.to_model(),
            participants=[p.to_model() for p in self.participants],
            claims=[c.to_model() for c in self.claims],
            chat=[c.to_model() for c in self.chat],
        )


class ActionResponse(BaseModel):
    """Outcome of a host action. A failed guard is reported here, it is not an error."""

    success: bool
    error: Optional[str] = None


class ClaimNumberResponse(BaseModel):
    success: bool
    finished: bool = False
    error: Optional[str] = None


class PositionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    x: float
    y: float
    rotation: float


class LayoutResponse(BaseModel):
    seed: str
    count: int
    positions: list[PositionResponse]

    @classmethod
    def from_positions(
        cls, seed: str, count: int, positions: list[NumberPosition]
    ) -> Self:
        return cls(
            seed=seed,
            count=count,
            positions=[PositionResponse.model_validate(p) for p in positions],
        )
