"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, the API layer, the client layer and the domain/db layers all use model(s) defined here to send to/receive from the Service
(Decouples the data model specific to the DB layer, API layer, or client layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from fast_eyes.core.shared_types import EntityKind, PlayerColor, RoomStatus


@dataclass
class RoomModel:
    """One isolated game instance. `current_target` is the only number that can be claimed right now."""

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


@dataclass
class ParticipantModel:
    id: UUID
    room_id: UUID
    display_name: str
    color: PlayerColor
    score: int
    is_host: bool
    session_id: str
    created_at: Optional[datetime] = None


@dataclass
class ClaimModel:
    """Record of the participant that was first to tap `number` while it was the target."""

    id: UUID
    room_id: UUID
    number: int
    participant_id: UUID
    claimed_at: datetime


@dataclass
class ColoredClaim:
    """Claim annotated with the claimant's color (what the baseline snapshot hands out)."""

    number: int
    participant_id: UUID
    color: PlayerColor
    claimed_at: datetime


@dataclass
class ChatEntryModel:
    id: UUID
    room_id: UUID
    participant_id: Optional[UUID]
    display_name: str
    text: str
    is_system: bool
    created_at: datetime


@dataclass
class ClaimOutcome:
    """Decision of the claim arbiter. A rejection carries the reason, but is not an error."""

    accepted: bool
    finished: bool = False
    reason: Optional[str] = None
    claim: Optional[ClaimModel] = None
    room: Optional[RoomModel] = None


@dataclass
class RoomSnapshot:
    """Full authoritative state of a room: the baseline a client starts from (and resyncs to)."""

    room: RoomModel
    participants: list[ParticipantModel] = field(default_factory=list)
    claims: list[ColoredClaim] = field(default_factory=list)
    chat: list[ChatEntryModel] = field(default_factory=list)


# Rows that can be embedded in a change event
ChangeRow = RoomModel | ClaimModel | ChatEntryModel


@dataclass
class ChangeEvent:
    """
    Notification that something in a room changed.

    `row` carries the full updated row for room / claim / chat events.
    Participant events carry no row: they only signal that the participant list should be re-read.
    """

    kind: EntityKind
    room_id: UUID
    row: Optional[ChangeRow] = None
