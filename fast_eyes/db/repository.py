"""
Protocol repository (SQLAlchemy implementation in sql_repository.py, in-memory double in the service tests).

The three game actions (start_game, claim_number, reset_game) are the atomic operations the rest of the system relies on:
each must be evaluated as one all-or-nothing unit, serialized against every other mutating operation on the same room.
"""

from typing import Protocol
from uuid import UUID

from fast_eyes.core.models import (
    ChatEntryModel,
    ClaimOutcome,
    ColoredClaim,
    ParticipantModel,
    RoomModel,
)


class RoomRepository(Protocol):
    """Persistence layer orchestration"""

    # --- Reads ---
    def get_room(self, room_id: UUID) -> RoomModel | None:
        """Get room by ID, if record exists."""
        ...

    def get_room_by_code(self, code: str) -> RoomModel | None:
        """Get room by its (uppercase) join code, if record exists."""
        ...

    def get_participant(self, participant_id: UUID) -> ParticipantModel | None: ...

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]:
        """Participants of a room, in join order."""
        ...

    def list_claims(self, room_id: UUID) -> list[ColoredClaim]:
        """Claims of a room, annotated with the claimant's color, ordered by number."""
        ...

    def list_chat(self, room_id: UUID) -> list[ChatEntryModel]:
        """Chat history ordered by creation time."""
        ...

    # --- Writes ---
    def create_room(
        self,
        code: str,
        max_numbers: int,
        layout_seed: str,
        host_name: str,
        host_session_id: str,
    ) -> tuple[RoomModel, ParticipantModel]:
        """Store a new waiting room together with its host participant."""
        ...

    def join_room(
        self,
        room_id: UUID,
        session_id: str,
        display_name: str,
        max_participants: int,
    ) -> tuple[ParticipantModel, bool]:
        """
        Add a participant, or return the one this session already has in the room.
        Second element tells whether a new record was created.
        """
        ...

    def add_chat_entry(
        self,
        room_id: UUID,
        participant_id: UUID | None,
        display_name: str,
        text: str,
        is_system: bool,
    ) -> ChatEntryModel: ...

    # --- Atomic game actions ---
    def start_game(
        self, room_id: UUID, requester_session_id: str, layout_seed: str
    ) -> RoomModel:
        """Host-only waiting -> playing. Raises a GuardRejection when a guard fails."""
        ...

    def claim_number(
        self,
        room_id: UUID,
        participant_id: UUID,
        number: int,
        requester_session_id: str,
    ) -> ClaimOutcome:
        """Decide on a claim. Losing the race is a returned rejection, not an exception."""
        ...

    def reset_game(
        self, room_id: UUID, requester_session_id: str, layout_seed: str
    ) -> RoomModel:
        """Host-only reset to waiting: clears claims and scores, installs the new layout seed."""
        ...
