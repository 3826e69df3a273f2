"""
Custom exceptions.

All of them derive from GameError, so the API layer can map the whole family in one place.
GuardRejection marks a legal-looking request that fails a business rule: these are expected, non-fatal
outcomes that get reported back to the requester instead of crashing anything.
"""

from uuid import UUID


class GameError(Exception):
    """Base class of all custom exceptions."""


class InvalidRequestError(GameError):
    """Request payload could not be interpreted."""


# --- Lookups ---
class RoomError(GameError):
    pass


class RoomNotFoundError(RoomError):
    def __init__(self, room_ref: UUID | str) -> None:
        self.room_ref = room_ref
        super().__init__(f"Room {room_ref} not found.")


class ParticipantNotFoundError(RoomError):
    def __init__(self, participant_id: UUID) -> None:
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} not found.")


class InvalidRoomCodeError(RoomError):
    """Room code does not have the expected shape."""


# --- Business rules ---
class GuardRejection(GameError):
    """A request that failed a guard condition. The room state is untouched."""


class NotHostError(GuardRejection):
    pass


class NotParticipantError(GuardRejection):
    """The requesting session does not own the participant it acts for."""


class NotEnoughPlayersError(GuardRejection):
    pass


class RoomFullError(GuardRejection):
    pass


class InvalidTransitionError(GuardRejection):
    """Room is not in the status the requested transition starts from."""


# --- Collaborators ---
class RepositoryError(GameError):
    """Persistence layer failed. Nothing was written, the request may be retried."""


class GatewayError(GameError):
    """Client could not reach the authoritative service (network, 5xx)."""
