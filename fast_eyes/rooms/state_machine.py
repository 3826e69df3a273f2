"""
The RoomStateMachine is the domain layer of a room: legal states, legal transitions and who may trigger them.

It does not do any I/O. The repository loads a fresh RoomModel while holding the room's write lock,
lets the state machine decide (and mutate the model), and writes the result back in the same transaction.
That way every guard below is evaluated against the authoritative state, never against a client's cached view.

    waiting --start (host, >= 2 players)--> playing --claim of max_numbers--> finished
       ^                                       |                                  |
       +------------------reset (host)---------+----------------------------------+
"""

from datetime import datetime
from typing import Optional

from fast_eyes.core.exceptions import (
    InvalidTransitionError,
    NotEnoughPlayersError,
    NotHostError,
)
from fast_eyes.core.models import ClaimOutcome, ParticipantModel, RoomModel
from fast_eyes.core.shared_types import RoomStatus

ALLOWED_TRANSITIONS: dict[RoomStatus, frozenset[RoomStatus]] = {
    RoomStatus.WAITING: frozenset({RoomStatus.PLAYING}),
    RoomStatus.PLAYING: frozenset({RoomStatus.FINISHED, RoomStatus.WAITING}),
    RoomStatus.FINISHED: frozenset({RoomStatus.WAITING}),
}

# Rejection reasons of the claim arbiter (not errors, see ClaimOutcome)
NOT_PLAYING = "Game is not in progress."
WRONG_TARGET = "Number is not the current target."
ALREADY_CLAIMED = "Number already claimed."


def can_transition(current: RoomStatus, target: RoomStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class RoomStateMachine:
    """Guards and transitions of a single room."""

    def __init__(self, min_players: int = 2) -> None:
        self.min_players = min_players

    def start(
        self,
        room: RoomModel,
        requester: Optional[ParticipantModel],
        participant_count: int,
        now: datetime,
        seed: str,
    ) -> None:
        """waiting -> playing. Only the host, and only with enough players in the room."""
        self._assert_host(room, requester, action="start the game")
        self._assert_can_transition(room, RoomStatus.PLAYING)
        if participant_count < self.min_players:
            raise NotEnoughPlayersError(
                f"Need at least {self.min_players} players to start, got {participant_count}."
            )

        room.status = RoomStatus.PLAYING
        room.current_target = 1
        room.started_at = now
        room.finished_at = None
        room.layout_seed = seed

    def apply_claim(
        self, room: RoomModel, number: int, already_claimed: bool, now: datetime
    ) -> ClaimOutcome:
        """
        Decide on a claim for `number`.
        ----
        Order of the checks matters (first failing one is reported):
        1. room must be playing
        2. number must be the current target
        3. number must not be claimed yet (cannot happen with correct sequencing, but guards against replayed requests)

        On acceptance the target advances by exactly one, and the room finishes once it passes max_numbers.
        Losing a race is an ordinary outcome, so rejections are returned rather than raised.
        """
        if room.status != RoomStatus.PLAYING:
            return ClaimOutcome(accepted=False, reason=NOT_PLAYING)
        if number != room.current_target:
            return ClaimOutcome(accepted=False, reason=WRONG_TARGET)
        if already_claimed:
            return ClaimOutcome(accepted=False, reason=ALREADY_CLAIMED)

        room.current_target = number + 1
        finished = room.current_target > room.max_numbers
        if finished:
            room.status = RoomStatus.FINISHED
            room.finished_at = now
        return ClaimOutcome(accepted=True, finished=finished)

    def reset(self, room: RoomModel, requester: Optional[ParticipantModel], seed: str) -> None:
        """
        playing | finished -> waiting. Only the host.

        (The repository clears the claims and zeroes the scores in the same transaction)
        """
        self._assert_host(room, requester, action="reset the game")
        self._assert_can_transition(room, RoomStatus.WAITING)

        room.status = RoomStatus.WAITING
        room.current_target = 1
        room.layout_seed = seed
        room.started_at = None
        room.finished_at = None

    # -- Internal helpers --
    def _assert_host(
        self, room: RoomModel, requester: Optional[ParticipantModel], action: str
    ) -> None:
        if requester is None or requester.room_id != room.id or not requester.is_host:
            raise NotHostError(f"Only the host can {action}.")

    def _assert_can_transition(self, room: RoomModel, target: RoomStatus) -> None:
        if not can_transition(room.status, target):
            raise InvalidTransitionError(
                f"Cannot go from {room.status} to {target}."
            )
