"""Unit tests for fast_eyes/rooms/state_machine.py"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from fast_eyes.core.exceptions import (
    InvalidTransitionError,
    NotEnoughPlayersError,
    NotHostError,
)
from fast_eyes.core.models import ParticipantModel, RoomModel
from fast_eyes.core.shared_types import PlayerColor, RoomStatus
from fast_eyes.rooms.state_machine import (
    ALREADY_CLAIMED,
    NOT_PLAYING,
    WRONG_TARGET,
    RoomStateMachine,
    can_transition,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def room() -> RoomModel:
    return RoomModel(
        id=uuid4(),
        code="ABCDEF",
        host_id=None,
        max_numbers=9,
        status=RoomStatus.WAITING,
        current_target=1,
        layout_seed="initial",
    )


@pytest.fixture
def host(room: RoomModel) -> ParticipantModel:
    host = ParticipantModel(
        id=uuid4(),
        room_id=room.id,
        display_name="Ana",
        color=PlayerColor.CYAN,
        score=0,
        is_host=True,
        session_id="host-session",
    )
    room.host_id = host.id
    return host


@pytest.fixture
def guest(room: RoomModel) -> ParticipantModel:
    return ParticipantModel(
        id=uuid4(),
        room_id=room.id,
        display_name="Ben",
        color=PlayerColor.PINK,
        score=0,
        is_host=False,
        session_id="guest-session",
    )


@pytest.fixture
def playing_room(room: RoomModel, host: ParticipantModel) -> RoomModel:
    RoomStateMachine().start(room, host, participant_count=2, now=NOW, seed="game")
    return room


# --- Transitions ---
@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (RoomStatus.WAITING, RoomStatus.PLAYING, True),
        (RoomStatus.WAITING, RoomStatus.FINISHED, False),
        (RoomStatus.PLAYING, RoomStatus.FINISHED, True),
        (RoomStatus.PLAYING, RoomStatus.WAITING, True),
        (RoomStatus.FINISHED, RoomStatus.WAITING, True),
        (RoomStatus.FINISHED, RoomStatus.PLAYING, False),
    ],
)
def test_can_transition(current: RoomStatus, target: RoomStatus, allowed: bool) -> None:
    assert can_transition(current, target) is allowed


# --- Start ---
def test_host_starts_game(room: RoomModel, host: ParticipantModel) -> None:
    RoomStateMachine().start(room, host, participant_count=2, now=NOW, seed="fresh")
    assert room.status == RoomStatus.PLAYING
    assert room.current_target == 1
    assert room.started_at == NOW
    assert room.finished_at is None
    assert room.layout_seed == "fresh"


def test_guest_cannot_start(room: RoomModel, guest: ParticipantModel) -> None:
    with pytest.raises(NotHostError):
        RoomStateMachine().start(room, guest, participant_count=2, now=NOW, seed="x")
    assert room.status == RoomStatus.WAITING


def test_unknown_requester_cannot_start(room: RoomModel) -> None:
    with pytest.raises(NotHostError):
        RoomStateMachine().start(room, None, participant_count=2, now=NOW, seed="x")


def test_host_of_another_room_cannot_start(room: RoomModel, host: ParticipantModel) -> None:
    host.room_id = uuid4()
    with pytest.raises(NotHostError):
        RoomStateMachine().start(room, host, participant_count=2, now=NOW, seed="x")


def test_start_needs_two_players(room: RoomModel, host: ParticipantModel) -> None:
    with pytest.raises(NotEnoughPlayersError):
        RoomStateMachine().start(room, host, participant_count=1, now=NOW, seed="x")
    assert room.status == RoomStatus.WAITING
    assert room.layout_seed == "initial"


def test_min_players_is_configurable(room: RoomModel, host: ParticipantModel) -> None:
    RoomStateMachine(min_players=1).start(
        room, host, participant_count=1, now=NOW, seed="solo"
    )
    assert room.status == RoomStatus.PLAYING


def test_cannot_start_twice(playing_room: RoomModel, host: ParticipantModel) -> None:
    with pytest.raises(InvalidTransitionError):
        RoomStateMachine().start(
            playing_room, host, participant_count=2, now=NOW, seed="again"
        )


# --- Claims ---
def test_claim_current_target(playing_room: RoomModel) -> None:
    outcome = RoomStateMachine().apply_claim(playing_room, 1, False, NOW)
    assert outcome.accepted
    assert not outcome.finished
    assert playing_room.current_target == 2


def test_claim_while_waiting(room: RoomModel) -> None:
    outcome = RoomStateMachine().apply_claim(room, 1, False, NOW)
    assert not outcome.accepted
    assert outcome.reason == NOT_PLAYING
    assert room.current_target == 1


@pytest.mark.parametrize("number", [0, 2, 5, 10])
def test_claim_wrong_target(playing_room: RoomModel, number: int) -> None:
    outcome = RoomStateMachine().apply_claim(playing_room, number, False, NOW)
    assert not outcome.accepted
    assert outcome.reason == WRONG_TARGET
    assert playing_room.current_target == 1


def test_claim_already_claimed(playing_room: RoomModel) -> None:
    outcome = RoomStateMachine().apply_claim(playing_room, 1, True, NOW)
    assert not outcome.accepted
    assert outcome.reason == ALREADY_CLAIMED


def test_not_playing_is_checked_first(room: RoomModel) -> None:
    outcome = RoomStateMachine().apply_claim(room, 7, True, NOW)
    assert outcome.reason == NOT_PLAYING


def test_last_claim_finishes(playing_room: RoomModel) -> None:
    machine = RoomStateMachine()
    finished_at = NOW + timedelta(seconds=42)
    for number in range(1, 9):
        assert not machine.apply_claim(playing_room, number, False, NOW).finished

    outcome = machine.apply_claim(playing_room, 9, False, finished_at)
    assert outcome.accepted
    assert outcome.finished
    assert playing_room.status == RoomStatus.FINISHED
    assert playing_room.finished_at == finished_at
    assert playing_room.current_target == 10

    # Nothing is claimable once finished
    late = machine.apply_claim(playing_room, 10, False, finished_at)
    assert not late.accepted
    assert late.reason == NOT_PLAYING


# --- Reset ---
def test_host_resets_finished_game(playing_room: RoomModel, host: ParticipantModel) -> None:
    machine = RoomStateMachine()
    for number in range(1, 10):
        machine.apply_claim(playing_room, number, False, NOW)
    machine.reset(playing_room, host, seed="next")

    assert playing_room.status == RoomStatus.WAITING
    assert playing_room.current_target == 1
    assert playing_room.layout_seed == "next"
    assert playing_room.started_at is None
    assert playing_room.finished_at is None


def test_host_resets_mid_game(playing_room: RoomModel, host: ParticipantModel) -> None:
    RoomStateMachine().reset(playing_room, host, seed="abort")
    assert playing_room.status == RoomStatus.WAITING


def test_guest_cannot_reset(playing_room: RoomModel, guest: ParticipantModel) -> None:
    with pytest.raises(NotHostError):
        RoomStateMachine().reset(playing_room, guest, seed="nope")
    assert playing_room.status == RoomStatus.PLAYING


def test_waiting_room_cannot_be_reset(room: RoomModel, host: ParticipantModel) -> None:
    with pytest.raises(InvalidTransitionError):
        RoomStateMachine().reset(room, host, seed="nope")
