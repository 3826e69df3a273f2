"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from fast_eyes.core.config import Settings
from fast_eyes.core.exceptions import (
    NotParticipantError,
    ParticipantNotFoundError,
    RoomFullError,
    RoomNotFoundError,
)
from fast_eyes.core.models import (
    ChatEntryModel,
    ClaimModel,
    ClaimOutcome,
    ColoredClaim,
    ParticipantModel,
    RoomModel,
)
from fast_eyes.core.shared_types import PLAYER_COLORS, PlayerColor, RoomStatus
from fast_eyes.core.timeutils import utc_now
from fast_eyes.db.schema import Base
from fast_eyes.realtime.feed import ChangeFeedHub
from fast_eyes.rooms.state_machine import RoomStateMachine
from fast_eyes.services.room_service import RoomService

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """
    SQLite database in a file: one real connection per Session, so sessions in different threads contend for the
    database write lock like separate server requests would.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'fast_eyes_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    try:
        yield file_engine
    finally:
        file_engine.dispose()


@pytest.fixture
def session_factory(file_engine: Engine) -> Callable[[], Session]:
    return sessionmaker(autoflush=False, bind=file_engine)


@pytest.fixture
def settings() -> Settings:
    """Default rules, independent of any FAST_EYES_* variable of the environment running the tests."""
    return Settings(_env_file=None, database_url=DATABASE_URL)


# --- MOCK DEPENDENCIES ----
class MockRepository:
    """
    Mock the RoomRepository using dictionaries of models.

    A single lock stands in for the room lock: every action runs against a copy of the stored room and only
    stores it back when the state machine accepted.
    """

    def __init__(self, state_machine: RoomStateMachine | None = None) -> None:
        self.state_machine = state_machine or RoomStateMachine()
        self._lock = threading.Lock()
        self._rooms: dict[UUID, RoomModel] = {}
        self._participants: dict[UUID, ParticipantModel] = {}
        self._claims: dict[UUID, list[ClaimModel]] = {}
        self._chat: dict[UUID, list[ChatEntryModel]] = {}

    # --- Reads ---
    def get_room(self, room_id: UUID) -> RoomModel | None:
        room = self._rooms.get(room_id)
        return replace(room) if room else None

    def get_room_by_code(self, code: str) -> RoomModel | None:
        for room in self._rooms.values():
            if room.code == code:
                return replace(room)
        return None

    def get_participant(self, participant_id: UUID) -> ParticipantModel | None:
        participant = self._participants.get(participant_id)
        return replace(participant) if participant else None

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]:
        return [replace(p) for p in self._participants.values() if p.room_id == room_id]

    def list_claims(self, room_id: UUID) -> list[ColoredClaim]:
        return [
            ColoredClaim(
                number=c.number,
                participant_id=c.participant_id,
                color=self._participants[c.participant_id].color,
                claimed_at=c.claimed_at,
            )
            for c in sorted(self._claims.get(room_id, []), key=lambda c: c.number)
        ]

    def list_chat(self, room_id: UUID) -> list[ChatEntryModel]:
        return list(self._chat.get(room_id, []))

    # --- Writes ---
    def create_room(
        self,
        code: str,
        max_numbers: int,
        layout_seed: str,
        host_name: str,
        host_session_id: str,
    ) -> tuple[RoomModel, ParticipantModel]:
        with self._lock:
            room = RoomModel(
                id=uuid4(),
                code=code,
                host_id=None,
                max_numbers=max_numbers,
                status=RoomStatus.WAITING,
                current_target=1,
                layout_seed=layout_seed,
                created_at=utc_now(),
            )
            host = self._new_participant(room.id, host_name, host_session_id, PLAYER_COLORS[0], True)
            room.host_id = host.id
            self._rooms[room.id] = room
            return replace(room), replace(host)

    def join_room(
        self,
        room_id: UUID,
        session_id: str,
        display_name: str,
        max_participants: int,
    ) -> tuple[ParticipantModel, bool]:
        with self._lock:
            self._room_or_raise(room_id)
            participants = self.list_participants(room_id)
            for participant in participants:
                if participant.session_id == session_id:
                    return participant, False
            if len(participants) >= min(max_participants, len(PLAYER_COLORS)):
                raise RoomFullError("Room is full.")
            taken = {p.color for p in participants}
            color = next(c for c in PLAYER_COLORS if c not in taken)
            participant = self._new_participant(room_id, display_name, session_id, color, False)
            return replace(participant), True

    def add_chat_entry(
        self,
        room_id: UUID,
        participant_id: UUID | None,
        display_name: str,
        text: str,
        is_system: bool,
    ) -> ChatEntryModel:
        entry = ChatEntryModel(
            id=uuid4(),
            room_id=room_id,
            participant_id=participant_id,
            display_name=display_name,
            text=text,
            is_system=is_system,
            created_at=utc_now(),
        )
        self._chat.setdefault(room_id, []).append(entry)
        return entry

    # --- Atomic game actions ---
    def start_game(self, room_id: UUID, requester_session_id: str, layout_seed: str) -> RoomModel:
        with self._lock:
            room = replace(self._room_or_raise(room_id))
            self.state_machine.start(
                room,
                self._by_session(room_id, requester_session_id),
                participant_count=len(self.list_participants(room_id)),
                now=utc_now(),
                seed=layout_seed,
            )
            self._rooms[room_id] = room
            return replace(room)

    def claim_number(
        self,
        room_id: UUID,
        participant_id: UUID,
        number: int,
        requester_session_id: str,
    ) -> ClaimOutcome:
        with self._lock:
            room = replace(self._room_or_raise(room_id))
            participant = self._participants.get(participant_id)
            if participant is None:
                raise ParticipantNotFoundError(participant_id)
            if participant.room_id != room_id or participant.session_id != requester_session_id:
                raise NotParticipantError("Not your participant.")

            now = utc_now()
            claims = self._claims.setdefault(room_id, [])
            already_claimed = any(c.number == number for c in claims)
            outcome = self.state_machine.apply_claim(room, number, already_claimed, now)
            if not outcome.accepted:
                return outcome

            claim = ClaimModel(uuid4(), room_id, number, participant_id, now)
            claims.append(claim)
            participant.score += 1
            self._rooms[room_id] = room
            outcome.claim = replace(claim)
            outcome.room = replace(room)
            return outcome

    def reset_game(self, room_id: UUID, requester_session_id: str, layout_seed: str) -> RoomModel:
        with self._lock:
            room = replace(self._room_or_raise(room_id))
            self.state_machine.reset(
                room, self._by_session(room_id, requester_session_id), seed=layout_seed
            )
            self._claims[room_id] = []
            for participant in self._participants.values():
                if participant.room_id == room_id:
                    participant.score = 0
            self._rooms[room_id] = room
            return replace(room)

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._rooms.clear()
        self._participants.clear()
        self._claims.clear()
        self._chat.clear()

    # -- Internal helpers --
    def _room_or_raise(self, room_id: UUID) -> RoomModel:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def _by_session(self, room_id: UUID, session_id: str) -> ParticipantModel | None:
        for participant in self._participants.values():
            if participant.room_id == room_id and participant.session_id == session_id:
                return replace(participant)
        return None

    def _new_participant(
        self,
        room_id: UUID,
        display_name: str,
        session_id: str,
        color: PlayerColor,
        is_host: bool,
    ) -> ParticipantModel:
        participant = ParticipantModel(
            id=uuid4(),
            room_id=room_id,
            display_name=display_name,
            color=color,
            score=0,
            is_host=is_host,
            session_id=session_id,
            created_at=utc_now(),
        )
        self._participants[participant.id] = participant
        return participant


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def feed() -> ChangeFeedHub:
    return ChangeFeedHub()


@pytest.fixture
def room_service(
    mock_repository: MockRepository, feed: ChangeFeedHub, settings: Settings
) -> RoomService:
    return RoomService(mock_repository, feed, settings)
