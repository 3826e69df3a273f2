"""Implementation of (Room)Repository using SQLAlchemy"""

import logging
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

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
from fast_eyes.core.timeutils import as_utc, utc_now
from fast_eyes.db.database import transactional
from fast_eyes.db.locks import lock_room
from fast_eyes.db.schema import DBChatEntry, DBClaim, DBParticipant, DBRoom
from fast_eyes.rooms.state_machine import ALREADY_CLAIMED, RoomStateMachine

logger = logging.getLogger(__name__)


class SQLRoomRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(
        self, db_session: Session, state_machine: RoomStateMachine | None = None
    ) -> None:
        self.db = db_session
        self.state_machine = state_machine or RoomStateMachine()

    # -- Reads --
    def get_room(self, room_id: UUID) -> RoomModel | None:
        """Get room by ID, if record exists."""
        room_db = self._fetch_room(room_id)
        if room_db:
            return self._room_to_model(room_db)
        return None

    def get_room_by_code(self, code: str) -> RoomModel | None:
        """Get room by its (uppercase) join code, if record exists."""
        query = select(DBRoom).where(DBRoom.code == code)
        room_db = self.db.scalar(query.execution_options(populate_existing=True))
        if room_db:
            return self._room_to_model(room_db)
        return None

    def get_participant(self, participant_id: UUID) -> ParticipantModel | None:
        participant_db = self._fetch_participant(participant_id)
        if participant_db:
            return self._participant_to_model(participant_db)
        return None

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]:
        """Participants of a room, in join order."""
        return [
            self._participant_to_model(p) for p in self._fetch_participants(room_id)
        ]

    def list_claims(self, room_id: UUID) -> list[ColoredClaim]:
        """Claims of a room, annotated with the claimant's color, ordered by number."""
        query = (
            select(DBClaim, DBParticipant.color)
            .join(DBParticipant, DBClaim.participant_id == DBParticipant.id)
            .where(DBClaim.room_id == room_id)
            .order_by(DBClaim.number)
            .execution_options(populate_existing=True)
        )
        return [
            ColoredClaim(
                number=claim_db.number,
                participant_id=claim_db.participant_id,
                color=PlayerColor(color),
                claimed_at=as_utc(claim_db.claimed_at),
            )
            for claim_db, color in self.db.execute(query)
        ]

    def list_chat(self, room_id: UUID) -> list[ChatEntryModel]:
        """Chat history ordered by creation time."""
        query = (
            select(DBChatEntry)
            .where(DBChatEntry.room_id == room_id)
            .order_by(DBChatEntry.created_at, DBChatEntry.seq)
            .execution_options(populate_existing=True)
        )
        return [self._chat_to_model(entry) for entry in self.db.scalars(query)]

    # -- Writes --
    @transactional
    def create_room(
        self,
        code: str,
        max_numbers: int,
        layout_seed: str,
        host_name: str,
        host_session_id: str,
    ) -> tuple[RoomModel, ParticipantModel]:
        """Store a new waiting room together with its host participant."""
        room_db = DBRoom(
            id=uuid4(),
            code=code,
            host_id=None,
            max_numbers=max_numbers,
            status=RoomStatus.WAITING,
            current_target=1,
            layout_seed=layout_seed,
        )
        self.db.add(room_db)
        self.db.flush()

        # The host is the first participant, so gets the first color
        host_db = DBParticipant(
            id=uuid4(),
            room_id=room_db.id,
            display_name=host_name,
            color=PLAYER_COLORS[0],
            score=0,
            is_host=True,
            session_id=host_session_id,
        )
        self.db.add(host_db)
        room_db.host_id = host_db.id
        self.db.flush()
        return self._room_to_model(room_db), self._participant_to_model(host_db)

    @transactional
    def join_room(
        self,
        room_id: UUID,
        session_id: str,
        display_name: str,
        max_participants: int,
    ) -> tuple[ParticipantModel, bool]:
        """
        Add a participant, or return the one this session already has in the room.
        ----
        Runs under the room lock: two sessions joining at the same time cannot both take the last seat (or the same color).
        """
        room_db = self._lock(room_id)

        existing = self._fetch_participant_by_session(room_id, session_id)
        if existing:
            return self._participant_to_model(existing), False

        participants = self._fetch_participants(room_id)
        capacity = min(max_participants, len(PLAYER_COLORS))
        if len(participants) >= capacity:
            raise RoomFullError(
                f"Room {room_db.code} already has {len(participants)} players."
            )

        taken = {p.color for p in participants}
        color = next(c for c in PLAYER_COLORS if c not in taken)
        participant_db = DBParticipant(
            id=uuid4(),
            room_id=room_id,
            display_name=display_name,
            color=color,
            score=0,
            is_host=False,
            session_id=session_id,
        )
        self.db.add(participant_db)
        self.db.flush()
        return self._participant_to_model(participant_db), True

    @transactional
    def add_chat_entry(
        self,
        room_id: UUID,
        participant_id: UUID | None,
        display_name: str,
        text: str,
        is_system: bool,
    ) -> ChatEntryModel:
        entry_db = DBChatEntry(
            id=uuid4(),
            room_id=room_id,
            participant_id=participant_id,
            display_name=display_name,
            text=text,
            is_system=is_system,
        )
        self.db.add(entry_db)
        self.db.flush()
        return self._chat_to_model(entry_db)

    # -- Atomic game actions --
    @transactional
    def start_game(
        self, room_id: UUID, requester_session_id: str, layout_seed: str
    ) -> RoomModel:
        """Host-only waiting -> playing. Raises a GuardRejection when a guard fails."""
        room_db = self._lock(room_id)
        requester = self._fetch_participant_by_session(room_id, requester_session_id)

        room = self._room_to_model(room_db)
        self.state_machine.start(
            room,
            self._participant_to_model(requester) if requester else None,
            participant_count=self._count_participants(room_id),
            now=utc_now(),
            seed=layout_seed,
        )
        self._write_room(room_db, room)
        self.db.flush()
        return self._room_to_model(room_db)

    @transactional
    def claim_number(
        self,
        room_id: UUID,
        participant_id: UUID,
        number: int,
        requester_session_id: str,
    ) -> ClaimOutcome:
        """
        The claim arbiter.
        ----
        1. take the room lock, so concurrent claims on this room are totally ordered
        2. make sure the session acts for its own participant
        3. let the state machine decide against the fresh target and the existing claims
        4. on acceptance: insert the claim, bump the score, advance (and possibly finish) the room, all in this transaction
        """
        room_db = self._lock(room_id)

        participant_db = self._fetch_participant(participant_id)
        if participant_db is None:
            raise ParticipantNotFoundError(participant_id)
        if (
            participant_db.room_id != room_id
            or participant_db.session_id != requester_session_id
        ):
            raise NotParticipantError(
                "Numbers can only be claimed for your own participant in this room."
            )

        room = self._room_to_model(room_db)
        now = utc_now()
        outcome = self.state_machine.apply_claim(
            room, number, self._is_claimed(room_id, number), now
        )
        if not outcome.accepted:
            return outcome

        claim_db = DBClaim(
            id=uuid4(),
            room_id=room_id,
            number=number,
            participant_id=participant_id,
            claimed_at=now,
        )
        self.db.add(claim_db)
        participant_db.score += 1
        self._write_room(room_db, room)
        try:
            self.db.flush()
        except IntegrityError:
            # Unique (room_id, number): someone got there first after all
            self.db.rollback()
            logger.warning(f"Duplicate claim for number {number} in room {room_id}")
            return ClaimOutcome(accepted=False, reason=ALREADY_CLAIMED)

        outcome.claim = self._claim_to_model(claim_db)
        outcome.room = self._room_to_model(room_db)
        return outcome

    @transactional
    def reset_game(
        self, room_id: UUID, requester_session_id: str, layout_seed: str
    ) -> RoomModel:
        """Host-only reset to waiting: clears claims and scores, installs the new layout seed."""
        room_db = self._lock(room_id)
        requester = self._fetch_participant_by_session(room_id, requester_session_id)

        room = self._room_to_model(room_db)
        self.state_machine.reset(
            room,
            self._participant_to_model(requester) if requester else None,
            seed=layout_seed,
        )

        self.db.execute(delete(DBClaim).where(DBClaim.room_id == room_id))
        self.db.execute(
            update(DBParticipant)
            .where(DBParticipant.room_id == room_id)
            .values(score=0)
        )
        self._write_room(room_db, room)
        self.db.flush()
        return self._room_to_model(room_db)

    # -- Internal helpers --
    def _lock(self, room_id: UUID) -> DBRoom:
        room_db = lock_room(self.db, room_id)
        if room_db is None:
            raise RoomNotFoundError(room_id)
        return room_db

    def _fetch_room(self, room_id: UUID) -> DBRoom | None:
        query = select(DBRoom).where(DBRoom.id == room_id)
        return self.db.scalar(query.execution_options(populate_existing=True))

    def _fetch_participant(self, participant_id: UUID) -> DBParticipant | None:
        query = select(DBParticipant).where(DBParticipant.id == participant_id)
        return self.db.scalar(query.execution_options(populate_existing=True))

    def _fetch_participant_by_session(
        self, room_id: UUID, session_id: str
    ) -> DBParticipant | None:
        query = select(DBParticipant).where(
            DBParticipant.room_id == room_id, DBParticipant.session_id == session_id
        )
        return self.db.scalar(query.execution_options(populate_existing=True))

    def _fetch_participants(self, room_id: UUID) -> list[DBParticipant]:
        query = (
            select(DBParticipant)
            .where(DBParticipant.room_id == room_id)
            .order_by(DBParticipant.created_at)
            .execution_options(populate_existing=True)
        )
        return list(self.db.scalars(query))

    def _count_participants(self, room_id: UUID) -> int:
        query = (
            select(func.count())
            .select_from(DBParticipant)
            .where(DBParticipant.room_id == room_id)
        )
        return self.db.scalar(query) or 0

    def _is_claimed(self, room_id: UUID, number: int) -> bool:
        query = select(DBClaim.id).where(
            DBClaim.room_id == room_id, DBClaim.number == number
        )
        return self.db.scalar(query) is not None

    def _write_room(self, room_db: DBRoom, room: RoomModel) -> None:
        """Copy the fields the state machine is allowed to change back onto the row."""
        room_db.status = room.status
        room_db.current_target = room.current_target
        room_db.layout_seed = room.layout_seed
        room_db.started_at = room.started_at
        room_db.finished_at = room.finished_at

    def _room_to_model(self, room_db: DBRoom) -> RoomModel:
        """Convert SQLAlchemy model to data transfer model."""
        return RoomModel(
            id=room_db.id,
            code=room_db.code,
            host_id=room_db.host_id,
            max_numbers=room_db.max_numbers,
            status=RoomStatus(room_db.status),
            current_target=room_db.current_target,
            layout_seed=room_db.layout_seed,
            started_at=as_utc(room_db.started_at) if room_db.started_at else None,
            finished_at=as_utc(room_db.finished_at) if room_db.finished_at else None,
            created_at=as_utc(room_db.created_at) if room_db.created_at else None,
        )

    def _participant_to_model(self, participant_db: DBParticipant) -> ParticipantModel:
        return ParticipantModel(
            id=participant_db.id,
            room_id=participant_db.room_id,
            display_name=participant_db.display_name,
            color=PlayerColor(participant_db.color),
            score=participant_db.score,
            is_host=participant_db.is_host,
            session_id=participant_db.session_id,
            created_at=(
                as_utc(participant_db.created_at) if participant_db.created_at else None
            ),
        )

    def _claim_to_model(self, claim_db: DBClaim) -> ClaimModel:
        return ClaimModel(
            id=claim_db.id,
            room_id=claim_db.room_id,
            number=claim_db.number,
            participant_id=claim_db.participant_id,
            claimed_at=as_utc(claim_db.claimed_at),
        )

    def _chat_to_model(self, entry_db: DBChatEntry) -> ChatEntryModel:
        return ChatEntryModel(
            id=entry_db.id,
            room_id=entry_db.room_id,
            participant_id=entry_db.participant_id,
            display_name=entry_db.display_name,
            text=entry_db.text,
            is_system=entry_db.is_system,
            created_at=as_utc(entry_db.created_at),
        )
