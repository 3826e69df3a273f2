"""Orchestration of communication from API router to business logic, persistence and change feed layers (and the reverse direction)."""

import logging
from uuid import UUID

from fast_eyes.api.models import (
    ActionResponse,
    ChatEntryResponse,
    ChatMessageRequest,
    ClaimNumberRequest,
    ClaimNumberResponse,
    CreateRoomRequest,
    JoinRoomRequest,
    LayoutResponse,
    ParticipantResponse,
    RoomResponse,
    RoomSessionResponse,
    RoomSnapshotResponse,
    SessionRequest,
)
from fast_eyes.core.config import Settings, get_settings
from fast_eyes.core.exceptions import (
    GuardRejection,
    NotParticipantError,
    ParticipantNotFoundError,
    RepositoryError,
    RoomNotFoundError,
)
from fast_eyes.core.models import (
    ChangeEvent,
    ChangeRow,
    ParticipantModel,
    RoomModel,
    RoomSnapshot,
)
from fast_eyes.core.shared_types import EntityKind
from fast_eyes.db.repository import RoomRepository
from fast_eyes.layout.generator import new_layout_seed, positions
from fast_eyes.realtime.feed import ChangeFeed
from fast_eyes.rooms.codes import generate_room_code, normalize_room_code

logger = logging.getLogger(__name__)

SYSTEM_NAME = "System"


class RoomService:
    """Orchestration of layers for a number race room."""

    def __init__(
        self,
        repository: RoomRepository,
        feed: ChangeFeed,
        settings: Settings | None = None,
    ) -> None:
        self.repo = repository
        self.feed = feed
        self.settings = settings or get_settings()

    # -- API routes logic ---
    def create_room(self, request: CreateRoomRequest) -> RoomSessionResponse:
        """Host requested a new room. The host is the room's first participant."""

        # Find a free join code
        code = generate_room_code()
        while self.repo.get_room_by_code(code) is not None:
            logger.warning(f"Room code collision detected, regenerating: {code}")
            code = generate_room_code()

        room, host = self.repo.create_room(
            code=code,
            max_numbers=request.max_numbers,
            layout_seed=new_layout_seed(),
            host_name=request.display_name,
            host_session_id=request.session_id,
        )
        logger.info(f"Created room {room.id} with code {code}")

        self._publish(EntityKind.ROOM, room.id, room)
        self._system_message(room.id, f"{host.display_name} created the room")
        return self._room_session_response(room, host)

    def join_room(self, request: JoinRoomRequest) -> RoomSessionResponse:
        """
        A session asked to join a room.
        ----
        Rejoining (same session id) hands back the existing participant instead of creating a second one.
        """
        room = self._fetch_room_by_code(request.room_code)

        participant, created = self.repo.join_room(
            room.id,
            session_id=request.session_id,
            display_name=request.display_name,
            max_participants=self.settings.max_participants,
        )
        if created:
            logger.info(f"{participant.display_name} joined room {room.code}")
            self._publish(EntityKind.PARTICIPANT, room.id)
            self._system_message(room.id, f"{participant.display_name} joined the room")
        return self._room_session_response(room, participant)

    def get_room(self, code: str) -> RoomSnapshotResponse:
        """
        Full state of a room.
        ----
        Baseline snapshot for clients entering the room, and what they resync to after losing the feed.
        """
        room = self._fetch_room_by_code(normalize_room_code(code))
        return RoomSnapshotResponse.from_snapshot(self._snapshot(room))

    def list_participants(self, room_id: UUID) -> list[ParticipantResponse]:
        self._fetch_room(room_id)
        return [
            ParticipantResponse.model_validate(p)
            for p in self.repo.list_participants(room_id)
        ]

    def get_participant(self, participant_id: UUID) -> ParticipantResponse:
        return ParticipantResponse.model_validate(
            self._fetch_participant(participant_id)
        )

    def start_game(self, room_id: UUID, request: SessionRequest) -> ActionResponse:
        """Host asked to start. Every guard is checked by the repository inside the room's atomic section."""
        try:
            room = self.repo.start_game(room_id, request.session_id, new_layout_seed())
        except GuardRejection as exc:
            logger.info(f"Start rejected in room {room_id}: {exc}")
            return ActionResponse(success=False, error=str(exc))

        logger.info(f"Game started in room {room.code}")
        self._publish(EntityKind.ROOM, room_id, room)
        self._system_message(room_id, "Game started! Find the numbers in order!")
        return ActionResponse(success=True)

    def claim_number(
        self, room_id: UUID, request: ClaimNumberRequest
    ) -> ClaimNumberResponse:
        """
        A participant tapped a number.
        ----
        Losing the race (target already moved on) is the common rejection: it is reported back, never raised.
        """
        try:
            outcome = self.repo.claim_number(
                room_id,
                participant_id=request.participant_id,
                number=request.number,
                requester_session_id=request.session_id,
            )
        except GuardRejection as exc:
            logger.info(f"Claim rejected in room {room_id}: {exc}")
            return ClaimNumberResponse(success=False, error=str(exc))

        if not outcome.accepted:
            logger.debug(
                f"Claim of {request.number} in room {room_id} rejected: {outcome.reason}"
            )
            return ClaimNumberResponse(success=False, error=outcome.reason)

        self._publish(EntityKind.CLAIM, room_id, outcome.claim)
        self._publish(EntityKind.ROOM, room_id, outcome.room)
        self._publish(EntityKind.PARTICIPANT, room_id)

        claimant = self._fetch_participant(request.participant_id)
        if outcome.finished:
            logger.info(f"Room {room_id} finished, last number claimed by {claimant.id}")
            self._system_message(room_id, f"{claimant.display_name} finished the game!")
        elif request.number % self.settings.milestone_interval == 0:
            self._system_message(
                room_id, f"{claimant.display_name} reached number {request.number}!"
            )
        return ClaimNumberResponse(success=True, finished=outcome.finished)

    def reset_game(self, room_id: UUID, request: SessionRequest) -> ActionResponse:
        """Host asked for a new round in the same room (claims cleared, scores zeroed, new layout)."""
        try:
            room = self.repo.reset_game(room_id, request.session_id, new_layout_seed())
        except GuardRejection as exc:
            logger.info(f"Reset rejected in room {room_id}: {exc}")
            return ActionResponse(success=False, error=str(exc))

        logger.info(f"Room {room.code} reset")
        self._publish(EntityKind.ROOM, room_id, room)
        self._publish(EntityKind.PARTICIPANT, room_id)
        self._system_message(room_id, "Room reset! Ready for a new game.")
        return ActionResponse(success=True)

    def send_chat_message(
        self, room_id: UUID, request: ChatMessageRequest
    ) -> ChatEntryResponse:
        """Participant chat. Sessions can only speak for their own participant."""
        participant = self._fetch_participant(request.participant_id)
        if (
            participant.room_id != room_id
            or participant.session_id != request.session_id
        ):
            raise NotParticipantError("You can only chat as your own participant.")

        entry = self.repo.add_chat_entry(
            room_id,
            participant_id=participant.id,
            display_name=participant.display_name,
            text=request.text,
            is_system=False,
        )
        self._publish(EntityKind.CHAT, room_id, entry)
        return ChatEntryResponse.model_validate(entry)

    def layout(self, seed: str, count: int) -> LayoutResponse:
        """Same positions every client computes locally (handy for clients that cannot run the generator)."""
        return LayoutResponse.from_positions(seed, count, positions(seed, count))

    # -- Internal helpers --
    def _snapshot(self, room: RoomModel) -> RoomSnapshot:
        return RoomSnapshot(
            room=room,
            participants=self.repo.list_participants(room.id),
            claims=self.repo.list_claims(room.id),
            chat=self.repo.list_chat(room.id),
        )

    def _system_message(self, room_id: UUID, text: str) -> None:
        """Best-effort announcement: the action it announces has already been committed."""
        try:
            entry = self.repo.add_chat_entry(
                room_id,
                participant_id=None,
                display_name=SYSTEM_NAME,
                text=text,
                is_system=True,
            )
        except RepositoryError:
            logger.error(
                f"Could not store system message for room {room_id}: {text!r}",
                exc_info=True,
            )
            return
        self._publish(EntityKind.CHAT, room_id, entry)

    def _publish(
        self, kind: EntityKind, room_id: UUID, row: ChangeRow | None = None
    ) -> None:
        self.feed.publish(ChangeEvent(kind=kind, room_id=room_id, row=row))

    def _room_session_response(
        self, room: RoomModel, participant: ParticipantModel
    ) -> RoomSessionResponse:
        return RoomSessionResponse(
            room=RoomResponse.model_validate(room),
            participant=ParticipantResponse.model_validate(participant),
        )

    def _fetch_room(self, room_id: UUID) -> RoomModel:
        """Attempt to find the room in the repository and raise error if it fails."""
        room = self.repo.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def _fetch_room_by_code(self, code: str) -> RoomModel:
        room = self.repo.get_room_by_code(code)
        if room is None:
            raise RoomNotFoundError(code)
        return room

    def _fetch_participant(self, participant_id: UUID) -> ParticipantModel:
        participant = self.repo.get_participant(participant_id)
        if participant is None:
            raise ParticipantNotFoundError(participant_id)
        return participant
