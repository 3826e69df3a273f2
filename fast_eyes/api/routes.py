"""RPC surface of the authoritative service (consumed by the clients' RoomGateway)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

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
    RoomSessionResponse,
    RoomSnapshotResponse,
    SessionRequest,
)
from fast_eyes.core.config import Settings, get_settings
from fast_eyes.db.database import get_db
from fast_eyes.db.sql_repository import SQLRoomRepository
from fast_eyes.realtime.feed import ChangeFeed
from fast_eyes.rooms.state_machine import RoomStateMachine
from fast_eyes.services.room_service import RoomService

router = APIRouter(prefix="/api", tags=["rooms"])


# --- Dependencies ---
def get_feed(request: Request) -> ChangeFeed:
    return request.app.state.feed


def get_room_service(
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
    settings: Settings = Depends(get_settings),
) -> RoomService:
    repository = SQLRoomRepository(
        db, RoomStateMachine(min_players=settings.min_players_to_start)
    )
    return RoomService(repository, feed, settings)


# --- Rooms ---
@router.post(
    "/rooms", response_model=RoomSessionResponse, status_code=status.HTTP_201_CREATED
)
def create_room(
    request: CreateRoomRequest, service: RoomService = Depends(get_room_service)
) -> RoomSessionResponse:
    return service.create_room(request)


@router.post("/rooms/join", response_model=RoomSessionResponse)
def join_room(
    request: JoinRoomRequest, service: RoomService = Depends(get_room_service)
) -> RoomSessionResponse:
    return service.join_room(request)


@router.get("/rooms/{code}", response_model=RoomSnapshotResponse)
def get_room(
    code: str, service: RoomService = Depends(get_room_service)
) -> RoomSnapshotResponse:
    return service.get_room(code)


@router.get("/rooms/{room_id}/participants", response_model=list[ParticipantResponse])
def list_participants(
    room_id: UUID, service: RoomService = Depends(get_room_service)
) -> list[ParticipantResponse]:
    return service.list_participants(room_id)


@router.get("/participants/{participant_id}", response_model=ParticipantResponse)
def get_participant(
    participant_id: UUID, service: RoomService = Depends(get_room_service)
) -> ParticipantResponse:
    return service.get_participant(participant_id)


# --- Game actions ---
@router.post("/rooms/{room_id}/start", response_model=ActionResponse)
def start_game(
    room_id: UUID,
    request: SessionRequest,
    service: RoomService = Depends(get_room_service),
) -> ActionResponse:
    return service.start_game(room_id, request)


@router.post("/rooms/{room_id}/claims", response_model=ClaimNumberResponse)
def claim_number(
    room_id: UUID,
    request: ClaimNumberRequest,
    service: RoomService = Depends(get_room_service),
) -> ClaimNumberResponse:
    return service.claim_number(room_id, request)


@router.post("/rooms/{room_id}/reset", response_model=ActionResponse)
def reset_game(
    room_id: UUID,
    request: SessionRequest,
    service: RoomService = Depends(get_room_service),
) -> ActionResponse:
    return service.reset_game(room_id, request)


@router.post(
    "/rooms/{room_id}/chat",
    response_model=ChatEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_chat_message(
    room_id: UUID,
    request: ChatMessageRequest,
    service: RoomService = Depends(get_room_service),
) -> ChatEntryResponse:
    return service.send_chat_message(room_id, request)


# --- Layout ---
@router.get("/layout", response_model=LayoutResponse)
def layout(
    seed: str,
    count: int = Query(ge=0, le=100),
    service: RoomService = Depends(get_room_service),
) -> LayoutResponse:
    return service.layout(seed, count)
