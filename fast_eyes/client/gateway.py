"""
Client side of the RPC collaborator.

RoomGateway is everything a client needs from the authoritative service: the baseline reads, and the narrow mutating
operations. Clients never write room state themselves.
"""

from typing import Any, Callable, Protocol
from uuid import UUID

import httpx

from fast_eyes.api.models import (
    ActionResponse,
    ChatEntryResponse,
    ChatMessageRequest,
    ClaimNumberRequest,
    ClaimNumberResponse,
    CreateRoomRequest,
    JoinRoomRequest,
    ParticipantResponse,
    RoomSessionResponse,
    RoomSnapshotResponse,
    SessionRequest,
)
from fast_eyes.core.exceptions import (
    GameError,
    GatewayError,
    GuardRejection,
    InvalidRequestError,
    InvalidRoomCodeError,
    InvalidTransitionError,
    NotEnoughPlayersError,
    NotHostError,
    NotParticipantError,
    ParticipantNotFoundError,
    RoomFullError,
    RoomNotFoundError,
)
from fast_eyes.core.models import (
    ChatEntryModel,
    ParticipantModel,
    RoomModel,
    RoomSnapshot,
)
from fast_eyes.services.room_service import RoomService


class RoomGateway(Protocol):
    # --- Reads ---
    def fetch_snapshot(self, room_code: str) -> RoomSnapshot: ...

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]: ...

    def get_participant(self, participant_id: UUID) -> ParticipantModel: ...

    # --- Writes ---
    def create_room(
        self, display_name: str, session_id: str, max_numbers: int
    ) -> tuple[RoomModel, ParticipantModel]: ...

    def join_room(
        self, room_code: str, display_name: str, session_id: str
    ) -> tuple[RoomModel, ParticipantModel]: ...

    def start_game(self, room_id: UUID, session_id: str) -> ActionResponse: ...

    def claim_number(
        self, room_id: UUID, participant_id: UUID, number: int, session_id: str
    ) -> ClaimNumberResponse: ...

    def reset_game(self, room_id: UUID, session_id: str) -> ActionResponse: ...

    def send_chat_message(
        self, room_id: UUID, participant_id: UUID, session_id: str, text: str
    ) -> ChatEntryModel: ...


class LocalRoomGateway:
    """Talks to a RoomService living in the same process."""

    def __init__(self, service: RoomService) -> None:
        self.service = service

    def fetch_snapshot(self, room_code: str) -> RoomSnapshot:
        return self.service.get_room(room_code).to_model()

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]:
        return [p.to_model() for p in self.service.list_participants(room_id)]

    def get_participant(self, participant_id: UUID) -> ParticipantModel:
        return self.service.get_participant(participant_id).to_model()

    def create_room(
        self, display_name: str, session_id: str, max_numbers: int
    ) -> tuple[RoomModel, ParticipantModel]:
        response = self.service.create_room(
            CreateRoomRequest(
                display_name=display_name,
                session_id=session_id,
                max_numbers=max_numbers,
            )
        )
        return response.room.to_model(), response.participant.to_model()

    def join_room(
        self, room_code: str, display_name: str, session_id: str
    ) -> tuple[RoomModel, ParticipantModel]:
        response = self.service.join_room(
            JoinRoomRequest(
                room_code=room_code, display_name=display_name, session_id=session_id
            )
        )
        return response.room.to_model(), response.participant.to_model()

    def start_game(self, room_id: UUID, session_id: str) -> ActionResponse:
        return self.service.start_game(room_id, SessionRequest(session_id=session_id))

    def claim_number(
        self, room_id: UUID, participant_id: UUID, number: int, session_id: str
    ) -> ClaimNumberResponse:
        return self.service.claim_number(
            room_id,
            ClaimNumberRequest(
                participant_id=participant_id, number=number, session_id=session_id
            ),
        )

    def reset_game(self, room_id: UUID, session_id: str) -> ActionResponse:
        return self.service.reset_game(room_id, SessionRequest(session_id=session_id))

    def send_chat_message(
        self, room_id: UUID, participant_id: UUID, session_id: str, text: str
    ) -> ChatEntryModel:
        entry = self.service.send_chat_message(
            room_id,
            ChatMessageRequest(
                participant_id=participant_id, session_id=session_id, text=text
            ),
        )
        return entry.to_model()


# Error payloads name the exception type (see main._register_exception_handlers)
_KNOWN_ERRORS: dict[str, Callable[[str], GameError]] = {
    cls.__name__: cls
    for cls in (
        InvalidRequestError,
        InvalidRoomCodeError,
        NotHostError,
        NotParticipantError,
        NotEnoughPlayersError,
        RoomFullError,
        InvalidTransitionError,
    )
}


class HttpRoomGateway:
    """Talks to the FastAPI service over HTTP (any httpx.Client, including FastAPI's TestClient)."""

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    def fetch_snapshot(self, room_code: str) -> RoomSnapshot:
        payload = self._request(
            "GET", f"/api/rooms/{room_code}", not_found=lambda: RoomNotFoundError(room_code)
        )
        return RoomSnapshotResponse.model_validate(payload).to_model()

    def list_participants(self, room_id: UUID) -> list[ParticipantModel]:
        payload = self._request(
            "GET",
            f"/api/rooms/{room_id}/participants",
            not_found=lambda: RoomNotFoundError(room_id),
        )
        return [ParticipantResponse.model_validate(p).to_model() for p in payload]

    def get_participant(self, participant_id: UUID) -> ParticipantModel:
        payload = self._request(
            "GET",
            f"/api/participants/{participant_id}",
            not_found=lambda: ParticipantNotFoundError(participant_id),
        )
        return ParticipantResponse.model_validate(payload).to_model()

    def create_room(
        self, display_name: str, session_id: str, max_numbers: int
    ) -> tuple[RoomModel, ParticipantModel]:
        request = CreateRoomRequest(
            display_name=display_name, session_id=session_id, max_numbers=max_numbers
        )
        payload = self._request("POST", "/api/rooms", json=request.model_dump(mode="json"))
        response = RoomSessionResponse.model_validate(payload)
        return response.room.to_model(), response.participant.to_model()

    def join_room(
        self, room_code: str, display_name: str, session_id: str
    ) -> tuple[RoomModel, ParticipantModel]:
        request = JoinRoomRequest(
            room_code=room_code, display_name=display_name, session_id=session_id
        )
        payload = self._request(
            "POST",
            "/api/rooms/join",
            json=request.model_dump(mode="json"),
            not_found=lambda: RoomNotFoundError(room_code),
        )
        response = RoomSessionResponse.model_validate(payload)
        return response.room.to_model(), response.participant.to_model()

    def start_game(self, room_id: UUID, session_id: str) -> ActionResponse:
        payload = self._request(
            "POST",
            f"/api/rooms/{room_id}/start",
            json=SessionRequest(session_id=session_id).model_dump(mode="json"),
            not_found=lambda: RoomNotFoundError(room_id),
        )
        return ActionResponse.model_validate(payload)

    def claim_number(
        self, room_id: UUID, participant_id: UUID, number: int, session_id: str
    ) -> ClaimNumberResponse:
        request = ClaimNumberRequest(
            participant_id=participant_id, number=number, session_id=session_id
        )
        payload = self._request(
            "POST",
            f"/api/rooms/{room_id}/claims",
            json=request.model_dump(mode="json"),
            not_found=lambda: RoomNotFoundError(room_id),
        )
        return ClaimNumberResponse.model_validate(payload)

    def reset_game(self, room_id: UUID, session_id: str) -> ActionResponse:
        payload = self._request(
            "POST",
            f"/api/rooms/{room_id}/reset",
            json=SessionRequest(session_id=session_id).model_dump(mode="json"),
            not_found=lambda: RoomNotFoundError(room_id),
        )
        return ActionResponse.model_validate(payload)

    def send_chat_message(
        self, room_id: UUID, participant_id: UUID, session_id: str, text: str
    ) -> ChatEntryModel:
        request = ChatMessageRequest(
            participant_id=participant_id, session_id=session_id, text=text
        )
        payload = self._request(
            "POST",
            f"/api/rooms/{room_id}/chat",
            json=request.model_dump(mode="json"),
            not_found=lambda: ParticipantNotFoundError(participant_id),
        )
        return ChatEntryResponse.model_validate(payload).to_model()

    # -- Internal helpers --
    def _request(
        self,
        method: str,
        url: str,
        not_found: Callable[[], GameError] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Send the request and turn error responses back into the exception taxonomy."""
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GatewayError(f"{method} {url} failed: {exc}") from exc

        if response.is_success:
            return response.json()

        detail, error_name = self._error_details(response)
        if response.status_code == 404 and not_found is not None:
            raise not_found()
        if error_name in _KNOWN_ERRORS:
            raise _KNOWN_ERRORS[error_name](detail)
        if response.status_code == 409:
            raise GuardRejection(detail)
        if response.status_code == 422:
            raise InvalidRequestError(detail)
        raise GatewayError(f"{method} {url} failed ({response.status_code}): {detail}")

    def _error_details(self, response: httpx.Response) -> tuple[str, str | None]:
        try:
            payload = response.json()
        except ValueError:
            return response.text, None
        if not isinstance(payload, dict):
            return str(payload), None
        return str(payload.get("detail", "")), payload.get("error")
