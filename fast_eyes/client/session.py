"""
What the rendering/UI layer talks to.

Entry points never raise: failures end up as Notices for the UI to show.
* guard rejections of explicit host actions (start / reset) -> warning notice
* losing a claim race -> nothing at all (the target simply moved on)
* unknown or deleted room (or participant) -> error notice, the UI goes back to its default view
* collaborator failures -> logged, generic retryable error notice

Nothing is optimistic: the local view only changes once the authoritative side's change reaches the feed.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

from fast_eyes.api.models import ActionResponse
from fast_eyes.client.gateway import RoomGateway
from fast_eyes.client.identity import SessionIdentity
from fast_eyes.client.reconciler import ChangeFeedReconciler, LocalView
from fast_eyes.core.exceptions import (
    GatewayError,
    GuardRejection,
    InvalidRequestError,
    RepositoryError,
    RoomError,
    RoomFullError,
)
from fast_eyes.core.shared_types import NoticeLevel, RoomStatus
from fast_eyes.layout.generator import NumberPosition, positions
from fast_eyes.realtime.feed import ChangeFeed

logger = logging.getLogger(__name__)

# Collaborator failures, shown as a generic "try again"
COLLABORATOR_ERRORS = (GatewayError, RepositoryError)


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    title: str
    message: str


class GameSession:
    """One participant's client for one room."""

    def __init__(
        self,
        gateway: RoomGateway,
        feed: ChangeFeed,
        identity: SessionIdentity,
        notify: Optional[Callable[[Notice], None]] = None,
        on_finished: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.gateway = gateway
        self.identity = identity
        self.notify = notify
        self.reconciler = ChangeFeedReconciler(
            gateway,
            feed,
            identity.session_id,
            on_finished=on_finished,
            on_room_gone=self._room_not_found,
        )

    @property
    def view(self) -> LocalView:
        return self.reconciler.view

    # --- Room lifecycle ---
    def create_room(self, display_name: str, max_numbers: int) -> bool:
        """Create a room (becoming its host) and enter it."""
        try:
            room, _ = self.gateway.create_room(
                display_name, self.identity.session_id, max_numbers
            )
        except InvalidRequestError as exc:
            self._notice(NoticeLevel.WARNING, "Cannot create room", str(exc))
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure("create the room")
            return False
        self.identity.remember_display_name(display_name)
        return self.open(room.code)

    def open(self, room_code: str) -> bool:
        """Enter a room (as spectator until joined)."""
        try:
            self.reconciler.enter(room_code)
        except RoomError:
            self._room_not_found()
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure("load the room")
            return False
        return True

    def join(self, display_name: str) -> bool:
        """Join the opened room. Joining again from the same session hands back the same participant."""
        room = self.view.room
        if room is None:
            return False
        try:
            self.gateway.join_room(room.code, display_name, self.identity.session_id)
        except RoomFullError as exc:
            self._notice(NoticeLevel.WARNING, "Room full", str(exc))
            return False
        except InvalidRequestError as exc:
            self._notice(NoticeLevel.WARNING, "Cannot join", str(exc))
            return False
        except RoomError:
            self._room_not_found()
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure("join the room")
            return False
        self.identity.remember_display_name(display_name)
        self.reconciler.process_pending()
        return True

    def poll(self) -> int:
        """Called from the UI's event loop: apply what the feed delivered."""
        return self.reconciler.process_pending()

    def close(self) -> None:
        self.reconciler.leave()

    # --- Game ---
    def positions(self) -> list[NumberPosition]:
        room = self.view.room
        if room is None:
            return []
        return positions(room.layout_seed, room.max_numbers)

    def submit_click(self, number: int) -> bool:
        """
        A tap on `number`. Returns True only if the authoritative side accepted the claim.
        ----
        Local checks only filter out taps that cannot win; the decision is made against the live target.
        """
        room = self.view.room
        me = self.view.me
        if room is None or me is None or room.status != RoomStatus.PLAYING:
            return False
        if number != room.current_target or number in self.view.claimed:
            return False

        try:
            result = self.gateway.claim_number(
                room.id, me.id, number, self.identity.session_id
            )
        except GuardRejection as exc:
            logger.info(f"Claim of {number} rejected: {exc}")
            return False
        except RoomError:
            self._room_not_found()
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure("claim the number")
            return False
        # A rejection means someone else was faster: silently ignored
        return result.success

    def submit_chat_message(self, text: str) -> bool:
        room = self.view.room
        me = self.view.me
        text = text.strip()
        if room is None or me is None or not text:
            return False
        try:
            self.gateway.send_chat_message(room.id, me.id, self.identity.session_id, text)
        except (GuardRejection, InvalidRequestError) as exc:
            self._notice(NoticeLevel.WARNING, "Message not sent", str(exc))
            return False
        except RoomError:
            self._room_not_found()
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure("send the message")
            return False
        return True

    def request_start(self) -> bool:
        """Host only."""
        return self._host_action(
            self.gateway.start_game, action="start the game", title="Cannot start game"
        )

    def request_reset(self) -> bool:
        """Host only."""
        return self._host_action(
            self.gateway.reset_game, action="reset the game", title="Cannot reset game"
        )

    # -- Internal helpers --
    def _host_action(
        self,
        call: Callable[[UUID, str], ActionResponse],
        action: str,
        title: str,
    ) -> bool:
        room = self.view.room
        if room is None:
            return False
        try:
            result = call(room.id, self.identity.session_id)
        except RoomError:
            self._room_not_found()
            return False
        except COLLABORATOR_ERRORS:
            self._collaborator_failure(action)
            return False
        if not result.success:
            self._notice(NoticeLevel.WARNING, title, result.error or "Unknown error")
        return result.success

    def _notice(self, level: NoticeLevel, title: str, message: str) -> None:
        if self.notify is not None:
            self.notify(Notice(level, title, message))

    def _room_not_found(self) -> None:
        self._notice(NoticeLevel.ERROR, "Room not found", "This room doesn't exist.")

    def _collaborator_failure(self, action: str) -> None:
        logger.error(f"Failed to {action}", exc_info=True)
        self._notice(
            NoticeLevel.ERROR, "Error", f"Failed to {action}. Please try again."
        )
