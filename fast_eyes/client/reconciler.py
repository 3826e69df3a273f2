"""
Client-side mirror of a room, kept consistent over a lossy, unordered, at-least-once change feed.

Protocol
----
1. enter(): resolve the code with a first read, subscribe to the room's feed, then fetch the full baseline (room,
   participants, claims with colors, chat). The baseline is read after subscribing, so nothing can slip in between;
   whatever arrives twice is merged idempotently.
2. process_pending(): apply whatever the feed delivered. Events are hints, never an ordered log:
   * room       -> replacement of the local room. Each start and reset draws a new layout seed, so a row from another
                   round means the local round may be stale: the baseline is reloaded. Within a round, rows that are
                   behind the local one (lower status or target) are dropped.
   * participant-> re-read the participant list (joins and score changes are coalesced into one read)
   * claim      -> merge into the claimed-number map (a known number with the same claimant is discarded, a
                   different claimant means a leftover of an older round: reload)
   * chat       -> append (known entries are discarded)
3. Subscription dropped (or a re-read failed): redo the full baseline instead of replaying deltas.
4. Room deleted on the authoritative side: stop listening and report it through `on_room_gone`.

Claims themselves are never decided here: the mirror only displays what the authoritative side accepted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from fast_eyes.client.gateway import RoomGateway
from fast_eyes.core.exceptions import (
    GatewayError,
    ParticipantNotFoundError,
    RepositoryError,
    RoomNotFoundError,
)
from fast_eyes.core.models import (
    ChangeEvent,
    ChatEntryModel,
    ClaimModel,
    ParticipantModel,
    RoomModel,
    RoomSnapshot,
)
from fast_eyes.core.shared_types import EntityKind, PlayerColor, RoomStatus
from fast_eyes.core.timeutils import as_utc, elapsed_ms, format_elapsed
from fast_eyes.realtime.feed import ChangeFeed, Subscription

logger = logging.getLogger(__name__)

# Shown when the claimant cannot be looked up at all
FALLBACK_COLOR = PlayerColor.CYAN

# Order of the statuses within one round (a round starts with a new layout seed)
_STATUS_RANK = {RoomStatus.WAITING: 0, RoomStatus.PLAYING: 1, RoomStatus.FINISHED: 2}


@dataclass(frozen=True)
class ClaimedCell:
    participant_id: UUID
    color: PlayerColor


@dataclass
class LocalView:
    """What the rendering layer draws from."""

    room: Optional[RoomModel] = None
    participants: list[ParticipantModel] = field(default_factory=list)
    me: Optional[ParticipantModel] = None
    claimed: dict[int, ClaimedCell] = field(default_factory=dict)
    chat: list[ChatEntryModel] = field(default_factory=list)
    # Duration of the last finished game, None while no game has finished
    elapsed_ms: Optional[int] = None

    @property
    def is_host(self) -> bool:
        return self.me is not None and self.me.is_host

    def leaderboard(self) -> list[ParticipantModel]:
        """Highest score first, join order between equal scores."""
        return sorted(self.participants, key=lambda p: -p.score)

    def winner(self) -> Optional[ParticipantModel]:
        if self.room is None or self.room.status != RoomStatus.FINISHED:
            return None
        ranking = self.leaderboard()
        return ranking[0] if ranking else None


class ChangeFeedReconciler:
    def __init__(
        self,
        gateway: RoomGateway,
        feed: ChangeFeed,
        session_id: str,
        on_finished: Optional[Callable[[int], None]] = None,
        on_change: Optional[Callable[[LocalView], None]] = None,
        on_room_gone: Optional[Callable[[], None]] = None,
    ) -> None:
        self.gateway = gateway
        self.feed = feed
        self.session_id = session_id
        self.on_finished = on_finished
        self.on_change = on_change
        self.on_room_gone = on_room_gone

        self.view = LocalView()
        self._room_code: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._needs_resync = False
        # (started_at, finished_at) of the game whose end was already announced
        self._announced_finish: Optional[tuple[datetime, datetime]] = None

    # --- Entry / exit ---
    def enter(self, room_code: str) -> LocalView:
        """Join the room's feed and load the baseline. Raises RoomNotFoundError for unknown codes."""
        snapshot = self.gateway.fetch_snapshot(room_code)
        self._room_code = snapshot.room.code
        self._subscribe(snapshot.room.id)
        # The baseline proper, read now that the subscription is live
        try:
            self._load_baseline()
        except Exception:
            self.leave()
            raise
        return self.view

    def leave(self) -> None:
        if self._subscription is not None:
            self.feed.unsubscribe(self._subscription)
            self._subscription = None

    @property
    def connected(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def resync(self) -> None:
        """Start over: fresh subscription, full baseline."""
        if self.view.room is None:
            raise RuntimeError("resync() before enter()")
        logger.info(f"Resyncing room {self._room_code}")
        self.leave()
        self._subscribe(self.view.room.id)
        self._load_baseline()
        self._needs_resync = False

    # --- Feed processing ---
    def process_pending(self) -> int:
        """
        Apply everything the feed delivered since the last call. Returns the number of events applied.
        ----
        Collaborator failures while applying are logged and turn into a resync on the next call.
        A room that no longer exists ends the subscription and is reported through `on_room_gone`.
        """
        if self._subscription is None:
            return 0
        try:
            if self._subscription.closed or self._needs_resync:
                if self._subscription.closed:
                    logger.warning(f"Lost the feed of room {self._room_code}")
                self.resync()
            applied = 0
            for event in self._subscription.drain():
                if self.apply(event):
                    applied += 1
            return applied
        except (GatewayError, RepositoryError):
            logger.error(
                f"Could not refresh room {self._room_code}, will resync", exc_info=True
            )
            self._needs_resync = True
            return 0
        except RoomNotFoundError:
            logger.warning(f"Room {self._room_code} no longer exists, leaving it")
            self.leave()
            if self.on_room_gone is not None:
                self.on_room_gone()
            return 0

    def apply(self, event: ChangeEvent) -> bool:
        """Apply one event. Returns False when the event turned out to be a no-op."""
        room = self.view.room
        if room is None or event.room_id != room.id:
            return False

        if event.kind == EntityKind.ROOM and isinstance(event.row, RoomModel):
            changed = self._apply_room(room, event.row)
        elif event.kind == EntityKind.PARTICIPANT:
            changed = self._refresh_participants(room.id)
        elif event.kind == EntityKind.CLAIM and isinstance(event.row, ClaimModel):
            changed = self._apply_claim(room, event.row)
        elif event.kind == EntityKind.CHAT and isinstance(event.row, ChatEntryModel):
            changed = self._apply_chat(event.row)
        else:
            logger.warning(f"Ignoring malformed change event: {event!r}")
            return False

        if changed:
            self._notify_change()
        return changed

    # -- Internal helpers --
    def _subscribe(self, room_id: UUID) -> None:
        self._subscription = self.feed.subscribe(room_id)

    def _load_baseline(self) -> None:
        if self._room_code is None:
            raise RuntimeError("No room entered")
        self._install(self.gateway.fetch_snapshot(self._room_code))

    def _install(self, snapshot: RoomSnapshot) -> None:
        self.view.room = snapshot.room
        self._set_participants(snapshot.participants)
        self.view.claimed = {
            claim.number: ClaimedCell(claim.participant_id, claim.color)
            for claim in snapshot.claims
        }
        self.view.chat = list(snapshot.chat)
        if snapshot.room.status == RoomStatus.WAITING:
            self.view.elapsed_ms = None
        self._check_finished()
        self._notify_change()

    def _apply_room(self, local: RoomModel, room: RoomModel) -> bool:
        if room == local:
            return False
        if room.layout_seed != local.layout_seed:
            # Another round. Seeds are random, so the rows alone cannot tell which round is newer
            logger.info(f"Room {local.code} changed rounds, reloading baseline")
            self._load_baseline()
            return True
        if _progress(room) < _progress(local):
            logger.debug(f"Dropping outdated row of room {local.code}")
            return False
        self.view.room = room
        self._check_finished()
        return True

    def _refresh_participants(self, room_id: UUID) -> bool:
        self._set_participants(self.gateway.list_participants(room_id))
        return True

    def _set_participants(self, participants: list[ParticipantModel]) -> None:
        self.view.participants = list(participants)
        self.view.me = next(
            (p for p in participants if p.session_id == self.session_id), None
        )

    def _apply_claim(self, room: RoomModel, claim: ClaimModel) -> bool:
        """Merge an accepted claim. Delivering the same claim again is a no-op."""
        known = self.view.claimed.get(claim.number)
        if known is not None and known.participant_id == claim.participant_id:
            return False

        if known is not None or room.status == RoomStatus.WAITING or (
            room.started_at is not None
            and as_utc(claim.claimed_at) < as_utc(room.started_at)
        ):
            # Claim and local room disagree (missed start, or a leftover of another round): ask the source
            logger.info(
                f"Claim of {claim.number} does not fit the local room state, reloading baseline"
            )
            self._load_baseline()
            return True

        self.view.claimed[claim.number] = ClaimedCell(
            claim.participant_id, self._color_of(claim.participant_id)
        )
        return True

    def _apply_chat(self, entry: ChatEntryModel) -> bool:
        if any(known.id == entry.id for known in self.view.chat):
            return False
        self.view.chat.append(entry)
        # Stable: entries with equal timestamps keep their arrival order
        self.view.chat.sort(key=lambda e: as_utc(e.created_at))
        return True

    def _color_of(self, participant_id: UUID) -> PlayerColor:
        for participant in self.view.participants:
            if participant.id == participant_id:
                return participant.color
        try:
            return self.gateway.get_participant(participant_id).color
        except ParticipantNotFoundError:
            logger.warning(f"Claimant {participant_id} not found, using fallback color")
            return FALLBACK_COLOR

    def _check_finished(self) -> None:
        """Trigger the end-of-game callback once per finished game, however often the finished room is delivered."""
        room = self.view.room
        if (
            room is None
            or room.status != RoomStatus.FINISHED
            or room.started_at is None
            or room.finished_at is None
        ):
            return
        key = (as_utc(room.started_at), as_utc(room.finished_at))
        if key == self._announced_finish:
            return
        self._announced_finish = key
        self.view.elapsed_ms = elapsed_ms(room.started_at, room.finished_at)
        logger.info(f"Room {room.code} finished in {format_elapsed(self.view.elapsed_ms)}")
        if self.on_finished is not None:
            self.on_finished(self.view.elapsed_ms)

    def _notify_change(self) -> None:
        if self.on_change is not None:
            self.on_change(self.view)


def _progress(room: RoomModel) -> tuple[int, int]:
    return _STATUS_RANK[room.status], room.current_target
