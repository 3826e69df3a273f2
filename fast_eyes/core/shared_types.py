"""
Type definitions used across layers
"""

from enum import StrEnum


class RoomStatus(StrEnum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class PlayerColor(StrEnum):
    """Fixed palette. Handed out in join order, so the host is always cyan."""

    CYAN = "cyan"
    PINK = "pink"
    GREEN = "green"
    YELLOW = "yellow"


# Join order -> color
PLAYER_COLORS: tuple[PlayerColor, ...] = tuple(PlayerColor)


class EntityKind(StrEnum):
    """Kinds of rows that travel over the change feed."""

    ROOM = "room"
    PARTICIPANT = "participant"
    CLAIM = "claim"
    CHAT = "chat"


class NoticeLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
