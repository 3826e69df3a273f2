"""Database tables / schema"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from fast_eyes.core.timeutils import utc_now


class Base(DeclarativeBase):
    pass


class DBRoom(Base):
    __tablename__ = "rooms"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(6), unique=True, index=True)
    host_id: Mapped[Optional[UUID]]
    max_numbers: Mapped[int]
    status: Mapped[str]
    current_target: Mapped[int] = mapped_column(default=1)
    layout_seed: Mapped[str]
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    # Touched by every mutating operation (that is how the room's write lock is taken, see db/locks.py)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class DBParticipant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("room_id", "session_id"),
        UniqueConstraint("room_id", "color"),
    )
    id: Mapped[UUID] = mapped_column(primary_key=True)
    room_id: Mapped[UUID] = mapped_column(ForeignKey("rooms.id"), index=True)
    display_name: Mapped[str]
    color: Mapped[str]
    score: Mapped[int] = mapped_column(default=0)
    is_host: Mapped[bool] = mapped_column(default=False)
    session_id: Mapped[str]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class DBClaim(Base):
    __tablename__ = "claims"
    # Each number can be claimed at most once per room
    __table_args__ = (UniqueConstraint("room_id", "number"),)
    id: Mapped[UUID] = mapped_column(primary_key=True)
    room_id: Mapped[UUID] = mapped_column(ForeignKey("rooms.id"), index=True)
    number: Mapped[int]
    participant_id: Mapped[UUID] = mapped_column(ForeignKey("participants.id"))
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class DBChatEntry(Base):
    __tablename__ = "chat_messages"
    # insertion order, breaks ties between entries with the same timestamp
    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[UUID] = mapped_column(unique=True)
    room_id: Mapped[UUID] = mapped_column(ForeignKey("rooms.id"), index=True)
    participant_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("participants.id"))
    display_name: Mapped[str]
    text: Mapped[str]
    is_system: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
