"""Stable per-participant identity token, kept in a client-side key/value store (e.g. the browser tab's session storage)."""

from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Optional, Self
from uuid import uuid4

SESSION_KEY = "fast-eyes.gameSessionId"
DISPLAY_NAME_KEY = "fast-eyes.playerName"


@dataclass
class SessionIdentity:
    """
    The session id is what ties a client to its Participant record: rejoining a room with the same session id
    hands back the same participant (score, color and host role included) instead of creating a new one.
    """

    session_id: str
    store: MutableMapping[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def load_or_create(cls, store: MutableMapping[str, str]) -> Self:
        session_id = store.get(SESSION_KEY)
        if not session_id:
            session_id = str(uuid4())
            store[SESSION_KEY] = session_id
        return cls(session_id=session_id, store=store)

    @property
    def last_display_name(self) -> Optional[str]:
        return self.store.get(DISPLAY_NAME_KEY)

    def remember_display_name(self, display_name: str) -> None:
        self.store[DISPLAY_NAME_KEY] = display_name.strip()
