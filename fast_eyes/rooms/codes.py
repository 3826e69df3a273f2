"""Human-shareable room codes."""

import secrets

from fast_eyes.core.exceptions import InvalidRoomCodeError

# Easily confused glyphs (I, O, 0, 1) are left out
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code() -> str:
    """
    Random code, e.g. 'K7QX2M'.

    Uniqueness is not checked here (responsibility of the caller). 32**6 ~ 10**9 codes, so collisions are rare.
    """
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(raw: str) -> str:
    """Codes are case-insensitive on input and stored uppercase."""
    code = raw.strip().upper()
    if len(code) != ROOM_CODE_LENGTH:
        raise InvalidRoomCodeError(
            f"Room code must be {ROOM_CODE_LENGTH} characters, got {raw!r}."
        )
    invalid = sorted({char for char in code if char not in ROOM_CODE_ALPHABET})
    if invalid:
        raise InvalidRoomCodeError(
            f"Room code {raw!r} contains characters that are never used: {''.join(invalid)}"
        )
    return code
