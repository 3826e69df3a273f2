"""Unit tests for fast_eyes/client/identity.py"""

from fast_eyes.client.identity import DISPLAY_NAME_KEY, SESSION_KEY, SessionIdentity


def test_new_identity_is_stored() -> None:
    store: dict[str, str] = {}
    identity = SessionIdentity.load_or_create(store)
    assert identity.session_id
    assert store[SESSION_KEY] == identity.session_id


def test_existing_identity_is_reused() -> None:
    store = {SESSION_KEY: "known-session"}
    assert SessionIdentity.load_or_create(store).session_id == "known-session"
    assert SessionIdentity.load_or_create(store).session_id == "known-session"


def test_separate_stores_separate_identities() -> None:
    first = SessionIdentity.load_or_create({})
    second = SessionIdentity.load_or_create({})
    assert first.session_id != second.session_id


def test_display_name_is_remembered() -> None:
    store: dict[str, str] = {}
    identity = SessionIdentity.load_or_create(store)
    assert identity.last_display_name is None

    identity.remember_display_name("  Ana ")

    assert identity.last_display_name == "Ana"
    assert store[DISPLAY_NAME_KEY] == "Ana"
    # Survives a reload of the client
    assert SessionIdentity.load_or_create(store).last_display_name == "Ana"
