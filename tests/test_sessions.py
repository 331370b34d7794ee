from unittest.mock import MagicMock

import pytest

from chatbot.sessions import DEFAULT_SESSION_ID, Session, SessionStore
from conftest import FakeLLMClient
from database.DatabaseProvider import DatabaseProvider


def test_get_or_create_reuses_session():
    store = SessionStore()

    first = store.get_or_create("a")
    assert store.get_or_create("a") is first
    assert store.get_or_create(None).id == DEFAULT_SESSION_ID
    assert len(store) == 2
    assert "a" in store


def test_new_sessions_use_store_default():
    assert SessionStore(read_only_default=False).get_or_create("x").read_only is False


def test_remove_closes_provider():
    store = SessionStore()
    provider = MagicMock(spec=DatabaseProvider)
    store.get_or_create("a").attach_provider(provider)

    assert store.remove("a") is True
    provider.disconnect.assert_called_once()
    assert store.get("a") is None
    assert store.remove("a") is False


def test_attach_metadata_requires_provider(metadata):
    with pytest.raises(ValueError):
        Session(id="s").attach_metadata(metadata, FakeLLMClient())


def test_attach_metadata_builds_conversation(metadata):
    session = Session(id="s", read_only=False)
    session.attach_provider(MagicMock(spec=DatabaseProvider))

    orchestrator = session.attach_metadata(metadata, FakeLLMClient())

    assert session.orchestrator is orchestrator
    assert session.tool_registry.read_only_mode is False
    assert orchestrator.metadata is metadata


def test_set_read_only_reaches_registry(metadata):
    session = Session(id="s")
    session.attach_provider(MagicMock(spec=DatabaseProvider))
    session.attach_metadata(metadata, FakeLLMClient())

    session.set_read_only(False)

    assert session.tool_registry.read_only_mode is False


def test_reconnect_drops_previous_state(metadata):
    old = MagicMock(spec=DatabaseProvider)
    session = Session(id="s")
    session.attach_provider(old)
    session.attach_metadata(metadata, FakeLLMClient())

    session.attach_provider(MagicMock(spec=DatabaseProvider))

    old.disconnect.assert_called_once()
    assert session.metadata is None
    assert session.orchestrator is None


def test_sessions_are_isolated(metadata):
    store = SessionStore()
    for session_id in ("a", "b"):
        session = store.get_or_create(session_id)
        session.attach_provider(MagicMock(spec=DatabaseProvider))
        session.attach_metadata(metadata, FakeLLMClient([]))

    store.get("a").set_read_only(False)

    assert store.get("b").tool_registry.read_only_mode is True
    assert store.get("a").orchestrator is not store.get("b").orchestrator
