import asyncio

import pytest

from fakes import FakeConversationRepository
from marketchat.services.authorization import ConversationGuard
from marketchat.utils.errors import Forbidden, NotFound


@pytest.fixture
def guard(store):
    return ConversationGuard(FakeConversationRepository(store))


def test_is_participant(guard, store):
    cid = store.add_conversation("u1", "u2")
    assert asyncio.run(guard.is_participant("u1", cid)) is True
    assert asyncio.run(guard.is_participant("u2", cid)) is True
    assert asyncio.run(guard.is_participant("u3", cid)) is False


def test_is_participant_fails_closed(guard):
    assert asyncio.run(guard.is_participant("u1", "c404")) is False
    assert asyncio.run(guard.is_participant(None, "c404")) is False
    assert asyncio.run(guard.is_participant("", "c404")) is False


def test_authorize_returns_conversation(guard, store):
    cid = store.add_conversation("u1", "u2")
    conversation = asyncio.run(guard.authorize("u2", cid))
    assert conversation["_id"] == cid


def test_authorize_distinguishes_missing_and_forbidden(guard, store):
    cid = store.add_conversation("u1", "u2")
    with pytest.raises(NotFound):
        asyncio.run(guard.authorize("u1", "c404"))
    with pytest.raises(Forbidden):
        asyncio.run(guard.authorize("u3", cid))
