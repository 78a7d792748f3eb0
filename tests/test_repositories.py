import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from marketchat.database import connection
from marketchat.repositories.conversation_repository import ConversationRepository, participant_key
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository


def cursor_returning(items):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=items)
    return cursor


def test_participant_key_is_order_independent():
    assert participant_key("u2", "u1") == participant_key("u1", "u2") == "u1:u2"


def test_get_or_create_inserts_new_pair():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    inserted = ObjectId()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=inserted))
    repo = ConversationRepository({"conversations": collection})

    doc, created = asyncio.run(repo.get_or_create_one_to_one("u2", "u1"))

    assert created is True
    assert doc["_id"] == str(inserted)
    assert doc["participants"] == ["u2", "u1"]
    assert doc["participant_key"] == "u1:u2"
    assert doc["last_message_at"] == doc["created_at"]
    collection.find_one.assert_awaited_once_with({"participant_key": "u1:u2"})


def test_get_or_create_resolves_insert_race_to_existing():
    existing_id = ObjectId()
    collection = MagicMock()
    collection.find_one = AsyncMock(side_effect=[None, {"_id": existing_id, "participants": ["u1", "u2"]}])
    collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))
    repo = ConversationRepository({"conversations": collection})

    doc, created = asyncio.run(repo.get_or_create_one_to_one("u2", "u1"))

    assert created is False
    assert doc["_id"] == str(existing_id)


def test_get_by_id_with_malformed_id_is_a_miss():
    collection = MagicMock()
    collection.find_one = AsyncMock()
    repo = ConversationRepository({"conversations": collection})

    assert asyncio.run(repo.get_by_id("not-an-object-id")) is None
    collection.find_one.assert_not_awaited()


def test_touch_last_message_only_moves_forward():
    collection = MagicMock()
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
    repo = ConversationRepository({"conversations": collection})
    cid = ObjectId()
    at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session = object()

    assert asyncio.run(repo.touch_last_message(str(cid), "Merhaba", at, session=session)) is False

    query, update = collection.update_one.await_args.args
    assert query["_id"] == cid
    assert {"last_message_at": {"$lte": at}} in query["$or"]
    assert update == {"$set": {"last_message": "Merhaba", "last_message_at": at}}
    assert collection.update_one.await_args.kwargs["session"] is session


def test_list_for_user_sorted_newest_first():
    oid = ObjectId()
    cursor = cursor_returning([{"_id": oid, "participants": ["u1", "u2"]}])
    collection = MagicMock()
    collection.find.return_value = cursor
    repo = ConversationRepository({"conversations": collection})

    items = asyncio.run(repo.list_for_user("u1"))

    collection.find.assert_called_once_with({"participants": "u1"})
    cursor.sort.assert_called_once_with([("last_message_at", DESCENDING), ("_id", DESCENDING)])
    assert items == [{"_id": str(oid), "participants": ["u1", "u2"]}]


def test_message_create_uses_session_and_normalizes_ids():
    cid = ObjectId()
    mid = ObjectId()
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=mid))
    repo = MessageRepository({"messages": collection})
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session = object()

    doc = asyncio.run(repo.create(str(cid), "u1", "Merhaba", None, now, session=session))

    stored = collection.insert_one.await_args.args[0]
    assert stored["conversation_id"] == cid
    assert stored["is_read"] is False
    assert collection.insert_one.await_args.kwargs["session"] is session
    assert doc["_id"] == str(mid)
    assert doc["conversation_id"] == str(cid)


def test_messages_listed_oldest_first():
    cursor = cursor_returning([])
    collection = MagicMock()
    collection.find.return_value = cursor
    repo = MessageRepository({"messages": collection})

    asyncio.run(repo.list_for_conversation(str(ObjectId())))

    cursor.sort.assert_called_once_with([("created_at", ASCENDING), ("_id", ASCENDING)])


def test_mark_read_targets_other_senders_unread_messages():
    cid = ObjectId()
    collection = MagicMock()
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=3))
    repo = MessageRepository({"messages": collection})

    assert asyncio.run(repo.mark_read_for_recipient(str(cid), "u2")) == 3

    query, update = collection.update_many.await_args.args
    assert query == {"conversation_id": cid, "sender_id": {"$ne": "u2"}, "is_read": False}
    assert update == {"$set": {"is_read": True}}


def test_count_unread_without_conversations_skips_query():
    collection = MagicMock()
    collection.count_documents = AsyncMock()
    repo = MessageRepository({"messages": collection})

    assert asyncio.run(repo.count_unread([], "u1")) == 0
    collection.count_documents.assert_not_awaited()


def test_user_summaries_accept_object_id_users():
    oid = ObjectId()
    users = MagicMock()
    users.find.return_value = cursor_returning([{"_id": oid, "name": "Ayşe", "avatar": None}])
    db = MagicMock()
    db.get_collection.return_value = users
    repo = UserRepository(db)

    summaries = asyncio.run(repo.get_summaries([str(oid), str(oid), "legacy-id"]))

    query = users.find.call_args.args[0]
    assert query == {"_id": {"$in": [oid, "legacy-id"]}}
    assert summaries == {str(oid): {"id": str(oid), "name": "Ayşe", "avatar": None}}


def test_device_tokens_filtered_by_platform():
    collection = MagicMock()
    collection.find.return_value = cursor_returning([{"token": "tok-1"}, {"token": "tok-2"}])
    repo = DeviceRepository({"devices": collection})

    tokens = asyncio.run(repo.get_tokens("u1", platform="fcm"))

    assert tokens == ["tok-1", "tok-2"]
    assert collection.find.call_args.args[0] == {"user_id": "u1", "platform": "fcm"}


def test_run_in_transaction_hands_callback_to_driver(monkeypatch):
    session = MagicMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = False

    async def with_transaction(callback):
        return await callback(session)

    session.with_transaction = AsyncMock(side_effect=with_transaction)
    client = MagicMock()
    client.start_session = AsyncMock(return_value=session)
    monkeypatch.setattr(connection, "_client", client)

    async def write(s):
        assert s is session
        return {"_id": "m1"}

    assert asyncio.run(connection.run_in_transaction(write)) == {"_id": "m1"}
    session.with_transaction.assert_awaited_once_with(write)
    session.__aexit__.assert_awaited_once()
