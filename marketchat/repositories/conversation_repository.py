from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from marketchat.database.utils import normalize_id, to_object_id, utcnow
from marketchat.models.conversation import ConversationDocument


def participant_key(user_a: str, user_b: str) -> str:
    return ":".join(sorted([user_a, user_b]))


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participant_key", ASCENDING)], unique=True)
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        return normalize_id(await self.collection.find_one({"_id": oid}))

    async def find_between(self, user_a: str, user_b: str) -> Optional[ConversationDocument]:
        doc = await self.collection.find_one({"participant_key": participant_key(user_a, user_b)})
        return normalize_id(doc)

    async def get_or_create_one_to_one(self, user_a: str, user_b: str) -> Tuple[ConversationDocument, bool]:
        existing = await self.find_between(user_a, user_b)
        if existing:
            return existing, False
        now = utcnow()
        doc: Dict[str, Any] = {
            "participants": [user_a, user_b],
            "participant_key": participant_key(user_a, user_b),
            "last_message": None,
            "last_message_at": now,
            "created_at": now,
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            # lost the race against a concurrent insert for the same pair
            existing = await self.find_between(user_a, user_b)
            if existing is None:
                raise
            return existing, False
        doc["_id"] = str(result.inserted_id)
        return doc, True

    async def touch_last_message(
        self,
        conversation_id: str,
        preview: str,
        at,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        # last_message_at only ever moves forward
        result = await self.collection.update_one(
            {
                "_id": to_object_id(conversation_id),
                "$or": [{"last_message_at": None}, {"last_message_at": {"$lte": at}}],
            },
            {"$set": {"last_message": preview, "last_message_at": at}},
            session=session,
        )
        return bool(result.matched_count)

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        sort = [("last_message_at", DESCENDING), ("_id", DESCENDING)]
        items = await self.collection.find({"participants": user_id}).sort(sort).to_list(length=None)
        return [normalize_id(it) for it in items]

    async def ids_for_user(self, user_id: str) -> List[str]:
        cursor = self.collection.find({"participants": user_id}, {"_id": 1})
        return [str(it["_id"]) for it in await cursor.to_list(length=None)]
