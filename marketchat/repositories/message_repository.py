from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ASCENDING

from marketchat.database.utils import normalize_id, to_object_id
from marketchat.models.message import MessageDocument


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])
        await self.collection.create_index([("conversation_id", ASCENDING), ("is_read", ASCENDING)])

    async def create(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        image_url: Optional[str],
        created_at: datetime,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": to_object_id(conversation_id),
            "sender_id": sender_id,
            "content": content,
            "image_url": image_url,
            "is_read": False,
            "created_at": created_at,
        }
        result = await self.collection.insert_one(doc, session=session)
        doc["_id"] = result.inserted_id
        return normalize_id(doc, "conversation_id")

    async def list_for_conversation(self, conversation_id: str) -> List[MessageDocument]:
        query = {"conversation_id": to_object_id(conversation_id)}
        sort = [("created_at", ASCENDING), ("_id", ASCENDING)]
        items = await self.collection.find(query).sort(sort).to_list(length=None)
        return [normalize_id(it, "conversation_id") for it in items]

    async def mark_read_for_recipient(
        self,
        conversation_id: str,
        reader_id: str,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> int:
        result = await self.collection.update_many(
            {
                "conversation_id": to_object_id(conversation_id),
                "sender_id": {"$ne": reader_id},
                "is_read": False,
            },
            {"$set": {"is_read": True}},
            session=session,
        )
        return result.modified_count or 0

    async def count_unread(self, conversation_ids: List[str], reader_id: str) -> int:
        if not conversation_ids:
            return 0
        oids = [oid for oid in (to_object_id(cid) for cid in conversation_ids) if oid is not None]
        return await self.collection.count_documents(
            {"conversation_id": {"$in": oids}, "sender_id": {"$ne": reader_id}, "is_read": False}
        )
