from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.database.utils import normalize_id, utcnow
from marketchat.models.notification import NotificationDocument, NotificationType


class NotificationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["notifications"]

    async def create(
        self, user_id: str, type: NotificationType, title: str, message: str, link: Optional[str] = None
    ) -> NotificationDocument:
        doc: Dict[str, Any] = {
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "link": link,
            "is_read": False,
            "created_at": utcnow(),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return normalize_id(doc)
