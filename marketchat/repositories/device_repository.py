from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.database.utils import utcnow
from marketchat.models.device import DeviceDocument, PushPlatform


class DeviceRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["devices"]

    async def register(self, user_id: str, platform: PushPlatform, token: str) -> DeviceDocument:
        await self.collection.update_one(
            {"user_id": user_id, "platform": platform, "token": token},
            {"$set": {"last_seen_at": utcnow()}},
            upsert=True,
        )
        return {"user_id": user_id, "platform": platform, "token": token}

    async def get_tokens(self, user_id: str, platform: Optional[str] = None) -> List[str]:
        query: Dict[str, Any] = {"user_id": user_id}
        if platform:
            query["platform"] = platform
        items = await self.collection.find(query, {"token": 1}).to_list(length=100)
        return [it["token"] for it in items]
