from typing import Any, Dict, Iterable, List, Union

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.database.utils import to_object_id


def _id_variants(user_ids: Iterable[str]) -> List[Union[str, ObjectId]]:
    # marketplace users are keyed by ObjectId, tokens carry the hex string
    variants: List[Union[str, ObjectId]] = []
    for uid in user_ids:
        oid = to_object_id(uid)
        variants.append(oid if oid is not None else uid)
    return variants


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def exists(self, user_id: str) -> bool:
        count = await self._collection.count_documents({"_id": {"$in": _id_variants([user_id])}}, limit=1)
        return count > 0

    async def get_summaries(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        cursor = self._collection.find({"_id": {"$in": _id_variants(ids)}}, {"name": 1, "avatar": 1})
        summaries: Dict[str, Dict[str, Any]] = {}
        for user in await cursor.to_list(length=None):
            uid = str(user["_id"])
            summaries[uid] = {"id": uid, "name": user.get("name"), "avatar": user.get("avatar")}
        return summaries
