import logging
from typing import Awaitable, Callable, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorDatabase

from marketchat.core.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    settings = get_settings()
    _client = AsyncIOMotorClient(settings.MONGO_URL, tz_aware=True)
    logger.info("MongoDB client created for database %s", settings.MONGO_DB_NAME)


async def close_mongo_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected")
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[get_settings().MONGO_DB_NAME]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()


async def run_in_transaction(callback: Callable[[AsyncIOMotorClientSession], Awaitable[T]]) -> T:
    """Run ``callback(session)`` as one multi-document transaction.

    Motor's ``with_transaction`` re-runs the callback when the transaction
    fails with a ``TransientTransactionError`` label (a write conflict with a
    concurrent sender, for one) and retries the commit on
    ``UnknownTransactionCommitResult``. The callback may therefore run more
    than once and must only touch the database.
    """
    async with await get_client().start_session() as session:
        return await session.with_transaction(callback)
