import asyncio
import logging
from typing import Optional, Set

from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget delivery of user notifications.

    ``notify`` only schedules the work; storing the notification and pushing it
    to devices happen in a background task whose failures are logged and never
    reach the caller.
    """

    def __init__(self, notification_repo: NotificationRepository, device_repo: DeviceRepository, push) -> None:
        self._notification_repo = notification_repo
        self._device_repo = device_repo
        self._push = push
        self._pending: Set[asyncio.Task] = set()

    def notify(self, user_id: str, type: str, title: str, body: str, link: Optional[str] = None) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(user_id, type, title, body, link))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, user_id: str, type: str, title: str, body: str, link: Optional[str]) -> None:
        try:
            await self._notification_repo.create(user_id, type, title, body, link)
        except Exception:
            logger.exception("Failed to store %s notification for user %s", type, user_id)
        if not self._push.enabled:
            return
        try:
            tokens = await self._device_repo.get_tokens(user_id, platform="fcm")
            await self._push.send_fcm(tokens, title, body, {"type": type, "link": link or ""})
        except Exception:
            logger.exception("Failed to push %s notification to user %s", type, user_id)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
