import logging
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from pyfcm import FCMNotification

from marketchat.core.config import Settings

logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        return


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        # pyfcm is sync; each call goes to the threadpool
        for token in tokens:
            try:
                await run_in_threadpool(
                    self._client.notify,
                    fcm_token=token,
                    notification_title=title,
                    notification_body=body,
                    data_payload=data or {},
                )
            except Exception:
                logger.warning("FCM push to token %s... failed", token[:12], exc_info=True)


def build_push(settings: Settings):
    if not settings.FCM_SERVICE_ACCOUNT_FILE or not settings.FCM_PROJECT_ID:
        logger.info("FCM not configured; push notifications disabled")
        return NoopPush()
    return FcmPush(settings.FCM_SERVICE_ACCOUNT_FILE, settings.FCM_PROJECT_ID)
