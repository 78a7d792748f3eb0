from fastapi import APIRouter, Depends

from marketchat.repositories.device_repository import DeviceRepository
from marketchat.schemas.device import DeviceRegister
from marketchat.utils.dependencies import get_current_user, get_device_repository


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(payload: DeviceRegister, current_user: dict = Depends(get_current_user), repo: DeviceRepository = Depends(get_device_repository)):
    doc = await repo.register(current_user["_id"], payload.platform, payload.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}
