from fastapi import APIRouter, Depends

from marketchat.services.realtime_gateway import RealtimeGateway
from marketchat.utils.dependencies import get_current_user, get_gateway


router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("/{user_id}")
async def presence(user_id: str, current_user: dict = Depends(get_current_user), gateway: RealtimeGateway = Depends(get_gateway)):
    """Online status as seen by this process's socket gateway."""
    return {"userId": user_id, "online": gateway.is_online(user_id)}
