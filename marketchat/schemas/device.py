from pydantic import BaseModel, Field

from marketchat.models.device import PushPlatform


class DeviceRegister(BaseModel):

    platform: PushPlatform
    token: str = Field(min_length=1, max_length=4096)
