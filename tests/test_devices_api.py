from unittest.mock import AsyncMock

from helpers import auth_headers
from marketchat.utils.dependencies import get_device_repository


def test_register_device(app, client):
    repo = AsyncMock()
    repo.register.return_value = {"user_id": "u1", "platform": "fcm", "token": "tok-1"}
    app.dependency_overrides[get_device_repository] = lambda: repo

    response = client.post("/devices/register", json={"platform": "fcm", "token": "tok-1"}, headers=auth_headers("u1"))

    assert response.status_code == 200
    assert response.json() == {"ok": True, "device": {"platform": "fcm", "token": "tok-1"}}
    repo.register.assert_awaited_once_with("u1", "fcm", "tok-1")


def test_register_device_rejects_unknown_platform(app, client):
    app.dependency_overrides[get_device_repository] = lambda: AsyncMock()

    response = client.post("/devices/register", json={"platform": "sms", "token": "tok-1"}, headers=auth_headers("u1"))

    assert response.status_code == 400
    assert "platform" in response.json()["details"]
