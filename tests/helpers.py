from marketchat.utils.security import create_access_token


def auth_headers(user_id, name=None):
    return {"Authorization": f"Bearer {create_access_token(user_id, name)}"}


def ws_url(user_id, name=None):
    return f"/messages/ws?token={create_access_token(user_id, name)}"


def send(ws, event, data=None):
    ws.send_json({"event": event, "data": data})


def expect(ws, event):
    frame = ws.receive_json()
    assert frame["event"] == event, frame
    return frame["data"]
