from jose import jwt

from marketchat.utils.security import create_access_token, verify_token


def test_token_round_trip():
    payload = verify_token(create_access_token("u1", "Ayşe"))
    assert payload.sub == "u1"
    assert payload.name == "Ayşe"


def test_token_without_name():
    payload = verify_token(create_access_token("u1"))
    assert payload.sub == "u1"
    assert payload.name is None


def test_rejects_missing_garbage_and_expired_tokens():
    assert verify_token(None) is None
    assert verify_token("") is None
    assert verify_token("not-a-jwt") is None
    assert verify_token(create_access_token("u1", expires_minutes=-1)) is None


def test_rejects_foreign_signature():
    forged = jwt.encode({"sub": "u1", "exp": 4102444800}, "another-secret", algorithm="HS256")
    assert verify_token(forged) is None


def test_rejects_token_without_subject():
    token = jwt.encode({"exp": 4102444800}, "test-secret", algorithm="HS256")
    assert verify_token(token) is None
