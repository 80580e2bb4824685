from datetime import timedelta

from app.core.security import (
    ACCESS_TOKEN_TYPE,
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)


def test_token_round_trip():
    token = create_access_token({"sub": 42})
    payload = decode_token(token)
    assert payload["sub"] == "42"
    assert payload["type"] == ACCESS_TOKEN_TYPE
    assert payload["jti"]
    assert payload["exp"] > payload["iat"]


def test_expired_token_is_rejected():
    token = create_access_token({"sub": 1}, expires_delta=timedelta(seconds=-5))
    assert decode_token(token) is None


def test_tampered_token_is_rejected():
    token = create_access_token({"sub": 1})
    assert decode_token(token[:-2] + "xx") is None


def test_password_hashing():
    hashed = get_password_hash("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_non_bcrypt_hash_never_matches():
    assert not verify_password("secret123", "plain-text-from-an-old-import")
