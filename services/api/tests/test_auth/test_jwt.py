"""Tests for JWTService token creation and validation."""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt
import pytest

from app.auth.jwt import JWTExpiredError, JWTInvalidError, JWTService
from app.settings import AppSettings

TEST_SECRET = "jwt-unit-test-secret-value-of-sufficient-length"


def _service(**overrides: Any) -> JWTService:
    return JWTService(AppSettings(JWT_SECRET=TEST_SECRET, **overrides))


def test_create_and_decode_access_token() -> None:
    svc = _service()
    token = svc.create_access_token(42)
    assert svc.decode_access_token(token) == 42


def test_create_and_decode_refresh_token() -> None:
    svc = _service()
    token = svc.create_refresh_token(99)
    assert svc.decode_refresh_token(token) == 99


def test_create_token_pair() -> None:
    svc = _service()
    access, refresh = svc.create_token_pair(7)
    assert access != refresh
    assert svc.decode_access_token(access) == 7
    assert svc.decode_refresh_token(refresh) == 7


def test_claims_shape() -> None:
    token = _service().create_access_token(5)
    payload = pyjwt.decode(token, TEST_SECRET, algorithms=["HS256"])
    assert payload["sub"] == "5"
    assert payload["type"] == "access"
    assert payload["exp"] > payload["iat"]


def test_decode_access_rejects_refresh_token() -> None:
    svc = _service()
    with pytest.raises(JWTInvalidError, match="not an access token"):
        svc.decode_access_token(svc.create_refresh_token(1))


def test_decode_refresh_rejects_access_token() -> None:
    svc = _service()
    with pytest.raises(JWTInvalidError, match="not a refresh token"):
        svc.decode_refresh_token(svc.create_access_token(1))


def test_expired_access_token() -> None:
    payload = {
        "sub": "1",
        "type": "access",
        "iat": datetime.now(UTC) - timedelta(hours=1),
        "exp": datetime.now(UTC) - timedelta(seconds=1),
    }
    token = pyjwt.encode(payload, TEST_SECRET, algorithm="HS256")
    with pytest.raises(JWTExpiredError, match="expired"):
        _service().decode_access_token(token)


def test_invalid_signature() -> None:
    payload = {"sub": "1", "type": "access", "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = pyjwt.encode(payload, "some-other-secret-of-sufficient-length-too", algorithm="HS256")
    with pytest.raises(JWTInvalidError, match="Invalid token"):
        _service().decode_access_token(token)


def test_malformed_token() -> None:
    with pytest.raises(JWTInvalidError, match="Invalid token"):
        _service().decode_access_token("not.a.jwt")


def _signed(**claims: Any) -> str:
    return pyjwt.encode(claims, TEST_SECRET, algorithm="HS256")


@pytest.mark.parametrize("missing", ["exp", "iat", "sub"])
def test_missing_required_claim(missing: str) -> None:
    now = datetime.now(UTC)
    claims: dict[str, Any] = {"sub": "1", "type": "access", "iat": now, "exp": now + timedelta(hours=1)}
    del claims[missing]
    with pytest.raises(JWTInvalidError, match=f"\"{missing}\""):
        _service().decode_access_token(_signed(**claims))


def test_non_numeric_sub_claim() -> None:
    now = datetime.now(UTC)
    token = _signed(sub="abc", type="access", iat=now, exp=now + timedelta(hours=1))
    with pytest.raises(JWTInvalidError, match="Invalid 'sub' claim"):
        _service().decode_access_token(token)


@pytest.mark.parametrize("secret", ["", "   "])
def test_empty_secret_rejected(secret: str) -> None:
    with pytest.raises(ValueError, match="JWT_SECRET"):
        JWTService(AppSettings(JWT_SECRET=secret))


def test_expire_seconds() -> None:
    svc = _service(JWT_ACCESS_TOKEN_EXPIRE_MINUTES=30, JWT_REFRESH_TOKEN_EXPIRE_DAYS=14)
    assert svc.access_expire_seconds == 1800
    assert svc.refresh_expire_seconds == 14 * 86400
