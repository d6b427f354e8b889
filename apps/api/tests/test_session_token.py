from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import settings
from services.session_token import SESSION_TOKEN_TYPE, TOKEN_ISSUER, create_session_token, decode_session_token


def _encode(claims):
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_issued_token_round_trips_subject_and_email():
    issued = create_session_token("user-1", "user-1@example.com", expires_hours=2)
    payload = decode_session_token(issued["token"])

    assert payload["sub"] == "user-1"
    assert payload["email"] == "user-1@example.com"
    assert payload["iss"] == TOKEN_ISSUER
    expected_expiry = datetime.now(timezone.utc) + timedelta(hours=2)
    assert abs(issued["expires_at"] - expected_expiry.timestamp()) < 60


def test_blank_subject_cannot_be_issued():
    with pytest.raises(ValueError):
        create_session_token("  ")


def test_token_signed_with_other_secret_is_rejected():
    issued = create_session_token("user-1", secret="a-completely-different-secret-value")
    with pytest.raises(ValueError, match="Couldn't validate JWT"):
        decode_session_token(issued["token"])


def test_expired_token_is_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = _encode({
        "iss": TOKEN_ISSUER,
        "sub": "user-1",
        "type": SESSION_TOKEN_TYPE,
        "iat": int(past.timestamp()),
        "exp": int((past + timedelta(hours=1)).timestamp()),
    })
    with pytest.raises(ValueError, match="expired"):
        decode_session_token(token)


@pytest.mark.parametrize(
    "overrides",
    [{"type": "refresh"}, {"iss": "someone-else"}, {"sub": ""}],
)
def test_wrong_claims_are_rejected(overrides):
    now = datetime.now(timezone.utc)
    claims = {
        "iss": TOKEN_ISSUER,
        "sub": "user-1",
        "type": SESSION_TOKEN_TYPE,
        "exp": int((now + timedelta(hours=1)).timestamp()),
    }
    claims.update(overrides)
    with pytest.raises(ValueError):
        decode_session_token(_encode(claims))
