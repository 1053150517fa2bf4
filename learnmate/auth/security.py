"""JWT access tokens.

Learners sign in through the identity service, which issues HS256 access
tokens carrying `sub` (learner id), `role` and optionally `email`. This
API only verifies them; `create_access_token` is kept for the playback
gateway's service calls and for tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from learnmate.config.settings import get_settings


ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Sign `data` as an access token.

    `exp`, `iat` and `type` are added on top of the given claims.
    """
    settings = get_settings()
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)

    claims = {
        **data,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry and return the claims.

    Raises:
        JWTError: On a bad signature, an expired token, a refresh or other
            non-access token, or a token without a subject
    """
    settings = get_settings()
    claims = jwt.decode(token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])

    if claims.get("type") != ACCESS_TOKEN_TYPE:
        msg = f"Invalid token type: expected '{ACCESS_TOKEN_TYPE}'"
        raise JWTError(msg)
    if not claims.get("sub"):
        msg = "Access token missing sub claim"
        raise JWTError(msg)

    return claims
