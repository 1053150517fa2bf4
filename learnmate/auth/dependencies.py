"""FastAPI dependencies resolving the learner behind a request.

Enrollment routes require a learner; catalog reads accept anonymous
callers; lesson cache management needs a course admin.
"""

from datetime import UTC, datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from learnmate.auth.permissions import UserRole, has_permission
from learnmate.auth.schemas import AuthenticatedUser
from learnmate.auth.security import decode_access_token
from learnmate.core.context import set_user_id


BEARER_SCHEME = "bearer"


def get_token_from_header(request: Request) -> str | None:
    """Bearer token from the Authorization header, if well formed."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token or " " in token:
        return None
    return token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def learner_from_token(token: str) -> AuthenticatedUser:
    """Decode a token into the learner it identifies.

    Raises:
        JWTError: If the token is invalid or its subject is not a UUID
    """
    claims: dict[str, Any] = decode_access_token(token)
    try:
        learner_id = UUID(str(claims["sub"]))
    except ValueError as e:
        msg = "Invalid subject claim"
        raise JWTError(msg) from e

    iat = claims.get("iat")
    learner = AuthenticatedUser(
        id=learner_id,
        email=claims.get("email"),
        role=claims.get("role") or UserRole.USER.value,
        issued_at=datetime.fromtimestamp(iat, tz=UTC) if iat else None,
    )
    set_user_id(learner.id)
    return learner


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Authenticated learner.

    Raises:
        HTTPException(401): Missing, invalid or expired token
    """
    if not token:
        raise _unauthorized("Access token not provided")
    try:
        return learner_from_token(token)
    except JWTError as e:
        raise _unauthorized("Invalid or expired token") from e


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser | None:
    """Learner when a valid token is sent; anonymous callers get None."""
    if not token:
        return None
    try:
        return learner_from_token(token)
    except JWTError:
        return None


def require_permission(required_role: UserRole):
    """Dependency admitting `required_role` and every role above it."""

    async def permission_checker(
        user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return permission_checker


# ==============================================================================
# Annotated shortcuts
# ==============================================================================

CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
OptionalUser = Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)]
CourseAdminUser = Annotated[
    AuthenticatedUser, Depends(require_permission(UserRole.COURSE_ADMIN))
]
