# backend/wellness/auth.py
"""
Bearer-token authentication.

Tokens are HS256 JWTs carrying the user id in ``sub`` and the user's role
in ``role``. The role claim is normalized here, once, into RoleName; an
unknown role is treated the same as a bad token.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable, Dict, Optional, cast

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError
from sqlalchemy.orm import Session

from .core.config import settings
from .core.enums import RoleName
from .core.exceptions import ForbiddenException, UnauthorizedException
from .database import get_db
from .repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request."""

    id: str
    role: RoleName


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def create_access_token(
    user_id: str, role: RoleName | str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: Stored as the ``sub`` claim
        role: Stored as the ``role`` claim
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    role_value = role.value if isinstance(role, RoleName) else role
    to_encode: Dict[str, Any] = {"sub": user_id, "role": role_value, "exp": expire}
    encoded_jwt = cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm),
    )
    logger.debug(f"Created access token for user: {user_id}")
    return encoded_jwt


def decode_access_token(token: str) -> Dict[str, Any]:
    payload_raw = jwt.decode(
        token,
        _secret_value(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def principal_from_token(token: Optional[str]) -> Principal:
    """
    Verify a bearer token and build the caller's principal.

    Raises:
        UnauthorizedException: Missing, invalid or expired token, or unknown role
    """
    if not token:
        raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")
    try:
        role = RoleName.normalize(payload.get("role"))
    except ValueError:
        logger.warning(f"Token for user {user_id} carries unknown role {payload.get('role')!r}")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_ROLE")
    return Principal(id=user_id, role=role)


def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme_optional),
    db: Session = Depends(get_db),
) -> Principal:
    """Dependency resolving the bearer token to an active user's principal."""
    principal = principal_from_token(token)
    if not RepositoryFactory.create_user_repository(db).get_active(principal.id):
        logger.warning(f"Token for unknown or inactive user {principal.id}")
        raise UnauthorizedException("User not found or inactive", code="INVALID_TOKEN")
    return principal


def require_role(*roles: RoleName) -> Callable[..., Principal]:
    """Dependency factory admitting only the given roles."""
    allowed = frozenset(roles)

    def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise ForbiddenException(
                "You do not have permission to perform this action",
                code="ROLE_FORBIDDEN",
                details={"role": principal.role.value},
            )
        return principal

    return _check
