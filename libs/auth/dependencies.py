from typing import Annotated, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser, Role
from libs.common.config import get_settings

settings = get_settings()
security = HTTPBearer()


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """
    Verify the bearer JWT and return the identity it carries.

    Tokens are issued by the auth service; this service only consumes them.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
        return AuthUser(**payload)
    except (JWTError, ValidationError):
        raise credentials_exception


def has_capability(identity: AuthUser, required_role: str) -> bool:
    """Admins may do anything; everyone else needs the exact role."""
    if identity.role == Role.ADMIN.value:
        return True
    return identity.role == required_role


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory: allow the request if the identity holds any of ``roles``.
    """

    async def _check(
        current_user: Annotated[AuthUser, Depends(get_current_user)]
    ) -> AuthUser:
        if not any(has_capability(current_user, role) for role in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {current_user.role} is not authorized to access this route",
            )
        return current_user

    return _check


require_admin = require_roles(Role.ADMIN.value)
