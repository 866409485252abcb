"""Authentication for the Kahraba backend.

Tokens are issued by the external auth service. This module only verifies
them and turns the ``sub`` and ``role`` claims into an ActorContext for the
core services.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from kahraba.jobs import ActorRole

from .config import Settings, get_settings

# Bearer token scheme
security = HTTPBearer(auto_error=False)

# Roles a token may carry; "system" is reserved for internal transitions
TOKEN_ROLES = frozenset({ActorRole.CUSTOMER, ActorRole.ELECTRICIAN, ActorRole.ADMIN})


def create_access_token(
    actor_id: str,
    role: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
    name: str | None = None,
) -> str:
    """Create a JWT access token. Used by tests and local tooling."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": actor_id,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    if name:
        to_encode["name"] = name
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ActorContext:
    """Authenticated principal: who is calling and in which role."""

    def __init__(self, actor_id: str, role: ActorRole, name: str | None = None):
        self.actor_id = actor_id
        self.role = role
        self.name = name

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def __str__(self) -> str:
        return f"{self.role.value}:{self.actor_id}"


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ActorContext:
    """Resolve the caller from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, settings)
    actor_id = payload.get("sub")
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        role = ActorRole(payload.get("role"))
    except ValueError:
        role = None
    if role not in TOKEN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unsupported role: {payload.get('role')}",
        )

    return ActorContext(actor_id=actor_id, role=role, name=payload.get("name"))


CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]


def require_role(auth: ActorContext, *roles: ActorRole) -> None:
    """Raise 403 unless the caller has one of ``roles``."""
    if auth.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This endpoint requires role: {allowed}",
        )


async def get_admin_actor(auth: CurrentActor) -> ActorContext:
    require_role(auth, ActorRole.ADMIN)
    return auth


AdminActor = Annotated[ActorContext, Depends(get_admin_actor)]
