"""
Role-Based Access Control (RBAC) dependencies.

Every protected route resolves a ``CurrentUser`` from the bearer token and
then checks the stored role against the route's allow-list.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from jobwork.api.deps import get_storage
from jobwork.core.config import settings
from jobwork.core.errors import AuthenticationError, PermissionDenied
from jobwork.core.security import decode_token
from jobwork.storage import Storage
from jobwork.storage.entities import UserRole

security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    """Authenticated caller. ``role`` always comes from storage."""
    id: str
    email: str
    role: str
    name: Optional[str] = None
    company_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _from_stored(user) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        name=user.name,
        company_id=user.company_id,
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    storage: Storage = Depends(get_storage),
) -> CurrentUser:
    """Resolve the caller from a bearer JWT, or the legacy email header if enabled."""
    if credentials is not None and credentials.credentials:
        payload = decode_token(credentials.credentials)
        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id or not email:
            raise AuthenticationError("Invalid token")

        user = storage.get_user(str(user_id))
        if user is None or user.email != str(email).strip().lower():
            raise AuthenticationError("User not found")
        return _from_stored(user)

    legacy_email = request.headers.get("X-User-Email")
    if settings.ALLOW_LEGACY_EMAIL_HEADER and legacy_email:
        user = storage.get_user_by_email(legacy_email)
        if user is None:
            raise AuthenticationError("User not found")
        return _from_stored(user)

    raise AuthenticationError("Authentication required")


class RoleChecker:
    """Dependency that admits only the listed roles."""

    def __init__(self, *roles: UserRole):
        self.allowed = {r.value for r in roles}

    async def __call__(self, user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in self.allowed:
            raise PermissionDenied("Insufficient permissions")
        return user


require_buyer = RoleChecker(UserRole.BUYER)
require_supplier = RoleChecker(UserRole.SUPPLIER)
require_admin = RoleChecker(UserRole.ADMIN)
require_buyer_or_admin = RoleChecker(UserRole.BUYER, UserRole.ADMIN)
