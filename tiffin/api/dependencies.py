"""Request dependencies: database handle and the authenticated user."""

from typing import Awaitable, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tiffin.errors import AuthenticationError, PermissionDeniedError
from tiffin.models import Role, User
from tiffin.services.auth import AuthService
from tiffin.state.repository import Database, get_database

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> Database:
    """Database bound to the application's state manager."""
    return await get_database()


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> User | None:
    """The caller if a bearer token was sent, else ``None``."""
    if credentials is None:
        return None
    return await AuthService(db).authenticate(credentials.credentials)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def require_role(*roles: Role) -> Callable[..., Awaitable[User]]:
    """Dependency factory allowing only users with one of ``roles``."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return dependency


customer_user = require_role(Role.CUSTOMER)
vendor_user = require_role(Role.VENDOR)
partner_user = require_role(Role.DELIVERY_PARTNER)
admin_user = require_role(Role.ADMIN)
store_manager = require_role(Role.VENDOR, Role.ADMIN)
