"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user   → decode JWT, load user from DB, return User
  require_role(...)  → restrict to specific roles
"""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.jwt import decode_token
from billtrack.database import get_db
from billtrack.middleware.exceptions import AuthenticationError, PermissionDeniedError
from billtrack.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the bearer token and load the (active) user it names."""
    if not token:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise AuthenticationError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return user


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory — restrict to one or more roles.

    Usage:
        @router.post("/users")
        async def create(user: User = Depends(require_role(UserRole.OWNER, UserRole.MANAGER))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError(
                f"Requires role: {', '.join(r.value for r in roles)}"
            )
        return user

    return _check


require_manager = require_role(UserRole.OWNER, UserRole.MANAGER)
