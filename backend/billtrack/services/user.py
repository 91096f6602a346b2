"""User accounts: creation and password login."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.jwt import create_access_token
from billtrack.auth.password import hash_password, verify_password
from billtrack.database import atomic
from billtrack.middleware.exceptions import AuthenticationError, ConflictError
from billtrack.models.user import User
from billtrack.schemas.auth import UserCreate, UserOut
from billtrack.services.department import fetch_department

logger = logging.getLogger(__name__)


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    async with atomic(db):
        existing = await db.execute(select(User.id).where(User.username == data.username))
        if existing.scalar_one_or_none():
            raise ConflictError(
                f"Username '{data.username}' is already taken",
                details={"username": data.username},
            )
        if data.department_id:
            await fetch_department(db, data.department_id)

        user = User(
            id=str(uuid.uuid4()),
            username=data.username,
            hashed_password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            department_id=data.department_id,
        )
        db.add(user)
        await db.flush()

    logger.info(f"Created user {user.id} ({user.username}, role={user.role.value})")
    return user


async def authenticate(db: AsyncSession, username: str, password: str) -> dict:
    """Check credentials and issue an access token."""
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid username or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    token = create_access_token(user_id=user.id, role=user.role.value)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": UserOut.model_validate(user).model_dump(mode="json"),
    }
