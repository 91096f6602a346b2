"""Management CLI.

Usage:
    python -m billtrack.cli init-db                              # Create all tables
    python -m billtrack.cli create-user <username> <password> [role]
"""

import asyncio
import sys

from sqlalchemy import create_engine

from billtrack.config import settings
from billtrack.database import Base, async_session
from billtrack.middleware.exceptions import BillTrackError
from billtrack.models import UserRole
from billtrack.schemas.auth import UserCreate
from billtrack.services.user import create_user as create_user_record


def init_db():
    """Create every table directly (for local setups without Alembic)."""
    import billtrack.models  # noqa: F401

    engine = create_engine(settings.database_url_sync)
    Base.metadata.create_all(engine)
    print(f"  Created {len(Base.metadata.tables)} table(s)")


async def _create_user(username: str, password: str, role: UserRole) -> None:
    data = UserCreate(
        username=username,
        password=password,
        first_name=username,
        last_name=role.value.title(),
        role=role,
    )
    async with async_session() as db:
        user = await create_user_record(db, data)
    print(f"  Created {user.role.value} '{user.username}' ({user.id})")


def create_user(args: list[str]):
    if len(args) < 2:
        print("Usage: python -m billtrack.cli create-user <username> <password> [role]")
        sys.exit(2)
    role = UserRole(args[2]) if len(args) > 2 else UserRole.OWNER
    try:
        asyncio.run(_create_user(args[0], args[1], role))
    except BillTrackError as e:
        print(f"  FAILED: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "create-user":
        create_user(sys.argv[2:])
    else:
        print("Usage: python -m billtrack.cli [init-db|create-user]")
