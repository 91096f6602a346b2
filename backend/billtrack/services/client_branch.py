"""Client branch CRUD. Branch names are unique within a client."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from billtrack.models.client_branch import ClientBranch
from billtrack.schemas.client_department import (
    ClientBranchCreate,
    ClientBranchOut,
    ClientBranchUpdate,
)
from billtrack.services.client import fetch_client
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

INVALIDATE_ON_BRANCH = ("client-branches:*", "client-branch:*")


async def fetch_branch(db: AsyncSession, branch_id: str) -> ClientBranch:
    result = await db.execute(
        select(ClientBranch).where(
            ClientBranch.id == branch_id,
            ClientBranch.is_deleted == False,  # noqa: E712
        )
    )
    branch = result.scalar_one_or_none()
    if not branch:
        raise ResourceNotFoundError("Client branch", branch_id)
    return branch


async def _ensure_name_free(
    db: AsyncSession,
    client_id: str,
    name: str,
    exclude_id: str | None = None,
) -> None:
    query = select(ClientBranch.id).where(
        ClientBranch.client_id == client_id,
        ClientBranch.name == name,
    )
    if exclude_id:
        query = query.where(ClientBranch.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(
            f"Branch '{name}' already exists for this client",
            details={"client_id": client_id, "name": name},
        )


def _dump(branch: ClientBranch) -> dict:
    return ClientBranchOut.model_validate(branch).model_dump(mode="json")


async def list_branches(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    client_id: str | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key(
        "client-branches",
        page=page_index, size=page_size, search=search, client=client_id,
    )

    async def load():
        query = select(ClientBranch).where(ClientBranch.is_deleted == False)  # noqa: E712
        if client_id:
            query = query.where(ClientBranch.client_id == client_id)
        if search:
            like = f"%{search}%"
            query = query.where(or_(
                ClientBranch.name.ilike(like),
                ClientBranch.address.ilike(like),
            ))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(ClientBranch.name).offset(offset).limit(page_size)
        )
        return {
            "items": [_dump(b) for b in result.scalars().all()],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)


async def get_branch(db: AsyncSession, cache: ResponseCache, branch_id: str) -> dict:
    async def load():
        return _dump(await fetch_branch(db, branch_id))

    return await cache.remember(f"client-branch:{branch_id}", load)


async def create_branch(db: AsyncSession, cache: ResponseCache, data: ClientBranchCreate) -> dict:
    async with atomic(db):
        await fetch_client(db, data.client_id)
        await _ensure_name_free(db, data.client_id, data.name)
        branch = ClientBranch(id=str(uuid.uuid4()), **data.model_dump())
        db.add(branch)
        await db.flush()

    logger.info(f"Created client branch {branch.id} ({branch.name})")
    await cache.invalidate(*INVALIDATE_ON_BRANCH)
    return _dump(branch)


async def update_branch(
    db: AsyncSession,
    cache: ResponseCache,
    branch_id: str,
    data: ClientBranchUpdate,
) -> dict:
    updates = data.model_dump(exclude_unset=True)
    async with atomic(db):
        branch = await fetch_branch(db, branch_id)
        if updates.get("name") and updates["name"] != branch.name:
            await _ensure_name_free(db, branch.client_id, updates["name"], exclude_id=branch.id)
        for key, value in updates.items():
            if value is not None or key in ("phone", "email"):
                setattr(branch, key, value)
        await db.flush()

    await cache.invalidate(*INVALIDATE_ON_BRANCH)
    return _dump(branch)


async def delete_branch(db: AsyncSession, cache: ResponseCache, branch_id: str) -> dict:
    async with atomic(db):
        branch = await fetch_branch(db, branch_id)
        branch.soft_delete()
        await db.flush()

    logger.info(f"Deleted client branch {branch.id} ({branch.name})")
    await cache.invalidate(*INVALIDATE_ON_BRANCH)
    return _dump(branch)
