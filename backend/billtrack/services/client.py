"""Client CRUD with cache-aside reads."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from billtrack.models.client import Client
from billtrack.schemas.client import ClientCreate, ClientOut, ClientUpdate
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

INVALIDATE_ON_CLIENT = ("clients:*", "client:*")


async def fetch_client(db: AsyncSession, client_id: str) -> Client:
    result = await db.execute(
        select(Client).where(Client.id == client_id, Client.is_deleted == False)  # noqa: E712
    )
    client = result.scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", client_id)
    return client


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
    # the unique index also covers soft-deleted rows
    query = select(Client.id).where(Client.name == name)
    if exclude_id:
        query = query.where(Client.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(f"Client '{name}' already exists", details={"name": name})


def _dump(client: Client) -> dict:
    return ClientOut.model_validate(client).model_dump(mode="json")


async def list_clients(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key("clients", page=page_index, size=page_size, search=search, status=status)

    async def load():
        query = select(Client).where(Client.is_deleted == False)  # noqa: E712
        if status:
            query = query.where(Client.status == status)
        if search:
            like = f"%{search}%"
            query = query.where(or_(Client.name.ilike(like), Client.tax_id.ilike(like)))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(query.order_by(Client.name).offset(offset).limit(page_size))
        return {
            "items": [_dump(c) for c in result.scalars().all()],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)


async def get_client(db: AsyncSession, cache: ResponseCache, client_id: str) -> dict:
    async def load():
        return _dump(await fetch_client(db, client_id))

    return await cache.remember(f"client:{client_id}", load)


async def create_client(db: AsyncSession, cache: ResponseCache, data: ClientCreate) -> dict:
    async with atomic(db):
        await _ensure_name_free(db, data.name)
        client = Client(id=str(uuid.uuid4()), **data.model_dump())
        db.add(client)
        await db.flush()

    logger.info(f"Created client {client.id} ({client.name})")
    await cache.invalidate(*INVALIDATE_ON_CLIENT)
    return _dump(client)


async def update_client(
    db: AsyncSession,
    cache: ResponseCache,
    client_id: str,
    data: ClientUpdate,
) -> dict:
    updates = data.model_dump(exclude_unset=True)
    async with atomic(db):
        client = await fetch_client(db, client_id)
        if updates.get("name") and updates["name"] != client.name:
            await _ensure_name_free(db, updates["name"], exclude_id=client.id)
        for key, value in updates.items():
            if value is not None or key in ("tax_id", "business_style", "billing_address"):
                setattr(client, key, value)
        await db.flush()

    await cache.invalidate(*INVALIDATE_ON_CLIENT)
    return _dump(client)


async def delete_client(db: AsyncSession, cache: ResponseCache, client_id: str) -> dict:
    """Soft-delete a client; its departments and billings are left as they are."""
    async with atomic(db):
        client = await fetch_client(db, client_id)
        client.soft_delete()
        await db.flush()

    logger.info(f"Deleted client {client.id} ({client.name})")
    await cache.invalidate(*INVALIDATE_ON_CLIENT)
    return _dump(client)
