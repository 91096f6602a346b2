"""Client department CRUD.

Departments are the billable units: every billing points at one.  Names are
unique within a client.
"""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from billtrack.models.client_department import ClientDepartment
from billtrack.schemas.client_department import (
    ClientDepartmentCreate,
    ClientDepartmentOut,
    ClientDepartmentUpdate,
)
from billtrack.services.client import fetch_client
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

# department names appear in billing, collection and payment listings
INVALIDATE_ON_DEPARTMENT = (
    "client-departments:*", "client-department:*",
    "billings:*", "billing:*",
)


async def fetch_department(db: AsyncSession, department_id: str) -> ClientDepartment:
    result = await db.execute(
        select(ClientDepartment).where(
            ClientDepartment.id == department_id,
            ClientDepartment.is_deleted == False,  # noqa: E712
        )
    )
    department = result.scalar_one_or_none()
    if not department:
        raise ResourceNotFoundError("Client department", department_id)
    return department


async def _ensure_name_free(
    db: AsyncSession,
    client_id: str,
    name: str,
    exclude_id: str | None = None,
) -> None:
    query = select(ClientDepartment.id).where(
        ClientDepartment.client_id == client_id,
        ClientDepartment.name == name,
    )
    if exclude_id:
        query = query.where(ClientDepartment.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(
            f"Department '{name}' already exists for this client",
            details={"client_id": client_id, "name": name},
        )


def _dump(department: ClientDepartment) -> dict:
    return ClientDepartmentOut.model_validate(department).model_dump(mode="json")


async def list_departments(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    client_id: str | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key(
        "client-departments",
        page=page_index, size=page_size, search=search, client=client_id,
    )

    async def load():
        query = select(ClientDepartment).where(ClientDepartment.is_deleted == False)  # noqa: E712
        if client_id:
            query = query.where(ClientDepartment.client_id == client_id)
        if search:
            like = f"%{search}%"
            query = query.where(or_(
                ClientDepartment.name.ilike(like),
                ClientDepartment.email.ilike(like),
            ))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(ClientDepartment.name).offset(offset).limit(page_size)
        )
        return {
            "items": [_dump(d) for d in result.scalars().all()],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)


async def get_department(db: AsyncSession, cache: ResponseCache, department_id: str) -> dict:
    async def load():
        return _dump(await fetch_department(db, department_id))

    return await cache.remember(f"client-department:{department_id}", load)


async def create_department(
    db: AsyncSession,
    cache: ResponseCache,
    data: ClientDepartmentCreate,
) -> dict:
    async with atomic(db):
        await fetch_client(db, data.client_id)
        await _ensure_name_free(db, data.client_id, data.name)
        department = ClientDepartment(id=str(uuid.uuid4()), **data.model_dump())
        db.add(department)
        await db.flush()

    logger.info(f"Created client department {department.id} ({department.name})")
    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)


async def update_department(
    db: AsyncSession,
    cache: ResponseCache,
    department_id: str,
    data: ClientDepartmentUpdate,
) -> dict:
    updates = data.model_dump(exclude_unset=True)
    async with atomic(db):
        department = await fetch_department(db, department_id)
        if updates.get("name") and updates["name"] != department.name:
            await _ensure_name_free(
                db, department.client_id, updates["name"], exclude_id=department.id
            )
        for key, value in updates.items():
            if value is not None or key in ("address", "phone", "email"):
                setattr(department, key, value)
        await db.flush()

    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)


async def delete_department(db: AsyncSession, cache: ResponseCache, department_id: str) -> dict:
    async with atomic(db):
        department = await fetch_department(db, department_id)
        department.soft_delete()
        await db.flush()

    logger.info(f"Deleted client department {department.id} ({department.name})")
    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)
