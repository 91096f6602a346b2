"""Internal staff departments (not client departments)."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from billtrack.models.department import Department
from billtrack.schemas.department import DepartmentCreate, DepartmentOut, DepartmentUpdate
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

INVALIDATE_ON_DEPARTMENT = ("departments:*", "department:*")


async def fetch_department(db: AsyncSession, department_id: str) -> Department:
    result = await db.execute(
        select(Department).where(
            Department.id == department_id,
            Department.is_deleted == False,  # noqa: E712
        )
    )
    department = result.scalar_one_or_none()
    if not department:
        raise ResourceNotFoundError("Department", department_id)
    return department


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
    query = select(Department.id).where(Department.name == name)
    if exclude_id:
        query = query.where(Department.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(f"Department '{name}' already exists", details={"name": name})


def _dump(department: Department) -> dict:
    return DepartmentOut.model_validate(department).model_dump(mode="json")


async def list_departments(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key("departments", page=page_index, size=page_size, search=search)

    async def load():
        query = select(Department).where(Department.is_deleted == False)  # noqa: E712
        if search:
            query = query.where(Department.name.ilike(f"%{search}%"))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(Department.name).offset(offset).limit(page_size)
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

    return await cache.remember(f"department:{department_id}", load)


async def create_department(db: AsyncSession, cache: ResponseCache, data: DepartmentCreate) -> dict:
    async with atomic(db):
        await _ensure_name_free(db, data.name)
        department = Department(id=str(uuid.uuid4()), **data.model_dump())
        db.add(department)
        await db.flush()

    logger.info(f"Created department {department.id} ({department.name})")
    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)


async def update_department(
    db: AsyncSession,
    cache: ResponseCache,
    department_id: str,
    data: DepartmentUpdate,
) -> dict:
    updates = data.model_dump(exclude_unset=True)
    async with atomic(db):
        department = await fetch_department(db, department_id)
        if updates.get("name") and updates["name"] != department.name:
            await _ensure_name_free(db, updates["name"], exclude_id=department.id)
        for key, value in updates.items():
            if value is not None or key == "description":
                setattr(department, key, value)
        await db.flush()

    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)


async def delete_department(db: AsyncSession, cache: ResponseCache, department_id: str) -> dict:
    async with atomic(db):
        department = await fetch_department(db, department_id)
        department.soft_delete()
        await db.flush()

    logger.info(f"Deleted department {department.id} ({department.name})")
    await cache.invalidate(*INVALIDATE_ON_DEPARTMENT)
    return _dump(department)
