"""Machine inventory CRUD. Serial numbers are unique."""

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import ConflictError, ResourceNotFoundError
from billtrack.models.machine import Machine
from billtrack.schemas.machine import MachineCreate, MachineOut, MachineUpdate
from billtrack.services.client_department import fetch_department
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

INVALIDATE_ON_MACHINE = ("machines:*", "machine:*")


async def _fetch_machine(db: AsyncSession, machine_id: str) -> Machine:
    result = await db.execute(
        select(Machine).where(Machine.id == machine_id, Machine.is_deleted == False)  # noqa: E712
    )
    machine = result.scalar_one_or_none()
    if not machine:
        raise ResourceNotFoundError("Machine", machine_id)
    return machine


async def _ensure_serial_free(db: AsyncSession, serial_number: str, exclude_id: str | None = None) -> None:
    query = select(Machine.id).where(Machine.serial_number == serial_number)
    if exclude_id:
        query = query.where(Machine.id != exclude_id)
    if (await db.execute(query)).scalar_one_or_none():
        raise ConflictError(
            f"Machine with serial number '{serial_number}' already exists",
            details={"serial_number": serial_number},
        )


def _dump(machine: Machine) -> dict:
    return MachineOut.model_validate(machine).model_dump(mode="json")


async def list_machines(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
    client_department_id: str | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key(
        "machines",
        page=page_index, size=page_size, search=search, status=status,
        department=client_department_id,
    )

    async def load():
        query = select(Machine).where(Machine.is_deleted == False)  # noqa: E712
        if status:
            query = query.where(Machine.status == status)
        if client_department_id:
            query = query.where(Machine.client_department_id == client_department_id)
        if search:
            like = f"%{search}%"
            query = query.where(or_(
                Machine.brand.ilike(like),
                Machine.model.ilike(like),
                Machine.serial_number.ilike(like),
            ))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(Machine.brand, Machine.model).offset(offset).limit(page_size)
        )
        return {
            "items": [_dump(m) for m in result.scalars().all()],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)


async def get_machine(db: AsyncSession, cache: ResponseCache, machine_id: str) -> dict:
    async def load():
        return _dump(await _fetch_machine(db, machine_id))

    return await cache.remember(f"machine:{machine_id}", load)


async def create_machine(db: AsyncSession, cache: ResponseCache, data: MachineCreate) -> dict:
    async with atomic(db):
        await _ensure_serial_free(db, data.serial_number)
        if data.client_department_id:
            await fetch_department(db, data.client_department_id)
        machine = Machine(id=str(uuid.uuid4()), **data.model_dump())
        db.add(machine)
        await db.flush()

    logger.info(f"Created machine {machine.id} (serial {machine.serial_number})")
    await cache.invalidate(*INVALIDATE_ON_MACHINE)
    return _dump(machine)


async def update_machine(
    db: AsyncSession,
    cache: ResponseCache,
    machine_id: str,
    data: MachineUpdate,
) -> dict:
    updates = data.model_dump(exclude_unset=True)
    async with atomic(db):
        machine = await _fetch_machine(db, machine_id)
        if updates.get("serial_number") and updates["serial_number"] != machine.serial_number:
            await _ensure_serial_free(db, updates["serial_number"], exclude_id=machine.id)
        if updates.get("client_department_id"):
            await fetch_department(db, updates["client_department_id"])
        for key, value in updates.items():
            # a null placement moves the machine back to stock
            if value is not None or key in ("description", "client_department_id"):
                setattr(machine, key, value)
        await db.flush()

    await cache.invalidate(*INVALIDATE_ON_MACHINE)
    return _dump(machine)


async def delete_machine(db: AsyncSession, cache: ResponseCache, machine_id: str) -> dict:
    async with atomic(db):
        machine = await _fetch_machine(db, machine_id)
        machine.soft_delete()
        await db.flush()

    logger.info(f"Deleted machine {machine.id} (serial {machine.serial_number})")
    await cache.invalidate(*INVALIDATE_ON_MACHINE)
    return _dump(machine)
