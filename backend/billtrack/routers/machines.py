"""Machine inventory router.

Endpoints:
    GET    /api/machines/          List machines
    POST   /api/machines/          Create machine
    GET    /api/machines/{id}      Get machine
    PATCH  /api/machines/{id}      Update / relocate machine
    DELETE /api/machines/{id}      Soft-delete machine
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.common import PaginatedResponse
from billtrack.schemas.machine import MachineCreate, MachineOut, MachineUpdate
from billtrack.services import machine as machine_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[MachineOut])
async def list_machines(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
    client_department_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await machine_service.list_machines(
        db, cache, page_index, page_size, search, status, client_department_id
    )


@router.post("/", response_model=MachineOut, status_code=201)
async def create_machine(
    body: MachineCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await machine_service.create_machine(db, cache, body)


@router.get("/{machine_id}", response_model=MachineOut)
async def get_machine(
    machine_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await machine_service.get_machine(db, cache, machine_id)


@router.patch("/{machine_id}", response_model=MachineOut)
async def update_machine(
    machine_id: str,
    body: MachineUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await machine_service.update_machine(db, cache, machine_id, body)


@router.delete("/{machine_id}", response_model=MachineOut)
async def delete_machine(
    machine_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await machine_service.delete_machine(db, cache, machine_id)
