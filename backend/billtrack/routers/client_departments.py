"""Client department router.

Endpoints:
    GET    /api/client-departments/          List (optionally by client_id)
    POST   /api/client-departments/          Create
    GET    /api/client-departments/{id}      Get
    PATCH  /api/client-departments/{id}      Update
    DELETE /api/client-departments/{id}      Soft-delete
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.client_department import (
    ClientDepartmentCreate,
    ClientDepartmentOut,
    ClientDepartmentUpdate,
)
from billtrack.schemas.common import PaginatedResponse
from billtrack.services import client_department as department_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[ClientDepartmentOut])
async def list_client_departments(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    client_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await department_service.list_departments(
        db, cache, page_index, page_size, search, client_id
    )


@router.post("/", response_model=ClientDepartmentOut, status_code=201)
async def create_client_department(
    body: ClientDepartmentCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await department_service.create_department(db, cache, body)


@router.get("/{department_id}", response_model=ClientDepartmentOut)
async def get_client_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await department_service.get_department(db, cache, department_id)


@router.patch("/{department_id}", response_model=ClientDepartmentOut)
async def update_client_department(
    department_id: str,
    body: ClientDepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await department_service.update_department(db, cache, department_id, body)


@router.delete("/{department_id}", response_model=ClientDepartmentOut)
async def delete_client_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await department_service.delete_department(db, cache, department_id)
