"""Staff department router (owner / manager only).

Endpoints:
    GET    /api/departments/          List departments
    POST   /api/departments/          Create department
    GET    /api/departments/{id}      Get department
    PATCH  /api/departments/{id}      Update department
    DELETE /api/departments/{id}      Soft-delete department
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import require_manager
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.common import PaginatedResponse
from billtrack.schemas.department import DepartmentCreate, DepartmentOut, DepartmentUpdate
from billtrack.services import department as department_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[DepartmentOut])
async def list_departments(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await department_service.list_departments(db, cache, page_index, page_size, search)


@router.post("/", response_model=DepartmentOut, status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await department_service.create_department(db, cache, body)


@router.get("/{department_id}", response_model=DepartmentOut)
async def get_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await department_service.get_department(db, cache, department_id)


@router.patch("/{department_id}", response_model=DepartmentOut)
async def update_department(
    department_id: str,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await department_service.update_department(db, cache, department_id, body)


@router.delete("/{department_id}", response_model=DepartmentOut)
async def delete_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await department_service.delete_department(db, cache, department_id)
