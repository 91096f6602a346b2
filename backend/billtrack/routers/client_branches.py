"""Client branch router.

Endpoints:
    GET    /api/client-branches/          List (optionally by client_id)
    POST   /api/client-branches/          Create
    GET    /api/client-branches/{id}      Get
    PATCH  /api/client-branches/{id}      Update
    DELETE /api/client-branches/{id}      Soft-delete
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.client_department import (
    ClientBranchCreate,
    ClientBranchOut,
    ClientBranchUpdate,
)
from billtrack.schemas.common import PaginatedResponse
from billtrack.services import client_branch as branch_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[ClientBranchOut])
async def list_client_branches(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    client_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await branch_service.list_branches(db, cache, page_index, page_size, search, client_id)


@router.post("/", response_model=ClientBranchOut, status_code=201)
async def create_client_branch(
    body: ClientBranchCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await branch_service.create_branch(db, cache, body)


@router.get("/{branch_id}", response_model=ClientBranchOut)
async def get_client_branch(
    branch_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await branch_service.get_branch(db, cache, branch_id)


@router.patch("/{branch_id}", response_model=ClientBranchOut)
async def update_client_branch(
    branch_id: str,
    body: ClientBranchUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await branch_service.update_branch(db, cache, branch_id, body)


@router.delete("/{branch_id}", response_model=ClientBranchOut)
async def delete_client_branch(
    branch_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await branch_service.delete_branch(db, cache, branch_id)
