"""Client management router.

Endpoints:
    GET    /api/clients/          List clients
    POST   /api/clients/          Create client
    GET    /api/clients/{id}      Get client
    PATCH  /api/clients/{id}      Update client
    DELETE /api/clients/{id}      Soft-delete client
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.client import ClientCreate, ClientOut, ClientUpdate
from billtrack.schemas.common import PaginatedResponse
from billtrack.services import client as client_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[ClientOut])
async def list_clients(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await client_service.list_clients(db, cache, page_index, page_size, search, status)


@router.post("/", response_model=ClientOut, status_code=201)
async def create_client(
    body: ClientCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await client_service.create_client(db, cache, body)


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await client_service.get_client(db, cache, client_id)


@router.patch("/{client_id}", response_model=ClientOut)
async def update_client(
    client_id: str,
    body: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await client_service.update_client(db, cache, client_id, body)


@router.delete("/{client_id}", response_model=ClientOut)
async def delete_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await client_service.delete_client(db, cache, client_id)
