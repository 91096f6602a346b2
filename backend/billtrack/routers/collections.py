"""Collection router.

Endpoints:
    GET   /api/collections/                 List collections (status / aging filters)
    GET   /api/collections/aging            Aging summary of pending collections
    GET   /api/collections/{id}             Collection with its payments
    PATCH /api/collections/{id}             Edit remarks / collection date
    POST  /api/collections/{id}/payments    Record a payment against it
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.collection import AgingSummaryOut, CollectionOut, CollectionUpdate
from billtrack.schemas.common import PaginatedResponse
from billtrack.schemas.payment import CollectionWithPaymentsOut, PaymentCreate, PaymentResult
from billtrack.services import collection as collection_service
from billtrack.services import payment as payment_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[CollectionOut])
async def list_collections(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
    aging: str | None = None,
    include_cancelled: bool = False,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await collection_service.list_collections(
        db, cache,
        page_index=page_index,
        page_size=page_size,
        search=search,
        status=status,
        aging=aging,
        include_cancelled=include_cancelled,
    )


@router.get("/aging", response_model=AgingSummaryOut)
async def aging_summary(
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await collection_service.aging_summary(db, cache)


@router.get("/{collection_id}", response_model=CollectionWithPaymentsOut)
async def get_collection(
    collection_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await collection_service.get_collection(db, cache, collection_id)


@router.patch("/{collection_id}", response_model=CollectionOut)
async def update_collection(
    collection_id: str,
    body: CollectionUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await collection_service.update_collection(db, cache, collection_id, body)


@router.post("/{collection_id}/payments", response_model=PaymentResult, status_code=201)
async def record_payment(
    collection_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await payment_service.record_payment(db, cache, collection_id, body)
