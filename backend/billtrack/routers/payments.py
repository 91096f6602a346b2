"""Payment router.

Endpoints:
    GET   /api/payments/              List payments
    GET   /api/payments/{id}          Get payment
    PATCH /api/payments/{id}          Correct a payment (amount delta re-applied)
    POST  /api/payments/{id}/cancel   Cancel payment (balance reversed)

Payments are recorded through POST /api/collections/{id}/payments.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.common import PaginatedResponse
from billtrack.schemas.payment import PaymentOut, PaymentResult, PaymentUpdate
from billtrack.services import payment as payment_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[PaymentOut])
async def list_payments(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    mode: str | None = None,
    collection_id: str | None = None,
    include_cancelled: bool = False,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await payment_service.list_payments(
        db, cache,
        page_index=page_index,
        page_size=page_size,
        search=search,
        mode=mode,
        collection_id=collection_id,
        include_cancelled=include_cancelled,
    )


@router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await payment_service.get_payment(db, cache, payment_id)


@router.patch("/{payment_id}", response_model=PaymentResult)
async def update_payment(
    payment_id: str,
    body: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await payment_service.update_payment(db, cache, payment_id, body)


@router.post("/{payment_id}/cancel", response_model=PaymentResult)
async def cancel_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await payment_service.cancel_payment(db, cache, payment_id)
