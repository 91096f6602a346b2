"""Billing (invoice) router.

Endpoints:
    GET    /api/billings/                   List billings + unbilled-department figures
    POST   /api/billings/                   Issue (or revive) a billing
    POST   /api/billings/bulk               Issue many billings from JSON rows
    GET    /api/billings/import/template    Download billing CSV template
    POST   /api/billings/import             Issue billings from an uploaded CSV
    GET    /api/billings/{id}               Get billing
    PATCH  /api/billings/{id}               Edit an active billing
    POST   /api/billings/{id}/cancel        Cancel billing (audit row kept)
    DELETE /api/billings/{id}               Soft-delete billing (owner / manager)
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.auth.deps import get_current_user, require_manager
from billtrack.database import get_db
from billtrack.models.user import User
from billtrack.schemas.billing import (
    BillingCancel,
    BillingCancelResult,
    BillingCreate,
    BillingImportResult,
    BillingOut,
    BillingPage,
    BillingResult,
    BillingUpdate,
    BulkBillingRequest,
    BulkBillingResult,
)
from billtrack.services import billing as billing_service
from billtrack.utils.cache import ResponseCache, get_cache

router = APIRouter()


def _csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/", response_model=BillingPage)
async def list_billings(
    page_index: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    category: str | None = None,
    month: int | None = None,
    year: int | None = None,
    include_cancelled: bool = False,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await billing_service.list_billings(
        db, cache,
        page_index=page_index,
        page_size=page_size,
        search=search,
        category=category,
        month=month,
        year=year,
        include_cancelled=include_cancelled,
    )


@router.post("/", response_model=BillingResult, status_code=201)
async def create_billing(
    body: BillingCreate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await billing_service.create_billing(db, cache, body)


@router.post("/bulk", response_model=BulkBillingResult)
async def create_bulk_billings(
    body: BulkBillingRequest,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await billing_service.create_bulk_billings(db, cache, body.rows)


@router.get("/import/template")
async def billing_template(_user: User = Depends(get_current_user)):
    return _csv_response(billing_service.billing_csv_template(), "billing_template.csv")


@router.post("/import", response_model=BillingImportResult)
async def import_billings(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    content = await file.read()
    return await billing_service.import_billings_csv(db, cache, content)


@router.get("/{billing_id}", response_model=BillingOut)
async def get_billing(
    billing_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await billing_service.get_billing(db, cache, billing_id)


@router.patch("/{billing_id}", response_model=BillingOut)
async def update_billing(
    billing_id: str,
    body: BillingUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(get_current_user),
):
    return await billing_service.update_billing(db, cache, billing_id, body)


@router.post("/{billing_id}/cancel", response_model=BillingCancelResult)
async def cancel_billing(
    billing_id: str,
    body: BillingCancel,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    user: User = Depends(get_current_user),
):
    return await billing_service.cancel_billing(
        db, cache, billing_id, body.remarks, cancelled_by=user.id
    )


@router.delete("/{billing_id}", response_model=BillingOut)
async def delete_billing(
    billing_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    _user: User = Depends(require_manager),
):
    return await billing_service.delete_billing(db, cache, billing_id)
