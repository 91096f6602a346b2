"""Collection reads, bookkeeping edits and the aging report.

Aging buckets count whole days since the collection date, relative to
today:

    1-29 | 30-59 | 60-89 | 90-119 | 120+

Filtering by a bucket implies status=pending unless a status is given.
Collections of cancelled billings are left out unless asked for.
"""

import logging
from datetime import date, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from billtrack.database import atomic
from billtrack.middleware.exceptions import ResourceNotFoundError, ValidationFailure
from billtrack.models.billing import Billing
from billtrack.models.client_department import ClientDepartment
from billtrack.models.collection import COLLECTION_STATUSES, PENDING, Collection
from billtrack.schemas.collection import CollectionOut, CollectionUpdate
from billtrack.schemas.payment import CollectionWithPaymentsOut
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.money import ZERO, to_money
from billtrack.utils.pagination import page_window
from billtrack.utils.settlement import CollectionState

logger = logging.getLogger(__name__)

AGING_BUCKETS: dict[str, tuple[int, int | None]] = {
    "1-29": (1, 29),
    "30-59": (30, 59),
    "60-89": (60, 89),
    "90-119": (90, 119),
    "120+": (120, None),
}
CURRENT = "current"


def aging_bucket(days: int) -> str:
    """Name of the bucket a collection `days` old falls in ("current" below 1)."""
    for name, (low, high) in AGING_BUCKETS.items():
        if days >= low and (high is None or days <= high):
            return name
    return CURRENT


def aging_window(bucket: str, today: date) -> tuple[date | None, date]:
    """(oldest, newest) collection dates inside a bucket; oldest is open for 120+."""
    if bucket not in AGING_BUCKETS:
        raise ValidationFailure(
            f"Unknown aging bucket: {bucket}",
            details={"allowed": list(AGING_BUCKETS)},
        )
    low, high = AGING_BUCKETS[bucket]
    newest = today - timedelta(days=low)
    oldest = today - timedelta(days=high) if high is not None else None
    return oldest, newest


async def _fetch_collection(db: AsyncSession, collection_id: str, with_payments: bool = False) -> Collection:
    query = (
        select(Collection)
        .where(Collection.id == collection_id, Collection.is_deleted == False)  # noqa: E712
        .execution_options(populate_existing=True)
    )
    if with_payments:
        query = query.options(selectinload(Collection.payments))
    collection = (await db.execute(query)).scalar_one_or_none()
    if not collection:
        raise ResourceNotFoundError("Collection", collection_id)
    return collection


async def list_collections(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    status: str | None = None,
    aging: str | None = None,
    include_cancelled: bool = False,
    today: date | None = None,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    today = today or date.today()

    if status is not None and status not in COLLECTION_STATUSES:
        raise ValidationFailure(
            f"Unknown collection status: {status}",
            details={"allowed": list(COLLECTION_STATUSES)},
        )
    window = aging_window(aging, today) if aging else None
    if window and status is None:
        status = PENDING

    key = cache_key(
        "collections",
        page=page_index, size=page_size, search=search, status=status,
        aging=aging, as_of=today if aging else None, cancelled=include_cancelled,
    )

    async def load():
        query = (
            select(Collection)
            .join(Billing, Billing.id == Collection.billing_id)
            .join(ClientDepartment, ClientDepartment.id == Billing.department_id)
            .where(Collection.is_deleted == False)  # noqa: E712
        )
        if not include_cancelled:
            query = query.where(Billing.is_cancelled == False)  # noqa: E712
        if status:
            query = query.where(Collection.status == status)
        if window:
            oldest, newest = window
            query = query.where(Collection.collection_date <= newest)
            if oldest is not None:
                query = query.where(Collection.collection_date >= oldest)
        if search:
            like = f"%{search}%"
            query = query.where(or_(
                Collection.invoice_number.ilike(like),
                ClientDepartment.name.ilike(like),
            ))

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(Collection.collection_date.asc(), Collection.invoice_number)
            .offset(offset)
            .limit(page_size)
        )
        return {
            "items": [
                CollectionOut.model_validate(c).model_dump(mode="json")
                for c in result.scalars().all()
            ],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)


async def get_collection(db: AsyncSession, cache: ResponseCache, collection_id: str) -> dict:
    async def load():
        collection = await _fetch_collection(db, collection_id, with_payments=True)
        return CollectionWithPaymentsOut.model_validate(collection).model_dump(mode="json")

    return await cache.remember(f"collection:{collection_id}", load)


async def update_collection(
    db: AsyncSession,
    cache: ResponseCache,
    collection_id: str,
    data: CollectionUpdate,
) -> dict:
    changes = data.model_dump(exclude_unset=True)
    async with atomic(db):
        collection = await _fetch_collection(db, collection_id)
        if changes.get("collection_date") is not None:
            collection.collection_date = changes["collection_date"]
        if "remarks" in changes:
            collection.remarks = changes["remarks"]
        await db.flush()

    logger.info(f"Updated collection {collection.id} (invoice {collection.invoice_number})")
    await cache.invalidate("collections:*", "collection:*", "aging:*")
    return CollectionOut.model_validate(collection).model_dump(mode="json")


async def aging_summary(db: AsyncSession, cache: ResponseCache, today: date | None = None) -> dict:
    """Count and outstanding total of pending collections per aging bucket."""
    today = today or date.today()

    async def load():
        result = await db.execute(
            select(
                Collection.amount,
                Collection.balance,
                Collection.status,
                Collection.collection_date,
            )
            .join(Billing, Billing.id == Collection.billing_id)
            .where(
                Collection.is_deleted == False,  # noqa: E712
                Collection.status == PENDING,
                Billing.is_cancelled == False,  # noqa: E712
            )
        )
        names = [CURRENT, *AGING_BUCKETS]
        counts = dict.fromkeys(names, 0)
        owed = dict.fromkeys(names, ZERO)
        for amount, balance, status, collection_date in result.all():
            bucket = aging_bucket((today - collection_date).days)
            counts[bucket] += 1
            owed[bucket] += CollectionState(to_money(amount), to_money(balance), status).outstanding

        return {
            "as_of": today.isoformat(),
            "buckets": [
                {"bucket": name, "count": counts[name], "outstanding": str(owed[name])}
                for name in names
            ],
            "total_count": sum(counts.values()),
            "total_outstanding": str(sum(owed.values(), ZERO)),
        }

    return await cache.remember(cache_key("aging", as_of=today), load)
