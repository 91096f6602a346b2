"""Billing lifecycle: issue, revive, bulk issue, edit, cancel, list.

Each billing owns exactly one Collection carrying what is still owed.  A
billing is *active* while it is neither cancelled nor deleted; only active
rows block an invoice number.  Issuing a number held by an inactive row
revives that row in place (same id), so the unique invoice column never
needs a second row.
"""

import logging
import uuid
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy import distinct, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.config import settings
from billtrack.database import atomic
from billtrack.middleware.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    ValidationFailure,
)
from billtrack.models.billing import Billing
from billtrack.models.cancelled_invoice import CancelledInvoice
from billtrack.models.client import Client
from billtrack.models.client_department import ClientDepartment
from billtrack.models.collection import PENDING, Collection
from billtrack.models.payment import Payment
from billtrack.schemas.billing import (
    BillingCreate,
    BillingOut,
    BillingUpdate,
    BulkBillingRow,
    CancelledInvoiceOut,
)
from billtrack.schemas.collection import CollectionOut
from billtrack.services.client_branch import fetch_branch
from billtrack.services.client_department import fetch_department
from billtrack.services.collection_balance import resettle
from billtrack.services.payment import applied_total
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.csv_import import (
    FieldDef,
    coerce_date,
    coerce_decimal,
    coerce_int,
    generate_template_csv,
    parse_csv,
)
from billtrack.utils.money import ZERO, to_money
from billtrack.utils.pagination import page_window
from billtrack.utils.text import normalize_name

logger = logging.getLogger(__name__)

INVALIDATE_ON_BILLING = (
    "billings:*", "billing:*",
    "collections:*", "collection:*",
    "aging:*",
)

BILLING_FIELDS = (
    "amount", "vat_amount", "discount",
    "month", "year", "billing_date", "billing_type", "remarks",
)


# ── Helpers ──────────────────────────────────────────────────

def compute_total(amount, vat_amount, discount):
    total = to_money(amount) + to_money(vat_amount) - to_money(discount)
    if total <= ZERO:
        raise ValidationFailure(
            "Total amount (amount + VAT - discount) must be positive",
            details={"total_amount": str(total)},
        )
    return total


async def _fetch_billing(db: AsyncSession, billing_id: str, lock: bool = False) -> Billing:
    query = (
        select(Billing)
        .where(Billing.id == billing_id, Billing.is_deleted == False)  # noqa: E712
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    billing = (await db.execute(query)).scalar_one_or_none()
    if not billing:
        raise ResourceNotFoundError("Billing", billing_id)
    return billing


async def _fetch_billings(db: AsyncSession, billing_ids: list[str]) -> list[Billing]:
    if not billing_ids:
        return []
    result = await db.execute(
        select(Billing)
        .where(Billing.id.in_(billing_ids))
        .execution_options(populate_existing=True)
    )
    by_id = {b.id: b for b in result.scalars().all()}
    return [by_id[i] for i in billing_ids if i in by_id]


async def _check_branch(db: AsyncSession, branch_id: str, client_id: str) -> None:
    branch = await fetch_branch(db, branch_id)
    if branch.client_id != client_id:
        raise ValidationFailure("Branch does not belong to the billed client")


async def _issue(
    db: AsyncSession,
    invoice_number: str,
    department: ClientDepartment,
    fields: dict,
    branch_id: str | None = None,
) -> tuple[str, bool]:
    """Insert or revive one billing and its collection. Returns (billing_id, revived).

    Caller owns the transaction.
    """
    total = compute_total(fields["amount"], fields.get("vat_amount"), fields.get("discount"))
    values = {name: fields.get(name) for name in BILLING_FIELDS}
    values["vat_amount"] = to_money(values["vat_amount"])
    values["discount"] = to_money(values["discount"])

    result = await db.execute(
        select(Billing)
        .where(Billing.invoice_number == invoice_number)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    existing = result.scalar_one_or_none()

    if existing is not None and not existing.is_cancelled and not existing.is_deleted:
        raise ConflictError(
            f"Invoice number '{invoice_number}' is already billed",
            details={"invoice_number": invoice_number, "billing_id": existing.id},
        )

    if existing is None:
        billing = Billing(
            id=str(uuid.uuid4()),
            invoice_number=invoice_number,
            client_id=department.client_id,
            department_id=department.id,
            branch_id=branch_id,
            total_amount=total,
            **values,
        )
        db.add(billing)
        db.add(Collection(
            id=str(uuid.uuid4()),
            billing_id=billing.id,
            invoice_number=invoice_number,
            amount=total,
            balance=ZERO,
            status=PENDING,
            collection_date=values["billing_date"],
        ))
        await db.flush()
        return billing.id, False

    # ── Revive in place ──
    billing = existing
    for name, value in values.items():
        setattr(billing, name, value)
    billing.client_id = department.client_id
    billing.department_id = department.id
    billing.branch_id = branch_id
    billing.total_amount = total
    billing.is_cancelled = False
    billing.cancelled_at = None
    billing.is_deleted = False
    billing.deleted_at = None

    collection = billing.collection
    if collection is None:
        db.add(Collection(
            id=str(uuid.uuid4()),
            billing_id=billing.id,
            invoice_number=invoice_number,
            amount=total,
            balance=ZERO,
            status=PENDING,
            collection_date=values["billing_date"],
        ))
    else:
        collection.invoice_number = invoice_number
        collection.amount = total
        collection.collection_date = values["billing_date"]
        collection.is_deleted = False
        collection.deleted_at = None
        resettle(total, await applied_total(db, collection.id)).write_to(collection)

    await db.flush()
    logger.info(f"Revived billing {billing.id} for invoice {invoice_number}")
    return billing.id, True


def _billing_dump(billing: Billing) -> dict:
    return BillingOut.model_validate(billing).model_dump(mode="json")


def _collection_dump(collection: Collection) -> dict:
    return CollectionOut.model_validate(collection).model_dump(mode="json")


# ── Single billing ───────────────────────────────────────────

async def create_billing(db: AsyncSession, cache: ResponseCache, data: BillingCreate) -> dict:
    """Issue a billing (or revive a cancelled one) together with its collection."""
    async with atomic(db):
        department = await fetch_department(db, data.department_id)
        if data.client_id and data.client_id != department.client_id:
            raise ValidationFailure(
                "Department does not belong to the given client",
                details={"client_id": data.client_id, "department_id": department.id},
            )
        if data.branch_id:
            await _check_branch(db, data.branch_id, department.client_id)

        billing_id, revived = await _issue(
            db,
            data.invoice_number,
            department,
            data.model_dump(include=set(BILLING_FIELDS)),
            branch_id=data.branch_id,
        )

    await cache.invalidate(*INVALIDATE_ON_BILLING)

    billing = await _fetch_billing(db, billing_id)
    return {
        "billing": _billing_dump(billing),
        "collection": _collection_dump(billing.collection),
        "revived": revived,
    }


async def update_billing(
    db: AsyncSession,
    cache: ResponseCache,
    billing_id: str,
    data: BillingUpdate,
) -> dict:
    """Edit an active billing; the collection follows the new total."""
    changes = data.model_dump(exclude_unset=True)

    async with atomic(db):
        billing = await _fetch_billing(db, billing_id, lock=True)
        if billing.is_cancelled:
            raise ValidationFailure("Cancelled billings cannot be edited")

        new_invoice = changes.pop("invoice_number", None)
        if new_invoice and new_invoice != billing.invoice_number:
            clash = await db.execute(
                select(Billing.id).where(Billing.invoice_number == new_invoice)
            )
            if clash.scalar_one_or_none():
                raise ConflictError(
                    f"Invoice number '{new_invoice}' is already in use",
                    details={"invoice_number": new_invoice},
                )
            billing.invoice_number = new_invoice

        if "branch_id" in changes:
            if changes["branch_id"]:
                await _check_branch(db, changes["branch_id"], billing.client_id)
            billing.branch_id = changes.pop("branch_id")

        for name, value in changes.items():
            if value is not None or name == "remarks":
                setattr(billing, name, value)

        billing.total_amount = compute_total(billing.amount, billing.vat_amount, billing.discount)

        collection = billing.collection
        if collection is not None:
            if collection.invoice_number != billing.invoice_number:
                collection.invoice_number = billing.invoice_number
                # payments always carry their collection's invoice number
                await db.execute(
                    update(Payment)
                    .where(Payment.collection_id == collection.id)
                    .values(invoice_number=billing.invoice_number)
                    .execution_options(synchronize_session=False)
                )
            if to_money(collection.amount) != billing.total_amount:
                collection.amount = billing.total_amount
                resettle(
                    billing.total_amount, await applied_total(db, collection.id)
                ).write_to(collection)
        await db.flush()

    logger.info(f"Updated billing {billing.id} (invoice {billing.invoice_number})")
    await cache.invalidate(*INVALIDATE_ON_BILLING, "payments:*", "payment:*")

    billing = await _fetch_billing(db, billing_id)
    return _billing_dump(billing)


async def cancel_billing(
    db: AsyncSession,
    cache: ResponseCache,
    billing_id: str,
    remarks: str,
    cancelled_by: str | None = None,
) -> dict:
    """Cancel a billing and append a CancelledInvoice audit row.

    The billing and its collection are kept; the invoice number becomes
    free to be re-issued (revived).
    """
    async with atomic(db):
        billing = await _fetch_billing(db, billing_id, lock=True)
        if billing.is_cancelled:
            raise ConflictError(
                f"Billing {billing_id} is already cancelled",
                details={"invoice_number": billing.invoice_number},
            )

        billing.is_cancelled = True
        billing.cancelled_at = datetime.utcnow()
        audit = CancelledInvoice(
            id=str(uuid.uuid4()),
            billing_id=billing.id,
            invoice_number=billing.invoice_number,
            amount=billing.total_amount,
            remarks=remarks,
            cancelled_by=cancelled_by,
        )
        db.add(audit)
        await db.flush()

    logger.info(f"Cancelled billing {billing.id} (invoice {billing.invoice_number})")
    await cache.invalidate(*INVALIDATE_ON_BILLING)

    return {
        "billing": _billing_dump(billing),
        "cancelled_invoice": CancelledInvoiceOut.model_validate(audit).model_dump(mode="json"),
    }


async def delete_billing(db: AsyncSession, cache: ResponseCache, billing_id: str) -> dict:
    """Soft-delete a billing and its collection."""
    async with atomic(db):
        billing = await _fetch_billing(db, billing_id, lock=True)
        billing.soft_delete()
        if billing.collection is not None:
            billing.collection.soft_delete()
        await db.flush()

    logger.info(f"Deleted billing {billing.id} (invoice {billing.invoice_number})")
    await cache.invalidate(*INVALIDATE_ON_BILLING)
    return _billing_dump(billing)


# ── Bulk issue ───────────────────────────────────────────────

async def _department_index(db: AsyncSession) -> dict[str, list[ClientDepartment]]:
    """Normalised department name -> live departments carrying it."""
    result = await db.execute(
        select(ClientDepartment).where(ClientDepartment.is_deleted == False)  # noqa: E712
    )
    index: dict[str, list[ClientDepartment]] = {}
    for department in result.scalars().all():
        index.setdefault(normalize_name(department.name), []).append(department)
    return index


async def create_bulk_billings(
    db: AsyncSession,
    cache: ResponseCache,
    rows: list[BulkBillingRow],
) -> dict:
    """Issue many billings, skipping rows that cannot be billed.

    Rows are skipped (with a reason) when their invoice number is already
    active or repeats an earlier row, when their department name matches no
    live department (or more than one), or when their total is not positive.
    The rest are written in chunks of `bulk_chunk_size`, one transaction per
    chunk.
    """
    departments = await _department_index(db)

    invoice_numbers = {row.invoice_number for row in rows}
    result = await db.execute(
        select(Billing.invoice_number).where(
            Billing.invoice_number.in_(invoice_numbers),
            Billing.is_cancelled == False,  # noqa: E712
            Billing.is_deleted == False,  # noqa: E712
        )
    )
    active = set(result.scalars().all())

    skipped_rows: list[dict] = []
    queue: list[tuple[BulkBillingRow, ClientDepartment]] = []
    queued: set[str] = set()

    def skip(row_number: int, row: BulkBillingRow, reason: str) -> None:
        skipped_rows.append({
            "row": row_number,
            "invoice_number": row.invoice_number,
            "reason": reason,
        })

    for position, row in enumerate(rows, start=1):
        row_number = row.row or position
        if row.invoice_number in active:
            skip(row_number, row, "invoice number already billed")
            continue
        if row.invoice_number in queued:
            skip(row_number, row, "duplicate invoice number in upload")
            continue

        matches = departments.get(normalize_name(row.department_name), [])
        if not matches:
            skip(row_number, row, f"department not found: {row.department_name}")
            continue
        if len(matches) > 1:
            skip(row_number, row, f"department name is ambiguous: {row.department_name}")
            continue

        try:
            compute_total(row.amount, row.vat_amount, row.discount)
        except ValidationFailure as e:
            skip(row_number, row, e.message)
            continue

        queue.append((row, matches[0]))
        queued.add(row.invoice_number)

    created = 0
    revived = 0
    billing_ids: list[str] = []
    chunk_size = max(1, settings.bulk_chunk_size)

    for start in range(0, len(queue), chunk_size):
        chunk = queue[start:start + chunk_size]
        chunk_ids: list[tuple[str, bool]] = []
        async with atomic(db):
            for row, department in chunk:
                chunk_ids.append(await _issue(
                    db,
                    row.invoice_number,
                    department,
                    row.model_dump(include=set(BILLING_FIELDS)),
                ))
        for billing_id, was_revived in chunk_ids:
            billing_ids.append(billing_id)
            if was_revived:
                revived += 1
            else:
                created += 1
        logger.debug(f"Bulk billing chunk {start // chunk_size + 1}: {len(chunk)} rows committed")

    logger.info(
        f"Bulk billing: {created} created, {revived} revived, {len(skipped_rows)} skipped"
    )
    if billing_ids:
        await cache.invalidate(*INVALIDATE_ON_BILLING)

    billings = await _fetch_billings(db, billing_ids)
    return {
        "created": created,
        "revived": revived,
        "skipped": len(skipped_rows),
        "skipped_rows": skipped_rows,
        "billings": [_billing_dump(b) for b in billings],
    }


# ── CSV import ───────────────────────────────────────────────

BILLING_CSV_FIELDS = [
    FieldDef(column="invoice_number", db_field="invoice_number", required=True),
    FieldDef(column="department", db_field="department_name", required=True),
    FieldDef(column="amount", db_field="amount", required=True, coerce=coerce_decimal),
    FieldDef(column="vat_amount", db_field="vat_amount", coerce=coerce_decimal),
    FieldDef(column="discount", db_field="discount", coerce=coerce_decimal),
    FieldDef(column="month", db_field="month", required=True, coerce=coerce_int),
    FieldDef(column="year", db_field="year", required=True, coerce=coerce_int),
    FieldDef(column="billing_date", db_field="billing_date", required=True, coerce=coerce_date),
    FieldDef(column="billing_type", db_field="billing_type", required=True),
    FieldDef(column="remarks", db_field="remarks"),
]

BILLING_CSV_SAMPLE = {
    "invoice_number": "INV-0001",
    "department": "Accounting",
    "amount": "1000.00",
    "vat_amount": "120.00",
    "discount": "0",
    "month": "1",
    "year": "2025",
    "billing_date": "2025-01-31",
    "billing_type": "rental",
    "remarks": "",
}


def billing_csv_template() -> str:
    return generate_template_csv(BILLING_CSV_FIELDS, BILLING_CSV_SAMPLE)


async def import_billings_csv(db: AsyncSession, cache: ResponseCache, content: bytes) -> dict:
    """Parse an uploaded billing CSV and bulk-issue the rows that parse."""
    try:
        parsed = parse_csv(content, BILLING_CSV_FIELDS)
    except UnicodeDecodeError:
        raise ValidationFailure("CSV file must be UTF-8 encoded") from None

    errors = [{"row": e.row, "errors": e.errors} for e in parsed.errors]
    rows: list[BulkBillingRow] = []
    for raw in parsed.rows:
        try:
            rows.append(BulkBillingRow(**{k: v for k, v in raw.items() if v is not None}))
        except ValidationError as e:
            errors.append({
                "row": raw["row"],
                "errors": [
                    f"'{'.'.join(str(p) for p in err['loc'])}': {err['msg']}"
                    for err in e.errors()
                ],
            })

    if rows:
        outcome = await create_bulk_billings(db, cache, rows)
    else:
        outcome = {"created": 0, "revived": 0, "skipped": 0, "skipped_rows": [], "billings": []}

    errors.sort(key=lambda e: e["row"])
    return {
        **outcome,
        "total_rows": parsed.total_rows,
        "failed": len(errors),
        "errors": errors,
    }


# ── Reads ────────────────────────────────────────────────────

async def get_billing(db: AsyncSession, cache: ResponseCache, billing_id: str) -> dict:
    async def load():
        return _billing_dump(await _fetch_billing(db, billing_id))

    return await cache.remember(f"billing:{billing_id}", load)


async def list_billings(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    category: str | None = None,
    month: int | None = None,
    year: int | None = None,
    include_cancelled: bool = False,
) -> dict:
    """Paginated billings plus billed / unbilled department figures."""
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key(
        "billings",
        page=page_index, size=page_size, search=search, category=category,
        month=month, year=year, cancelled=include_cancelled,
    )

    async def load():
        filters = [Billing.is_deleted == False]  # noqa: E712
        if not include_cancelled:
            filters.append(Billing.is_cancelled == False)  # noqa: E712
        if category:
            filters.append(Billing.billing_type == category)
        if month:
            filters.append(Billing.month == month)
        if year:
            filters.append(Billing.year == year)

        query = (
            select(Billing)
            .join(ClientDepartment, ClientDepartment.id == Billing.department_id)
            .where(*filters)
        )
        if search:
            like = f"%{search}%"
            query = query.where(or_(
                Billing.invoice_number.ilike(like),
                ClientDepartment.name.ilike(like),
            ))

        matched = query.subquery()
        total, total_amount = (await db.execute(
            select(func.count(), func.coalesce(func.sum(matched.c.total_amount), 0))
        )).one()

        result = await db.execute(
            query.order_by(Billing.created_at.desc()).offset(offset).limit(page_size)
        )
        items = [_billing_dump(b) for b in result.scalars().all()]

        # Both figures range over active departments of live clients.
        live_departments = [
            ClientDepartment.is_deleted == False,  # noqa: E712
            ClientDepartment.status == "active",
            Client.is_deleted == False,  # noqa: E712
        ]

        # Billed departments: active billings in the requested period, regardless of search.
        period = [
            Billing.is_deleted == False,  # noqa: E712
            Billing.is_cancelled == False,  # noqa: E712
        ]
        if month:
            period.append(Billing.month == month)
        if year:
            period.append(Billing.year == year)
        if category:
            period.append(Billing.billing_type == category)
        departments_billed = (await db.execute(
            select(func.count(distinct(Billing.department_id)))
            .select_from(Billing)
            .join(ClientDepartment, ClientDepartment.id == Billing.department_id)
            .join(Client, Client.id == ClientDepartment.client_id)
            .where(*period, *live_departments)
        )).scalar_one()
        departments_total = (await db.execute(
            select(func.count(ClientDepartment.id))
            .join(Client, Client.id == ClientDepartment.client_id)
            .where(*live_departments)
        )).scalar_one()

        return {
            "items": items,
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
            "total_amount": str(to_money(total_amount)),
            "departments_billed": departments_billed,
            "departments_total": departments_total,
            "departments_unbilled": max(departments_total - departments_billed, 0),
        }

    return await cache.remember(key, load)
