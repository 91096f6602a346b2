"""Payment recording, correction and cancellation.

Every mutation here follows the same shape:

    async with atomic(db):
        lock the Collection row (SELECT ... FOR UPDATE)
        write the Payment (+ mode satellite)
        ask collection_balance for the next state and write it
    invalidate payment / collection caches

so a Payment never lands without its balance adjustment, and two payments
against the same Collection cannot interleave their read-modify-write.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from billtrack.database import atomic
from billtrack.middleware.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    ValidationFailure,
)
from billtrack.models.billing import Billing
from billtrack.models.client_department import ClientDepartment
from billtrack.models.collection import Collection
from billtrack.models.payment import Payment
from billtrack.schemas.collection import CollectionOut
from billtrack.schemas.payment import PaymentCreate, PaymentOut, PaymentUpdate
from billtrack.services import payment_modes
from billtrack.services.collection_balance import (
    adjust_payment,
    apply_payment,
    reverse_payment,
)
from billtrack.utils.cache import ResponseCache, cache_key
from billtrack.utils.money import ZERO, to_money
from billtrack.utils.pagination import page_window

logger = logging.getLogger(__name__)

MODE_FIELDS = (
    "cheque_number", "cheque_date", "bank_name",
    "reference_number", "transfer_date",
    "pdc_number", "pdc_date", "deposit_date", "credit_date",
)

INVALIDATE_ON_PAYMENT = (
    "payments:*", "payment:*",
    "collections:*", "collection:*",
    "aging:*",
)


# ── Lookups ──────────────────────────────────────────────────

async def _lock_collection(db: AsyncSession, collection_id: str) -> Collection:
    result = await db.execute(
        select(Collection)
        .where(
            Collection.id == collection_id,
            Collection.is_deleted == False,  # noqa: E712
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    collection = result.scalar_one_or_none()
    if not collection:
        raise ResourceNotFoundError("Collection", collection_id)
    return collection


async def _fetch_payment(db: AsyncSession, payment_id: str) -> Payment:
    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise ResourceNotFoundError("Payment", payment_id)
    return payment


async def applied_total(
    db: AsyncSession,
    collection_id: str,
    exclude_payment_id: str | None = None,
) -> Decimal:
    """Sum of live (non-cancelled) payment amounts on a collection."""
    query = select(func.coalesce(func.sum(Payment.amount), 0)).where(
        Payment.collection_id == collection_id,
        Payment.is_cancelled == False,  # noqa: E712
    )
    if exclude_payment_id:
        query = query.where(Payment.id != exclude_payment_id)
    return to_money((await db.execute(query)).scalar_one())


async def _ensure_or_number_free(
    db: AsyncSession,
    or_number: str,
    exclude_payment_id: str | None = None,
) -> None:
    query = select(Payment.id).where(
        Payment.or_number == or_number,
        Payment.is_cancelled == False,  # noqa: E712
    )
    if exclude_payment_id:
        query = query.where(Payment.id != exclude_payment_id)
    if (await db.execute(query.limit(1))).scalar_one_or_none():
        raise ConflictError(
            f"OR number '{or_number}' is already used by an active payment",
            details={"or_number": or_number},
        )


def _net_of_withholding(amount: Decimal, withholding: Decimal) -> Decimal:
    if withholding > amount:
        raise ValidationFailure(
            "Withholding amount cannot exceed the payment amount",
            details={"amount": str(amount), "withholding_amount": str(withholding)},
        )
    return amount - withholding


def _result(payment: Payment, collection: Collection) -> dict:
    return {
        "payment": PaymentOut.model_validate(payment).model_dump(mode="json"),
        "collection": CollectionOut.model_validate(collection).model_dump(mode="json"),
    }


# ── Mutations ────────────────────────────────────────────────

async def record_payment(
    db: AsyncSession,
    cache: ResponseCache,
    collection_id: str,
    data: PaymentCreate,
) -> dict:
    """Record a payment against a collection and move its balance."""
    async with atomic(db):
        collection = await _lock_collection(db, collection_id)

        if data.invoice_number != collection.invoice_number:
            raise ValidationFailure(
                "Payment invoice number does not match the collection",
                details={
                    "invoice_number": data.invoice_number,
                    "collection_invoice_number": collection.invoice_number,
                },
            )
        await _ensure_or_number_free(db, data.or_number)

        amount = to_money(data.amount)
        withholding = to_money(data.withholding_amount)
        payment = Payment(
            id=str(uuid.uuid4()),
            collection_id=collection.id,
            invoice_number=data.invoice_number,
            or_number=data.or_number,
            amount=amount,
            has_withholding=data.has_withholding or withholding > ZERO,
            withholding_amount=withholding,
            amount_paid=_net_of_withholding(amount, withholding),
            mode=data.mode,
            payment_date=data.payment_date,
            posting_date=data.posting_date,
            collection_date=data.collection_date,
            invoice_date=data.invoice_date,
            remarks=data.remarks,
        )
        db.add(payment)
        await db.flush()

        await payment_modes.attach(db, payment, data.model_dump(include=set(MODE_FIELDS)))

        state = apply_payment(collection.state, amount)
        state.write_to(collection)
        await db.flush()

    logger.info(
        f"Recorded payment {payment.id} (OR {payment.or_number}) on collection "
        f"{collection.id}: balance={state.balance} status={state.status}"
    )
    await cache.invalidate(*INVALIDATE_ON_PAYMENT)

    payment = await _fetch_payment(db, payment.id)
    return _result(payment, collection)


async def cancel_payment(
    db: AsyncSession,
    cache: ResponseCache,
    payment_id: str,
) -> dict:
    """Soft-cancel a payment and reverse its effect on the balance.

    Cancelling a payment that is already cancelled changes nothing.
    """
    async with atomic(db):
        payment = await _fetch_payment(db, payment_id)
        collection = await _lock_collection(db, payment.collection_id)
        # re-read under the collection lock so concurrent cancels serialise
        payment = await _fetch_payment(db, payment_id)

        if payment.is_cancelled:
            logger.info(f"Payment {payment.id} already cancelled; nothing to reverse")
            return _result(payment, collection)

        payment.is_cancelled = True
        payment.cancelled_at = datetime.utcnow()
        await db.flush()

        remaining = await applied_total(db, collection.id)
        state = reverse_payment(collection.state, payment.amount, remaining)
        state.write_to(collection)
        await db.flush()

    logger.info(
        f"Cancelled payment {payment.id} (OR {payment.or_number}) on collection "
        f"{collection.id}: balance={state.balance} status={state.status}"
    )
    await cache.invalidate(*INVALIDATE_ON_PAYMENT)

    payment = await _fetch_payment(db, payment.id)
    return _result(payment, collection)


async def update_payment(
    db: AsyncSession,
    cache: ResponseCache,
    payment_id: str,
    data: PaymentUpdate,
) -> dict:
    """Correct a payment; an amount change is re-applied as a delta."""
    changes = data.model_dump(exclude_unset=True)

    async with atomic(db):
        payment = await _fetch_payment(db, payment_id)
        collection = await _lock_collection(db, payment.collection_id)
        payment = await _fetch_payment(db, payment_id)

        if payment.is_cancelled:
            raise ValidationFailure("Cancelled payments cannot be edited")

        new_or = changes.get("or_number")
        if new_or and new_or != payment.or_number:
            await _ensure_or_number_free(db, new_or, exclude_payment_id=payment.id)
            payment.or_number = new_or

        old_amount = to_money(payment.amount)
        new_amount = to_money(changes["amount"]) if changes.get("amount") is not None else old_amount

        has_withholding = changes.get("has_withholding")
        if has_withholding is None:
            has_withholding = payment.has_withholding
        if changes.get("withholding_amount") is not None:
            withholding = to_money(changes["withholding_amount"])
        elif has_withholding:
            withholding = to_money(payment.withholding_amount)
        else:
            withholding = ZERO

        payment.amount = new_amount
        payment.withholding_amount = withholding
        payment.has_withholding = has_withholding or withholding > ZERO
        payment.amount_paid = _net_of_withholding(new_amount, withholding)

        for name in ("payment_date", "posting_date", "collection_date", "invoice_date", "remarks"):
            if name in changes:
                setattr(payment, name, changes[name])
        if changes.get("mode"):
            payment.mode = changes["mode"]

        await payment_modes.replace(
            db, payment, {k: v for k, v in changes.items() if k in MODE_FIELDS}
        )

        state = collection.state
        if new_amount != old_amount:
            others = await applied_total(db, collection.id, exclude_payment_id=payment.id)
            state = adjust_payment(state, old_amount, new_amount, others)
            state.write_to(collection)
        await db.flush()

    logger.info(
        f"Updated payment {payment.id} (OR {payment.or_number}) amount "
        f"{old_amount} -> {new_amount}: balance={state.balance} status={state.status}"
    )
    await cache.invalidate(*INVALIDATE_ON_PAYMENT)

    payment = await _fetch_payment(db, payment.id)
    return _result(payment, collection)


# ── Reads ────────────────────────────────────────────────────

async def get_payment(db: AsyncSession, cache: ResponseCache, payment_id: str) -> dict:
    async def load():
        payment = await _fetch_payment(db, payment_id)
        return PaymentOut.model_validate(payment).model_dump(mode="json")

    return await cache.remember(f"payment:{payment_id}", load)


async def list_payments(
    db: AsyncSession,
    cache: ResponseCache,
    page_index: int | None = None,
    page_size: int | None = None,
    search: str | None = None,
    mode: str | None = None,
    collection_id: str | None = None,
    include_cancelled: bool = False,
) -> dict:
    page_index, page_size, offset = page_window(page_index, page_size)
    key = cache_key(
        "payments",
        page=page_index, size=page_size, search=search, mode=mode,
        collection=collection_id, cancelled=include_cancelled,
    )

    async def load():
        query = select(Payment)
        if not include_cancelled:
            query = query.where(Payment.is_cancelled == False)  # noqa: E712
        if mode:
            query = query.where(Payment.mode == mode)
        if collection_id:
            query = query.where(Payment.collection_id == collection_id)
        if search:
            like = f"%{search}%"
            query = (
                query.outerjoin(Collection, Collection.id == Payment.collection_id)
                .outerjoin(Billing, Billing.id == Collection.billing_id)
                .outerjoin(ClientDepartment, ClientDepartment.id == Billing.department_id)
                .where(or_(
                    Payment.invoice_number.ilike(like),
                    Payment.or_number.ilike(like),
                    ClientDepartment.name.ilike(like),
                ))
            )

        total = (await db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar_one()
        result = await db.execute(
            query.order_by(Payment.payment_date.desc(), Payment.created_at.desc())
            .offset(offset)
            .limit(page_size)
        )
        return {
            "items": [
                PaymentOut.model_validate(p).model_dump(mode="json")
                for p in result.scalars().all()
            ],
            "total": total,
            "page_index": page_index,
            "page_size": page_size,
        }

    return await cache.remember(key, load)
