"""Payment — one payment event against a Collection, plus its mode satellites.

    amount_paid = amount − withholding_amount

Payments are never hard-deleted: cancelling flips `is_cancelled` and the
Collection balance is reversed.  The OR number is unique among payments
that are not cancelled (a partial unique index), so a cancelled receipt
number may be reused.

Mode satellites (PaymentCheque / PaymentOnlineTransfer / PaymentPDC) use the
payment id as their own primary key, so at most one of each can exist per
payment.  Cash payments have none.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Index,
    Numeric, String, Text, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base

PAYMENT_MODES = ("cash", "cheque", "online_transfer", "pdc")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        # OR numbers are unique among live payments; a cancelled receipt may be reused
        Index(
            "uq_payments_or_number_live",
            "or_number",
            unique=True,
            postgresql_where=text("is_cancelled = false"),
            sqlite_where=text("is_cancelled = 0"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    collection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    or_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # ── Amounts ──────────────────────────────────────────────
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    has_withholding: Mapped[bool] = mapped_column(Boolean, default=False)
    withholding_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # cash | cheque | online_transfer | pdc
    mode: Mapped[str] = mapped_column(String(30), default="cash", index=True)

    # ── Dates ────────────────────────────────────────────────
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    posting_date: Mapped[date | None] = mapped_column(Date)
    collection_date: Mapped[date | None] = mapped_column(Date)
    invoice_date: Mapped[date | None] = mapped_column(Date)

    remarks: Mapped[str | None] = mapped_column(Text)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    collection = relationship("Collection", back_populates="payments", lazy="selectin")
    cheque = relationship(
        "PaymentCheque", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    online_transfer = relationship(
        "PaymentOnlineTransfer", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    pdc = relationship(
        "PaymentPDC", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )


class PaymentCheque(Base):
    __tablename__ = "payment_cheques"

    id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True
    )
    cheque_number: Mapped[str] = mapped_column(String(100), nullable=False)
    cheque_date: Mapped[date] = mapped_column(Date, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class PaymentOnlineTransfer(Base):
    __tablename__ = "payment_online_transfers"

    id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True
    )
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class PaymentPDC(Base):
    __tablename__ = "payment_pdcs"

    id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True
    )
    pdc_number: Mapped[str] = mapped_column(String(100), nullable=False)
    pdc_date: Mapped[date] = mapped_column(Date, nullable=False)
    deposit_date: Mapped[date | None] = mapped_column(Date)
    credit_date: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
