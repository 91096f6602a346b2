"""Billing — one invoice issued to a client department.

total_amount = amount + vat_amount − discount.

Lifecycle:  active → cancelled (is_cancelled) → revived (same row, re-issued)

The invoice number column is unique across all rows.  Creating a billing
whose invoice number belongs to a cancelled row revives that row instead of
inserting a new one, so a number can be re-issued without duplicates.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer,
    Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base, SoftDeleteMixin


class Billing(SoftDeleteMixin, Base):
    __tablename__ = "billings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    invoice_number: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )

    # ── Billed party ─────────────────────────────────────────
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    department_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("client_departments.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    branch_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("client_branches.id", ondelete="RESTRICT")
    )

    # ── Amounts ──────────────────────────────────────────────
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # ── Period / category ────────────────────────────────────
    month: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    billing_date: Mapped[date] = mapped_column(Date, nullable=False)
    billing_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    remarks: Mapped[str | None] = mapped_column(Text)

    # ── Cancellation ─────────────────────────────────────────
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    client = relationship("Client", lazy="selectin")
    department = relationship("ClientDepartment", lazy="selectin")
    branch = relationship("ClientBranch", lazy="selectin")
    collection = relationship(
        "Collection",
        back_populates="billing",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def department_name(self) -> str | None:
        return self.department.name if self.department is not None else None
