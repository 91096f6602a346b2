"""Collection — the amount owed against one Billing.

    amount   reference total owed (the billing's total_amount)
    balance  running remainder once a partial payment has been recorded;
             0 while nothing has been paid *or* once fully paid, the two
             being told apart by `status`
    status   pending | paid

`settlement` and `outstanding` are derived views over those three columns
and are never stored.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base, SoftDeleteMixin
from billtrack.utils.settlement import (  # noqa: F401
    COLLECTION_STATUSES,
    PAID,
    PENDING,
    CollectionState,
)


class Collection(SoftDeleteMixin, Base):
    __tablename__ = "collections"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    billing_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("billings.id", ondelete="CASCADE"),
        unique=True, nullable=False,
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[str] = mapped_column(String(20), default=PENDING, index=True)

    collection_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    remarks: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    billing = relationship("Billing", back_populates="collection", lazy="selectin")
    payments = relationship(
        "Payment",
        back_populates="collection",
        cascade="all, delete-orphan",
        order_by="Payment.created_at",
        lazy="raise",
    )

    @property
    def state(self) -> CollectionState:
        return CollectionState.of(self)

    @property
    def settlement(self) -> str:
        return self.state.settlement

    @property
    def outstanding(self) -> Decimal:
        return self.state.outstanding
