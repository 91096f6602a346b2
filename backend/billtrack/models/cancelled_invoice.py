"""CancelledInvoice — append-only audit row written when a Billing is cancelled.

Captures the invoice number, amount and remarks as they were at the time of
cancellation.  A revived invoice that is cancelled again gets a second row.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base


class CancelledInvoice(Base):
    __tablename__ = "cancelled_invoices"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    billing_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("billings.id", ondelete="SET NULL"), index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remarks: Mapped[str] = mapped_column(Text, nullable=False)
    cancelled_by: Mapped[str | None] = mapped_column(String(36))  # user_id
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    billing = relationship("Billing", lazy="raise")
