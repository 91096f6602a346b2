"""Client — the legal entity that is billed, owner of departments and branches.

Status:  active | inactive | pending
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base, SoftDeleteMixin

CLIENT_STATUSES = ("active", "inactive", "pending")


class Client(SoftDeleteMixin, Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    tax_id: Mapped[str | None] = mapped_column(String(50))
    business_style: Mapped[str | None] = mapped_column(String(255))
    billing_address: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    departments = relationship("ClientDepartment", back_populates="client", lazy="raise")
    branches = relationship("ClientBranch", back_populates="client", lazy="raise")
