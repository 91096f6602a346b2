"""Machine — a serviced unit, optionally placed at a client department."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billtrack.database import Base, SoftDeleteMixin


class Machine(SoftDeleteMixin, Base):
    __tablename__ = "machines"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    brand: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    serial_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    # On Stock | Deployed | Under Repair | Retired
    status: Mapped[str] = mapped_column(String(50), default="On Stock")

    client_department_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("client_departments.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    client_department = relationship("ClientDepartment", lazy="selectin")
