"""Pydantic schemas for billings (invoices), single and bulk."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from billtrack.schemas.collection import CollectionOut
from billtrack.schemas.common import PaginatedResponse
from billtrack.utils.money import to_money


class BillingFields(BaseModel):
    amount: Decimal
    vat_amount: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    billing_date: date
    billing_type: str = Field(..., min_length=1, max_length=50)
    remarks: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal) -> Decimal:
        v = to_money(v)
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("vat_amount", "discount")
    @classmethod
    def not_negative(cls, v: Decimal) -> Decimal:
        v = to_money(v)
        if v < 0:
            raise ValueError("Must not be negative")
        return v


class BillingCreate(BillingFields):
    invoice_number: str = Field(..., min_length=1, max_length=100)
    department_id: str = Field(..., min_length=1, max_length=36)
    client_id: str | None = Field(None, max_length=36)
    branch_id: str | None = Field(None, max_length=36)


class BillingUpdate(BaseModel):
    invoice_number: str | None = Field(None, min_length=1, max_length=100)
    branch_id: str | None = Field(None, max_length=36)
    amount: Decimal | None = None
    vat_amount: Decimal | None = None
    discount: Decimal | None = None
    month: int | None = Field(None, ge=1, le=12)
    year: int | None = Field(None, ge=2000, le=2100)
    billing_date: date | None = None
    billing_type: str | None = Field(None, min_length=1, max_length=50)
    remarks: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return v
        v = to_money(v)
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("vat_amount", "discount")
    @classmethod
    def not_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return v
        v = to_money(v)
        if v < 0:
            raise ValueError("Must not be negative")
        return v


class BillingCancel(BaseModel):
    remarks: str = Field(..., min_length=1)


class BulkBillingRow(BillingFields):
    """One uploaded row; the department is given by name, not id."""
    invoice_number: str = Field(..., min_length=1, max_length=100)
    department_name: str = Field(..., min_length=1, max_length=255)
    row: int | None = None


class BulkBillingRequest(BaseModel):
    rows: list[BulkBillingRow] = Field(..., min_length=1)


# ── Output ───────────────────────────────────────────────────

class BillingOut(BaseModel):
    id: str
    invoice_number: str
    client_id: str
    department_id: str
    department_name: str | None = None
    branch_id: str | None
    amount: Decimal
    vat_amount: Decimal
    discount: Decimal
    total_amount: Decimal
    month: int
    year: int
    billing_date: date
    billing_type: str
    remarks: str | None
    is_cancelled: bool
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BillingResult(BaseModel):
    billing: BillingOut
    collection: CollectionOut
    revived: bool = False


class SkippedRow(BaseModel):
    row: int | None = None
    invoice_number: str
    reason: str


class BulkBillingResult(BaseModel):
    created: int
    revived: int
    skipped: int
    skipped_rows: list[SkippedRow]
    billings: list[BillingOut]


class RowErrorOut(BaseModel):
    row: int
    errors: list[str]


class BillingImportResult(BulkBillingResult):
    total_rows: int
    failed: int
    errors: list[RowErrorOut]


class BillingPage(PaginatedResponse[BillingOut]):
    """Billing list plus the figures behind the "unbilled departments" report."""
    total_amount: Decimal
    departments_billed: int
    departments_total: int
    departments_unbilled: int


class CancelledInvoiceOut(BaseModel):
    id: str
    billing_id: str | None
    invoice_number: str
    amount: Decimal
    remarks: str
    cancelled_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BillingCancelResult(BaseModel):
    billing: BillingOut
    cancelled_invoice: CancelledInvoiceOut
