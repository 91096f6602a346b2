"""Pydantic schemas for payment recording, correction and cancellation.

Mode-specific fields travel flat on the request body; the payment service
hands them to the satellite resolver for the selected mode.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from billtrack.schemas.collection import CollectionOut
from billtrack.utils.money import to_money


class PaymentModeFields(BaseModel):
    # cheque
    cheque_number: str | None = Field(None, max_length=100)
    cheque_date: date | None = None
    # cheque / online_transfer
    bank_name: str | None = Field(None, max_length=255)
    # online_transfer
    reference_number: str | None = Field(None, max_length=100)
    transfer_date: date | None = None
    # pdc
    pdc_number: str | None = Field(None, max_length=100)
    pdc_date: date | None = None
    deposit_date: date | None = None
    credit_date: date | None = None


class PaymentCreate(PaymentModeFields):
    invoice_number: str = Field(..., min_length=1, max_length=100)
    or_number: str = Field(..., min_length=1, max_length=100)
    amount: Decimal
    has_withholding: bool = False
    withholding_amount: Decimal = Decimal("0.00")
    mode: str = "cash"
    payment_date: date
    posting_date: date | None = None
    collection_date: date | None = None
    invoice_date: date | None = None
    remarks: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: Decimal) -> Decimal:
        v = to_money(v)
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("withholding_amount")
    @classmethod
    def withholding_not_negative(cls, v: Decimal) -> Decimal:
        v = to_money(v)
        if v < 0:
            raise ValueError("Withholding amount cannot be negative")
        return v


class PaymentUpdate(PaymentModeFields):
    or_number: str | None = Field(None, min_length=1, max_length=100)
    amount: Decimal | None = None
    has_withholding: bool | None = None
    withholding_amount: Decimal | None = None
    mode: str | None = None
    payment_date: date | None = None
    posting_date: date | None = None
    collection_date: date | None = None
    invoice_date: date | None = None
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

    @field_validator("withholding_amount")
    @classmethod
    def withholding_not_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return v
        v = to_money(v)
        if v < 0:
            raise ValueError("Withholding amount cannot be negative")
        return v


# ── Output ───────────────────────────────────────────────────

class PaymentChequeOut(BaseModel):
    cheque_number: str
    cheque_date: date
    bank_name: str | None

    model_config = {"from_attributes": True}


class PaymentOnlineTransferOut(BaseModel):
    reference_number: str
    transfer_date: date
    bank_name: str | None

    model_config = {"from_attributes": True}


class PaymentPDCOut(BaseModel):
    pdc_number: str
    pdc_date: date
    deposit_date: date | None
    credit_date: date | None

    model_config = {"from_attributes": True}


class PaymentOut(BaseModel):
    id: str
    collection_id: str
    invoice_number: str
    or_number: str
    amount: Decimal
    has_withholding: bool
    withholding_amount: Decimal
    amount_paid: Decimal
    mode: str
    payment_date: date
    posting_date: date | None
    collection_date: date | None
    invoice_date: date | None
    remarks: str | None
    is_cancelled: bool
    cancelled_at: datetime | None
    cheque: PaymentChequeOut | None = None
    online_transfer: PaymentOnlineTransferOut | None = None
    pdc: PaymentPDCOut | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    """A payment change together with the collection state it produced."""
    payment: PaymentOut
    collection: CollectionOut


class CollectionWithPaymentsOut(CollectionOut):
    payments: list[PaymentOut] = []
