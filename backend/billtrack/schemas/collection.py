"""Pydantic schemas for collections and the aging report."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class CollectionOut(BaseModel):
    id: str
    billing_id: str
    invoice_number: str
    amount: Decimal
    balance: Decimal
    status: str
    # derived: untouched | partial | settled
    settlement: str
    outstanding: Decimal
    collection_date: date
    remarks: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CollectionUpdate(BaseModel):
    """Only bookkeeping fields; amount and balance follow the billing and payments."""
    collection_date: date | None = None
    remarks: str | None = None


class AgingBucketOut(BaseModel):
    bucket: str
    count: int
    outstanding: Decimal


class AgingSummaryOut(BaseModel):
    as_of: date
    buckets: list[AgingBucketOut]
    total_count: int
    total_outstanding: Decimal
