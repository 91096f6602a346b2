"""Pydantic schemas for Client CRUD operations."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from billtrack.models.client import CLIENT_STATUSES


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=50)
    business_style: str | None = None
    billing_address: str | None = None
    status: str = "active"

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in CLIENT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(CLIENT_STATUSES)}")
        return v


class ClientUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=50)
    business_style: str | None = None
    billing_address: str | None = None
    status: str | None = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        if v is not None and v not in CLIENT_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(CLIENT_STATUSES)}")
        return v


class ClientOut(BaseModel):
    id: str
    name: str
    tax_id: str | None
    business_style: str | None
    billing_address: str | None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
