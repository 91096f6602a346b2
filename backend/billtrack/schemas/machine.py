"""Pydantic schemas for machines placed at client departments."""

from datetime import datetime

from pydantic import BaseModel, Field


class MachineCreate(BaseModel):
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=255)
    serial_number: str = Field(..., min_length=1, max_length=100)
    status: str = Field("On Stock", max_length=50)
    client_department_id: str | None = None


class MachineUpdate(BaseModel):
    brand: str | None = Field(None, min_length=1, max_length=100)
    model: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=255)
    serial_number: str | None = Field(None, min_length=1, max_length=100)
    status: str | None = Field(None, max_length=50)
    client_department_id: str | None = None


class MachineOut(BaseModel):
    id: str
    brand: str
    model: str
    description: str | None
    serial_number: str
    status: str
    client_department_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
