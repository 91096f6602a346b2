"""Pydantic schemas for client departments and branches.

Both are billable units scoped to one Client and share the same shape;
branches require an address.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ClientDepartmentCreate(BaseModel):
    client_id: str = Field(..., min_length=1, max_length=36)
    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = None
    phone: str | None = Field(None, max_length=30)
    email: str | None = Field(None, max_length=255)
    status: str = "active"


class ClientDepartmentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = None
    phone: str | None = Field(None, max_length=30)
    email: str | None = Field(None, max_length=255)
    status: str | None = None


class ClientDepartmentOut(BaseModel):
    id: str
    client_id: str
    name: str
    address: str | None
    phone: str | None
    email: str | None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientBranchCreate(ClientDepartmentCreate):
    address: str = Field(..., min_length=1)


class ClientBranchUpdate(ClientDepartmentUpdate):
    pass


class ClientBranchOut(ClientDepartmentOut):
    pass
