"""Pydantic schemas for Client CRUD."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    first_name: str | None = Field(None, max_length=255)
    client_type: str = "individual"
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=100)
    address: str | None = None
    country: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("client_type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in ("individual", "company"):
            raise ValueError("client_type must be 'individual' or 'company'")
        return v


class ClientOut(BaseModel):
    id: str
    code: str
    name: str
    first_name: str | None
    client_type: str
    email: str | None
    phone: str | None
    address: str | None
    country: str | None
    status: str
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
