"""Pydantic schemas for cargo item intake and listing."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CargoItemCreate(BaseModel):
    """Payload for POST /api/cargo-items/."""
    client_id: str
    designation: str = Field(..., min_length=1)
    item_type: str = "parcel"
    package_count: int = Field(1, ge=1)
    weight_kg: float | None = Field(None, ge=0)
    volume_m3: float | None = Field(None, ge=0)
    declared_value: float | None = Field(None, ge=0)
    cost_transport: float = Field(0.0, ge=0)
    cost_handling: float = Field(0.0, ge=0)
    cost_insurance: float = Field(0.0, ge=0)
    cost_storage: float = Field(0.0, ge=0)
    notes: str | None = None

    @field_validator("item_type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in ("parcel", "vehicle", "pallet", "other"):
            raise ValueError("item_type must be one of parcel, vehicle, pallet, other")
        return v


class CargoCostUpdate(BaseModel):
    """Explicit cost correction; the only way cost_total changes after intake."""
    cost_transport: float | None = Field(None, ge=0)
    cost_handling: float | None = Field(None, ge=0)
    cost_insurance: float | None = Field(None, ge=0)
    cost_storage: float | None = Field(None, ge=0)
    reason: str | None = None


class CargoItemOut(BaseModel):
    id: str
    barcode: str
    client_id: str
    container_id: str | None
    item_type: str
    designation: str
    package_count: int
    weight_kg: float | None
    volume_m3: float | None
    declared_value: float | None
    cost_transport: float
    cost_handling: float
    cost_insurance: float
    cost_storage: float
    cost_total: float
    invoiced: bool
    status: str
    assigned_at: datetime | None
    position_in_container: str | None
    received_at: datetime

    model_config = {"from_attributes": True}
