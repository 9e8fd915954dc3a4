"""Pydantic schemas for containers, admission and lifecycle operations."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from fretmarine.models.container import CONTAINER_STATUSES
from fretmarine.schemas.common import CapacityOut


# ── Create container ──────────────────────────────────────────

class ContainerCreate(BaseModel):
    """Payload for POST /api/containers/ (created empty, status ouvert)."""
    container_type: str = "20ft"
    destination_port: str = Field(..., min_length=1, max_length=100)
    destination_city: str | None = Field(None, max_length=100)
    destination_country: str = Field(..., min_length=1, max_length=100)
    shipping_mode: str = "without_customs"
    capacity_weight_kg: float = Field(0.0, ge=0)
    capacity_volume_m3: float = Field(0.0, ge=0)
    cost_transport: float = Field(0.0, ge=0)
    cost_customs: float = Field(0.0, ge=0)
    cost_handling: float = Field(0.0, ge=0)
    carrier: str | None = None
    tracking_number: str | None = None
    seal_number: str | None = None
    planned_departure: date | None = None
    notes: str | None = None

    @field_validator("container_type")
    @classmethod
    def valid_type(cls, v: str) -> str:
        if v not in ("20ft", "40ft", "40ft_hc"):
            raise ValueError("container_type must be one of 20ft, 40ft, 40ft_hc")
        return v

    @field_validator("shipping_mode")
    @classmethod
    def valid_mode(cls, v: str) -> str:
        if v not in ("with_customs", "without_customs"):
            raise ValueError("shipping_mode must be 'with_customs' or 'without_customs'")
        return v


class ContainerSummary(BaseModel):
    id: str
    container_number: str
    file_number: str
    container_type: str
    destination_port: str
    destination_country: str
    capacity_weight_kg: float
    capacity_volume_m3: float
    used_weight_kg: float
    used_volume_m3: float
    status: str
    planned_departure: date | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContainerDetail(ContainerSummary):
    destination_city: str | None
    shipping_mode: str
    cost_transport: float
    cost_customs: float
    cost_handling: float
    cost_total: float
    carrier: str | None
    tracking_number: str | None
    seal_number: str | None
    departed_at: datetime | None
    arrived_at: datetime | None
    closed_at: datetime | None
    reopened_at: datetime | None
    notes: str | None
    fill_rate: float | None = None
    allowed_next: list[str] = []
    stats: dict = {}


# ── Admission ─────────────────────────────────────────────────

class AssignRequest(BaseModel):
    """Payload for POST /api/containers/{id}/assign."""
    cargo_item_id: str
    position_in_container: str | None = Field(None, max_length=50)


class UnassignRequest(BaseModel):
    """Payload for POST /api/containers/{id}/unassign."""
    cargo_item_id: str


class AssignmentOut(BaseModel):
    cargo_item_id: str
    container_id: str | None
    changed: bool
    item_status: str
    capacity: CapacityOut


# ── Lifecycle ─────────────────────────────────────────────────

class AdvanceRequest(BaseModel):
    """Payload for POST /api/containers/{id}/advance."""
    status: str

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in CONTAINER_STATUSES:
            raise ValueError(f"status must be one of {', '.join(CONTAINER_STATUSES)}")
        return v


class LifecycleOut(BaseModel):
    container_id: str
    previous_status: str
    status: str
    changed: bool
    items_transitioned: int
    capacity: CapacityOut


# ── Manifest ──────────────────────────────────────────────────

class ManifestLine(BaseModel):
    cargo_item_id: str
    barcode: str
    designation: str
    item_type: str
    package_count: int
    weight_kg: float | None
    volume_m3: float | None
    status: str
    client_id: str
    client_name: str
    cost_total: float
    amount_paid: float
    amount_remaining: float
    released: bool


class ManifestOut(BaseModel):
    container_id: str
    container_number: str
    status: str
    lines: list[ManifestLine]
