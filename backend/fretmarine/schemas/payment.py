"""Pydantic schemas for client payment recording."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from fretmarine.models.payment import PAYMENT_METHODS


class PaymentCreate(BaseModel):
    client_id: str
    amount_paid: float = Field(..., gt=0)
    amount_due: float | None = Field(None, ge=0)
    cargo_item_id: str | None = None
    container_id: str | None = None
    payment_method: str = "cash"
    currency: str = Field("EUR", min_length=3, max_length=3)
    reference: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("payment_method")
    @classmethod
    def valid_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        return v


class PaymentCancel(BaseModel):
    reason: str | None = None


class PaymentOut(BaseModel):
    id: str
    receipt_number: str
    client_id: str
    cargo_item_id: str | None
    container_id: str | None
    amount_due: float
    amount_paid: float
    amount_remaining: float
    currency: str
    payment_method: str
    reference: str | None
    status: str
    paid_at: datetime
    cancelled_at: datetime | None
    cancel_reason: str | None
    notes: str | None

    model_config = {"from_attributes": True}


class MethodTotal(BaseModel):
    payment_method: str
    count: int
    amount: float


class FinancialSummaryOut(BaseModel):
    payment_count: int
    total_due: float
    total_collected: float
    total_invoiced: float
    total_outstanding: float
    by_method: list[MethodTotal]
