"""Payment (paiement) — money collected from a client.

Belongs to one Client and may reference one CargoItem and/or one
Container.  `amount_paid` never exceeds `amount_due` at creation.
Cancelling flips the status; rows are never deleted so the financial
audit trail stays intact.

Lifecycle:  valid → cancelled | refunded   (pending reserved for deferred collection)
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fretmarine.database import Base

PAYMENT_STATUSES = ("pending", "valid", "cancelled", "refunded")
PAYMENT_METHODS = ("cash", "transfer", "cheque", "card", "mobile_money")


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    receipt_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # ── Links ────────────────────────────────────────────────
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id"), nullable=False, index=True
    )
    cargo_item_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("cargo_items.id"), index=True
    )
    container_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("containers.id"), index=True
    )

    # ── Amounts ──────────────────────────────────────────────
    amount_due: Mapped[float] = mapped_column(Float, nullable=False)
    amount_paid: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")

    # ── Details ──────────────────────────────────────────────
    payment_method: Mapped[str] = mapped_column(String(30), default="cash")
    reference: Mapped[str | None] = mapped_column(String(100))
    paid_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(30), default="valid", index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_by: Mapped[str | None] = mapped_column(String(36))
    cancel_reason: Mapped[str | None] = mapped_column(Text)

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    recorded_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    client = relationship("Client", back_populates="payments", lazy="noload")

    @property
    def amount_remaining(self) -> float:
        return round(self.amount_due - self.amount_paid, 2)
