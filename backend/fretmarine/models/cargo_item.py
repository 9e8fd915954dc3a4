"""CargoItem (marchandise) — a unit of freight received from a client.

Received at the depot, optionally admitted into one Container, then
shipped with it.  Cost components are set at intake; `cost_total` is
their sum and only changes through an explicit cost correction.

Lifecycle:  received/pending → assigned → in_container → in_transit
            → arrived → delivered   (problem | lost | damaged at any point)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fretmarine.database import Base

ITEM_STATUSES = (
    "received", "pending", "assigned", "in_container", "in_transit",
    "arrived", "delivered", "problem", "lost", "damaged",
)
# Statuses the admission controller may upgrade to "assigned"
PRE_ASSIGNMENT_STATUSES = ("received", "pending")
# Kept as-is when an item is released from its container
EXCEPTION_STATUSES = ("problem", "lost", "damaged")
# Never touched by the bulk transition on container close
TERMINAL_STATUSES = ("delivered", "problem", "lost")

COST_FIELDS = ("cost_transport", "cost_handling", "cost_insurance", "cost_storage")


class CargoItem(Base):
    __tablename__ = "cargo_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    barcode: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    # ── Ownership / placement ────────────────────────────────
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("clients.id"), nullable=False, index=True
    )
    container_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("containers.id"), index=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime)
    position_in_container: Mapped[str | None] = mapped_column(String(50))

    # ── Description ──────────────────────────────────────────
    # parcel | vehicle | pallet | other
    item_type: Mapped[str] = mapped_column(String(20), default="parcel")
    designation: Mapped[str] = mapped_column(Text, nullable=False)
    package_count: Mapped[int] = mapped_column(Integer, default=1)
    weight_kg: Mapped[float | None] = mapped_column(Float)
    volume_m3: Mapped[float | None] = mapped_column(Float)
    declared_value: Mapped[float | None] = mapped_column(Float)

    # ── Pricing ──────────────────────────────────────────────
    cost_transport: Mapped[float] = mapped_column(Float, default=0.0)
    cost_handling: Mapped[float] = mapped_column(Float, default=0.0)
    cost_insurance: Mapped[float] = mapped_column(Float, default=0.0)
    cost_storage: Mapped[float] = mapped_column(Float, default=0.0)
    cost_total: Mapped[float] = mapped_column(Float, default=0.0)
    invoiced: Mapped[bool] = mapped_column(Boolean, default=False)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(30), default="pending", index=True)
    # JSON array: [{"scanned_at": "...", "location": "...", "action": "...", "actor_id": "..."}]
    scan_history: Mapped[list | None] = mapped_column(JSON)

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    client = relationship("Client", back_populates="cargo_items", lazy="noload")
    container = relationship("Container", back_populates="cargo_items", lazy="noload")

    def refresh_cost_total(self) -> float:
        self.cost_total = round(sum(getattr(self, f) or 0.0 for f in COST_FIELDS), 2)
        return self.cost_total
