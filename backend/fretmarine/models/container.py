"""Container (conteneur) — a shipping container consolidating cargo items.

Opened for a destination with a declared weight/volume capacity, filled
with cargo items, closed, then shipped.  `used_weight_kg` and
`used_volume_m3` are a materialised view of current membership: they are
only ever written by the capacity tracker, from a fresh membership sum.

Lifecycle:  ouvert → en_preparation → en_transit → arrive → cloture
            cloture → ouvert (reopen for corrections)
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fretmarine.database import Base

CONTAINER_STATUSES = ("ouvert", "en_preparation", "en_transit", "arrive", "cloture")
# Statuses that still accept new cargo items
ASSIGNABLE_STATUSES = ("ouvert", "en_preparation")


class Container(Base):
    __tablename__ = "containers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    container_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    file_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    # ── Type & destination ───────────────────────────────────
    # "20ft" | "40ft" | "40ft_hc"
    container_type: Mapped[str] = mapped_column(String(20), default="20ft")
    destination_port: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_city: Mapped[str | None] = mapped_column(String(100))
    destination_country: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # "with_customs" | "without_customs"
    shipping_mode: Mapped[str] = mapped_column(String(30), default="without_customs")

    # ── Capacity (0 = not configured, treated as unlimited) ──
    capacity_weight_kg: Mapped[float] = mapped_column(Float, default=0.0)
    capacity_volume_m3: Mapped[float] = mapped_column(Float, default=0.0)
    used_weight_kg: Mapped[float] = mapped_column(Float, default=0.0)
    used_volume_m3: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Costs ────────────────────────────────────────────────
    cost_transport: Mapped[float] = mapped_column(Float, default=0.0)
    cost_customs: Mapped[float] = mapped_column(Float, default=0.0)
    cost_handling: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Carrier ──────────────────────────────────────────────
    carrier: Mapped[str | None] = mapped_column(String(255))
    tracking_number: Mapped[str | None] = mapped_column(String(100))
    seal_number: Mapped[str | None] = mapped_column(String(50))

    # ── Dates ────────────────────────────────────────────────
    planned_departure: Mapped[date | None] = mapped_column(Date)
    departed_at: Mapped[datetime | None] = mapped_column(DateTime)
    arrived_at: Mapped[datetime | None] = mapped_column(DateTime)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime)
    reopened_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(30), default="ouvert", index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    cargo_items = relationship("CargoItem", back_populates="container", lazy="noload")

    __mapper_args__ = {"version_id_col": version}

    @property
    def cost_total(self) -> float:
        return round(
            (self.cost_transport or 0.0)
            + (self.cost_customs or 0.0)
            + (self.cost_handling or 0.0),
            2,
        )
