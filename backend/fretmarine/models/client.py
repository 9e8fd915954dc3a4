"""Client — a shipper whose cargo items are consolidated into containers."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fretmarine.database import Base

# active | inactive | suspended
CLIENT_STATUSES = ("active", "inactive", "suspended")


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    # ── Identity / contact ───────────────────────────────────
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(String(255))
    # "individual" | "company"
    client_type: Mapped[str] = mapped_column(String(20), default="individual")
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(100))
    address: Mapped[str | None] = mapped_column(Text)
    country: Mapped[str | None] = mapped_column(String(100))

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    cargo_items = relationship("CargoItem", back_populates="client", lazy="noload")
    payments = relationship("Payment", back_populates="client", lazy="noload")
