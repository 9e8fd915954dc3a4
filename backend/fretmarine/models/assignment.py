"""ContainerAssignment — history of cargo items admitted into containers.

One row per admission.  Releasing an item stamps `released_at` instead of
deleting the row, so a container remembers every item it ever carried.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from fretmarine.database import Base


class ContainerAssignment(Base):
    __tablename__ = "container_assignments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    cargo_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cargo_items.id"), nullable=False, index=True
    )
    container_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("containers.id"), nullable=False, index=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    released_at: Mapped[datetime | None] = mapped_column(DateTime)
    assigned_by: Mapped[str | None] = mapped_column(String(36))
    released_by: Mapped[str | None] = mapped_column(String(36))
