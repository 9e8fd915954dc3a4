"""ORM models — imported here so Alembic and create_all see every table."""

from fretmarine.models.client import Client
from fretmarine.models.container import Container
from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.assignment import ContainerAssignment
from fretmarine.models.payment import Payment
from fretmarine.models.activity_log import ActivityLog

__all__ = [
    "Client", "Container", "CargoItem", "ContainerAssignment",
    "Payment", "ActivityLog",
]
