"""Schemas shared by several routers."""

from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a list endpoint; ``total`` counts every matching row."""
    items: list[T]
    total: int
    limit: int
    offset: int


class CapacityOut(BaseModel):
    used_weight_kg: float
    used_volume_m3: float
    item_count: int
