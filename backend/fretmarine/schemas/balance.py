"""Balance view for a client, cargo item or container."""

from pydantic import BaseModel


class BalanceOut(BaseModel):
    kind: str
    id: str
    due: float
    paid: float
    remaining: float
    display_remaining: float
    overpaid: bool
