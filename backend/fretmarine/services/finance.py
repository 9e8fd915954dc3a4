"""Financial reconciler: amount due vs. amount collected per scope.

A balance is computed in one SELECT of two scalar subqueries so ``due``
and ``paid`` come from the same snapshot.  Only ``valid`` payments count.

  client      due  = cost_total of every item of the client
              paid = payments with that client_id
  cargo_item  due  = cost_total of the item
              paid = payments with that cargo_item_id
  container   due  = items currently inside + invoiced items that were
                     inside before being released (assignment history)
              paid = payments with that container_id, or whose
                     cargo_item_id is one of those items

``remaining`` is never clamped; ``display_remaining`` floors at 0 for
reports and ``overpaid`` flags the anomaly.  No financial precondition
is imposed on lifecycle transitions.
"""

from dataclasses import dataclass
from typing import Literal

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fretmarine.middleware.exceptions import BusinessLogicError, PaymentExceedsDueError
from fretmarine.models.assignment import ContainerAssignment
from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.payment import Payment

ScopeKind = Literal["client", "cargo_item", "container"]
SCOPE_KINDS = ("client", "cargo_item", "container")


@dataclass(frozen=True)
class BalanceScope:
    kind: ScopeKind
    id: str

    def __post_init__(self):
        if self.kind not in SCOPE_KINDS:
            raise BusinessLogicError(
                f"Unknown balance scope: {self.kind}", error_code="INVALID_SCOPE"
            )

    def __iter__(self):
        return iter((self.kind, self.id))


@dataclass(frozen=True)
class Balance:
    scope: BalanceScope
    due: float
    paid: float

    @property
    def remaining(self) -> float:
        return round(self.due - self.paid, 2)

    @property
    def display_remaining(self) -> float:
        return max(self.remaining, 0.0)

    @property
    def overpaid(self) -> bool:
        return self.remaining < 0

    def as_dict(self) -> dict:
        return {
            "kind": self.scope.kind,
            "id": self.scope.id,
            "due": self.due,
            "paid": self.paid,
            "remaining": self.remaining,
            "display_remaining": self.display_remaining,
            "overpaid": self.overpaid,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Balance":
        return cls(
            scope=BalanceScope(data["kind"], data["id"]),
            due=data["due"],
            paid=data["paid"],
        )


def _container_item_filter(container_id: str):
    """Items inside the container plus invoiced items it carried before."""
    released_invoiced = (
        select(ContainerAssignment.cargo_item_id)
        .where(ContainerAssignment.container_id == container_id)
    )
    return or_(
        CargoItem.container_id == container_id,
        and_(CargoItem.invoiced == True, CargoItem.id.in_(released_invoiced)),  # noqa: E712
    )


def _scope_filters(scope: BalanceScope):
    active_item = CargoItem.is_deleted == False  # noqa: E712
    valid = Payment.status == "valid"

    if scope.kind == "client":
        return (
            and_(CargoItem.client_id == scope.id, active_item),
            and_(Payment.client_id == scope.id, valid),
        )
    if scope.kind == "cargo_item":
        return (
            and_(CargoItem.id == scope.id, active_item),
            and_(Payment.cargo_item_id == scope.id, valid),
        )
    member = _container_item_filter(scope.id)
    item_ids = select(CargoItem.id).where(member, active_item)
    return (
        and_(member, active_item),
        and_(
            valid,
            or_(Payment.container_id == scope.id, Payment.cargo_item_id.in_(item_ids)),
        ),
    )


async def balance(db: AsyncSession, scope: BalanceScope) -> Balance:
    item_filter, payment_filter = _scope_filters(scope)

    due_sq = (
        select(func.coalesce(func.sum(CargoItem.cost_total), 0.0))
        .where(item_filter)
        .scalar_subquery()
    )
    paid_sq = (
        select(func.coalesce(func.sum(Payment.amount_paid), 0.0))
        .where(payment_filter)
        .scalar_subquery()
    )

    row = (await db.execute(select(due_sq.label("due"), paid_sq.label("paid")))).one()
    return Balance(
        scope=scope,
        due=round(float(row.due or 0.0), 2),
        paid=round(float(row.paid or 0.0), 2),
    )


def validate_payment_amounts(amount_due: float, amount_paid: float) -> None:
    if amount_due < 0 or amount_paid < 0:
        raise BusinessLogicError(
            "Payment amounts must not be negative",
            error_code="NEGATIVE_AMOUNT",
            details={"amount_due": amount_due, "amount_paid": amount_paid},
        )
    if amount_paid > amount_due:
        raise PaymentExceedsDueError(amount_due, amount_paid)


def scopes_for_payment(payment: Payment, item_container_id: str | None = None) -> list[BalanceScope]:
    """Balance scopes a payment contributes to (for cache invalidation)."""
    scopes = [BalanceScope("client", payment.client_id)]
    if payment.cargo_item_id:
        scopes.append(BalanceScope("cargo_item", payment.cargo_item_id))
    for container_id in {payment.container_id, item_container_id}:
        if container_id:
            scopes.append(BalanceScope("container", container_id))
    return scopes


async def financial_summary(db: AsyncSession) -> dict:
    """Totals over valid payments with a per-method breakdown."""
    totals = (
        await db.execute(
            select(
                func.count(Payment.id),
                func.coalesce(func.sum(Payment.amount_due), 0.0),
                func.coalesce(func.sum(Payment.amount_paid), 0.0),
            ).where(Payment.status == "valid")
        )
    ).one()

    by_method = (
        await db.execute(
            select(
                Payment.payment_method,
                func.count(Payment.id),
                func.coalesce(func.sum(Payment.amount_paid), 0.0),
            )
            .where(Payment.status == "valid")
            .group_by(Payment.payment_method)
            .order_by(Payment.payment_method)
        )
    ).all()

    invoiced_total = (
        await db.execute(
            select(func.coalesce(func.sum(CargoItem.cost_total), 0.0)).where(
                CargoItem.is_deleted == False  # noqa: E712
            )
        )
    ).scalar() or 0.0

    collected = round(float(totals[2] or 0.0), 2)
    return {
        "payment_count": int(totals[0] or 0),
        "total_due": round(float(totals[1] or 0.0), 2),
        "total_collected": collected,
        "total_invoiced": round(float(invoiced_total), 2),
        "total_outstanding": round(float(invoiced_total) - collected, 2),
        "by_method": [
            {"payment_method": method, "count": int(count), "amount": round(float(amount or 0.0), 2)}
            for method, count, amount in by_method
        ],
    }


async def scopes_for_item(db: AsyncSession, item: CargoItem) -> list[BalanceScope]:
    """Scopes whose ``due`` includes *item*: its client, itself and every container it was in."""
    scopes = [BalanceScope("client", item.client_id), BalanceScope("cargo_item", item.id)]
    history = await db.execute(
        select(ContainerAssignment.container_id)
        .where(ContainerAssignment.cargo_item_id == item.id)
        .distinct()
    )
    container_ids = set(history.scalars())
    if item.container_id:
        container_ids.add(item.container_id)
    scopes += [BalanceScope("container", cid) for cid in sorted(container_ids)]
    return scopes
