"""Reconciliation facade: the transactional boundary of the engine.

Every mutating operation runs the same pipeline:

  1. take the in-process locks of every container/item/payment it touches
     (sorted key order, so two operations never wait on each other in a cycle)
  2. open a session and a transaction
  3. lock the container row FOR UPDATE and run the components
  4. write the ActivityLog row and build the result snapshot
  5. commit; on any error roll back, leaving no partial state
  6. after commit only: drop cached balances and publish an OperationEvent

The whole pipeline runs under ``asyncio.wait_for``; a timeout aborts the
transaction and raises OperationTimeoutError.  A version conflict on the
container row (StaleDataError) surfaces as ConcurrentModificationError.
"""

import asyncio
import logging
from collections import Counter
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fretmarine.config import settings
from fretmarine.middleware.exceptions import (
    BusinessLogicError,
    ConcurrentModificationError,
    OperationTimeoutError,
)
from fretmarine.models.payment import PAYMENT_METHODS, Payment
from fretmarine.services import admission, capacity, finance, ledger, lifecycle
from fretmarine.services.admission import AssignmentResult
from fretmarine.services.capacity import CapacityFigures
from fretmarine.services.events import EventBus, OperationEvent
from fretmarine.services.finance import Balance, BalanceScope
from fretmarine.utils.activity import log_activity
from fretmarine.utils.cache import BalanceCache
from fretmarine.utils.locks import ContainerLockRegistry
from fretmarine.utils.numbering import generate_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleResult:
    container_id: str
    previous_status: str
    status: str
    changed: bool
    items_transitioned: int
    capacity: CapacityFigures

    def as_dict(self) -> dict:
        return {
            "container_id": self.container_id,
            "previous_status": self.previous_status,
            "status": self.status,
            "changed": self.changed,
            "items_transitioned": self.items_transitioned,
            "capacity": self.capacity.as_dict(),
        }


@dataclass
class _Outcome:
    result: Any
    event: OperationEvent | None = None
    scopes: list[BalanceScope] = field(default_factory=list)


def _container_key(container_id: str) -> str:
    return f"container:{container_id}"


def _item_key(item_id: str) -> str:
    return f"item:{item_id}"


class ReconciliationFacade:
    """Public entry point of the engine.  All state lives on the instance."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: BalanceCache | None = None,
        events: EventBus | None = None,
        locks: ContainerLockRegistry | None = None,
        timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.events = events or EventBus()
        self.locks = locks or ContainerLockRegistry()
        self.timeout = settings.operation_timeout_seconds if timeout is None else timeout
        # bumped on every post-commit cache drop of a scope
        self._generations: Counter[BalanceScope] = Counter()

    # ── Plumbing ────────────────────────────────────────────

    async def _run(self, operation: str, coro: Awaitable[_Outcome]):
        try:
            outcome = await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{operation} timed out after {self.timeout}s, rolled back")
            raise OperationTimeoutError(operation, self.timeout)

        await self._after_commit(outcome)
        return outcome.result

    async def _transaction(
        self,
        lock_keys: list[str],
        work: Callable[[AsyncSession], Awaitable[_Outcome]],
    ) -> _Outcome:
        async with AsyncExitStack() as stack:
            for key in sorted(set(lock_keys)):
                await stack.enter_async_context(self.locks.hold(key))

            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        outcome = await work(db)
            except StaleDataError as e:
                raise ConcurrentModificationError() from e
        return outcome

    async def _after_commit(self, outcome: _Outcome) -> None:
        if self.cache is not None and outcome.scopes:
            self._generations.update(outcome.scopes)
            await self.cache.invalidate(outcome.scopes)
        if outcome.event is not None:
            self.events.publish(outcome.event)

    async def _balance_snapshot(self, db: AsyncSession, *scopes: BalanceScope) -> dict:
        snapshot = {}
        for scope in scopes:
            snapshot[f"{scope.kind}:{scope.id}"] = (await finance.balance(db, scope)).as_dict()
        return snapshot

    # ── Admission ───────────────────────────────────────────

    async def assign_item(
        self,
        item_id: str,
        container_id: str,
        *,
        actor_id: str | None = None,
        position: str | None = None,
    ) -> AssignmentResult:
        async def work(db: AsyncSession) -> _Outcome:
            container = await ledger.get_container(db, container_id, for_update=True)
            item = await ledger.get_cargo_item(db, item_id, for_update=True)

            result = await admission.assign(
                db, item, container, actor_id=actor_id, position=position
            )
            if not result.changed:
                return _Outcome(result)

            await log_activity(
                db, actor_id,
                action="assigned", entity_type="cargo_item",
                entity_id=item.id, entity_code=item.barcode,
                summary=f"Assigned {item.barcode} to {container.container_number}",
                details={"container_id": container.id, **result.capacity.as_dict()},
            )
            container_scope = BalanceScope("container", container.id)
            snapshot = {
                **result.as_dict(),
                "container_status": container.status,
                "balances": await self._balance_snapshot(db, container_scope),
            }
            return _Outcome(
                result,
                OperationEvent(
                    "item_assigned",
                    {"cargo_item_id": item.id, "container_id": container.id},
                    snapshot,
                ),
                [container_scope],
            )

        return await self._run(
            "assign_item",
            self._transaction([_container_key(container_id), _item_key(item_id)], work),
        )

    async def unassign_item(
        self, item_id: str, *, actor_id: str | None = None
    ) -> AssignmentResult:
        return await self._run("unassign_item", self._unassign(item_id, actor_id))

    async def _unassign(self, item_id: str, actor_id: str | None) -> _Outcome:
        async with self.session_factory() as db:
            item = await ledger.get_cargo_item(db, item_id)
            container_id = item.container_id
            status = item.status

        if container_id is None:
            return _Outcome(
                AssignmentResult(item_id, None, False, status, CapacityFigures(0.0, 0.0, 0))
            )

        async def work(db: AsyncSession) -> _Outcome:
            container = await ledger.get_container(db, container_id, for_update=True)
            item = await ledger.get_cargo_item(db, item_id, for_update=True)

            if item.container_id != container_id:
                if item.container_id is None:
                    # released by a concurrent call that committed first
                    figures = await capacity.recompute(db, container)
                    return _Outcome(
                        AssignmentResult(item.id, None, False, item.status, figures)
                    )
                raise ConcurrentModificationError(
                    f"Cargo item {item.barcode} moved to another container during the request"
                )

            result = await admission.unassign(db, item, container, actor_id=actor_id)
            await log_activity(
                db, actor_id,
                action="unassigned", entity_type="cargo_item",
                entity_id=item.id, entity_code=item.barcode,
                summary=f"Released {item.barcode} from {container.container_number}",
                details={"container_id": container.id, **result.capacity.as_dict()},
            )
            container_scope = BalanceScope("container", container.id)
            snapshot = {
                **result.as_dict(),
                "container_status": container.status,
                "balances": await self._balance_snapshot(db, container_scope),
            }
            return _Outcome(
                result,
                OperationEvent(
                    "item_unassigned",
                    {"cargo_item_id": item.id, "container_id": container.id},
                    snapshot,
                ),
                [container_scope],
            )

        return await self._transaction(
            [_container_key(container_id), _item_key(item_id)], work
        )

    async def recompute_capacity(
        self, container_id: str, *, actor_id: str | None = None
    ) -> CapacityFigures:
        async def work(db: AsyncSession) -> _Outcome:
            container = await ledger.get_container(db, container_id, for_update=True)
            drift = await capacity.detect_drift(db, container)
            figures = await capacity.recompute(db, container)
            if drift is None:
                return _Outcome(figures)

            await log_activity(
                db, actor_id,
                action="recomputed", entity_type="container",
                entity_id=container.id, entity_code=container.container_number,
                summary=f"Corrected capacity figures of {container.container_number}",
                details=figures.as_dict(),
            )
            return _Outcome(
                figures,
                OperationEvent(
                    "capacity_recomputed",
                    {"container_id": container.id},
                    {"capacity": figures.as_dict(), "container_status": container.status},
                ),
            )

        return await self._run(
            "recompute_capacity", self._transaction([_container_key(container_id)], work)
        )

    # ── Lifecycle ───────────────────────────────────────────

    async def _lifecycle(
        self,
        operation: str,
        action: str,
        container_id: str,
        transition: Callable[[AsyncSession, Any], Awaitable[int | None]],
        actor_id: str | None,
    ) -> LifecycleResult:
        async def work(db: AsyncSession) -> _Outcome:
            container = await ledger.get_container(db, container_id, for_update=True)
            previous = container.status

            transitioned = await transition(db, container)
            figures = await capacity.recompute(db, container)
            result = LifecycleResult(
                container_id=container.id,
                previous_status=previous,
                status=container.status,
                changed=previous != container.status,
                items_transitioned=transitioned or 0,
                capacity=figures,
            )
            if not result.changed:
                return _Outcome(result)

            await log_activity(
                db, actor_id,
                action=action, entity_type="container",
                entity_id=container.id, entity_code=container.container_number,
                summary=f"{container.container_number}: {previous} → {container.status}",
                details={"items_transitioned": result.items_transitioned},
            )
            snapshot = {
                **result.as_dict(),
                "balances": await self._balance_snapshot(
                    db, BalanceScope("container", container.id)
                ),
            }
            return _Outcome(
                result,
                OperationEvent(f"container_{action}", {"container_id": container.id}, snapshot),
            )

        return await self._run(
            operation,
            self._transaction([_container_key(container_id)], work),
        )

    async def close_container(
        self, container_id: str, *, actor_id: str | None = None
    ) -> LifecycleResult:
        return await self._lifecycle(
            "close_container", "closed", container_id, lifecycle.close, actor_id
        )

    async def reopen_container(
        self, container_id: str, *, actor_id: str | None = None
    ) -> LifecycleResult:
        return await self._lifecycle(
            "reopen_container", "reopened", container_id, lifecycle.reopen, actor_id
        )

    async def advance_container(
        self, container_id: str, next_status: str, *, actor_id: str | None = None
    ) -> LifecycleResult:
        async def transition(db: AsyncSession, container) -> int:
            if next_status == "cloture" and container.status != "cloture":
                lifecycle.validate_transition(container.status, next_status)
                return await lifecycle.close(db, container)
            await lifecycle.advance(db, container, next_status)
            return 0

        return await self._lifecycle(
            "advance_container", "advanced", container_id, transition, actor_id
        )

    # ── Payments ────────────────────────────────────────────

    async def record_payment(
        self,
        *,
        client_id: str,
        amount_paid: float,
        amount_due: float | None = None,
        cargo_item_id: str | None = None,
        container_id: str | None = None,
        payment_method: str = "cash",
        reference: str | None = None,
        currency: str = "EUR",
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Payment:
        """Record a payment against a client, optionally an item and/or container.

        When ``amount_due`` is omitted for an item payment it defaults to the
        item's outstanding balance.
        """
        if payment_method not in PAYMENT_METHODS:
            raise BusinessLogicError(
                f"Unknown payment method: {payment_method}",
                error_code="INVALID_PAYMENT_METHOD",
                details={"allowed": list(PAYMENT_METHODS)},
            )

        async def work(db: AsyncSession) -> _Outcome:
            await ledger.get_client(db, client_id, include_inactive=True)
            if container_id:
                await ledger.get_container(db, container_id)

            item = None
            due = amount_due
            if cargo_item_id:
                item = await ledger.get_cargo_item(db, cargo_item_id, for_update=True)
                if item.client_id != client_id:
                    raise BusinessLogicError(
                        f"Cargo item {item.barcode} does not belong to client {client_id}",
                        error_code="CLIENT_MISMATCH",
                    )
                if due is None:
                    outstanding = await finance.balance(db, BalanceScope("cargo_item", item.id))
                    due = outstanding.display_remaining
            if due is None:
                raise BusinessLogicError(
                    "amount_due is required when no cargo item is referenced",
                    error_code="AMOUNT_DUE_REQUIRED",
                )

            finance.validate_payment_amounts(due, amount_paid)

            payment = Payment(
                receipt_number=await generate_code(db, "payment"),
                client_id=client_id,
                cargo_item_id=cargo_item_id,
                container_id=container_id,
                amount_due=round(due, 2),
                amount_paid=round(amount_paid, 2),
                currency=currency,
                payment_method=payment_method,
                reference=reference,
                status="valid",
                notes=notes,
                recorded_by=actor_id,
            )
            db.add(payment)

            scopes = []
            if item is not None:
                item.invoiced = True
                # containers that carried the item count it once invoiced
                scopes += await finance.scopes_for_item(db, item)
            await db.flush()

            scopes += finance.scopes_for_payment(payment, item.container_id if item else None)
            scopes = list(dict.fromkeys(scopes))

            await log_activity(
                db, actor_id,
                action="payment_recorded", entity_type="payment",
                entity_id=payment.id, entity_code=payment.receipt_number,
                summary=f"Recorded {payment.amount_paid:.2f} {payment.currency} ({payment.payment_method})",
                details={"client_id": client_id, "cargo_item_id": cargo_item_id,
                         "container_id": container_id},
            )
            snapshot = {
                "payment_id": payment.id,
                "receipt_number": payment.receipt_number,
                "amount_due": payment.amount_due,
                "amount_paid": payment.amount_paid,
                "balances": await self._balance_snapshot(
                    db, *finance.scopes_for_payment(payment, item.container_id if item else None)
                ),
            }
            return _Outcome(
                payment,
                OperationEvent(
                    "payment_recorded",
                    {"payment_id": payment.id, "client_id": client_id,
                     "cargo_item_id": cargo_item_id, "container_id": container_id},
                    snapshot,
                ),
                scopes,
            )

        keys = [f"client:{client_id}"]
        if cargo_item_id:
            keys.append(_item_key(cargo_item_id))
        return await self._run("record_payment", self._transaction(keys, work))

    async def cancel_payment(
        self,
        payment_id: str,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> Payment:
        async def work(db: AsyncSession) -> _Outcome:
            payment = await ledger.get_payment(db, payment_id, for_update=True)
            if payment.status == "cancelled":
                return _Outcome(payment)
            if payment.status != "valid":
                raise BusinessLogicError(
                    f"Cannot cancel a {payment.status} payment",
                    error_code="PAYMENT_NOT_CANCELLABLE",
                )

            payment.status = "cancelled"
            payment.cancelled_at = datetime.utcnow()
            payment.cancelled_by = actor_id
            payment.cancel_reason = reason
            await db.flush()

            item_container_id = None
            released_scopes = []
            if payment.cargo_item_id:
                item = await ledger.get_cargo_item(db, payment.cargo_item_id)
                item_container_id = item.container_id
                # every container that carried the invoiced item counts this payment
                released_scopes = await finance.scopes_for_item(db, item)
            scopes = finance.scopes_for_payment(payment, item_container_id)

            await log_activity(
                db, actor_id,
                action="payment_cancelled", entity_type="payment",
                entity_id=payment.id, entity_code=payment.receipt_number,
                summary=f"Cancelled {payment.receipt_number}",
                details={"reason": reason},
            )
            snapshot = {
                "payment_id": payment.id,
                "receipt_number": payment.receipt_number,
                "status": payment.status,
                "balances": await self._balance_snapshot(db, *scopes),
            }
            return _Outcome(
                payment,
                OperationEvent(
                    "payment_cancelled",
                    {"payment_id": payment.id, "client_id": payment.client_id,
                     "cargo_item_id": payment.cargo_item_id,
                     "container_id": payment.container_id},
                    snapshot,
                ),
                list(dict.fromkeys(scopes + released_scopes)),
            )

        return await self._run(
            "cancel_payment", self._transaction([f"payment:{payment_id}"], work)
        )

    # ── Reads ───────────────────────────────────────────────

    async def balance(self, kind: str, entity_id: str) -> Balance:
        """Balance for a client, cargo item or container (cached when enabled)."""
        scope = BalanceScope(kind, entity_id)

        if self.cache is not None:
            cached = await self.cache.get(kind, entity_id)
            if cached is not None:
                return Balance.from_dict(cached)

        generation = self._generations[scope]
        result = await self._run("balance", self._read_balance(scope))

        # a commit touching the scope landed during the read: its value may predate it
        if self.cache is not None and self._generations[scope] == generation:
            await self.cache.set(kind, entity_id, result.as_dict())
        return result

    async def _read_balance(self, scope: BalanceScope) -> _Outcome:
        lookups = {
            "client": partial(ledger.get_client, include_inactive=True),
            "cargo_item": ledger.get_cargo_item,
            "container": ledger.get_container,
        }
        for attempt in (1, 2):
            try:
                async with self.session_factory() as db:
                    await lookups[scope.kind](db, scope.id)
                    return _Outcome(await finance.balance(db, scope))
            except OperationalError as e:
                if attempt == 2:
                    raise
                logger.warning(f"Transient error reading {scope.kind} balance, retrying: {e}")
