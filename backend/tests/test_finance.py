"""Financial reconciler tests: balances, payments and cancellations."""

import pytest

from fretmarine.middleware.exceptions import (
    BusinessLogicError,
    PaymentExceedsDueError,
    ResourceNotFoundError,
)
from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.client import Client
from fretmarine.schemas.cargo_item import CargoCostUpdate
from fretmarine.services import finance, intake, ledger
from fretmarine.services.finance import Balance, BalanceScope


@pytest.mark.unit
class TestBalanceValues:

    def test_remaining_not_clamped(self):
        bal = Balance(BalanceScope("client", "c1"), due=100.0, paid=130.0)
        assert bal.remaining == -30.0
        assert bal.display_remaining == 0.0
        assert bal.overpaid is True

    def test_dict_round_trip(self):
        bal = Balance(BalanceScope("container", "k1"), due=250.5, paid=100.25)
        data = bal.as_dict()
        assert data["remaining"] == 150.25
        assert Balance.from_dict(data) == bal

    def test_unknown_scope_kind(self):
        with pytest.raises(BusinessLogicError) as exc_info:
            BalanceScope("warehouse", "w1")
        assert exc_info.value.error_code == "INVALID_SCOPE"

    def test_amount_validation(self):
        finance.validate_payment_amounts(100.0, 100.0)
        with pytest.raises(PaymentExceedsDueError):
            finance.validate_payment_amounts(100.0, 100.01)
        with pytest.raises(BusinessLogicError) as exc_info:
            finance.validate_payment_amounts(-1.0, 0.0)
        assert exc_info.value.error_code == "NEGATIVE_AMOUNT"


@pytest.mark.integration
@pytest.mark.asyncio
class TestBalances:

    async def test_client_balance_tracks_payments(self, facade, make_client, make_item):
        client = await make_client()
        a = await make_item(client.id, cost_transport=100.0)
        await make_item(client.id, cost_transport=200.0, cost_handling=50.0)

        before = await facade.balance("client", client.id)
        assert before.due == 350.0
        assert before.paid == 0.0

        payment = await facade.record_payment(client_id=client.id, cargo_item_id=a.id, amount_paid=100.0)
        assert payment.amount_due == 100.0
        assert payment.receipt_number.startswith("REC-")

        after = await facade.balance("client", client.id)
        assert after.paid == 100.0
        assert after.remaining == 250.0
        assert (await facade.balance("cargo_item", a.id)).remaining == 0.0

    async def test_archived_client_balance_and_payment(
        self, facade, session_factory, make_client, make_item
    ):
        client = await make_client()
        item = await make_item(client.id, cost_transport=150.0)
        async with session_factory() as db:
            (await db.get(Client, client.id)).is_active = False
            await db.commit()

        assert (await facade.balance("client", client.id)).remaining == 150.0
        await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=150.0)
        assert (await facade.balance("client", client.id)).remaining == 0.0

        async with session_factory() as db:
            with pytest.raises(ResourceNotFoundError):
                await ledger.get_client(db, client.id)

    async def test_item_payment_defaults_due_to_outstanding(self, facade, make_client, make_item):
        client = await make_client()
        item = await make_item(client.id, cost_transport=300.0)

        first = await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=120.0)
        second = await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=50.0)

        assert first.amount_due == 300.0
        assert second.amount_due == 180.0
        assert (await facade.balance("cargo_item", item.id)).remaining == 130.0

    async def test_payment_marks_item_invoiced(self, facade, make_client, make_item, fetch):
        client = await make_client()
        item = await make_item(client.id)
        await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=10.0)
        assert (await fetch(CargoItem, item.id)).invoiced is True

    async def test_overpayment_rejected(self, facade, make_client, make_item):
        client = await make_client()
        item = await make_item(client.id, cost_transport=250.0)

        with pytest.raises(PaymentExceedsDueError):
            await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=300.0)
        assert (await facade.balance("client", client.id)).paid == 0.0

    async def test_amount_due_required_without_item(self, facade, make_client):
        client = await make_client()
        with pytest.raises(BusinessLogicError) as exc_info:
            await facade.record_payment(client_id=client.id, amount_paid=10.0)
        assert exc_info.value.error_code == "AMOUNT_DUE_REQUIRED"

    async def test_unknown_payment_method(self, facade, make_client):
        client = await make_client()
        with pytest.raises(BusinessLogicError) as exc_info:
            await facade.record_payment(
                client_id=client.id, amount_due=10.0, amount_paid=10.0, payment_method="barter"
            )
        assert exc_info.value.error_code == "INVALID_PAYMENT_METHOD"

    async def test_item_of_other_client_rejected(self, facade, make_client, make_item):
        owner = await make_client("Owner")
        other = await make_client("Other")
        item = await make_item(owner.id)

        with pytest.raises(BusinessLogicError) as exc_info:
            await facade.record_payment(client_id=other.id, cargo_item_id=item.id, amount_paid=10.0)
        assert exc_info.value.error_code == "CLIENT_MISMATCH"

    async def test_client_level_overpayment_is_flagged(self, facade, make_client, make_item):
        client = await make_client()
        await make_item(client.id, cost_transport=350.0)

        await facade.record_payment(client_id=client.id, amount_due=500.0, amount_paid=400.0)
        bal = await facade.balance("client", client.id)

        assert bal.remaining == -50.0
        assert bal.display_remaining == 0.0
        assert bal.overpaid is True

    async def test_cost_correction_changes_due(self, facade, make_client, make_item, session_factory):
        client = await make_client()
        item = await make_item(client.id, cost_transport=100.0)

        async with session_factory() as db:
            await intake.correct_cargo_costs(
                item.id, CargoCostUpdate(cost_insurance=25.0, reason="insured"), "acc-1", db
            )
            await db.commit()

        assert (await facade.balance("cargo_item", item.id)).due == 125.0


@pytest.mark.integration
@pytest.mark.asyncio
class TestContainerBalance:

    async def test_container_counts_member_items_and_their_payments(
        self, facade, make_client, make_container, make_item
    ):
        client = await make_client()
        container = await make_container()
        inside = await make_item(client.id, cost_transport=200.0)
        await make_item(client.id, cost_transport=999.0)
        await facade.assign_item(inside.id, container.id)
        await facade.record_payment(client_id=client.id, cargo_item_id=inside.id, amount_paid=150.0)

        bal = await facade.balance("container", container.id)
        assert bal.due == 200.0
        assert bal.paid == 150.0

    async def test_invoiced_item_stays_on_container_after_release(
        self, facade, make_client, make_container, make_item
    ):
        client = await make_client()
        container = await make_container()
        invoiced = await make_item(client.id, cost_transport=200.0)
        plain = await make_item(client.id, cost_transport=80.0)
        await facade.assign_item(invoiced.id, container.id)
        await facade.assign_item(plain.id, container.id)
        await facade.record_payment(client_id=client.id, cargo_item_id=invoiced.id, amount_paid=50.0)

        await facade.unassign_item(invoiced.id)
        await facade.unassign_item(plain.id)

        bal = await facade.balance("container", container.id)
        assert bal.due == 200.0
        assert bal.paid == 50.0

    async def test_payment_against_container(self, facade, make_client, make_container, make_item):
        client = await make_client()
        container = await make_container()
        item = await make_item(client.id, cost_transport=100.0)
        await facade.assign_item(item.id, container.id)

        await facade.record_payment(
            client_id=client.id, container_id=container.id, amount_due=100.0, amount_paid=60.0
        )
        assert (await facade.balance("container", container.id)).paid == 60.0


@pytest.mark.integration
@pytest.mark.asyncio
class TestCancellation:

    async def test_cancel_restores_balance(self, facade, recorder, make_client, make_item):
        client = await make_client()
        item = await make_item(client.id, cost_transport=100.0)
        payment = await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=100.0)

        cancelled = await facade.cancel_payment(payment.id, reason="duplicate", actor_id="acc-1")
        await facade.events.drain()

        assert cancelled.status == "cancelled"
        assert cancelled.cancel_reason == "duplicate"
        assert cancelled.cancelled_by == "acc-1"
        assert (await facade.balance("client", client.id)).paid == 0.0
        assert recorder.kinds() == ["payment_recorded", "payment_cancelled"]

    async def test_cancel_twice_is_noop(self, facade, recorder, make_client, make_item):
        client = await make_client()
        item = await make_item(client.id)
        payment = await facade.record_payment(client_id=client.id, cargo_item_id=item.id, amount_paid=10.0)

        await facade.cancel_payment(payment.id)
        again = await facade.cancel_payment(payment.id)
        await facade.events.drain()

        assert again.status == "cancelled"
        assert recorder.kinds().count("payment_cancelled") == 1


@pytest.mark.integration
@pytest.mark.asyncio
class TestFinancialSummary:

    async def test_summary_by_method(self, facade, make_client, make_item, session_factory):
        client = await make_client()
        a = await make_item(client.id, cost_transport=100.0)
        b = await make_item(client.id, cost_transport=200.0)
        await facade.record_payment(client_id=client.id, cargo_item_id=a.id, amount_paid=100.0)
        await facade.record_payment(
            client_id=client.id, cargo_item_id=b.id, amount_paid=50.0, payment_method="transfer"
        )
        cancelled = await facade.record_payment(
            client_id=client.id, cargo_item_id=b.id, amount_paid=25.0
        )
        await facade.cancel_payment(cancelled.id)

        async with session_factory() as db:
            summary = await finance.financial_summary(db)

        assert summary["payment_count"] == 2
        assert summary["total_collected"] == 150.0
        assert summary["total_invoiced"] == 300.0
        assert summary["total_outstanding"] == 150.0
        assert {m["payment_method"]: m["amount"] for m in summary["by_method"]} == {
            "cash": 100.0,
            "transfer": 50.0,
        }
