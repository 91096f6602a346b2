"""Payment recording, cancellation and correction through the API."""

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.dialects import postgresql

from billtrack.schemas.payment import PaymentCreate, PaymentUpdate
from billtrack.services import payment as payment_service

D = Decimal


def money(value) -> Decimal:
    return D(str(value))


async def payment_count(client: AsyncClient, headers: dict, collection_id: str, **params) -> int:
    resp = await client.get(
        "/api/payments/",
        params={"collection_id": collection_id, **params},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()["total"]


@pytest.mark.api
@pytest.mark.asyncio
class TestRecordPayment:

    async def test_partial_then_full_payment(self, make_billing, pay):
        collection = (await make_billing("INV-001"))["collection"]
        assert collection["settlement"] == "untouched"
        assert money(collection["outstanding"]) == D("1000.00")

        resp = await pay(collection, "OR-1", "400.00")
        assert resp.status_code == 201, resp.text
        state = resp.json()["collection"]
        assert money(state["balance"]) == D("600.00")
        assert state["status"] == "pending"
        assert state["settlement"] == "partial"

        resp = await pay(collection, "OR-2", "600.00")
        assert resp.status_code == 201
        state = resp.json()["collection"]
        assert money(state["balance"]) == D("0.00")
        assert state["status"] == "paid"
        assert money(state["outstanding"]) == D("0.00")

    async def test_single_full_payment_keeps_balance_zero(self, make_billing, pay):
        collection = (await make_billing("INV-002"))["collection"]

        resp = await pay(collection, "OR-1", "1000.00")
        state = resp.json()["collection"]
        assert state["status"] == "paid"
        assert money(state["balance"]) == D("0.00")

    async def test_invoice_mismatch_is_rejected_without_writing(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-003"))["collection"]

        resp = await pay({**collection, "invoice_number": "INV-999"}, "OR-1", "100.00")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

        assert await payment_count(client, auth_headers, collection["id"]) == 0
        detail = (await client.get(
            f"/api/collections/{collection['id']}", headers=auth_headers
        )).json()
        assert money(detail["balance"]) == D("0.00")
        assert detail["payments"] == []

    async def test_unknown_mode_rolls_back_payment(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-004"))["collection"]

        resp = await pay(collection, "OR-1", "100.00", mode="barter")
        assert resp.status_code == 400
        assert "Unknown payment mode" in resp.json()["error"]["message"]

        assert await payment_count(client, auth_headers, collection["id"]) == 0
        # the OR number was never taken
        resp = await pay(collection, "OR-1", "100.00")
        assert resp.status_code == 201

    async def test_cheque_requires_its_fields(self, make_billing, pay):
        collection = (await make_billing("INV-005"))["collection"]

        resp = await pay(collection, "OR-1", "100.00", mode="cheque")
        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["missing"] == ["cheque_number", "cheque_date"]

        resp = await pay(
            collection, "OR-1", "100.00",
            mode="cheque", cheque_number="CHK-77", cheque_date="2025-02-10", bank_name="BDO",
        )
        assert resp.status_code == 201
        payment = resp.json()["payment"]
        assert payment["cheque"]["cheque_number"] == "CHK-77"
        assert payment["online_transfer"] is None

    async def test_or_number_unique_among_live_payments(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        first = (await make_billing("INV-006"))["collection"]
        second = (await make_billing("INV-007"))["collection"]

        resp = await pay(first, "OR-100", "100.00")
        assert resp.status_code == 201
        payment_id = resp.json()["payment"]["id"]

        resp = await pay(second, "OR-100", "100.00")
        assert resp.status_code == 409

        await client.post(f"/api/payments/{payment_id}/cancel", headers=auth_headers)
        resp = await pay(second, "OR-100", "100.00")
        assert resp.status_code == 201

    async def test_withholding(self, make_billing, pay):
        collection = (await make_billing("INV-008"))["collection"]

        resp = await pay(collection, "OR-1", "500.00", withholding_amount="50.00")
        assert resp.status_code == 201
        payment = resp.json()["payment"]
        assert payment["has_withholding"] is True
        assert money(payment["amount_paid"]) == D("450.00")
        assert money(resp.json()["collection"]["balance"]) == D("500.00")

        resp = await pay(collection, "OR-2", "10.00", withholding_amount="20.00")
        assert resp.status_code == 400

    async def test_non_positive_amount_is_a_request_error(self, make_billing, pay):
        collection = (await make_billing("INV-009"))["collection"]

        resp = await pay(collection, "OR-1", "0")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_unknown_collection(self, pay, client_department):
        resp = await pay({"id": "missing", "invoice_number": "INV-X"}, "OR-1", "1.00")
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestCancelPayment:

    async def test_cancel_restores_outstanding(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-010"))["collection"]
        payment = (await pay(collection, "OR-1", "400.00")).json()["payment"]

        resp = await client.post(f"/api/payments/{payment['id']}/cancel", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["payment"]["is_cancelled"] is True
        assert money(body["collection"]["balance"]) == D("1000.00")
        assert body["collection"]["status"] == "pending"
        assert money(body["collection"]["outstanding"]) == D("1000.00")

    async def test_cancel_full_payment_returns_to_untouched(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-011"))["collection"]
        payment = (await pay(collection, "OR-1", "1000.00")).json()["payment"]

        body = (await client.post(
            f"/api/payments/{payment['id']}/cancel", headers=auth_headers
        )).json()
        assert body["collection"]["status"] == "pending"
        assert body["collection"]["settlement"] == "untouched"
        assert money(body["collection"]["outstanding"]) == D("1000.00")

    async def test_cancel_is_idempotent(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-012"))["collection"]
        await pay(collection, "OR-1", "300.00")
        payment = (await pay(collection, "OR-2", "200.00")).json()["payment"]

        first = await client.post(f"/api/payments/{payment['id']}/cancel", headers=auth_headers)
        second = await client.post(f"/api/payments/{payment['id']}/cancel", headers=auth_headers)
        assert first.status_code == second.status_code == 200
        assert first.json()["collection"]["balance"] == second.json()["collection"]["balance"]
        assert money(second.json()["collection"]["balance"]) == D("700.00")

    async def test_cancelled_payments_hidden_by_default(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-013"))["collection"]
        payment = (await pay(collection, "OR-1", "100.00")).json()["payment"]
        await client.post(f"/api/payments/{payment['id']}/cancel", headers=auth_headers)

        assert await payment_count(client, auth_headers, collection["id"]) == 0
        assert await payment_count(
            client, auth_headers, collection["id"], include_cancelled="true"
        ) == 1


@pytest.mark.api
@pytest.mark.asyncio
class TestUpdatePayment:

    async def test_amount_change_applies_delta(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-020"))["collection"]
        payment = (await pay(collection, "OR-1", "400.00")).json()["payment"]

        resp = await client.patch(
            f"/api/payments/{payment['id']}", json={"amount": "250.00"}, headers=auth_headers
        )
        assert resp.status_code == 200, resp.text
        assert money(resp.json()["payment"]["amount"]) == D("250.00")
        assert money(resp.json()["collection"]["balance"]) == D("750.00")

        resp = await client.patch(
            f"/api/payments/{payment['id']}", json={"amount": "1000.00"}, headers=auth_headers
        )
        assert resp.json()["collection"]["status"] == "paid"

    async def test_mode_switch_replaces_satellite(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-021"))["collection"]
        payment = (await pay(
            collection, "OR-1", "100.00",
            mode="cheque", cheque_number="CHK-1", cheque_date="2025-02-01",
        )).json()["payment"]

        resp = await client.patch(
            f"/api/payments/{payment['id']}",
            json={"mode": "online_transfer", "reference_number": "REF-9", "transfer_date": "2025-02-02"},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        updated = resp.json()["payment"]
        assert updated["mode"] == "online_transfer"
        assert updated["cheque"] is None
        assert updated["online_transfer"]["reference_number"] == "REF-9"

        resp = await client.patch(
            f"/api/payments/{payment['id']}", json={"mode": "cash"}, headers=auth_headers
        )
        assert resp.json()["payment"]["online_transfer"] is None

    async def test_or_number_change_checked(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-022"))["collection"]
        await pay(collection, "OR-1", "100.00")
        payment = (await pay(collection, "OR-2", "100.00")).json()["payment"]

        resp = await client.patch(
            f"/api/payments/{payment['id']}", json={"or_number": "OR-1"}, headers=auth_headers
        )
        assert resp.status_code == 409

    async def test_cancelled_payment_cannot_be_edited(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-023"))["collection"]
        payment = (await pay(collection, "OR-1", "100.00")).json()["payment"]
        await client.post(f"/api/payments/{payment['id']}/cancel", headers=auth_headers)

        resp = await client.patch(
            f"/api/payments/{payment['id']}", json={"amount": "50.00"}, headers=auth_headers
        )
        assert resp.status_code == 400


class StatementRecorder:
    """Wraps AsyncSession.execute and keeps every statement it is given."""

    def __init__(self, session):
        self.statements = []
        self._execute = session.execute

    async def __call__(self, statement, *args, **kwargs):
        self.statements.append(statement)
        return await self._execute(statement, *args, **kwargs)

    def compiled(self) -> list[str]:
        # SQLite drops FOR UPDATE, so render as PostgreSQL would receive it
        return [str(s.compile(dialect=postgresql.dialect())) for s in self.statements]


def locks_collection(sql: str) -> bool:
    return "FROM collections" in sql and "FOR UPDATE" in sql


@pytest.mark.integration
@pytest.mark.asyncio
class TestCollectionRowLock:
    """Balance changes read the collection row with SELECT ... FOR UPDATE."""

    async def test_lock_collection_selects_for_update(
        self, db_session, make_billing, monkeypatch
    ):
        collection = (await make_billing("INV-030"))["collection"]
        recorder = StatementRecorder(db_session)
        monkeypatch.setattr(db_session, "execute", recorder)

        locked = await payment_service._lock_collection(db_session, collection["id"])

        assert locked.id == collection["id"]
        assert [locks_collection(sql) for sql in recorder.compiled()] == [True]

    async def test_record_payment_locks_before_reading(
        self, db_session, cache, make_billing, monkeypatch
    ):
        collection = (await make_billing("INV-031"))["collection"]
        recorder = StatementRecorder(db_session)
        monkeypatch.setattr(db_session, "execute", recorder)

        await payment_service.record_payment(
            db_session,
            cache,
            collection["id"],
            PaymentCreate(
                invoice_number="INV-031",
                or_number="OR-1",
                amount=D("400.00"),
                payment_date=date(2025, 2, 15),
            ),
        )

        compiled = recorder.compiled()
        assert locks_collection(compiled[0])
        assert sum(locks_collection(sql) for sql in compiled) == 1

    async def test_cancel_and_update_take_the_lock(
        self, db_session, cache, make_billing, pay, monkeypatch
    ):
        collection = (await make_billing("INV-032"))["collection"]
        first = (await pay(collection, "OR-1", "300.00")).json()["payment"]
        second = (await pay(collection, "OR-2", "200.00")).json()["payment"]

        recorder = StatementRecorder(db_session)
        monkeypatch.setattr(db_session, "execute", recorder)

        await payment_service.update_payment(
            db_session, cache, first["id"], PaymentUpdate(amount=D("350.00"))
        )
        assert any(locks_collection(sql) for sql in recorder.compiled())

        recorder.statements.clear()
        await payment_service.cancel_payment(db_session, cache, second["id"])
        compiled = recorder.compiled()
        lock_at = next(i for i, sql in enumerate(compiled) if locks_collection(sql))
        sums_at = next(i for i, sql in enumerate(compiled) if "sum(payments.amount)" in sql)
        assert lock_at < sums_at
