"""Billing lifecycle: issue, revive, cancel, bulk and CSV import."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from billtrack.config import settings

D = Decimal


def bulk_row(invoice_number: str, department: str = "Accounting", amount: str = "500.00", **extra) -> dict:
    return {
        "invoice_number": invoice_number,
        "department_name": department,
        "amount": amount,
        "month": 2,
        "year": 2025,
        "billing_date": "2025-02-28",
        "billing_type": "rental",
        **extra,
    }


@pytest.mark.api
@pytest.mark.asyncio
class TestIssueBilling:

    async def test_create_billing_opens_collection(self, make_billing, client_department):
        body = await make_billing("INV-001", amount="1000.00", vat_amount="120.00", discount="20.00")

        billing = body["billing"]
        assert body["revived"] is False
        assert D(billing["total_amount"]) == D("1100.00")
        assert billing["department_name"] == "Accounting"
        assert billing["client_id"] == client_department["client_id"]

        collection = body["collection"]
        assert collection["billing_id"] == billing["id"]
        assert D(collection["amount"]) == D("1100.00")
        assert D(collection["balance"]) == D("0.00")
        assert collection["status"] == "pending"
        assert collection["collection_date"] == "2025-01-31"

    async def test_duplicate_active_invoice_conflicts(
        self, client: AsyncClient, auth_headers: dict, make_billing, client_department
    ):
        await make_billing("INV-001")
        resp = await client.post(
            "/api/billings/",
            json={
                "invoice_number": "INV-001",
                "department_id": client_department["id"],
                "amount": "10.00",
                "month": 1,
                "year": 2025,
                "billing_date": "2025-01-31",
                "billing_type": "rental",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT"

    async def test_discount_cannot_wipe_out_total(
        self, client: AsyncClient, auth_headers: dict, client_department
    ):
        resp = await client.post(
            "/api/billings/",
            json={
                "invoice_number": "INV-001",
                "department_id": client_department["id"],
                "amount": "100.00",
                "discount": "100.00",
                "month": 1,
                "year": 2025,
                "billing_date": "2025-01-31",
                "billing_type": "rental",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 400

    async def test_client_mismatch_rejected(
        self, client: AsyncClient, auth_headers: dict, client_department
    ):
        other = (await client.post(
            "/api/clients/", json={"name": "Other Co"}, headers=auth_headers
        )).json()
        resp = await client.post(
            "/api/billings/",
            json={
                "invoice_number": "INV-001",
                "department_id": client_department["id"],
                "client_id": other["id"],
                "amount": "100.00",
                "month": 1,
                "year": 2025,
                "billing_date": "2025-01-31",
                "billing_type": "rental",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 400


@pytest.mark.api
@pytest.mark.asyncio
class TestCancelAndRevive:

    async def test_cancel_writes_audit_row(
        self, client: AsyncClient, auth_headers: dict, owner_user, make_billing
    ):
        billing = (await make_billing("INV-001", amount="750.00"))["billing"]

        resp = await client.post(
            f"/api/billings/{billing['id']}/cancel",
            json={"remarks": "wrong period"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["billing"]["is_cancelled"] is True
        audit = body["cancelled_invoice"]
        assert audit["invoice_number"] == "INV-001"
        assert D(audit["amount"]) == D("750.00")
        assert audit["remarks"] == "wrong period"
        assert audit["cancelled_by"] == owner_user.id

    async def test_cancel_twice_conflicts(self, client: AsyncClient, auth_headers: dict, make_billing):
        billing = (await make_billing("INV-001"))["billing"]
        url = f"/api/billings/{billing['id']}/cancel"

        assert (await client.post(url, json={"remarks": "x"}, headers=auth_headers)).status_code == 200
        assert (await client.post(url, json={"remarks": "x"}, headers=auth_headers)).status_code == 409

    async def test_cancel_requires_remarks(self, client: AsyncClient, auth_headers: dict, make_billing):
        billing = (await make_billing("INV-001"))["billing"]
        resp = await client.post(
            f"/api/billings/{billing['id']}/cancel", json={"remarks": ""}, headers=auth_headers
        )
        assert resp.status_code == 422

    async def test_reissue_revives_same_row(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        original = (await make_billing("INV-001"))["billing"]
        await client.post(
            f"/api/billings/{original['id']}/cancel", json={"remarks": "redo"}, headers=auth_headers
        )

        body = await make_billing("INV-001", amount="1200.00")
        assert body["revived"] is True
        assert body["billing"]["id"] == original["id"]
        assert body["billing"]["is_cancelled"] is False
        assert D(body["billing"]["total_amount"]) == D("1200.00")
        assert D(body["collection"]["amount"]) == D("1200.00")
        assert body["collection"]["status"] == "pending"

    async def test_revival_keeps_live_payments(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        body = await make_billing("INV-001")
        await pay(body["collection"], "OR-1", "400.00")
        await client.post(
            f"/api/billings/{body['billing']['id']}/cancel",
            json={"remarks": "redo"},
            headers=auth_headers,
        )

        revived = await make_billing("INV-001", amount="1000.00")
        assert D(revived["collection"]["balance"]) == D("600.00")
        assert revived["collection"]["status"] == "pending"

    async def test_cancelled_billing_cannot_be_edited(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        billing = (await make_billing("INV-001"))["billing"]
        await client.post(
            f"/api/billings/{billing['id']}/cancel", json={"remarks": "x"}, headers=auth_headers
        )
        resp = await client.patch(
            f"/api/billings/{billing['id']}", json={"amount": "5.00"}, headers=auth_headers
        )
        assert resp.status_code == 400

    async def test_soft_delete_requires_manager(
        self, client: AsyncClient, auth_headers: dict, staff_headers: dict, make_billing
    ):
        billing = (await make_billing("INV-001"))["billing"]

        resp = await client.delete(f"/api/billings/{billing['id']}", headers=staff_headers)
        assert resp.status_code == 403

        resp = await client.delete(f"/api/billings/{billing['id']}", headers=auth_headers)
        assert resp.status_code == 200
        resp = await client.get(f"/api/billings/{billing['id']}", headers=auth_headers)
        assert resp.status_code == 404

        # a deleted invoice number can be issued again
        revived = await make_billing("INV-001")
        assert revived["revived"] is True


@pytest.mark.api
@pytest.mark.asyncio
class TestUpdateBilling:

    async def test_amount_change_resettles_collection(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        body = await make_billing("INV-001", amount="1000.00")
        await pay(body["collection"], "OR-1", "400.00")

        resp = await client.patch(
            f"/api/billings/{body['billing']['id']}",
            json={"amount": "800.00"},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        assert D(resp.json()["total_amount"]) == D("800.00")

        collection = (await client.get(
            f"/api/collections/{body['collection']['id']}", headers=auth_headers
        )).json()
        assert D(collection["amount"]) == D("800.00")
        assert D(collection["balance"]) == D("400.00")

    async def test_invoice_number_change_checked(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        await make_billing("INV-001")
        second = (await make_billing("INV-002"))["billing"]

        resp = await client.patch(
            f"/api/billings/{second['id']}", json={"invoice_number": "INV-001"}, headers=auth_headers
        )
        assert resp.status_code == 409

    async def test_invoice_rename_carries_over_to_payments(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        body = await make_billing("INV-001")
        payment = (await pay(body["collection"], "OR-1", "400.00")).json()["payment"]

        resp = await client.patch(
            f"/api/billings/{body['billing']['id']}",
            json={"invoice_number": "INV-999"},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text

        collection = (await client.get(
            f"/api/collections/{body['collection']['id']}", headers=auth_headers
        )).json()
        assert collection["invoice_number"] == "INV-999"
        assert [p["invoice_number"] for p in collection["payments"]] == ["INV-999"]

        resp = await client.get(f"/api/payments/{payment['id']}", headers=auth_headers)
        assert resp.json()["invoice_number"] == "INV-999"

        # further payments are matched against the new number
        resp = await pay(collection, "OR-2", "100.00")
        assert resp.status_code == 201, resp.text
        resp = await pay({**collection, "invoice_number": "INV-001"}, "OR-3", "100.00")
        assert resp.status_code == 400


@pytest.mark.api
@pytest.mark.asyncio
class TestBulkBilling:

    async def test_already_active_rows_are_skipped(
        self, client: AsyncClient, auth_headers: dict, make_billing, monkeypatch
    ):
        monkeypatch.setattr(settings, "bulk_chunk_size", 7)
        for n in range(1, 6):
            await make_billing(f"INV-{n:03d}")

        rows = [bulk_row(f"INV-{n:03d}") for n in range(1, 26)]
        resp = await client.post("/api/billings/bulk", json={"rows": rows}, headers=auth_headers)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["created"] == 20
        assert body["skipped"] == 5
        assert {r["invoice_number"] for r in body["skipped_rows"]} == {
            f"INV-{n:03d}" for n in range(1, 6)
        }
        assert all(r["reason"] == "invoice number already billed" for r in body["skipped_rows"])

        listing = (await client.get(
            "/api/billings/", params={"page_size": 100}, headers=auth_headers
        )).json()
        assert listing["total"] == 25
        # the skipped five keep their original amounts
        originals = [b for b in listing["items"] if b["invoice_number"] <= "INV-005"]
        assert all(D(b["amount"]) == D("1000.00") for b in originals)

    async def test_bad_rows_are_reported(self, client: AsyncClient, auth_headers: dict, client_department):
        rows = [
            bulk_row("INV-100", department="  ACCOUNTING "),
            bulk_row("INV-100"),
            bulk_row("INV-101", department="Nowhere"),
            bulk_row("INV-102", discount="500.00"),
        ]
        body = (await client.post(
            "/api/billings/bulk", json={"rows": rows}, headers=auth_headers
        )).json()

        assert body["created"] == 1
        reasons = {r["row"]: r["reason"] for r in body["skipped_rows"]}
        assert reasons[2] == "duplicate invoice number in upload"
        assert reasons[3].startswith("department not found")
        assert "must be positive" in reasons[4]

    async def test_bulk_revives_cancelled(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        billing = (await make_billing("INV-001"))["billing"]
        await client.post(
            f"/api/billings/{billing['id']}/cancel", json={"remarks": "x"}, headers=auth_headers
        )

        body = (await client.post(
            "/api/billings/bulk", json={"rows": [bulk_row("INV-001")]}, headers=auth_headers
        )).json()
        assert body["revived"] == 1
        assert body["billings"][0]["id"] == billing["id"]


@pytest.mark.api
@pytest.mark.asyncio
class TestBillingCsvImport:

    async def test_template_download(self, client: AsyncClient, auth_headers: dict):
        resp = await client.get("/api/billings/import/template", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        header = resp.text.splitlines()[0]
        assert header.startswith("invoice_number,department,amount")

    async def test_import_mixed_file(self, client: AsyncClient, auth_headers: dict, client_department):
        content = (
            "invoice_number,department,amount,vat_amount,discount,month,year,billing_date,billing_type,remarks\n"
            "INV-200,Accounting,\"1,500.00\",180.00,,3,2025,2025-03-31,rental,\n"
            "INV-201,accounting,250.00,,,3,2025,2025-03-31,service,\n"
            "INV-202,Accounting,abc,,,3,2025,2025-03-31,rental,\n"
            "INV-203,Accounting,100.00,,,13,2025,2025-03-31,rental,\n"
            ",,,,,,,,,\n"
        ).encode()

        resp = await client.post(
            "/api/billings/import",
            files={"file": ("billings.csv", content, "text/csv")},
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["total_rows"] == 4
        assert body["created"] == 2
        assert body["failed"] == 2
        assert [e["row"] for e in body["errors"]] == [4, 5]
        totals = {b["invoice_number"]: D(b["total_amount"]) for b in body["billings"]}
        assert totals == {"INV-200": D("1680.00"), "INV-201": D("250.00")}


@pytest.mark.api
@pytest.mark.asyncio
class TestListBillings:

    async def test_unbilled_department_figures(
        self, client: AsyncClient, auth_headers: dict, make_billing, client_department
    ):
        await client.post(
            "/api/client-departments/",
            json={"client_id": client_department["client_id"], "name": "Sales"},
            headers=auth_headers,
        )
        await client.post(
            "/api/client-departments/",
            json={
                "client_id": client_department["client_id"],
                "name": "Archive",
                "status": "inactive",
            },
            headers=auth_headers,
        )
        await make_billing("INV-001", amount="100.00")
        await make_billing("INV-002", amount="250.00")

        body = (await client.get(
            "/api/billings/", params={"month": 1, "year": 2025}, headers=auth_headers
        )).json()
        assert body["total"] == 2
        assert D(body["total_amount"]) == D("350.00")
        assert body["departments_total"] == 2
        assert body["departments_billed"] == 1
        assert body["departments_unbilled"] == 1

    async def test_inactive_departments_not_counted(
        self, client: AsyncClient, auth_headers: dict, make_billing, client_department
    ):
        resp = await client.post(
            "/api/client-departments/",
            json={
                "client_id": client_department["client_id"],
                "name": "Archive",
                "status": "inactive",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201, resp.text
        await make_billing("INV-001")

        body = (await client.get("/api/billings/", headers=auth_headers)).json()
        assert body["departments_total"] == 1
        assert body["departments_billed"] == 1
        assert body["departments_unbilled"] == 0

    async def test_cancelled_hidden_unless_requested(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        billing = (await make_billing("INV-001"))["billing"]
        await make_billing("INV-002")
        await client.post(
            f"/api/billings/{billing['id']}/cancel", json={"remarks": "x"}, headers=auth_headers
        )

        active = (await client.get("/api/billings/", headers=auth_headers)).json()
        everything = (await client.get(
            "/api/billings/", params={"include_cancelled": "true"}, headers=auth_headers
        )).json()
        assert active["total"] == 1
        assert everything["total"] == 2

    async def test_search_and_paging(self, client: AsyncClient, auth_headers: dict, make_billing):
        for n in range(1, 4):
            await make_billing(f"INV-{n:03d}")

        body = (await client.get(
            "/api/billings/", params={"search": "inv-002"}, headers=auth_headers
        )).json()
        assert [b["invoice_number"] for b in body["items"]] == ["INV-002"]

        page = (await client.get(
            "/api/billings/", params={"page_index": 2, "page_size": 2}, headers=auth_headers
        )).json()
        assert page["total"] == 3
        assert len(page["items"]) == 1

        resp = await client.get("/api/billings/", params={"page_index": 0}, headers=auth_headers)
        assert resp.status_code == 400
