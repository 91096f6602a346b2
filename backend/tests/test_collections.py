"""Collection listing, aging and bookkeeping edits."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from billtrack.services.collection import aging_bucket, aging_window

D = Decimal


def days_ago(days: int) -> date:
    return date.today() - timedelta(days=days)


@pytest.fixture
def make_dated_billing(make_billing):
    async def _make(invoice_number: str, age_days: int, amount: str = "1000.00") -> dict:
        issued = days_ago(age_days)
        return await make_billing(
            invoice_number,
            amount=amount,
            month=issued.month,
            year=issued.year,
            billing_date=issued.isoformat(),
        )

    return _make


@pytest.mark.unit
class TestAgingBuckets:

    @pytest.mark.parametrize(
        "days,bucket",
        [
            (0, "current"),
            (1, "1-29"),
            (29, "1-29"),
            (30, "30-59"),
            (89, "60-89"),
            (90, "90-119"),
            (119, "90-119"),
            (120, "120+"),
            (1000, "120+"),
        ],
    )
    def test_bucket_edges(self, days, bucket):
        assert aging_bucket(days) == bucket

    def test_window(self):
        today = date(2025, 6, 30)
        assert aging_window("30-59", today) == (date(2025, 5, 2), date(2025, 5, 31))
        assert aging_window("120+", today) == (None, date(2025, 3, 2))


@pytest.mark.api
@pytest.mark.asyncio
class TestCollectionsApi:

    async def test_get_collection_with_payments(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        collection = (await make_billing("INV-001"))["collection"]
        await pay(collection, "OR-1", "100.00")
        await pay(collection, "OR-2", "150.00")

        resp = await client.get(f"/api/collections/{collection['id']}", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert [p["or_number"] for p in body["payments"]] == ["OR-1", "OR-2"]
        assert D(body["balance"]) == D("750.00")

    async def test_update_bookkeeping_fields(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        collection = (await make_billing("INV-001"))["collection"]

        resp = await client.patch(
            f"/api/collections/{collection['id']}",
            json={"remarks": "follow up", "collection_date": "2025-03-01"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["remarks"] == "follow up"
        assert resp.json()["collection_date"] == "2025-03-01"
        assert D(resp.json()["amount"]) == D("1000.00")

    async def test_status_filter(
        self, client: AsyncClient, auth_headers: dict, make_billing, pay
    ):
        paid = (await make_billing("INV-001"))["collection"]
        await make_billing("INV-002")
        await pay(paid, "OR-1", "1000.00")

        body = (await client.get(
            "/api/collections/", params={"status": "paid"}, headers=auth_headers
        )).json()
        assert [c["invoice_number"] for c in body["items"]] == ["INV-001"]

        resp = await client.get("/api/collections/", params={"status": "late"}, headers=auth_headers)
        assert resp.status_code == 400

    async def test_cancelled_billings_hidden(
        self, client: AsyncClient, auth_headers: dict, make_billing
    ):
        billing = (await make_billing("INV-001"))["billing"]
        await make_billing("INV-002")
        await client.post(
            f"/api/billings/{billing['id']}/cancel", json={"remarks": "x"}, headers=auth_headers
        )

        body = (await client.get("/api/collections/", headers=auth_headers)).json()
        assert [c["invoice_number"] for c in body["items"]] == ["INV-002"]

        body = (await client.get(
            "/api/collections/", params={"include_cancelled": "true"}, headers=auth_headers
        )).json()
        assert body["total"] == 2

    async def test_aging_filter_implies_pending(
        self, client: AsyncClient, auth_headers: dict, make_dated_billing, pay
    ):
        await make_dated_billing("INV-001", 10)
        target = (await make_dated_billing("INV-002", 45))["collection"]
        settled = (await make_dated_billing("INV-003", 50))["collection"]
        await pay(settled, "OR-1", "1000.00")

        body = (await client.get(
            "/api/collections/", params={"aging": "30-59"}, headers=auth_headers
        )).json()
        assert [c["id"] for c in body["items"]] == [target["id"]]

        resp = await client.get("/api/collections/", params={"aging": "7-14"}, headers=auth_headers)
        assert resp.status_code == 400

    async def test_aging_summary(
        self, client: AsyncClient, auth_headers: dict, make_dated_billing, pay
    ):
        await make_dated_billing("INV-001", 0, amount="100.00")
        await make_dated_billing("INV-002", 10, amount="200.00")
        partial = (await make_dated_billing("INV-003", 45, amount="1000.00"))["collection"]
        await pay(partial, "OR-1", "400.00")
        await make_dated_billing("INV-004", 200, amount="50.00")
        settled = (await make_dated_billing("INV-005", 60, amount="300.00"))["collection"]
        await pay(settled, "OR-2", "300.00")

        resp = await client.get("/api/collections/aging", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        buckets = {b["bucket"]: (b["count"], D(b["outstanding"])) for b in body["buckets"]}
        assert buckets["current"] == (1, D("100.00"))
        assert buckets["1-29"] == (1, D("200.00"))
        assert buckets["30-59"] == (1, D("600.00"))
        assert buckets["60-89"] == (0, D("0"))
        assert buckets["120+"] == (1, D("50.00"))
        assert body["total_count"] == 4
        assert D(body["total_outstanding"]) == D("950.00")
