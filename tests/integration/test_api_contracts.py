"""API contract tests for the transaction endpoints."""

import json
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import create_app
from tests.conftest import make_transaction

pytestmark = pytest.mark.integration

BASE_URL = "http://test"
API = "/api/v1/transactions"

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin", "X-User-Name": "Ada"}
VIEWER = {"X-User-Id": "viewer-1", "X-User-Role": "viewer"}

BASE_TIME = datetime(2026, 1, 15, 0, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def client(runtime):
    app = create_app(runtime)
    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as c:
        yield c


async def _seed(runtime, count: int) -> None:
    for i in range(count):
        await runtime.store.insert(
            make_transaction(
                transaction_id=f"TXN{i:05d}",
                timestamp=BASE_TIME + timedelta(hours=i),
                risk_score=(i * 13) % 101,
            )
        )


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_identity_is_401(self, client):
        response = await client.get(API)
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get(API, headers=VIEWER)
        assert response.headers["X-Request-ID"]


class TestListTransactions:
    @pytest.mark.asyncio
    async def test_list_shape_and_pagination(self, client, runtime):
        await _seed(runtime, 7)
        response = await client.get(API, params={"page": 2, "page_size": 3}, headers=ADMIN)
        assert response.status_code == 200

        body = response.json()
        assert body["pagination"] == {"page": 2, "page_size": 3, "total": 7, "total_pages": 3}
        assert len(body["transactions"]) == 3
        assert body["transactions"][0]["customer"]["name"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_viewer_sees_redacted_rows(self, client, runtime):
        await _seed(runtime, 2)
        response = await client.get(API, headers=VIEWER)
        for row in response.json()["transactions"]:
            assert row["customer"]["name"] == "Anonymous Customer"
            assert "email" not in row["customer"]

    @pytest.mark.asyncio
    async def test_min_risk_and_sort(self, client, runtime):
        await _seed(runtime, 20)
        response = await client.get(
            API,
            params={"min_risk_score": 50, "sort_by": "risk_score", "sort_order": "asc"},
            headers=VIEWER,
        )
        scores = [row["risk_score"] for row in response.json()["transactions"]]
        assert scores == sorted(scores)
        assert all(s >= 50 for s in scores)

    @pytest.mark.asyncio
    async def test_page_size_limit(self, client):
        response = await client.get(API, params={"page_size": 501}, headers=VIEWER)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_query"

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, client):
        response = await client.get(API, params={"sort_by": "nope"}, headers=VIEWER)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_store(self, client):
        body = (await client.get(API, headers=VIEWER)).json()
        assert body["transactions"] == []
        assert body["pagination"]["total_pages"] == 0

    @pytest.mark.asyncio
    async def test_mixed_naive_and_aware_range(self, client, runtime):
        await _seed(runtime, 5)
        response = await client.get(
            API,
            params={"date_from": "2026-01-15T00:00:00", "date_to": "2026-01-15T02:00:00Z"},
            headers=VIEWER,
        )
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 3

    @pytest.mark.asyncio
    async def test_mixed_inverted_range_rejected(self, client):
        response = await client.get(
            API,
            params={"date_from": "2026-01-16T00:00:00Z", "date_to": "2026-01-15T00:00:00"},
            headers=VIEWER,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_query"


class TestGetTransaction:
    @pytest.mark.asyncio
    async def test_get_one(self, client, runtime):
        await _seed(runtime, 1)
        response = await client.get(f"{API}/TXN00000", headers=VIEWER)
        assert response.status_code == 200
        assert response.json()["transaction_id"] == "TXN00000"
        assert response.json()["customer"]["name"] == "Anonymous Customer"

    @pytest.mark.asyncio
    async def test_missing_is_404(self, client):
        response = await client.get(f"{API}/TXN-missing", headers=VIEWER)
        assert response.status_code == 404
        assert response.json()["error"] == "transaction_not_found"


class TestReview:
    @pytest.mark.asyncio
    async def test_viewer_cannot_review(self, client, runtime):
        await _seed(runtime, 1)
        response = await client.patch(f"{API}/TXN00000/review", headers=VIEWER)
        assert response.status_code == 403
        assert response.json()["error"] == "authorization_denied"

    @pytest.mark.asyncio
    async def test_review_once(self, client, runtime):
        await _seed(runtime, 1)
        response = await client.patch(f"{API}/TXN00000/review", headers=ADMIN)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Transaction marked as reviewed"
        assert body["transaction"]["is_reviewed"] is True
        assert body["transaction"]["reviewed_by"] == "admin-1"

        again = await client.patch(f"{API}/TXN00000/review", headers=ADMIN)
        assert again.status_code == 400
        assert again.json()["error"] == "already_reviewed"

    @pytest.mark.asyncio
    async def test_review_missing(self, client):
        response = await client.patch(f"{API}/TXN-missing/review", headers=ADMIN)
        assert response.status_code == 404


class TestStatsEndpoint:
    @pytest.mark.asyncio
    async def test_stats(self, client, runtime):
        await _seed(runtime, 5)
        response = await client.get(f"{API}/stats", headers=VIEWER)
        assert response.status_code == 200
        body = response.json()
        assert body["total_transactions"] == 5
        assert len(body["hourly_pattern"]) == 24
        assert len(body["risk_distribution"]) == 4

    @pytest.mark.asyncio
    async def test_inverted_range_rejected(self, client):
        response = await client.get(
            f"{API}/stats",
            params={"date_from": "2026-02-01T00:00:00Z", "date_to": "2026-01-01T00:00:00Z"},
            headers=VIEWER,
        )
        assert response.status_code == 400


class TestExport:
    @pytest.mark.asyncio
    async def test_viewer_cannot_export(self, client):
        response = await client.post(f"{API}/export", json={"format": "csv"}, headers=VIEWER)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_csv_export(self, client, runtime):
        await _seed(runtime, 3)
        response = await client.post(f"{API}/export", json={"format": "csv"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "transactions.csv" in response.headers["content-disposition"]

        lines = response.text.strip().splitlines()
        assert lines[0].startswith("ID,Timestamp,Amount,Currency,Customer")
        assert len(lines) == 4

    @pytest.mark.asyncio
    async def test_json_export_with_range(self, client, runtime):
        await _seed(runtime, 5)
        response = await client.post(
            f"{API}/export",
            json={
                "format": "json",
                "date_from": (BASE_TIME + timedelta(hours=2)).isoformat(),
            },
            headers=ADMIN,
        )
        assert response.status_code == 200
        rows = json.loads(response.text)
        assert [r["transaction_id"] for r in rows] == ["TXN00004", "TXN00003", "TXN00002"]
        assert rows[0]["customer"]["email"] == "jane@x.com"
