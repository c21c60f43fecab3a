"""
API endpoint tests.

Tests the REST endpoints for:
- Correct responses and camelCase shapes
- Error mapping ({error} bodies with 400/503/504)
- Empty results
"""

from dataclasses import replace
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import build_services, create_app
from bridge_explorer.config import ApiSettings, Settings
from bridge_explorer.errors import StoreUnavailableError


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def seeded(ledger):
    """One completed and one pending transfer plus statistics."""
    ledger.source("src1", time=1000, sender=ledger.ALICE)
    ledger.relay("poly1", "src1", time=1100)
    ledger.destination("dst1", "poly1", chain_id=6, time=1200, recipient=ledger.BOB)
    ledger.source("src2", time=2000, sender=ledger.BOB)
    ledger.chain_statistic(2, 10, 4, 6)
    ledger.chain_statistic(6, 3, 6, 4)
    ledger.token_statistic(2, ledger.USDT_ETH, in_counter=1, out_counter=2, in_amount=500, out_amount=1500)
    ledger.asset_statistic("USDT", 10, 100, 5000, amount_usd=5000)
    return ledger


@pytest.fixture
def app(settings, store, seeded):
    return create_app(settings=settings, services=build_services(settings, store))


@pytest.fixture
def client(app):
    """Test client."""
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for /api/v1/health endpoint."""

    def test_health_check_returns_ok(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["duckdb"] is True
        assert data["redis"] is False
        assert "timestamp" in data

    def test_health_without_store_is_degraded(self, settings):
        client = TestClient(create_app(settings=settings))

        data = client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["duckdb"] is False


class TestTransferList:
    """Tests for POST /api/v1/transfers/list."""

    def test_unfiltered_list(self, client):
        response = client.post("/api/v1/transfers/list", json={"pageNo": 1, "pageSize": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["totalCount"] == 2
        assert data["totalPages"] == 1
        assert [item["sourceHash"] for item in data["items"]] == ["src2", "src1"]
        assert data["items"][0]["state"] == "pending"
        assert data["items"][0]["relayHash"] == ""
        assert data["items"][1]["state"] == "completed"

    def test_composite_shape(self, client, seeded):
        data = client.post("/api/v1/transfers/list", json={"pageNo": 1, "pageSize": 10}).json()
        completed = data["items"][1]

        assert completed["source"]["chainName"] == "Ethereum"
        assert completed["source"]["transfer"]["amount"] == "1000"
        assert completed["source"]["transfer"]["asset"]["name"] == "USDT"
        assert completed["source"]["transfer"]["dstChainName"] == "BSC"
        assert completed["relay"]["hash"] == "poly1"
        assert completed["destination"]["chainName"] == "BSC"
        assert completed["destination"]["transfer"]["to"] == seeded.BOB
        assert completed["destination"]["transfer"]["asset"]["type"] == "BEP20"

    def test_address_filter(self, client, seeded):
        response = client.post(
            "/api/v1/transfers/list",
            json={"pageNo": 1, "pageSize": 10, "filter": {"chainId": 2, "address": seeded.ALICE_CHECKSUM}},
        )

        data = response.json()
        assert data["totalCount"] == 1
        assert data["items"][0]["sourceHash"] == "src1"

    def test_state_filter(self, client):
        response = client.post(
            "/api/v1/transfers/list",
            json={"pageNo": 1, "pageSize": 10, "filter": {"state": "completed"}},
        )

        assert [item["sourceHash"] for item in response.json()["items"]] == ["src1"]

    def test_unnormalizable_address_is_empty(self, client):
        response = client.post(
            "/api/v1/transfers/list",
            json={"pageNo": 1, "pageSize": 10, "filter": {"chainId": 2, "address": "not-an-address"}},
        )

        assert response.status_code == 200
        assert response.json() == {"pageNo": 1, "pageSize": 10, "totalPages": 0, "totalCount": 0, "items": []}

    @pytest.mark.parametrize(
        "body",
        [
            {"pageNo": 0, "pageSize": 10},
            {"pageNo": 1, "pageSize": 0},
            {"pageNo": 1},
            {"pageNo": "one", "pageSize": 10},
            {"pageNo": 1, "pageSize": 10, "filter": {"address": "0x" + "a" * 40}},
            {"pageNo": 1, "pageSize": 10, "filter": {"state": "relayed"}},
            {"pageNo": 10**19, "pageSize": 10},
            {"pageNo": 1, "pageSize": 10**19},
        ],
    )
    def test_bad_requests_return_400(self, client, body):
        response = client.post("/api/v1/transfers/list", json=body)

        assert response.status_code == 400
        assert "error" in response.json()


class TestTransferLookup:
    """Tests for GET /api/v1/transfers/{hash}."""

    @pytest.mark.parametrize("tx_hash", ["src1", "poly1", "dst1"])
    def test_any_stage_hash(self, client, tx_hash):
        response = client.get(f"/api/v1/transfers/{tx_hash}")

        assert response.status_code == 200
        transfer = response.json()["transfer"]
        assert transfer["sourceHash"] == "src1"
        assert transfer["relayHash"] == "poly1"
        assert transfer["destinationHash"] == "dst1"
        assert transfer["state"] == "completed"

    def test_unknown_hash_is_null(self, client):
        response = client.get("/api/v1/transfers/missing")

        assert response.status_code == 200
        assert response.json() == {"transfer": None}


class TestActivityEndpoints:
    """Tests for token and address transaction lists."""

    def test_token_transactions(self, client, seeded):
        response = client.post(
            "/api/v1/tokens/transactions",
            json={"chainId": 2, "token": "0x" + seeded.USDT_ETH, "pageNo": 1, "pageSize": 10},
        )

        data = response.json()
        assert response.status_code == 200
        assert data["totalCount"] == 3
        assert {item["hash"] for item in data["items"]} == {"src1", "src2"}
        assert data["items"][0]["token"]["name"] == "USDT"
        assert data["items"][0]["direction"] == 1

    def test_address_transactions(self, client, seeded):
        response = client.post(
            "/api/v1/addresses/transactions",
            json={"chainId": 6, "address": "0x" + seeded.BOB, "pageNo": 1, "pageSize": 10},
        )

        data = response.json()
        assert data["totalCount"] == 1
        assert data["items"][0]["hash"] == "dst1"
        assert data["items"][0]["direction"] == 2
        assert data["items"][0]["chainName"] == "BSC"

    def test_oversized_page_rejected(self, client, seeded):
        response = client.post(
            "/api/v1/tokens/transactions",
            json={"chainId": 2, "token": seeded.USDT_ETH, "pageNo": 10**19, "pageSize": 10},
        )

        assert response.status_code == 400
        assert "too large" in response.json()["error"]

    def test_missing_chain_id(self, client):
        response = client.post("/api/v1/addresses/transactions", json={"address": "x", "pageNo": 1, "pageSize": 10})

        assert response.status_code == 400


class TestStatisticsEndpoints:
    """Tests for statistics and overview endpoints."""

    def test_transfer_statistics(self, client):
        data = client.get("/api/v1/statistics/transfers").json()

        assert [s["chainId"] for s in data["chainStatistics"]] == [2, 6]
        assert data["tokenStatistics"][0]["inAmount"] == "500"
        assert data["tokenStatistics"][0]["token"]["name"] == "USDT"
        assert {c["name"] for c in data["chains"]} == {"Poly", "Ethereum", "Ontology", "BSC"}

    def test_transfer_statistics_for_chain(self, client):
        data = client.get("/api/v1/statistics/transfers", params={"chain": 6}).json()

        assert [s["chainId"] for s in data["chainStatistics"]] == [6]
        assert data["tokenStatistics"] == []
        assert [c["name"] for c in data["chains"]] == ["BSC"]

    def test_bad_chain_parameter(self, client):
        response = client.get("/api/v1/statistics/transfers", params={"chain": "eth"})

        assert response.status_code == 400

    def test_asset_statistics(self, client):
        data = client.get("/api/v1/statistics/assets").json()

        assert data["assets"][0]["name"] == "USDT"
        assert data["assets"][0]["amountUsd"] == "5000.0000"

    def test_explorer_info(self, client, seeded):
        data = client.get("/api/v1/explorer/info").json()

        assert data["tokens"][0]["name"] == "USDT"
        assert {t["chainName"] for t in data["tokens"][0]["tokens"]} == {"Ethereum", "BSC"}
        assert len(data["chainStatistics"]) == 2

    def test_failing_part_returns_503(self, settings, store, seeded):
        services = build_services(settings, store)
        services.statistics.store = MagicMock(wraps=store)
        services.statistics.store.list_chain_statistics.side_effect = StoreUnavailableError("disk gone")
        client = TestClient(create_app(settings=settings, services=services))

        response = client.get("/api/v1/statistics/transfers")

        assert response.status_code == 503
        assert "chainStatistics" in response.json()["error"]


class TestErrorMapping:
    """Tests for store unavailability and deadlines."""

    def test_no_store_returns_503(self, settings):
        client = TestClient(create_app(settings=settings))

        response = client.post("/api/v1/transfers/list", json={"pageNo": 1, "pageSize": 10})

        assert response.status_code == 503
        assert response.json() == {"error": "transaction store not connected"}

    def test_expired_deadline_returns_504(self, store, seeded):
        settings = replace(Settings(), api=ApiSettings(request_timeout_seconds=0))
        client = TestClient(create_app(settings=settings, services=build_services(settings, store)))

        response = client.get("/api/v1/transfers/src1")

        assert response.status_code == 504
        assert "deadline exceeded" in response.json()["error"]


class TestAsyncClient:
    """The app served over ASGI without the sync test client."""

    @pytest.mark.asyncio
    async def test_lookup_over_asgi(self, app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/transfers/0xdst1")

        # "0xdst1" is not hex, so the prefix is kept and nothing matches.
        assert response.status_code == 200
        assert response.json() == {"transfer": None}

    @pytest.mark.asyncio
    async def test_list_over_asgi(self, app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/api/v1/transfers/list", json={"pageNo": 2, "pageSize": 1})

        data = response.json()
        assert data["totalPages"] == 2
        assert [item["sourceHash"] for item in data["items"]] == ["src1"]
