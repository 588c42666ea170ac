"""
Unit tests for the HTTP boundary.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from quest_verifier.api.app import create_app
from quest_verifier.shared.exceptions import ConfigurationException
from tests.conftest import BAD_CHECKSUM_USER, OTHER_USER, USER, block_timestamp


@pytest.fixture
def api(service, ledgers):
    ledgers["alpha"].add_transfer(1000, USER, OTHER_USER)
    with TestClient(create_app(service=service)) as client:
        yield client


@pytest.fixture
def stub_service():
    stub = MagicMock()
    stub.stop_background_tasks = AsyncMock()
    return stub


class TestVerifyRoutes:
    """Verdict responses are exactly {"result": 0|1}."""

    def test_verify_positive(self, api):
        response = api.get(f"/api/verify/{USER}", params={"contract": "alpha"})
        assert response.status_code == 200
        assert response.json() == {"result": 1}

    def test_verify_negative(self, api):
        response = api.get(
            f"/api/verify/{OTHER_USER}",
            params={"contract": "alpha", "campaign": "february"},
        )
        assert response.status_code == 200
        assert response.json() == {"result": 0}

    def test_verify_campaign(self, api):
        response = api.get(
            f"/api/verify/{USER}",
            params={"contract": "alpha", "campaign": "january_week1"},
        )
        assert response.json() == {"result": 1}

    def test_missing_contract(self, api):
        response = api.get(f"/api/verify/{USER}")
        assert response.status_code == 400
        assert response.json()["result"] == 0
        assert "Contract ID is required" in response.json()["error"]

    def test_malformed_address(self, api):
        response = api.get("/api/verify/0x1234", params={"contract": "alpha"})
        assert response.status_code == 400
        assert response.json() == {"result": 0, "error": "Invalid Ethereum address"}

    def test_any_hex_case_is_accepted(self, api):
        response = api.get(
            f"/api/verify/{BAD_CHECKSUM_USER}", params={"contract": "alpha"}
        )
        assert response.status_code == 200
        assert response.json() == {"result": 1}

    def test_unknown_contract(self, api):
        response = api.get(f"/api/verify/{USER}", params={"contract": "gamma"})
        assert response.status_code == 400
        assert response.json() == {"result": 0, "error": "Contract not found: gamma"}

    def test_unknown_campaign(self, api):
        response = api.get(
            f"/api/verify/{USER}", params={"contract": "alpha", "campaign": "winter"}
        )
        assert response.status_code == 400
        assert response.json() == {"result": 0, "error": "Campaign not found: winter"}

    def test_internal_failure_is_negative_result(self, stub_service):
        stub_service.has_interacted = AsyncMock(side_effect=RuntimeError("boom"))
        with TestClient(create_app(service=stub_service)) as client:
            response = client.get(f"/api/verify/{USER}", params={"contract": "alpha"})
        assert response.status_code == 200
        assert response.json() == {"result": 0}


class TestVerifyInRangeRoute:
    """Date-bounded verification."""

    def test_date_range(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={
                "contract": "alpha",
                "startDate": "2024-01-01",
                "endDate": "2024-01-01",
            },
        )
        assert response.json() == {"result": 1}

    def test_iso_datetimes(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={
                "contract": "alpha",
                "startDate": "2024-01-10T00:00:00Z",
                "endDate": "2024-01-12T00:00:00Z",
            },
        )
        assert response.json() == {"result": 0}

    def test_campaign_overrides_dates(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={
                "contract": "alpha",
                "campaign": "january_week1",
                "startDate": "2024-02-01",
                "endDate": "2024-02-05",
            },
        )
        assert response.json() == {"result": 1}

    def test_dates_required_without_campaign(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={"contract": "alpha", "startDate": "2024-01-01"},
        )
        assert response.status_code == 400
        assert response.json()["result"] == 0

    def test_malformed_date(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={"contract": "alpha", "startDate": "01/01/2024", "endDate": "2024-01-02"},
        )
        assert response.status_code == 400
        assert response.json() == {"result": 0, "error": "Invalid date format"}

    def test_inverted_dates(self, api):
        response = api.get(
            f"/api/verify-in-range/{USER}",
            params={"contract": "alpha", "startDate": "2024-02-01", "endDate": "2024-01-01"},
        )
        assert response.status_code == 400

    def test_timestamps_forwarded(self, stub_service):
        stub_service.has_interacted_in_time_range = AsyncMock(return_value=True)
        with TestClient(create_app(service=stub_service)) as client:
            response = client.get(
                f"/api/verify-in-range/{USER}",
                params={
                    "contract": "alpha",
                    "startDate": "2024-01-01",
                    "endDate": "2024-01-01",
                },
            )
        assert response.json() == {"result": 1}
        stub_service.has_interacted_in_time_range.assert_awaited_once_with(
            USER, "alpha", block_timestamp(1), 1704153599, campaign_id=None
        )


class TestAdminRoutes:
    """Contracts listing, reload, cache and health."""

    def test_contracts(self, api):
        body = api.get("/api/contracts").json()
        assert body["success"] is True
        assert set(body["contracts"]) == {"alpha", "beta"}
        assert body["contracts"]["alpha"]["campaigns"]["january_week1"]["endDate"] == "2024-01-07"

    def test_campaign(self, api):
        body = api.get("/api/contracts/alpha/campaigns/january_week1").json()
        assert body["success"] is True
        assert body["campaign"]["name"] == "First week of January"

    def test_unknown_campaign_is_404(self, api):
        response = api.get("/api/contracts/alpha/campaigns/winter")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_unknown_contract_is_404(self, api):
        response = api.get("/api/contracts/gamma/campaigns/winter")
        assert response.status_code == 404

    def test_clear_cache(self, api, result_cache):
        api.get(f"/api/verify/{USER}", params={"contract": "alpha"})
        assert len(result_cache) == 1

        body = api.get("/api/clear-cache").json()
        assert body == {"success": True, "message": "Cache cleared successfully"}
        assert len(result_cache) == 0

    def test_reload_config(self, api, result_cache):
        api.get(f"/api/verify/{USER}", params={"contract": "alpha"})

        body = api.get("/api/reload-config").json()
        assert body["success"] is True
        assert len(result_cache) == 0

    def test_reload_failure(self, stub_service):
        stub_service.reload_configuration.side_effect = ConfigurationException("bad file")
        with TestClient(create_app(service=stub_service)) as client:
            response = client.get("/api/reload-config")
        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_health(self, api):
        assert api.get("/api/health").json() == {"status": "healthy", "contracts": 2}

    def test_cors(self, api):
        response = api.get("/api/health", headers={"Origin": "https://quests.example"})
        assert "access-control-allow-origin" in response.headers
