"""
HTTP tests for the REST API.

Requests go through the FastAPI app with the database dependency pointed at
the in-memory test session.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import AsyncGenerator
from uuid import uuid4

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import get_session
from tablequeue.main import app


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """API client sharing the test database session."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def waitlist_url(restaurant, suffix: str = "") -> str:
    return f"/api/v1/restaurants/{restaurant.id}/waitlist{suffix}"


class TestHealth:
    async def test_healthz(self, client: AsyncClient):
        response = await client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "tablequeue"}


class TestRestaurantEndpoints:
    async def test_create_and_post_wait(self, client: AsyncClient):
        response = await client.post("/api/v1/restaurants", json={"name": "Harbor Grill"})
        assert response.status_code == 201
        restaurant = response.json()
        assert restaurant["current_wait_status"] == "available"

        response = await client.patch(
            f"/api/v1/restaurants/{restaurant['id']}",
            json={"current_wait_status": "long"},
        )

        assert response.status_code == 200
        assert response.json()["current_wait_status"] == "long"

    async def test_unknown_restaurant(self, client: AsyncClient):
        response = await client.get(f"/api/v1/restaurants/{uuid4()}")

        assert response.status_code == 404


class TestTableTypeEndpoints:
    async def test_create_list_update(self, client: AsyncClient, sample_restaurant):
        url = f"/api/v1/restaurants/{sample_restaurant.id}/table-types"
        response = await client.post(
            url,
            json={"name": "Booth", "capacity": 6, "count": 3, "estimated_turnover_time": 75},
        )
        assert response.status_code == 201
        booth_id = response.json()["id"]

        response = await client.patch(f"/api/v1/table-types/{booth_id}", json={"count": 4})
        assert response.status_code == 200
        assert response.json()["count"] == 4

        response = await client.get(url)
        assert [t["name"] for t in response.json()] == ["Booth"]

    async def test_invalid_capacity(self, client: AsyncClient, sample_restaurant):
        response = await client.post(
            f"/api/v1/restaurants/{sample_restaurant.id}/table-types",
            json={"name": "Stool", "capacity": 0, "count": 3, "estimated_turnover_time": 30},
        )

        assert response.status_code == 422


class TestWaitlistEndpoints:
    """Queue lifecycle over HTTP."""

    async def test_join(self, client: AsyncClient, sample_restaurant, sample_table_types):
        response = await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "Jordan", "party_size": 2},
        )

        assert response.status_code == 201
        entry = response.json()
        assert entry["queue_position"] == 1
        assert entry["status"] == "waiting"
        assert entry["is_remote"] is False
        assert entry["confirmation_code"] is None

    async def test_join_unknown_restaurant(self, client: AsyncClient):
        response = await client.post(
            f"/api/v1/restaurants/{uuid4()}/waitlist",
            json={"customer_name": "Jordan", "party_size": 2},
        )

        assert response.status_code == 404

    async def test_blank_name_is_rejected(self, client: AsyncClient, sample_restaurant):
        response = await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "   ", "party_size": 2},
        )

        assert response.status_code == 400

    async def test_remote_join_and_check_in(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        arrival = (datetime.utcnow() + timedelta(minutes=20)).isoformat()
        response = await client.post(
            waitlist_url(sample_restaurant, "/remote"),
            json={"customer_name": "Riley", "party_size": 4, "expected_arrival_time": arrival},
        )
        assert response.status_code == 201
        entry = response.json()
        assert entry["status"] == "remote_pending"
        code = entry["confirmation_code"]

        response = await client.post(
            waitlist_url(sample_restaurant, "/check-in"),
            json={"confirmation_code": code.lower()},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "remote_confirmed"
        assert response.json()["arrived_at"] is not None

    async def test_bad_confirmation_code(self, client: AsyncClient, sample_restaurant):
        response = await client.post(
            waitlist_url(sample_restaurant, "/check-in"),
            json={"confirmation_code": "ZZZZZZ"},
        )

        assert response.status_code == 400

    async def test_status_transitions(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "Jordan", "party_size": 2},
        )
        entry_id = response.json()["id"]

        response = await client.patch(
            f"/api/v1/waitlist/{entry_id}/status", json={"status": "seated"}
        )
        assert response.status_code == 200
        assert response.json()["seated_at"] is not None

        response = await client.patch(
            f"/api/v1/waitlist/{entry_id}/status", json={"status": "waiting"}
        )
        assert response.status_code == 409

    async def test_unknown_entry(self, client: AsyncClient):
        response = await client.get("/api/v1/waitlist/9999")

        assert response.status_code == 404

    async def test_select_next_and_release(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.post(waitlist_url(sample_restaurant, "/next"))
        assert response.json() == {"entry": None, "message": "No customer available"}

        await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "Jordan", "party_size": 2},
        )

        response = await client.post(waitlist_url(sample_restaurant, "/next"))
        selected = response.json()["entry"]
        assert selected["status"] == "processing"

        response = await client.post(f"/api/v1/waitlist/{selected['id']}/release")
        assert response.json()["status"] == "waiting"

    async def test_queue_view(self, client: AsyncClient, sample_restaurant, sample_table_types):
        for name in ("Jordan", "Riley"):
            await client.post(
                waitlist_url(sample_restaurant),
                json={"customer_name": name, "party_size": 2},
            )

        response = await client.get(waitlist_url(sample_restaurant, "/queue"))

        body = response.json()
        assert body["total_waiting"] == 2
        assert [q["customer_name"] for q in body["queue"]] == ["Jordan", "Riley"]
        assert [q["place_in_line"] for q in body["queue"]] == [1, 2]

    async def test_expire_remote_with_nothing_stale(self, client: AsyncClient, sample_restaurant):
        response = await client.post(waitlist_url(sample_restaurant, "/expire-remote"))

        assert response.status_code == 200
        assert response.json() == {"cancelled_count": 0, "cancelled": []}


class TestAnalyticsEndpoints:
    """Estimator reports over HTTP."""

    async def test_demand_forecast(self, client: AsyncClient, sample_restaurant, sample_table_types):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/demand",
            params={"weather_factor": 1.5, "special_events": ["Concert"]},
        )

        assert response.status_code == 200
        predictions = response.json()["predictions"]
        assert len(predictions) == 4
        assert "Special events: Concert" in predictions[0]["factors"]

    async def test_wait_estimate(self, client: AsyncClient, sample_restaurant, sample_table_types):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/wait-estimate",
            params={"party_size": 2},
        )

        assert response.status_code == 200
        assert response.json()["estimated_wait_time"] == 0

    async def test_turnover_report_without_history(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/turnover"
        )

        assert response.status_code == 200
        assert response.json()["analyses"] == []
        assert response.json()["summary"] is None

    async def test_apply_turnover_without_history(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.post(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/turnover/apply"
        )

        assert response.status_code == 200
        assert response.json() == []

    async def test_table_configuration(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/table-configuration"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["party_size_distribution"]["1-2"] == 0
        assert body["utilization_score"] == 0.0

    async def test_unknown_restaurant(self, client: AsyncClient):
        response = await client.get(f"/api/v1/restaurants/{uuid4()}/analytics/optimization")

        assert response.status_code == 404

    async def test_table_availability(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/availability"
        )

        assert response.status_code == 200
        body = response.json()
        assert [a["table_name"] for a in body] == ["Two-top", "Four-top", "Chef's table"]
        assert body[1]["available"] == 2
        assert body[1]["predicted_turnover_time"] is not None

    async def test_allocation_strategy(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/allocation-strategy"
        )

        assert response.status_code == 200
        assert response.json()["strategy"] == "first_fit"
        assert response.json()["name"] == "First Available"

    async def test_table_assignment(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "Jordan", "party_size": 3},
        )
        entry_id = response.json()["id"]

        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/table-assignment/{entry_id}",
            params={"strategy": "best_fit"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["strategy"]["strategy"] == "best_fit"
        assert body["allocation"]["table_name"] == "Four-top"
        assert body["allocation"]["seat_wastage"] == 1
        assert body["message"] is None

    async def test_table_assignment_for_oversized_party(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.post(
            waitlist_url(sample_restaurant),
            json={"customer_name": "Jordan", "party_size": 12},
        )
        entry_id = response.json()["id"]

        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/table-assignment/{entry_id}"
        )

        assert response.status_code == 200
        assert response.json()["allocation"] is None
        assert response.json()["message"] == "No suitable table is free"

    async def test_table_assignment_rejects_unknown_strategy(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/table-assignment/1",
            params={"strategy": "worst_fit"},
        )

        assert response.status_code == 422

    async def test_table_assignment_unknown_entry(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/table-assignment/9999"
        )

        assert response.status_code == 404

    async def test_table_efficiency_and_wait_reduction(
        self, client: AsyncClient, sample_restaurant, sample_table_types
    ):
        base = f"/api/v1/restaurants/{sample_restaurant.id}/analytics"

        response = await client.get(f"{base}/table-efficiency")
        assert response.status_code == 200
        assert {m["utilization"] for m in response.json()} == {0}

        response = await client.get(f"{base}/wait-reduction")
        assert response.status_code == 200
        assert response.json()["recommendations"] == ["Not enough data to make recommendations"]

    async def test_capacity_plan(self, client: AsyncClient, sample_restaurant, sample_table_types):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/capacity-plan"
        )

        assert response.status_code == 200
        assert [r["table_name"] for r in response.json()] == ["Two-top", "Four-top", "Chef's table"]

    async def test_demand_shifting(self, client: AsyncClient, sample_restaurant, sample_table_types):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/demand-shifting",
            params={"day_of_week": 5},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["forecast"]["day_of_week"] == 5
        assert len(body["forecast"]["hourly_demand"]) == 12
        assert body["forecast"]["peak_hours"] == []
        assert len(body["incentives"]) == 12

    async def test_demand_shifting_day_out_of_range(self, client: AsyncClient, sample_restaurant):
        response = await client.get(
            f"/api/v1/restaurants/{sample_restaurant.id}/analytics/demand-shifting",
            params={"day_of_week": 7},
        )

        assert response.status_code == 422
