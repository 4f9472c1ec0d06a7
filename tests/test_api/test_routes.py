"""Tests for the HTTP API."""

import csv
import io
from datetime import timedelta
from typing import Any

import pytest
from httpx import AsyncClient

from fletes.utils.clock import utcnow

from tests.conftest import DROPOFF, PICKUP, FakeRedis

API = "/api/v1"


def job_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "client_name": "Ferretería San Martín",
        "pickup": PICKUP.model_dump(),
        "dropoff": DROPOFF.model_dump(),
    }
    payload.update(overrides)
    return payload


async def create_driver(client: AsyncClient, code: str = "juan1") -> dict[str, Any]:
    response = await client.post(f"{API}/drivers", json={"name": "Juan Pérez", "code": code})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_job_lifecycle_over_http(test_client: AsyncClient) -> None:
    """Create, start, walk through every status and bill a job."""
    driver = await create_driver(test_client)
    await test_client.put(f"{API}/settings/hourly-rate", json={"value": "1000"})

    response = await test_client.post(f"{API}/jobs", json=job_payload(driver_id=driver["id"]))
    assert response.status_code == 201
    job = response.json()
    assert job["status"] == "PENDING"
    assert "last_track_point" not in job

    for target in ["TO_PICKUP", "LOADING", "TO_DROPOFF", "UNLOADING", "DONE"]:
        response = await test_client.post(
            f"{API}/jobs/{job['id']}/transition", json={"status": target}
        )
        assert response.status_code == 200, response.text
        assert response.json()["status"] == target

    billing = await test_client.get(f"{API}/jobs/{job['id']}/billing")
    assert billing.status_code == 200
    assert billing.json()["billed_hours"] in (0, 1)
    assert billing.json()["job_id"] == job["id"]


@pytest.mark.asyncio
async def test_transition_errors(test_client: AsyncClient) -> None:
    """Validation errors and unknown jobs carry their codes."""
    job = (await test_client.post(f"{API}/jobs", json=job_payload())).json()

    skipped = await test_client.post(f"{API}/jobs/{job['id']}/transition", json={"status": "DONE"})
    assert skipped.status_code == 400
    assert skipped.json()["error"] == "INVALID_STATUS"

    unknown = await test_client.post(f"{API}/jobs/{job['id']}/transition", json={"status": "NOPE"})
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "INVALID_STATUS"

    missing = await test_client.post(f"{API}/jobs/missing/transition", json={"status": "LOADING"})
    assert missing.status_code == 404
    assert missing.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_early_start_returns_available_at(test_client: AsyncClient) -> None:
    """Starting before the window answers 409 with the opening instant."""
    # Two hours ahead, written as UTC-3 wall time
    local = utcnow() + timedelta(hours=2) - timedelta(hours=3)
    job = (
        await test_client.post(
            f"{API}/jobs",
            json=job_payload(
                scheduled_date=local.strftime("%Y-%m-%d"),
                scheduled_time=local.strftime("%H:%M"),
            ),
        )
    ).json()

    response = await test_client.post(
        f"{API}/jobs/{job['id']}/transition", json={"status": "TO_PICKUP"}
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "NOT_YET_AVAILABLE"
    assert body["available_at"] is not None

    window = await test_client.get(f"{API}/jobs/{job['id']}/start-window")
    assert window.json()["open"] is False


@pytest.mark.asyncio
async def test_create_job_validation(test_client: AsyncClient) -> None:
    """Bad payloads are rejected before reaching the service."""
    blank = await test_client.post(f"{API}/jobs", json=job_payload(client_name="   "))
    assert blank.status_code == 422

    bad_lat = job_payload()
    bad_lat["pickup"]["lat"] = 123
    assert (await test_client.post(f"{API}/jobs", json=bad_lat)).status_code == 422


@pytest.mark.asyncio
async def test_patch_and_delete_job(test_client: AsyncClient) -> None:
    job = (await test_client.post(f"{API}/jobs", json=job_payload())).json()

    patched = await test_client.patch(f"{API}/jobs/{job['id']}", json={"helpers_count": 2})
    assert patched.status_code == 200
    assert patched.json()["helpers_count"] == 2

    cleared = await test_client.patch(f"{API}/jobs/{job['id']}", json={"pickup": None})
    assert cleared.status_code == 400

    deleted = await test_client.delete(f"{API}/jobs/{job['id']}")
    assert deleted.status_code == 204
    assert (await test_client.get(f"{API}/jobs/{job['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_driver_login_and_job_scoping(test_client: AsyncClient) -> None:
    driver = await create_driver(test_client)
    await test_client.post(f"{API}/jobs", json=job_payload(driver_id=driver["id"]))
    await test_client.post(f"{API}/jobs", json=job_payload())

    login = await test_client.get(f"{API}/drivers", params={"code": "JUAN1"})
    assert login.status_code == 200
    assert login.json()["id"] == driver["id"]

    mine = await test_client.get(f"{API}/jobs", params={"driver_code": "juan1"})
    assert len(mine.json()) == 1

    everything = await test_client.get(f"{API}/jobs")
    assert len(everything.json()) == 2

    duplicate = await test_client.post(f"{API}/drivers", json={"name": "Otro", "code": "Juan1"})
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_location_report_is_broadcast(
    test_client: AsyncClient,
    fake_redis: FakeRedis,
) -> None:
    """Accepted reports update the snapshot and reach the live channel."""
    driver = await create_driver(test_client)
    job = (
        await test_client.post(f"{API}/jobs", json=job_payload(driver_id=driver["id"]))
    ).json()
    await test_client.post(f"{API}/jobs/{job['id']}/transition", json={"status": "TO_PICKUP"})

    response = await test_client.post(
        f"{API}/driver-locations",
        json={
            "driver_code": "juan1",
            "lat": PICKUP.lat,
            "lng": PICKUP.lng,
            "accuracy": 5,
            "job_id": job["id"],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["location"]["driver_id"] == driver["id"]
    assert body["raised_flags"] == ["near_pickup_sent", "arrived_pickup_sent"]
    assert [channel for channel, _ in fake_redis.published] == ["driver_locations"]

    locations = await test_client.get(f"{API}/driver-locations")
    assert len(locations.json()) == 1


@pytest.mark.asyncio
async def test_location_report_unknown_driver(test_client: AsyncClient) -> None:
    response = await test_client.post(
        f"{API}/driver-locations", json={"driver_code": "ghost", "lat": 0, "lng": 0}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid driver"


@pytest.mark.asyncio
async def test_position_fix_endpoint(test_client: AsyncClient) -> None:
    job = (await test_client.post(f"{API}/jobs", json=job_payload())).json()

    pending = await test_client.post(
        f"{API}/jobs/{job['id']}/positions", json={"lat": PICKUP.lat, "lng": PICKUP.lng}
    )
    assert pending.json() == {"job_id": job["id"], "ignored": True, "distance_meters": None}

    await test_client.post(f"{API}/jobs/{job['id']}/transition", json={"status": "TO_PICKUP"})
    tracked = await test_client.post(
        f"{API}/jobs/{job['id']}/positions", json={"lat": PICKUP.lat, "lng": PICKUP.lng}
    )
    assert tracked.json()["ignored"] is False
    assert tracked.json()["distance_meters"] == 0

    off_globe = await test_client.post(
        f"{API}/jobs/{job['id']}/positions", json={"lat": 95.0, "lng": PICKUP.lng}
    )
    assert off_globe.status_code == 422


@pytest.mark.asyncio
async def test_settings_endpoints(test_client: AsyncClient) -> None:
    updated = await test_client.put(f"{API}/settings/helper-hourly-rate", json={"value": 4000})
    assert updated.status_code == 200
    assert updated.json()["key"] == "helper_hourly_rate"

    rates = await test_client.get(f"{API}/settings")
    assert rates.json()["helper_hourly_rate"] is not None
    assert rates.json()["hourly_rate"] is None

    unknown = await test_client.get(f"{API}/settings/tip-rate")
    assert unknown.status_code == 404

    negative = await test_client.put(f"{API}/settings/hourly-rate", json={"value": -1})
    assert negative.status_code == 422


@pytest.mark.asyncio
async def test_history_export(test_client: AsyncClient) -> None:
    """Only completed jobs are exported, with billed hours."""
    done = (await test_client.post(f"{API}/jobs", json=job_payload())).json()
    await test_client.post(f"{API}/jobs", json=job_payload(client_name="Pendiente SRL"))
    for target in ["TO_PICKUP", "LOADING", "TO_DROPOFF", "UNLOADING", "DONE"]:
        await test_client.post(f"{API}/jobs/{done['id']}/transition", json={"status": target})

    response = await test_client.get(f"{API}/jobs/history/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "historial-fletes.csv" in response.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert [row["job_id"] for row in rows] == [done["id"]]
    assert rows[0]["billed_hours"] in ("0", "1")
    assert rows[0]["client_name"] == "Ferretería San Martín"

    history = await test_client.get(f"{API}/jobs/history")
    assert [item["id"] for item in history.json()] == [done["id"]]
    assert "billing" in history.json()[0]
