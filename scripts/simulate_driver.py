"""Drive a seeded job from pickup to dropoff against a running API."""

import argparse
import asyncio
import time

import httpx

from fletes.tracking.sync import LocationReportThrottle

API = "http://localhost:8000/api/v1"

# Fixes generated per leg, one every TICK_SECONDS
STEPS_PER_LEG = 40
TICK_SECONDS = 1.0


def interpolate(start: dict, end: dict, steps: int) -> list[tuple[float, float]]:
    """Points on the straight line between two locations, end included."""
    return [
        (
            start["lat"] + (end["lat"] - start["lat"]) * i / steps,
            start["lng"] + (end["lng"] - start["lng"]) * i / steps,
        )
        for i in range(1, steps + 1)
    ]


async def transition(client: httpx.AsyncClient, job_id: str, status: str) -> dict:
    response = await client.post(f"{API}/jobs/{job_id}/transition", json={"status": status})
    if response.status_code == 409:
        body = response.json()
        raise SystemExit(f"Job {job_id} cannot start yet, window opens at {body['available_at']}")
    response.raise_for_status()
    print(f"  → {status}")
    return response.json()


async def drive_leg(
    client: httpx.AsyncClient,
    throttle: LocationReportThrottle,
    code: str,
    job_id: str,
    start: dict,
    end: dict,
) -> None:
    """Report fixes along one leg, uploading only what the throttle lets through."""
    sent = 0
    for lat, lng in interpolate(start, end, STEPS_PER_LEG):
        now_ms = int(time.time() * 1000)
        if throttle.should_send(lat, lng, now_ms):
            response = await client.post(
                f"{API}/driver-locations",
                json={
                    "driver_code": code,
                    "lat": lat,
                    "lng": lng,
                    "accuracy": 8,
                    "speed": 9.5,
                    "job_id": job_id,
                    "recorded_at": now_ms,
                },
            )
            response.raise_for_status()
            update = response.json()
            sent += 1
            for flag in update["raised_flags"]:
                print(f"    ! {flag}")
        await asyncio.sleep(TICK_SECONDS)
    print(f"    {sent}/{STEPS_PER_LEG} fixes uploaded")


async def simulate(code: str, job_id: str | None) -> None:
    async with httpx.AsyncClient(timeout=10) as client:
        response = await client.get(f"{API}/drivers", params={"code": code})
        response.raise_for_status()
        driver = response.json()
        print(f"\nLogged in as {driver['name']} ({driver['code']})")

        if job_id is None:
            response = await client.get(
                f"{API}/jobs", params={"driver_code": code, "status": "PENDING"}
            )
            response.raise_for_status()
            pending = response.json()
            if not pending:
                raise SystemExit("No pending jobs for this driver")
            job_id = pending[-1]["id"]

        job = (await client.get(f"{API}/jobs/{job_id}")).json()
        print(f"Job {job['id']} for {job['client_name']}")

        throttle = LocationReportThrottle()
        await transition(client, job_id, "TO_PICKUP")
        # Start about a kilometre north of the pickup
        approach = {"lat": job["pickup"]["lat"] + 0.009, "lng": job["pickup"]["lng"]}
        await drive_leg(client, throttle, code, job_id, approach, job["pickup"])
        await transition(client, job_id, "LOADING")
        await transition(client, job_id, "TO_DROPOFF")

        leg_start = job["pickup"]
        for stop in job["extra_stops"]:
            await drive_leg(client, throttle, code, job_id, leg_start, stop)
            response = await client.post(f"{API}/jobs/{job_id}/advance-stop")
            response.raise_for_status()
            print(f"  → stop {response.json()['stop_index']} reached")
            leg_start = stop

        await drive_leg(client, throttle, code, job_id, leg_start, job["dropoff"])
        await transition(client, job_id, "UNLOADING")
        done = await transition(client, job_id, "DONE")
        print(f"\n✓ Job done, {done['distance_meters']} m driven")

        billing = (await client.get(f"{API}/jobs/{job_id}/billing")).json()
        print(f"  billed hours: {billing['billed_hours']}, total: {billing['billed_total']}\n")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--code", default="JUAN1", help="Driver code to log in with")
    parser.add_argument("--job", default=None, help="Job id, defaults to the next pending job")
    args = parser.parse_args()
    asyncio.run(simulate(args.code, args.job))


if __name__ == "__main__":
    main()
