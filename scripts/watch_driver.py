"""Follow one driver's live position the way the map screen renders it."""

import argparse
import asyncio
import json

from fletes.api.websocket import LOCATIONS_CHANNEL
from fletes.config import get_settings
from fletes.models.driver import normalize_code
from fletes.models.job import JobStatus
from fletes.state.drivers import DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.manager import StateManager
from fletes.tracking.camera import CameraController
from fletes.tracking.smoother import DisplayedPosition, SmoothingLoop, monotonic_ms

# Print one frame in this many
PRINT_EVERY = 10


async def watch(code: str) -> None:
    state_manager = StateManager()
    await state_manager.connect()

    driver = await DriverRepository(state_manager).get_by_code(normalize_code(code))
    if driver is None:
        await state_manager.disconnect()
        raise SystemExit(f"Unknown driver code {code}")

    jobs = JobRepository(state_manager)
    camera = CameraController()
    frames = 0

    def on_frame(position: DisplayedPosition) -> None:
        nonlocal frames
        frames += 1
        if frames % PRINT_EVERY == 0:
            print(
                f"  {position.lat:.6f}, {position.lng:.6f}"
                f"  heading={position.heading}  camera={camera.mode.value}"
            )

    loop = SmoothingLoop(on_frame, frame_interval_ms=get_settings().smoother_frame_interval_ms)
    pubsub = state_manager.redis_client.pubsub()
    await pubsub.subscribe(LOCATIONS_CHANNEL)
    print(f"\nWatching {driver.name} ({driver.code}), Ctrl+C to stop\n")

    try:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            data = json.loads(message["data"])
            location = data["location"]
            if location["driver_id"] != driver.id:
                continue

            job_id = data.get("job_id")
            job = await jobs.get(job_id) if job_id else None
            status = job.status if job else JobStatus.PENDING
            if job_id != loop.job_id:
                loop.bind_job(job_id)
                camera.on_job_changed(status)
                print(f"→ job {job_id} ({status.value})")

            loop.push(
                DisplayedPosition(
                    lat=location["lat"],
                    lng=location["lng"],
                    heading=location.get("heading"),
                    accuracy=location.get("accuracy"),
                    speed=location.get("speed"),
                )
            )
            camera.tick(monotonic_ms(), status)
            if data.get("distance_to_target") is not None:
                print(f"  {data['distance_to_target']} m to target, eta {data['eta_minutes']} min")
    finally:
        await loop.aclose()
        await pubsub.unsubscribe(LOCATIONS_CHANNEL)
        await pubsub.aclose()
        await state_manager.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--code", default="JUAN1", help="Driver code to follow")
    args = parser.parse_args()
    try:
        asyncio.run(watch(args.code))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
