"""Seed a driver, upcoming jobs, completed history and rates."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

from fletes.models.driver import DriverCreate
from fletes.models.job import Job, JobCreate, JobStatus, JobTimestamps, Location
from fletes.models.rates import RateKey
from fletes.services.drivers import DriverService
from fletes.services.jobs import JobService
from fletes.services.rates import RateService
from fletes.state.jobs import JobRepository
from fletes.state.manager import StateManager
from fletes.state.workflow import SCHEDULE_TZ, compute_scheduled_at
from fletes.utils.clock import utcnow

DRIVER_CODE = "JUAN1"

PLAZA_MORENO = Location(address="Plaza Moreno, La Plata", lat=-34.9214, lng=-57.9545)
ESTACION = Location(address="Estación La Plata, Av. 1 y 44", lat=-34.9046, lng=-57.9562)
CITY_BELL = Location(address="Cantilo y 14, City Bell", lat=-34.8681, lng=-58.0466)
LOS_HORNOS = Location(address="Av. 137 y 60, Los Hornos", lat=-34.9586, lng=-57.9894)
BERISSO = Location(address="Av. Montevideo y 11, Berisso", lat=-34.8722, lng=-57.8866)

DEFAULT_RATES = {
    RateKey.HOURLY_RATE: Decimal("15000"),
    RateKey.HELPER_HOURLY_RATE: Decimal("4000"),
    RateKey.TRIP_COST_PER_KM: Decimal("350"),
}


def local_schedule(at: datetime) -> tuple[str, str]:
    """Schedule date and time strings for an instant."""
    local = at.astimezone(SCHEDULE_TZ)
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M")


async def seed_driver(state_manager: StateManager) -> str:
    """Create the demo driver, or reuse it when already present."""
    print("Seeding driver...")

    service = DriverService(state_manager)
    existing = await service.drivers.get_by_code(DRIVER_CODE)
    if existing:
        print(f"  ✓ Reusing {existing.name} ({existing.code})")
        return existing.id

    driver = await service.create_driver(
        DriverCreate(name="Juan Pérez", code=DRIVER_CODE, phone="+54 221 555-0101")
    )
    print(f"  ✓ Added {driver.name} ({driver.code})")
    print("✓ Driver seeded successfully\n")
    return driver.id


async def seed_pending_jobs(state_manager: StateManager, driver_id: str) -> None:
    """Seed jobs scheduled soon, later today and tomorrow morning."""
    print("Seeding pending jobs...")

    service = JobService(state_manager)
    now = utcnow()
    tomorrow = (now.astimezone(SCHEDULE_TZ) + timedelta(days=1)).replace(
        hour=9, minute=30, second=0, microsecond=0
    )

    pending = [
        ("Ferretería San Martín", now + timedelta(minutes=45), PLAZA_MORENO, ESTACION, [], 0),
        ("Mudanza Gómez", now + timedelta(hours=2), CITY_BELL, LOS_HORNOS, [PLAZA_MORENO], 2),
        ("Corralón El Puente", tomorrow, BERISSO, CITY_BELL, [], 1),
    ]

    for client_name, at, pickup, dropoff, extra_stops, helpers in pending:
        scheduled_date, scheduled_time = local_schedule(at)
        job = await service.create_job(
            JobCreate(
                client_name=client_name,
                pickup=pickup,
                dropoff=dropoff,
                extra_stops=extra_stops,
                driver_id=driver_id,
                helpers_count=helpers,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
            )
        )
        print(f"  ✓ Added {job.client_name} ({scheduled_date} {scheduled_time})")

    print("✓ Pending jobs seeded successfully\n")


async def seed_history(state_manager: StateManager, driver_id: str) -> None:
    """Seed completed jobs so the history and billing have data."""
    print("Seeding completed jobs...")

    jobs = JobRepository(state_manager)
    history = [
        ("Librería Atenea", 70, 1, 8_400),
        ("Vivero Los Aromos", 55, 2, 5_100),
        ("Estudio Ramírez", 95, 0, 12_750),
    ]

    for days_ago, (client_name, minutes, helpers, meters) in enumerate(history, 1):
        started = utcnow() - timedelta(days=days_ago, hours=4)
        scheduled_date, scheduled_time = local_schedule(started)
        step = timedelta(minutes=minutes) / 6
        job = Job(
            client_name=client_name,
            pickup=PLAZA_MORENO,
            dropoff=LOS_HORNOS,
            driver_id=driver_id,
            helpers_count=helpers,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            scheduled_at=compute_scheduled_at(scheduled_date, scheduled_time),
            status=JobStatus.DONE,
            timestamps=JobTimestamps(
                start_job_at=started,
                start_loading_at=started + step,
                end_loading_at=started + step * 2,
                start_trip_at=started + step * 2,
                end_trip_at=started + step * 4,
                start_unloading_at=started + step * 4,
                end_unloading_at=started + timedelta(minutes=minutes),
            ),
            distance_meters=meters,
            created_at=started,
            updated_at=started + timedelta(minutes=minutes),
        )
        await jobs.save(job)
        print(f"  ✓ Added {job.client_name} ({minutes} min, {helpers} helpers)")

    print("✓ Completed jobs seeded successfully\n")


async def seed_rates(state_manager: StateManager) -> None:
    """Seed default rates."""
    print("Seeding rates...")

    service = RateService(state_manager)
    for key, value in DEFAULT_RATES.items():
        await service.set_rate(key, value)
        print(f"  ✓ {key.value} = {value}")

    print("✓ Rates seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Freight Dispatch Data")
    print("=" * 50 + "\n")

    state_manager = StateManager()
    await state_manager.connect()
    try:
        driver_id = await seed_driver(state_manager)
        await seed_pending_jobs(state_manager, driver_id)
        await seed_history(state_manager, driver_id)
        await seed_rates(state_manager)
    finally:
        await state_manager.disconnect()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
