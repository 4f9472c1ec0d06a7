"""State management modules."""

from fletes.state.drivers import DriverLocationRepository, DriverRepository
from fletes.state.jobs import JobRepository
from fletes.state.locks import KeyedLock, get_job_locks
from fletes.state.manager import StateManager, get_state_manager
from fletes.state.rates import RateRepository

__all__ = [
    "StateManager",
    "get_state_manager",
    "KeyedLock",
    "get_job_locks",
    "JobRepository",
    "DriverRepository",
    "DriverLocationRepository",
    "RateRepository",
]
