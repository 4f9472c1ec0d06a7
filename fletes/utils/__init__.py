"""Utility modules."""

from fletes.utils.clock import from_epoch_ms, to_epoch_ms, utcnow
from fletes.utils.logging import setup_logging

__all__ = ["setup_logging", "from_epoch_ms", "to_epoch_ms", "utcnow"]
