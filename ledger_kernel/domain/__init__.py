"""
Pure domain layer.

Injectable clocks and the frozen DTOs returned by kernel models.  NO
dependencies on the database, or I/O beyond SystemClock.
"""

from ledger_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
