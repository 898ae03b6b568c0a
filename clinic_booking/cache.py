"""Read-through cache of appointment lists per patient / doctor.

Freshness is global, not per entry: every entry is trusted only while
``now - timestamp < ttl``. Any successful booking or cancellation wipes the
whole cache and restarts the clock. Only touched from the event loop, so a
wipe is never observed half-done.
"""
from __future__ import annotations

import enum
import logging
import time
from typing import Awaitable, Callable

from .models import Appointment

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0


class SubjectKind(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class AvailabilityCache:
    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[SubjectKind, int], list[Appointment]] = {}
        self._timestamp = clock()
        # bumped on every wipe so loads that straddle a wipe are not stored
        self._generation = 0

    def is_fresh(self) -> bool:
        return self._clock() - self._timestamp < self.ttl

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_load(
        self,
        kind: SubjectKind,
        subject_id: int,
        loader: Callable[[], Awaitable[list[Appointment]]],
    ) -> list[Appointment]:
        """Return a copy of the cached list, or load it from the store and remember it."""
        key = (kind, subject_id)
        if self.is_fresh():
            cached = self._entries.get(key)
            if cached is not None:
                return list(cached)

        generation = self._generation
        appointments = list(await loader())
        if generation == self._generation:
            self._entries[key] = appointments
        else:
            logger.debug("Dropping %s %s list loaded across an invalidation", kind.value, subject_id)
        return list(appointments)

    def invalidate_all(self) -> None:
        self._entries = {}
        self._timestamp = self._clock()
        self._generation += 1
