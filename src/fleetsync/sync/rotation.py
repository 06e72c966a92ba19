"""Quota-aware polling rotation.

The remote service enforces a per-minute call quota (and a stricter one
per batched request) that cannot be negotiated up front. When the fleet
needs more calls than one cycle may issue, entities are rotated with
*full-reversal round-robin*: each cycle takes the first ``capacity``
entities of the current order, and the whole order is reversed for the next
cycle. With ``capacity >= ceil(N / 2)`` every entity is polled at least once
in any two consecutive cycles.

This is a static fairness heuristic, not a scheduler: it does not weigh
entities by importance and does not react to quota rejections.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable

from fleetsync.exceptions import FleetSyncConfigError

_logger = logging.getLogger(__name__)


class RotationPolicy:
    """Full-reversal round-robin over a fixed entity list.

    Parameters
    ----------
    entity_ids
        Entities in discovery order. Duplicates are dropped.
    max_calls_per_cycle
        Hard cap on calls one cycle may issue.
    calls_per_entity
        Calls one selected entity consumes (one per feed kind).
    """

    def __init__(
        self,
        entity_ids: Iterable[str],
        *,
        max_calls_per_cycle: int,
        calls_per_entity: int,
    ) -> None:
        if calls_per_entity < 1:
            raise FleetSyncConfigError(f"calls_per_entity must be at least 1, got {calls_per_entity}")
        if max_calls_per_cycle < calls_per_entity:
            raise FleetSyncConfigError(
                f"a budget of {max_calls_per_cycle} call(s) per cycle cannot cover one entity "
                f"({calls_per_entity} call(s))"
            )
        self._order: list[str] = list(dict.fromkeys(entity_ids))
        self._capacity = max_calls_per_cycle // calls_per_entity
        self._cycles = 0

        if self._order and self._capacity < math.ceil(len(self._order) / 2):
            _logger.warning(
                "Call budget covers %d of %d entities per cycle; some entities will wait "
                "more than two cycles between polls",
                self._capacity,
                len(self._order),
            )

    @property
    def capacity(self) -> int:
        """Entities selectable per cycle."""
        return self._capacity

    @property
    def order(self) -> list[str]:
        """Order the next :meth:`select` will use."""
        return list(self._order)

    @property
    def cycles(self) -> int:
        return self._cycles

    def select(self) -> list[str]:
        """Return this cycle's entities and reverse the full order for the next one."""
        selected = self._order[: self._capacity]
        self._order.reverse()
        self._cycles += 1
        _logger.debug("Rotation cycle %d selected %s", self._cycles, selected)
        return selected


class CallBudget:
    """Per-cycle counter of remote calls.

    Concurrent fetches share one budget; once it is spent further calls
    must not be issued.
    """

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._used = 0
        self._lock = threading.Lock()

    @property
    def used(self) -> int:
        with self._lock:
            return self._used

    @property
    def remaining(self) -> int:
        with self._lock:
            return max(self._limit - self._used, 0)

    def try_acquire(self) -> bool:
        """Reserve one call; ``False`` when the budget is exhausted."""
        with self._lock:
            if self._used >= self._limit:
                return False
            self._used += 1
            return True
