"""
Prediction Cache Invalidation
Hooks for the external wear-prediction cache.

Every write that can change a bike's component state invalidates the bike's
cached prediction immediately before and immediately after the write, so
concurrent readers see stale predictions for at most the duration of the
write itself.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Iterable, List, Optional, Set

logger = logging.getLogger(__name__)

InvalidationHook = Callable[[int, int], None]

_hooks: List[InvalidationHook] = []


def register_invalidation_hook(hook: InvalidationHook) -> None:
    """Register a callable invoked as hook(user_id, bike_id)."""
    if hook not in _hooks:
        _hooks.append(hook)


def unregister_invalidation_hook(hook: InvalidationHook) -> None:
    if hook in _hooks:
        _hooks.remove(hook)


def invalidate_bike_prediction(user_id: int, bike_id: Optional[int]) -> None:
    """Call every registered hook for one bike. Hook failures are logged, not raised."""
    if bike_id is None:
        return
    logger.debug(f"Invalidating prediction cache for user {user_id}, bike {bike_id}")
    for hook in list(_hooks):
        try:
            hook(user_id, bike_id)
        except Exception as e:
            # A broken cache must not block wear accounting
            logger.warning(f"Prediction cache hook failed for bike {bike_id}: {str(e)}")


class AffectedBikes:
    """Bikes touched by one write. Adding a bike invalidates it right away."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        self.bike_ids: Set[int] = set()

    def add(self, bike_id: Optional[int]) -> None:
        if bike_id is None or bike_id in self.bike_ids:
            return
        self.bike_ids.add(bike_id)
        invalidate_bike_prediction(self.user_id, bike_id)

    def flush(self) -> None:
        for bike_id in sorted(self.bike_ids):
            invalidate_bike_prediction(self.user_id, bike_id)


@contextmanager
def prediction_invalidation(
    user_id: int,
    bike_ids: Iterable[Optional[int]] = (),
) -> Generator[AffectedBikes, None, None]:
    """
    Invalidate before and after a write.

    Bikes discovered during the write (e.g. the source bike of a relocated
    spare) are added to the yielded AffectedBikes and get the same
    before/after treatment.

    Example:
        with prediction_invalidation(user_id, [bike_id]) as affected:
            ...
            affected.add(source_bike_id)
    """
    affected = AffectedBikes(user_id)
    for bike_id in bike_ids:
        affected.add(bike_id)
    try:
        yield affected
    finally:
        affected.flush()
