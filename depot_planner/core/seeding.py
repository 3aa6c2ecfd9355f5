import logging
from datetime import datetime, timedelta
from typing import List, Sequence

from .errors import ValidationError
from .models import Allocation, Track, WorkOrder

logger = logging.getLogger(__name__)

DEFAULT_STAGGER_HOURS = 8.0

# Baseline seeding:
# - work order i goes to tracks[i mod n] (round robin in registry order)
# - start times are staggered by a fixed number of hours from the reference time
# The result is not a schedule; overlaps and constraint violations are expected
# and left for the detector to report.


def validate_work_orders(work_orders: Sequence[WorkOrder]) -> None:
    seen = set()
    for wo in work_orders:
        if not isinstance(wo, WorkOrder):
            raise ValidationError(f"Expected WorkOrder, got {type(wo).__name__}")
        if wo.id in seen:
            raise ValidationError(f"Duplicate work order id {wo.id!r}")
        seen.add(wo.id)


def validate_tracks(tracks: Sequence[Track]) -> None:
    # the detector indexes tracks by id, so ids must be unique
    seen = set()
    for t in tracks:
        if t.id in seen:
            raise ValidationError(f"Duplicate track id {t.id!r}")
        seen.add(t.id)


def seed_allocations(
    work_orders: Sequence[WorkOrder],
    tracks: Sequence[Track],
    reference_time: datetime,
    stagger_hours: float = DEFAULT_STAGGER_HOURS,
) -> List[Allocation]:
    validate_work_orders(work_orders)
    validate_tracks(tracks)
    if stagger_hours < 0:
        raise ValidationError(f"stagger_hours must be >= 0, got {stagger_hours!r}")
    if not tracks:
        logger.info("No tracks available; seeding %d work orders yields an empty store", len(work_orders))
        return []

    allocations: List[Allocation] = []
    for index, wo in enumerate(work_orders):
        track = tracks[index % len(tracks)]
        start = reference_time + timedelta(hours=index * stagger_hours)
        allocations.append(Allocation.for_work_order(wo, track.id, start))
    logger.info("Seeded %d allocations over %d tracks", len(allocations), len(tracks))
    return allocations
