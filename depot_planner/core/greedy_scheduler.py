import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Sequence

from .conflict_detector import MIN_USABLE_ELECTRIFICATION_M
from .errors import ValidationError
from .models import (
    Allocation,
    allocation_id_for,
    Track,
    UnassignedReason,
    UnassignedWorkOrder,
    WorkOrder,
)
from .seeding import validate_tracks, validate_work_orders

logger = logging.getLogger(__name__)

# Greedy auto-resolver:
# - Iterate work orders by priority rank (high, medium, low), stable on input order
# - For each, pick a qualifying track (long enough, electrified if needed)
# - Start at that track's cursor, advance the cursor to the end of the new window
# The result replaces the whole store, so it never carries over a conflicting
# manual arrangement.

FIRST_FIT = "first_fit"
EARLIEST_FREE = "earliest_free"
STRATEGIES = (FIRST_FIT, EARLIEST_FREE)


@dataclass
class ResolveResult:
    allocations: List[Allocation] = field(default_factory=list)
    unassigned: List[UnassignedWorkOrder] = field(default_factory=list)


def qualifies(track: Track, wo: WorkOrder, min_electrified_m: float) -> bool:
    if not track.accommodates(wo.vehicle_length_m):
        return False
    if wo.requires_electrification and not track.has_usable_electrification(min_electrified_m):
        return False
    return True


def _unassigned_reason(wo: WorkOrder, tracks: Sequence[Track], min_electrified_m: float) -> UnassignedReason:
    long_enough = any(t.accommodates(wo.vehicle_length_m) for t in tracks)
    if not long_enough:
        return UnassignedReason.NO_TRACK_LONG_ENOUGH
    electrified = any(t.has_usable_electrification(min_electrified_m) for t in tracks)
    if wo.requires_electrification and not electrified:
        return UnassignedReason.NO_ELECTRIFIED_TRACK
    return UnassignedReason.NO_TRACK_MEETS_LENGTH_AND_ELECTRIFICATION


def _pick_track(candidates: List[Track], cursors: Dict[str, datetime], strategy: str) -> Track:
    if strategy == EARLIEST_FREE:
        # min() keeps the first of equal cursors, i.e. registry order
        return min(candidates, key=lambda t: cursors[t.id])
    return candidates[0]


def _reusable_ids(work_orders: Sequence[WorkOrder], current: Sequence[Allocation]) -> Dict[str, str]:
    # work order id -> previous allocation id, kept only while ids stay unique
    defaults = {allocation_id_for(wo.id): wo.id for wo in work_orders}
    reused: Dict[str, str] = {}
    taken = set()
    for a in current:
        owner = defaults.get(a.id)
        if owner is not None and owner != a.work_order_id:
            continue
        if a.work_order_id in reused or a.id in taken:
            continue
        reused[a.work_order_id] = a.id
        taken.add(a.id)
    return reused


def resolve_allocations(
    work_orders: Sequence[WorkOrder],
    tracks: Sequence[Track],
    current_allocations: Sequence[Allocation],
    reference_time: datetime,
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
    strategy: str = FIRST_FIT,
) -> ResolveResult:
    """Re-plan every work order from scratch.

    ``current_allocations`` only contributes allocation ids, so a work order
    that already had a slot keeps the same slot id after resolving.
    """
    if strategy not in STRATEGIES:
        raise ValidationError(f"Unknown resolve strategy {strategy!r}; expected one of {', '.join(STRATEGIES)}")
    validate_work_orders(work_orders)
    validate_tracks(tracks)

    existing_ids = _reusable_ids(work_orders, current_allocations)
    cursors: Dict[str, datetime] = {t.id: reference_time for t in tracks}
    # sorted() is stable: equal priorities keep input order
    ordered = sorted(work_orders, key=lambda wo: wo.priority.rank)

    result = ResolveResult()
    for wo in ordered:
        candidates = [t for t in tracks if qualifies(t, wo, min_electrified_m)]
        if not candidates:
            reason = _unassigned_reason(wo, tracks, min_electrified_m)
            logger.warning("Work order %s cannot be placed: %s", wo.id, reason.value)
            result.unassigned.append(UnassignedWorkOrder(work_order_id=wo.id, reason=reason))
            continue
        track = _pick_track(candidates, cursors, strategy)
        start = max(cursors[track.id], reference_time)
        alloc = Allocation.for_work_order(wo, track.id, start, allocation_id=existing_ids.get(wo.id))
        cursors[track.id] = alloc.end
        result.allocations.append(alloc)

    logger.info(
        "Resolved %d work orders (%s): %d placed, %d unassigned",
        len(work_orders),
        strategy,
        len(result.allocations),
        len(result.unassigned),
    )
    return result

