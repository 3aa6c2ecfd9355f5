"""Conflict detection over an allocation store.

The detector is a pure function of the allocations and the tracks. It is
re-run after every mutation and returns the full conflict list each time,
so a conflict disappears as soon as its cause is gone.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from .models import Allocation, Conflict, ConflictKind, Track

logger = logging.getLogger(__name__)

# Catenary shorter than this cannot hold a raised pantograph over a work position
MIN_USABLE_ELECTRIFICATION_M = 50.0


def _track_index(tracks: Sequence[Track]) -> Dict[str, Track]:
    return {t.id: t for t in tracks}


def _overlaps(allocations: Sequence[Allocation], known: Mapping[str, Track]) -> List[Conflict]:
    by_track: Dict[str, List[Allocation]] = {}
    for a in allocations:
        if a.track_id in known:
            by_track.setdefault(a.track_id, []).append(a)

    found: List[Conflict] = []
    for group in by_track.values():
        # pairwise within the group; fleets are small
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                if a.overlaps(b):
                    found.append(
                        Conflict(
                            kind=ConflictKind.OVERLAP,
                            allocation_ids=(a.id, b.id),
                            track_id=a.track_id,
                            description=(
                                f"{a.work_order_id} and {b.work_order_id} overlap on track {a.track_id} "
                                f"between {max(a.start, b.start).isoformat()} and {min(a.end, b.end).isoformat()}"
                            ),
                        )
                    )
    # order pairs by their position in the store
    position = {a.id: i for i, a in enumerate(allocations)}
    found.sort(key=lambda c: tuple(position[x] for x in c.allocation_ids))
    return found


def _constraint_violations(
    allocation: Allocation, track: Optional[Track], min_electrified_m: float
) -> List[Conflict]:
    # an unknown track has no usable length and no electrification
    length = track.length_m if track else 0.0
    electrified = track.electrified_length_m if track else 0.0
    out: List[Conflict] = []
    if allocation.vehicle_length_m > length:
        out.append(
            Conflict(
                kind=ConflictKind.LENGTH_EXCEEDED,
                allocation_ids=(allocation.id,),
                track_id=allocation.track_id,
                description=(
                    f"{allocation.work_order_id}: vehicle length {allocation.vehicle_length_m:g} m exceeds "
                    f"track {allocation.track_id} length {length:g} m"
                ),
            )
        )
    if allocation.requires_electrification and electrified < min_electrified_m:
        out.append(
            Conflict(
                kind=ConflictKind.ELECTRIFICATION_MISSING,
                allocation_ids=(allocation.id,),
                track_id=allocation.track_id,
                description=(
                    f"{allocation.work_order_id}: needs overhead line, track {allocation.track_id} has "
                    f"{electrified:g} m (minimum {min_electrified_m:g} m)"
                ),
            )
        )
    return out


def detect_conflicts(
    allocations: Sequence[Allocation],
    tracks: Sequence[Track],
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
) -> List[Conflict]:
    """Return every conflict in the store.

    Overlaps come first, one per unordered pair on the same track, ordered
    by the pair's position in the store. Length and electrification
    violations follow in store order. Intervals are half-open, so an
    allocation ending exactly when another starts is not an overlap.
    """
    known = _track_index(tracks)
    conflicts = _overlaps(allocations, known)
    for a in allocations:
        track = known.get(a.track_id)
        if track is None:
            logger.warning("Allocation %s references unknown track %r", a.id, a.track_id)
        conflicts.extend(_constraint_violations(a, track, min_electrified_m))
    return conflicts


def annotate_allocations(allocations: Sequence[Allocation], conflicts: Sequence[Conflict]) -> List[Allocation]:
    """Copy allocations with ``conflict_ids`` set from a detector pass."""
    ids: Dict[str, List[str]] = {}
    for c in conflicts:
        for aid in c.allocation_ids:
            ids.setdefault(aid, []).append(c.id)
    return [replace(a, conflict_ids=tuple(ids.get(a.id, ()))) for a in allocations]


def conflicts_by_track(conflicts: Sequence[Conflict]) -> Dict[str, List[Conflict]]:
    grouped: Dict[str, List[Conflict]] = {}
    for c in conflicts:
        grouped.setdefault(c.track_id or "", []).append(c)
    return grouped
