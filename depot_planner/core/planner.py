"""Scheduling façade: the operations a host calls, and a session state machine.

Every operation takes the current store and returns a new ``PlanResult``;
nothing is mutated in place, so a reader holding an older result never sees
a half-updated store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .conflict_detector import MIN_USABLE_ELECTRIFICATION_M, annotate_allocations
from .conflict_detector import detect_conflicts as _detect
from .errors import SessionStateError, UnknownAllocationError, UnknownTrackError
from .greedy_scheduler import FIRST_FIT, resolve_allocations
from .models import Allocation, Conflict, Track, UnassignedWorkOrder, WorkOrder
from .seeding import DEFAULT_STAGGER_HOURS, seed_allocations, validate_tracks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    allocations: Tuple[Allocation, ...] = ()
    conflicts: Tuple[Conflict, ...] = ()
    unassigned: Tuple[UnassignedWorkOrder, ...] = ()

    @property
    def is_conflict_free(self) -> bool:
        return not self.conflicts


def _finish(
    allocations: Sequence[Allocation],
    tracks: Sequence[Track],
    min_electrified_m: float,
    unassigned: Sequence[UnassignedWorkOrder] = (),
) -> PlanResult:
    conflicts = _detect(allocations, tracks, min_electrified_m=min_electrified_m)
    return PlanResult(
        allocations=tuple(annotate_allocations(allocations, conflicts)),
        conflicts=tuple(conflicts),
        unassigned=tuple(unassigned),
    )


def detect_conflicts(
    allocations: Sequence[Allocation],
    tracks: Sequence[Track],
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
) -> List[Conflict]:
    return _detect(allocations, tracks, min_electrified_m=min_electrified_m)


def seed(
    work_orders: Sequence[WorkOrder],
    tracks: Sequence[Track],
    reference_time: datetime,
    stagger_hours: float = DEFAULT_STAGGER_HOURS,
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
) -> PlanResult:
    allocations = seed_allocations(work_orders, tracks, reference_time, stagger_hours=stagger_hours)
    result = _finish(allocations, tracks, min_electrified_m)
    logger.info("seed: %d allocations, %d conflicts", len(result.allocations), len(result.conflicts))
    return result


def apply_manual_move(
    allocations: Sequence[Allocation],
    allocation_id: str,
    new_track_id: str,
    new_start: datetime,
    tracks: Sequence[Track],
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
) -> PlanResult:
    """Move one allocation to another track and/or start time.

    The allocation keeps its own duration. The returned store is a copy;
    ``allocations`` is left untouched.
    """
    validate_tracks(tracks)
    if not any(t.id == new_track_id for t in tracks):
        raise UnknownTrackError(new_track_id)
    moved: List[Allocation] = []
    found = False
    for a in allocations:
        if a.id == allocation_id:
            moved.append(a.moved(new_track_id, new_start))
            found = True
        else:
            moved.append(a)
    if not found:
        raise UnknownAllocationError(allocation_id)
    result = _finish(moved, tracks, min_electrified_m)
    logger.info(
        "move: %s -> track %s at %s, %d conflicts",
        allocation_id,
        new_track_id,
        new_start.isoformat(),
        len(result.conflicts),
    )
    return result


def auto_resolve(
    work_orders: Sequence[WorkOrder],
    tracks: Sequence[Track],
    allocations: Sequence[Allocation],
    reference_time: datetime,
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M,
    strategy: str = FIRST_FIT,
) -> PlanResult:
    resolved = resolve_allocations(
        work_orders,
        tracks,
        allocations,
        reference_time,
        min_electrified_m=min_electrified_m,
        strategy=strategy,
    )
    result = _finish(resolved.allocations, tracks, min_electrified_m, unassigned=resolved.unassigned)
    logger.info(
        "resolve: %d allocations, %d unassigned, %d conflicts",
        len(result.allocations),
        len(result.unassigned),
        len(result.conflicts),
    )
    return result


class SessionState(str, Enum):
    EMPTY = "empty"
    SEEDED = "seeded"
    USER_EDITED = "user_edited"
    AUTO_RESOLVED = "auto_resolved"


@dataclass
class SchedulingSession:
    """Holds the allocation store of one depot planning session.

    Not thread safe: the host must serialise calls per session.
    """

    tracks: Tuple[Track, ...]
    reference_time: datetime
    min_electrified_m: float = MIN_USABLE_ELECTRIFICATION_M
    stagger_hours: float = DEFAULT_STAGGER_HOURS
    strategy: str = FIRST_FIT
    state: SessionState = SessionState.EMPTY
    work_orders: Tuple[WorkOrder, ...] = ()
    result: PlanResult = field(default_factory=PlanResult)

    def __post_init__(self) -> None:
        self.tracks = tuple(self.tracks)

    @property
    def allocations(self) -> Tuple[Allocation, ...]:
        return self.result.allocations

    @property
    def conflicts(self) -> Tuple[Conflict, ...]:
        return self.result.conflicts

    @property
    def unassigned(self) -> Tuple[UnassignedWorkOrder, ...]:
        return self.result.unassigned

    def load(self, work_orders: Sequence[WorkOrder], reference_time: Optional[datetime] = None) -> PlanResult:
        if reference_time is not None:
            self.reference_time = reference_time
        result = seed(
            work_orders,
            self.tracks,
            self.reference_time,
            stagger_hours=self.stagger_hours,
            min_electrified_m=self.min_electrified_m,
        )
        self.work_orders = tuple(work_orders)
        self._transition(SessionState.SEEDED, result)
        return result

    def move(self, allocation_id: str, new_track_id: str, new_start: datetime) -> PlanResult:
        self._require_loaded("move")
        result = apply_manual_move(
            self.allocations,
            allocation_id,
            new_track_id,
            new_start,
            self.tracks,
            min_electrified_m=self.min_electrified_m,
        )
        self._transition(SessionState.USER_EDITED, result)
        return result

    def resolve(self, reference_time: Optional[datetime] = None, strategy: Optional[str] = None) -> PlanResult:
        self._require_loaded("resolve")
        if reference_time is not None:
            self.reference_time = reference_time
        result = auto_resolve(
            self.work_orders,
            self.tracks,
            self.allocations,
            self.reference_time,
            min_electrified_m=self.min_electrified_m,
            strategy=strategy or self.strategy,
        )
        self._transition(SessionState.AUTO_RESOLVED, result)
        return result

    def _require_loaded(self, op: str) -> None:
        if self.state is SessionState.EMPTY:
            raise SessionStateError(f"Cannot {op} before work orders are loaded")

    def _transition(self, new_state: SessionState, result: PlanResult) -> None:
        logger.debug("session %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.result = result
