import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import ValidationError


def _positive(value: object) -> bool:
    # finite and > 0; None, NaN and inf fail
    try:
        return math.isfinite(value) and value > 0  # type: ignore[arg-type]
    except TypeError:
        return False


def is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Priority") -> "Priority":
        if isinstance(value, Priority):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown priority {value!r}; expected one of high, medium, low") from None


# lower rank is scheduled first
PRIORITY_RANK: Dict[Priority, int] = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass(frozen=True)
class Track:
    id: str
    facility_id: str
    length_m: float  # usable length, hard upper bound on vehicle length
    # length of the overhead-line equipped section; 0 means unelectrified
    electrified_length_m: float = 0.0
    # Informational only, never enforced by the detector or resolver
    gradient_per_mille: Optional[float] = None
    speed_limit_kmh: Optional[float] = None
    clearance_m: Optional[float] = None
    segment: Optional[str] = None
    use: Optional[str] = None

    def __post_init__(self) -> None:
        if not _positive(self.length_m):
            raise ValidationError(f"Track {self.id!r}: length_m must be finite and > 0, got {self.length_m!r}")
        if self.electrified_length_m is None:
            object.__setattr__(self, "electrified_length_m", 0.0)
        elif not math.isfinite(self.electrified_length_m) or self.electrified_length_m < 0:
            raise ValidationError(
                f"Track {self.id!r}: electrified_length_m must be finite and >= 0, got {self.electrified_length_m!r}"
            )

    def accommodates(self, vehicle_length_m: float) -> bool:
        return vehicle_length_m <= self.length_m

    def has_usable_electrification(self, min_electrified_m: float) -> bool:
        return self.electrified_length_m >= min_electrified_m


@dataclass(frozen=True)
class WorkOrder:
    id: str
    vehicle_id: str
    stage: str  # maintenance tier tag, e.g. IS1..IS4 or LATHE
    priority: Priority
    vehicle_length_m: float
    requires_electrification: bool
    duration_hours: float
    facility_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "priority", Priority.parse(self.priority))
        if not _positive(self.duration_hours):
            raise ValidationError(f"Work order {self.id!r}: duration_hours must be finite and > 0, got {self.duration_hours!r}")
        if not _positive(self.vehicle_length_m):
            raise ValidationError(
                f"Work order {self.id!r}: vehicle_length_m must be finite and > 0, got {self.vehicle_length_m!r}"
            )

    @property
    def duration(self) -> timedelta:
        return timedelta(hours=self.duration_hours)


def allocation_id_for(work_order_id: str) -> str:
    return f"slot-{work_order_id}"


@dataclass(frozen=True)
class Allocation:
    id: str
    work_order_id: str
    track_id: str
    start: datetime
    end: datetime
    # requirements copied from the work order when the allocation was made
    vehicle_length_m: float
    requires_electrification: bool
    # derived from the latest detector pass, not authoritative
    conflict_ids: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if is_aware(self.start) != is_aware(self.end):
            raise ValidationError(f"Allocation {self.id!r}: start and end mix naive and timezone-aware times")
        if self.end <= self.start:
            raise ValidationError(
                f"Allocation {self.id!r}: end ({self.end.isoformat()}) must be after start ({self.start.isoformat()})"
            )
        if not _positive(self.vehicle_length_m):
            raise ValidationError(
                f"Allocation {self.id!r}: vehicle_length_m must be finite and > 0, got {self.vehicle_length_m!r}"
            )

    @classmethod
    def for_work_order(
        cls, work_order: WorkOrder, track_id: str, start: datetime, allocation_id: Optional[str] = None
    ) -> "Allocation":
        return cls(
            id=allocation_id or allocation_id_for(work_order.id),
            work_order_id=work_order.id,
            track_id=track_id,
            start=start,
            end=start + work_order.duration,
            vehicle_length_m=work_order.vehicle_length_m,
            requires_electrification=work_order.requires_electrification,
        )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600.0

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflict_ids)

    def overlaps(self, other: "Allocation") -> bool:
        if is_aware(self.start) != is_aware(other.start):
            raise ValidationError(f"Allocations {self.id!r} and {other.id!r} mix naive and timezone-aware times")
        # half-open [start, end): back-to-back is not an overlap
        return self.start < other.end and other.start < self.end

    def moved(self, track_id: str, start: datetime) -> "Allocation":
        if is_aware(start) != is_aware(self.start):
            raise ValidationError(f"Allocation {self.id!r}: new start mixes naive and timezone-aware times")
        return replace(self, track_id=track_id, start=start, end=start + self.duration, conflict_ids=())


class ConflictKind(str, Enum):
    OVERLAP = "overlap"
    LENGTH_EXCEEDED = "length_exceeded"
    ELECTRIFICATION_MISSING = "electrification_missing"


_ID_SUFFIX = {
    ConflictKind.LENGTH_EXCEEDED: "length",
    ConflictKind.ELECTRIFICATION_MISSING: "ole",
}

_SEVERITY = {
    ConflictKind.OVERLAP: "high",
    ConflictKind.ELECTRIFICATION_MISSING: "medium",
    ConflictKind.LENGTH_EXCEEDED: "low",
}


@dataclass(frozen=True)
class Conflict:
    """A detected problem with one allocation or a pair of allocations.

    Identity is ``(kind, allocation_ids)``; ``track_id`` and ``description``
    are context for display and take no part in equality.
    """

    kind: ConflictKind
    allocation_ids: Tuple[str, ...]
    track_id: Optional[str] = field(default=None, compare=False)
    description: str = field(default="", compare=False)

    @property
    def id(self) -> str:
        if self.kind is ConflictKind.OVERLAP:
            return "-".join(self.allocation_ids)
        return f"{self.allocation_ids[0]}-{_ID_SUFFIX[self.kind]}"

    @property
    def severity(self) -> str:
        return _SEVERITY[self.kind]

    def involves(self, allocation_id: str) -> bool:
        return allocation_id in self.allocation_ids


class UnassignedReason(str, Enum):
    NO_TRACK_LONG_ENOUGH = "no_track_long_enough"
    NO_ELECTRIFIED_TRACK = "no_electrified_track"
    NO_TRACK_MEETS_LENGTH_AND_ELECTRIFICATION = "no_track_meets_length_and_electrification"


@dataclass(frozen=True)
class UnassignedWorkOrder:
    work_order_id: str
    reason: UnassignedReason
