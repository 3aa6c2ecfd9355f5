from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from depot_planner.core.models import Allocation, Track, WorkOrder


def gantt_json(
    allocations: Sequence[Allocation],
    work_orders: Optional[Mapping[str, WorkOrder]] = None,
    reference_time: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    # One row per allocation; offsets in hours from the reference time when given
    rows: List[Dict[str, Any]] = []
    for a in allocations:
        wo = (work_orders or {}).get(a.work_order_id)
        row: Dict[str, Any] = {
            "allocation": a.id,
            "work_order": a.work_order_id,
            "track": a.track_id,
            "start": a.start.isoformat(),
            "end": a.end.isoformat(),
            "conflict": a.has_conflict,
        }
        if wo is not None:
            row["vehicle"] = wo.vehicle_id
            row["stage"] = wo.stage
            row["priority"] = wo.priority.value
        if reference_time is not None:
            row["offset_hours"] = (a.start - reference_time).total_seconds() / 3600.0
            row["duration_hours"] = a.duration_hours
        rows.append(row)
    return rows


def gantt_lanes(tracks: Sequence[Track], allocations: Sequence[Allocation]) -> Dict[str, List[str]]:
    # track id -> allocation ids ordered by start; unknown tracks get their own lane
    lanes: Dict[str, List[Allocation]] = {t.id: [] for t in tracks}
    for a in allocations:
        lanes.setdefault(a.track_id, []).append(a)
    return {tid: [a.id for a in sorted(items, key=lambda x: x.start)] for tid, items in lanes.items()}
