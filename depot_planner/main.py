import argparse
import json
from datetime import datetime
from pathlib import Path

from depot_planner.config import PlannerConfig
from depot_planner.core.planner import SchedulingSession
from depot_planner.core.registry import load_registry, load_work_orders
from depot_planner.reporting.gantt import gantt_json


def main() -> None:
    cfg = PlannerConfig()
    p = argparse.ArgumentParser(description="Seed and auto-resolve the bundled demand list for one depot")
    p.add_argument("--facility", default="GAB")
    p.add_argument("--reference-time", default=None, help="ISO timestamp; defaults to the current hour")
    p.add_argument("--strategy", default=cfg.resolve_strategy, choices=["first_fit", "earliest_free"])
    p.add_argument("--json", action="store_true", help="print the resolved Gantt rows as JSON")
    a = p.parse_args()

    cfg.configure_logging()
    registry = load_registry(Path(cfg.facilities_file) if cfg.facilities_file else None)
    ref = (
        datetime.fromisoformat(a.reference_time)
        if a.reference_time
        else datetime.now().replace(minute=0, second=0, microsecond=0)
    )
    session = SchedulingSession(
        tracks=registry.list_tracks(a.facility),
        reference_time=ref,
        min_electrified_m=cfg.min_electrified_m,
        stagger_hours=cfg.seed_stagger_hours,
        strategy=a.strategy,
    )

    seeded = session.load(load_work_orders(facility_id=a.facility))
    print(f"{registry.facility_name(a.facility)}: {len(seeded.allocations)} work orders seeded")
    for c in seeded.conflicts:
        print(f"  [{c.severity}] {c.id}: {c.description}")

    resolved = session.resolve()
    if a.json:
        by_id = {wo.id: wo for wo in session.work_orders}
        print(json.dumps(gantt_json(resolved.allocations, by_id, ref), indent=2))
        return
    print(f"After auto-resolve ({a.strategy}): {len(resolved.conflicts)} conflicts")
    for al in resolved.allocations:
        print(f"  {al.work_order_id:<8} track {al.track_id:<5} {al.start:%Y-%m-%d %H:%M} -> {al.end:%Y-%m-%d %H:%M}")
    for u in resolved.unassigned:
        print(f"  {u.work_order_id:<8} unassigned: {u.reason.value}")


if __name__ == "__main__":
    main()
