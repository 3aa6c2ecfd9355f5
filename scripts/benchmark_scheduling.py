"""Benchmark conflict detection and auto-resolve for varying numbers of work orders.

Usage:
    python scripts/benchmark_scheduling.py -Min 20 -Max 200 -Step 20 -Tracks 10 -Strategy first_fit
    python -m scripts.benchmark_scheduling -Min 20 -Max 200 -Step 20 -Tracks 10 -Json

Notes:
    - Detection is O(n^2) per track group; seeding piles work orders onto every track.
    - Resolve is O(W * T) for W work orders and T tracks.
"""

from __future__ import annotations
import argparse, random, statistics, json, time, os, sys
from datetime import datetime
from typing import List

# Ensure project root on path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from depot_planner.core.models import Track, WorkOrder  # type: ignore
from depot_planner.core.planner import auto_resolve, seed  # type: ignore
from depot_planner.core.profiles import build_work_order  # type: ignore

STAGES = ["IS1", "IS2", "IS3", "IS4", "LATHE"]
PRIORITIES = ["high", "medium", "low"]


def build_random_tracks(num_tracks: int) -> List[Track]:
    tracks: List[Track] = []
    for i in range(num_tracks):
        length = random.choice([72, 82, 105, 120, 137, 206, 216])
        electrified = length - random.randint(0, 10) if random.random() < 0.7 else 0
        tracks.append(Track(id=f"T{i+1}", facility_id="BENCH", length_m=length, electrified_length_m=electrified))
    return tracks


def build_random_work_orders(n: int) -> List[WorkOrder]:
    orders: List[WorkOrder] = []
    for i in range(n):
        vehicle = random.choice(["660", "780"]) + f"{random.randint(1, 99):02d}"
        orders.append(build_work_order(
            id=f"WO-{i+1:04d}",
            vehicle_id=vehicle,
            stage=random.choice(STAGES),
            priority=random.choice(PRIORITIES),
            duration_hours=round(random.uniform(1.0, 12.0), 1),
            facility_id="BENCH",
        ))
    return orders


def run_once(n_orders: int, tracks: List[Track], strategy: str) -> dict:
    ref = datetime(2025, 1, 6, 6, 0)
    orders = build_random_work_orders(n_orders)
    t0 = time.perf_counter()
    seeded = seed(orders, tracks, ref)
    t1 = time.perf_counter()
    resolved = auto_resolve(orders, tracks, seeded.allocations, ref, strategy=strategy)
    t2 = time.perf_counter()
    horizon = max((a.end for a in resolved.allocations), default=ref)
    return {
        "n_orders": n_orders,
        "strategy": strategy,
        "seed_detect_s": t1 - t0,
        "resolve_detect_s": t2 - t1,
        "seeded_conflicts": len(seeded.conflicts),
        "resolved_conflicts": len(resolved.conflicts),
        "unassigned": len(resolved.unassigned),
        "horizon_h": (horizon - ref).total_seconds() / 3600.0,
    }


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('-Min', type=int, default=20)
    ap.add_argument('-Max', type=int, default=200)
    ap.add_argument('-Step', type=int, default=20)
    ap.add_argument('-Tracks', type=int, default=10)
    ap.add_argument('-Repeats', type=int, default=3)
    ap.add_argument('-Strategy', type=str, default='first_fit', choices=['first_fit', 'earliest_free'])
    ap.add_argument('-Json', action='store_true')
    args = ap.parse_args()

    random.seed(42)
    tracks = build_random_tracks(args.Tracks)
    rows = []
    for n in range(args.Min, args.Max + 1, args.Step):
        for _ in range(args.Repeats):
            row = run_once(n, tracks, args.Strategy)
            rows.append(row)
            if args.Json:
                print(json.dumps(row))
            else:
                print(
                    f"Orders={row['n_orders']:<4} seed={row['seed_detect_s']*1000:7.2f} ms "
                    f"resolve={row['resolve_detect_s']*1000:7.2f} ms conflicts={row['seeded_conflicts']:<5}"
                    f"-> {row['resolved_conflicts']:<3} unassigned={row['unassigned']:<3} horizon={row['horizon_h']:.1f} h"
                )
    if not args.Json:
        from collections import defaultdict
        by_n = defaultdict(list)
        for r in rows:
            by_n[r['n_orders']].append(r['resolve_detect_s'])
        print('\nSummary (mean resolve ms per order count)')
        for n in sorted(by_n):
            ms = statistics.fmean(by_n[n]) * 1000
            print(f"  {n:>4}: {ms:7.2f} ms")


if __name__ == '__main__':
    main()
