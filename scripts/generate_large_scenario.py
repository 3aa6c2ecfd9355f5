"""Random depot scenario generator; output can be posted to /scenarios as the payload."""
import argparse, random, json
from typing import List, Dict

STAGES = ["IS1", "IS2", "IS3", "IS4", "LATHE"]


def build_tracks(n: int, facility_id: str) -> List[Dict]:
    out: List[Dict] = []
    for i in range(n):
        length = random.choice([69, 72, 82, 105, 108, 120, 133, 137, 206, 216])
        tr = {
            "id": f"{facility_id}-{i+1}",
            "facility_id": facility_id,
            "length_m": length,
            "speed_limit_kmh": random.choice([3, 5, 15, 25]),
        }
        if random.random() < 0.6:
            tr["electrified_length_m"] = max(0, length - random.randint(0, 12))
        if random.random() < 0.3:
            tr["clearance_m"] = round(random.uniform(1.6, 2.2), 2)
        out.append(tr)
    return out


def build_work_orders(n: int, facility_id: str) -> List[Dict]:
    orders: List[Dict] = []
    for i in range(n):
        wo = {
            "id": f"WO-{i+1:04d}",
            "vehicle_id": random.choice(["660", "780"]) + f"{random.randint(1, 99):02d}",
            "stage": random.choice(STAGES),
            "priority": random.choice(["high", "medium", "low"]),
            "facility_id": facility_id,
        }
        if random.random() < 0.8:
            wo["duration_hours"] = round(random.uniform(1.0, 12.0), 1)
        orders.append(wo)
    return orders


def main():
    p = argparse.ArgumentParser()
    p.add_argument('-Orders', type=int, default=60)
    p.add_argument('-Tracks', type=int, default=12)
    p.add_argument('-Facility', type=str, default='GEN')
    p.add_argument('-ReferenceTime', type=str, default='2025-01-06T06:00:00')
    p.add_argument('-Seed', type=int, default=42)
    p.add_argument('-Out', type=str, default='large_scenario.json')
    a = p.parse_args()

    random.seed(a.Seed)
    tracks = build_tracks(a.Tracks, a.Facility)
    orders = build_work_orders(a.Orders, a.Facility)
    scenario = {"reference_time": a.ReferenceTime, "tracks": tracks, "work_orders": orders}
    with open(a.Out, 'w') as f:
        json.dump(scenario, f, indent=2)
    print(f"Wrote {len(tracks)} tracks & {len(orders)} work orders -> {a.Out}")


if __name__ == '__main__':
    main()
