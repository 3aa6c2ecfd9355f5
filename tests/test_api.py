import httpx
import pytest
from httpx import ASGITransport

from depot_planner.api import app

REF = "2025-01-06T06:00:00"

TRACKS = [
    {"id": "T1", "length_m": 200},
    {"id": "T2", "length_m": 90, "electrified_length_m": 90},
]

ORDERS = [
    {"id": "A", "vehicle_id": "X1", "stage": "IS1", "duration_hours": 2},
    {"id": "B", "vehicle_id": "X2", "stage": "IS1", "duration_hours": 2},
    {"id": "C", "vehicle_id": "X3", "stage": "IS1", "duration_hours": 2},
]


def _client():
    transport = ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


@pytest.mark.asyncio
async def test_demo_endpoint():
    async with _client() as client:
        r = await client.get("/demo")
        assert r.status_code == 200
        data = r.json()
        assert data["facility_id"] == "GAB"
        assert data["state"] == "auto_resolved"
        assert data["seeded_conflict_count"] == 2
        assert data["conflict_count"] == 0
        assert len(data["allocations"]) == 4
        assert len(data["gantt"]) == 4


@pytest.mark.asyncio
async def test_facilities_listing():
    async with _client() as client:
        r = await client.get("/facilities")
        assert r.status_code == 200
        ids = [f["id"] for f in r.json()["items"]]
        assert ids == ["GAB", "ESS"]

        r = await client.get("/facilities/ESS/tracks")
        assert r.status_code == 200
        tracks = r.json()["tracks"]
        assert tracks[0]["id"] == "201A"
        assert tracks[0]["electrified_length_m"] == 0.0

        r = await client.get("/facilities/NOPE/tracks")
        assert r.status_code == 404
        assert r.json()["type"] == "UnknownFacilityError"


@pytest.mark.asyncio
async def test_seed_move_resolve_roundtrip():
    async with _client() as client:
        # stagger 1h on one track: A and B overlap
        r = await client.post("/seed", json={
            "tracks": TRACKS[:1], "work_orders": ORDERS[:2], "reference_time": REF, "stagger_hours": 1,
        })
        assert r.status_code == 200
        seeded = r.json()
        assert seeded["reference_time"] == REF
        assert [c["id"] for c in seeded["conflicts"]] == ["slot-A-slot-B"]
        assert seeded["conflicts"][0]["kind"] == "overlap"
        assert seeded["allocations"][1]["conflict_ids"] == ["slot-A-slot-B"]

        r = await client.post("/move", json={
            "tracks": TRACKS[:1],
            "allocations": seeded["allocations"],
            "allocation_id": "slot-B",
            "track_id": "T1",
            "start_time": "2025-01-06T08:00:00",
        })
        assert r.status_code == 200
        moved = r.json()
        assert moved["conflict_count"] == 0
        slot_b = [a for a in moved["allocations"] if a["id"] == "slot-B"][0]
        assert slot_b["start"] == "2025-01-06T08:00:00"
        assert slot_b["end"] == "2025-01-06T10:00:00"

        r = await client.post("/resolve", json={
            "tracks": TRACKS[:1], "work_orders": ORDERS, "allocations": moved["allocations"], "reference_time": REF,
        })
        assert r.status_code == 200
        resolved = r.json()
        assert resolved["strategy"] == "first_fit"
        assert resolved["conflict_count"] == 0
        starts = [a["start"] for a in resolved["allocations"]]
        assert starts == ["2025-01-06T06:00:00", "2025-01-06T08:00:00", "2025-01-06T10:00:00"]


@pytest.mark.asyncio
async def test_resolve_reports_unassigned():
    orders = [
        {"id": "LONG", "vehicle_id": "X", "stage": "IS1", "duration_hours": 2, "vehicle_length_m": 250},
        {"id": "OLE", "vehicle_id": "X", "stage": "IS3", "duration_hours": 2},
    ]
    async with _client() as client:
        r = await client.post("/resolve", json={"tracks": TRACKS, "work_orders": orders, "reference_time": REF})
        assert r.status_code == 200
        data = r.json()
        assert data["allocations"] == []
        reasons = {u["work_order_id"]: u["reason"] for u in data["unassigned"]}
        # IS3 needs 97 m under catenary; T2 is electrified but too short
        assert reasons == {
            "LONG": "no_track_long_enough",
            "OLE": "no_track_meets_length_and_electrification",
        }


@pytest.mark.asyncio
async def test_conflicts_endpoint():
    allocations = [
        {"id": "a", "work_order_id": "A", "track_id": "T2", "start": REF, "end": "2025-01-06T10:00:00",
         "vehicle_length_m": 97, "requires_electrification": True},
    ]
    async with _client() as client:
        r = await client.post("/conflicts", json={"tracks": TRACKS, "allocations": allocations})
        assert r.status_code == 200
        data = r.json()
        assert data["conflict_count"] == 1
        assert data["conflicts"][0]["id"] == "a-length"
        assert data["conflicts"][0]["severity"] == "low"


@pytest.mark.asyncio
async def test_error_mapping():
    async with _client() as client:
        # neither facility nor tracks
        r = await client.post("/seed", json={"work_orders": ORDERS})
        assert r.status_code == 422

        r = await client.post("/seed", json={"tracks": [{"id": "T", "length_m": 0}], "work_orders": []})
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"

        r = await client.post("/resolve", json={"facility_id": "GAB", "strategy": "optimal"})
        assert r.status_code == 422

        r = await client.post("/move", json={
            "facility_id": "GAB", "allocations": [], "allocation_id": "slot-X",
            "track_id": "51a", "start_time": REF,
        })
        assert r.status_code == 404
        assert r.json()["type"] == "UnknownAllocationError"


@pytest.mark.asyncio
async def test_audit_file_written(tmp_path, monkeypatch):
    from depot_planner.reporting import audit as audit_mod
    monkeypatch.setattr(audit_mod, "AUDIT_FILE", tmp_path / "events.jsonl")

    async with _client() as client:
        r = await client.post("/seed", json={"facility_id": "GAB", "reference_time": REF})
        assert r.status_code == 200
        r = await client.post("/resolve", json={"facility_id": "GAB", "reference_time": REF})
        assert r.status_code == 200

    lines = audit_mod.AUDIT_FILE.read_text(encoding="utf-8").strip().splitlines()
    assert any('"type": "seed"' in line for line in lines)
    assert any('"type": "resolve"' in line for line in lines)


@pytest.mark.asyncio
async def test_timezone_aware_and_naive_times_are_both_read_as_utc():
    allocations = [
        {"id": "a", "work_order_id": "A", "track_id": "T1", "start": "2025-01-06T06:00:00Z",
         "end": "2025-01-06T08:00:00Z", "vehicle_length_m": 68},
        {"id": "b", "work_order_id": "B", "track_id": "T1", "start": "2025-01-06T09:00:00+01:00",
         "end": "2025-01-06T11:00:00+01:00", "vehicle_length_m": 68},
    ]
    async with _client() as client:
        r = await client.post("/move", json={
            "tracks": TRACKS, "allocations": allocations,
            "allocation_id": "b", "track_id": "T1", "start_time": "2025-01-06T07:00:00",
        })
        assert r.status_code == 200
        data = r.json()
        assert [c["id"] for c in data["conflicts"]] == ["a-b"]
        moved = [a for a in data["allocations"] if a["id"] == "b"][0]
        assert moved["start"] == "2025-01-06T07:00:00"
        assert moved["end"] == "2025-01-06T09:00:00"

        # b is 08:00-10:00 UTC; a naive 07:00 start for c overlaps a and b
        mixed = allocations + [{"id": "c", "work_order_id": "C", "track_id": "T1", "start": "2025-01-06T07:00:00",
                                "end": "2025-01-06T08:30:00", "vehicle_length_m": 68}]
        r = await client.post("/conflicts", json={"tracks": TRACKS, "allocations": mixed})
        assert r.status_code == 200
        assert [c["id"] for c in r.json()["conflicts"]] == ["a-c", "b-c"]


@pytest.mark.asyncio
async def test_duplicate_track_ids_are_rejected():
    tracks = [{"id": "T1", "length_m": 200}, {"id": "T1", "length_m": 50}]
    async with _client() as client:
        r = await client.post("/resolve", json={"tracks": tracks, "work_orders": ORDERS[:1], "reference_time": REF})
        assert r.status_code == 422
        assert r.json()["type"] == "ValidationError"
