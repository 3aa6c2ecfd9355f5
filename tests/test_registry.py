import json

import pytest

from depot_planner.core.errors import UnknownFacilityError, UnknownTrackError, ValidationError
from depot_planner.core.models import Track
from depot_planner.core.registry import (
    TrackRegistry,
    load_registry,
    load_work_orders,
    track_from_dict,
    work_order_from_dict,
)


def test_bundled_facilities():
    reg = load_registry()
    assert reg.facilities() == ["GAB", "ESS"]
    assert reg.facility_name("GAB") == "Langweid am Lech"

    gab = reg.list_tracks("GAB")
    assert [t.id for t in gab][:3] == ["51a", "51b", "52"]
    assert len(gab) == 9
    # ordering is stable across calls
    assert reg.list_tracks("GAB") == gab

    ess = reg.list_tracks("ESS")
    assert all(t.electrified_length_m == 0 for t in ess)
    assert reg.get_track("204").length_m == 216
    assert "57" in reg and "999" not in reg


def test_unknown_ids():
    reg = load_registry()
    with pytest.raises(UnknownFacilityError):
        reg.list_tracks("XYZ")
    with pytest.raises(KeyError):
        reg.facility_name("XYZ")
    with pytest.raises(UnknownTrackError):
        reg.get_track("999")


def test_registry_rejects_duplicates_and_misfiled_tracks():
    t = Track(id="T1", facility_id="A", length_m=100)
    with pytest.raises(ValidationError):
        TrackRegistry({"A": [t, t]})
    with pytest.raises(ValidationError):
        TrackRegistry({"B": [t]})


def test_registry_from_file(tmp_path):
    path = tmp_path / "facilities.json"
    path.write_text(json.dumps({
        "facilities": [
            {"id": "X", "tracks": [{"id": "1", "length_m": 100, "electrified_length_m": 80, "note": "ignored"}]}
        ]
    }))
    reg = load_registry(path)
    assert reg.facility_name("X") == "X"
    (t,) = reg.list_tracks("X")
    assert t.facility_id == "X"
    assert t.electrified_length_m == 80


def test_track_record_needs_length():
    with pytest.raises(ValidationError):
        track_from_dict({"id": "1"}, facility_id="X")


def test_bundled_work_orders():
    orders = load_work_orders()
    assert [wo.id for wo in orders] == [f"WO-00{i}" for i in range(1, 8)]
    assert [wo.id for wo in load_work_orders(facility_id="GAB")] == ["WO-002", "WO-004", "WO-005", "WO-007"]
    assert [wo.id for wo in load_work_orders(facility_id="ESS")] == ["WO-001", "WO-003", "WO-006"]


def test_work_order_record_needs_stage():
    with pytest.raises(ValidationError):
        work_order_from_dict({"id": "W", "vehicle_id": "66012"})
