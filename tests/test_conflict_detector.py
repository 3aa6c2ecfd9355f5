from datetime import datetime, timedelta

from depot_planner.core.conflict_detector import (
    annotate_allocations,
    conflicts_by_track,
    detect_conflicts,
)
from depot_planner.core.models import Allocation, Conflict, ConflictKind, Track

REF = datetime(2025, 1, 6, 6, 0)

TRACKS = [
    Track(id="T1", facility_id="F", length_m=120, electrified_length_m=110),
    Track(id="T2", facility_id="F", length_m=80),
    Track(id="T3", facility_id="F", length_m=150, electrified_length_m=49),
]


def _alloc(id, track, start_h, end_h, length=68.0, elec=False):
    return Allocation(
        id=id,
        work_order_id=f"WO-{id}",
        track_id=track,
        start=REF + timedelta(hours=start_h),
        end=REF + timedelta(hours=end_h),
        vehicle_length_m=length,
        requires_electrification=elec,
    )


def test_back_to_back_is_not_an_overlap():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T1", 4, 8)]
    assert detect_conflicts(allocs, TRACKS) == []


def test_overlap_reported_once_per_pair():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T1", 3, 6)]
    conflicts = detect_conflicts(allocs, TRACKS)
    assert len(conflicts) == 1
    c = conflicts[0]
    assert c.kind is ConflictKind.OVERLAP
    assert c.allocation_ids == ("a", "b")
    assert c.id == "a-b"
    assert c.track_id == "T1"
    assert c.severity == "high"


def test_overlaps_on_different_tracks_are_independent():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T2", 0, 4)]
    assert detect_conflicts(allocs, TRACKS) == []


def test_three_way_overlap_gives_every_pair_in_store_order():
    allocs = [_alloc("a", "T1", 0, 10), _alloc("b", "T1", 2, 5), _alloc("c", "T1", 4, 12)]
    ids = [c.id for c in detect_conflicts(allocs, TRACKS)]
    assert ids == ["a-b", "a-c", "b-c"]


def test_vehicle_longer_than_track():
    allocs = [_alloc("a", "T2", 0, 4, length=97)]
    (c,) = detect_conflicts(allocs, TRACKS)
    assert c.kind is ConflictKind.LENGTH_EXCEEDED
    assert c.id == "a-length"
    assert c.severity == "low"


def test_vehicle_exactly_track_length_fits():
    allocs = [_alloc("a", "T2", 0, 4, length=80)]
    assert detect_conflicts(allocs, TRACKS) == []


def test_missing_overhead_line():
    allocs = [_alloc("a", "T2", 0, 4, elec=True)]
    (c,) = detect_conflicts(allocs, TRACKS)
    assert c.kind is ConflictKind.ELECTRIFICATION_MISSING
    assert c.id == "a-ole"
    assert c.severity == "medium"


def test_electrification_below_minimum_counts_as_missing():
    allocs = [_alloc("a", "T3", 0, 4, elec=True)]
    (c,) = detect_conflicts(allocs, TRACKS)
    assert c.kind is ConflictKind.ELECTRIFICATION_MISSING
    # same store with a lower threshold is clean
    assert detect_conflicts(allocs, TRACKS, min_electrified_m=40) == []


def test_overlaps_listed_before_constraint_violations():
    allocs = [
        _alloc("a", "T2", 0, 4, length=97, elec=True),
        _alloc("b", "T1", 0, 4),
        _alloc("c", "T1", 2, 6),
    ]
    ids = [c.id for c in detect_conflicts(allocs, TRACKS)]
    assert ids == ["b-c", "a-length", "a-ole"]


def test_unknown_track_has_no_length_and_no_overlaps():
    allocs = [_alloc("a", "ghost", 0, 4, elec=True), _alloc("b", "ghost", 1, 5)]
    kinds = [(c.id, c.kind) for c in detect_conflicts(allocs, TRACKS)]
    assert kinds == [
        ("a-length", ConflictKind.LENGTH_EXCEEDED),
        ("a-ole", ConflictKind.ELECTRIFICATION_MISSING),
        ("b-length", ConflictKind.LENGTH_EXCEEDED),
    ]


def test_detection_is_repeatable():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T1", 3, 6), _alloc("c", "T2", 0, 2, length=97)]
    assert detect_conflicts(allocs, TRACKS) == detect_conflicts(allocs, TRACKS)


def test_conflict_identity_ignores_description():
    a = Conflict(kind=ConflictKind.OVERLAP, allocation_ids=("a", "b"), track_id="T1", description="x")
    b = Conflict(kind=ConflictKind.OVERLAP, allocation_ids=("a", "b"), description="y")
    assert a == b
    assert a.involves("b") and not a.involves("c")


def test_annotate_marks_each_participant():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T1", 3, 6, length=130), _alloc("c", "T2", 0, 2)]
    conflicts = detect_conflicts(allocs, TRACKS)
    annotated = annotate_allocations(allocs, conflicts)

    by_id = {a.id: a for a in annotated}
    assert by_id["a"].conflict_ids == ("a-b",)
    assert by_id["b"].conflict_ids == ("a-b", "b-length")
    assert by_id["c"].conflict_ids == ()
    assert not by_id["c"].has_conflict
    # originals untouched
    assert allocs[0].conflict_ids == ()


def test_conflicts_grouped_by_track():
    allocs = [_alloc("a", "T1", 0, 4), _alloc("b", "T1", 3, 6), _alloc("c", "T2", 0, 2, length=97)]
    grouped = conflicts_by_track(detect_conflicts(allocs, TRACKS))
    assert [c.id for c in grouped["T1"]] == ["a-b"]
    assert [c.id for c in grouped["T2"]] == ["c-length"]
