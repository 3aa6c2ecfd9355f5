import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from depot_planner.config import PlannerConfig
from depot_planner.core.errors import PlannerError, ValidationError as PlannerValidationError
from depot_planner.core.models import (
    Allocation,
    ConflictKind,
    Track,
    UnassignedReason,
    WorkOrder,
)
from depot_planner.core.planner import (
    PlanResult,
    SchedulingSession,
    apply_manual_move,
    auto_resolve,
    detect_conflicts,
    seed,
)
from depot_planner.core.registry import load_registry, load_work_orders, work_order_from_dict
from depot_planner.reporting.audit import write_audit
from depot_planner.reporting.gantt import gantt_json
from depot_planner.store.db import (
    delete_plan,
    delete_scenario,
    get_plan,
    get_scenario,
    init_db,
    list_plans_by_scenario,
    list_scenarios,
    save_plan,
    save_scenario,
    update_scenario,
)

cfg = PlannerConfig()
cfg.configure_logging()
REGISTRY = load_registry(Path(cfg.facilities_file) if cfg.facilities_file else None)

app = FastAPI(title="Depot Planner API")
init_db()


@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    # unknown ids are KeyErrors, everything else is a malformed request
    status = 404 if isinstance(exc, KeyError) else 422
    return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/")
async def root() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@app.get("/favicon.ico")
async def favicon() -> Response:
    return Response(status_code=204)


class TrackIn(BaseModel):
    id: str
    facility_id: str = "custom"
    length_m: float
    electrified_length_m: float = 0.0
    gradient_per_mille: float | None = None
    speed_limit_kmh: float | None = None
    clearance_m: float | None = None
    segment: str | None = None
    use: str | None = None


class WorkOrderIn(BaseModel):
    id: str
    vehicle_id: str
    stage: str
    priority: str = "medium"
    duration_hours: float | None = None
    facility_id: str | None = None
    vehicle_length_m: float | None = None
    requires_electrification: bool | None = None


class AllocationIn(BaseModel):
    id: str
    work_order_id: str
    track_id: str
    start: datetime
    end: datetime
    vehicle_length_m: float
    requires_electrification: bool = False


class TrackOut(TrackIn):
    model_config = ConfigDict(from_attributes=True)


class AllocationOut(AllocationIn):
    model_config = ConfigDict(from_attributes=True)
    conflict_ids: List[str] = []


class ConflictOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    kind: ConflictKind
    allocation_ids: List[str]
    track_id: str | None = None
    severity: str
    description: str = ""


class UnassignedOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    work_order_id: str
    reason: UnassignedReason


class SeedRequest(BaseModel):
    facility_id: str | None = None
    tracks: List[TrackIn] | None = None
    # None means the bundled demand list for facility_id
    work_orders: List[WorkOrderIn] | None = None
    reference_time: datetime | None = None
    stagger_hours: float | None = None


class ResolveRequest(SeedRequest):
    allocations: List[AllocationIn] = []
    strategy: str | None = None


class MoveRequest(BaseModel):
    facility_id: str | None = None
    tracks: List[TrackIn] | None = None
    work_orders: List[WorkOrderIn] | None = None
    allocations: List[AllocationIn]
    allocation_id: str
    track_id: str
    start_time: datetime


class ConflictRequest(BaseModel):
    facility_id: str | None = None
    tracks: List[TrackIn] | None = None
    allocations: List[AllocationIn]


def _utc(value: datetime) -> datetime:
    # naive times are read as UTC; the engine works on naive UTC throughout
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _default_reference_time() -> datetime:
    return _utc(datetime.now(timezone.utc)).replace(minute=0, second=0, microsecond=0)


def _reference_time(*candidates: Optional[datetime]) -> datetime:
    for value in candidates:
        if value is not None:
            return _utc(value)
    return _default_reference_time()


def _tracks_for(facility_id: Optional[str], tracks: Optional[List[TrackIn]]) -> List[Track]:
    if tracks is not None:
        return [Track(**t.model_dump()) for t in tracks]
    if facility_id:
        return list(REGISTRY.list_tracks(facility_id))
    raise PlannerValidationError("Request needs either facility_id or tracks")


def _work_orders_for(facility_id: Optional[str], work_orders: Optional[List[WorkOrderIn]]) -> List[WorkOrder]:
    if work_orders is not None:
        return [work_order_from_dict(w.model_dump(exclude_none=True)) for w in work_orders]
    if facility_id:
        return load_work_orders(facility_id=facility_id)
    return []


def _allocations_from(items: Sequence[AllocationIn]) -> List[Allocation]:
    return [
        Allocation(**{**a.model_dump(), "start": _utc(a.start), "end": _utc(a.end)})
        for a in items
    ]


def _plan_payload(
    result: PlanResult,
    work_orders: Sequence[WorkOrder] = (),
    reference_time: Optional[datetime] = None,
) -> Dict[str, Any]:
    by_id = {wo.id: wo for wo in work_orders}
    return {
        "allocations": [AllocationOut.model_validate(a).model_dump(mode="json") for a in result.allocations],
        "conflicts": [ConflictOut.model_validate(c).model_dump(mode="json") for c in result.conflicts],
        "unassigned": [UnassignedOut.model_validate(u).model_dump(mode="json") for u in result.unassigned],
        "conflict_count": len(result.conflicts),
        "gantt": gantt_json(result.allocations, by_id, reference_time),
    }


@app.get("/facilities")
async def facilities() -> Dict[str, Any]:
    items = []
    for fid in REGISTRY.facilities():
        items.append({
            "id": fid,
            "name": REGISTRY.facility_name(fid),
            "tracks": [TrackOut.model_validate(t).model_dump() for t in REGISTRY.list_tracks(fid)],
        })
    return {"items": items}


@app.get("/facilities/{facility_id}/tracks")
async def facility_tracks(facility_id: str) -> Dict[str, Any]:
    tracks = REGISTRY.list_tracks(facility_id)
    return {"facility_id": facility_id, "tracks": [TrackOut.model_validate(t).model_dump() for t in tracks]}


@app.post("/seed")
async def seed_endpoint(body: SeedRequest) -> Dict[str, Any]:
    tracks = _tracks_for(body.facility_id, body.tracks)
    work_orders = _work_orders_for(body.facility_id, body.work_orders)
    ref = _reference_time(body.reference_time)
    stagger = cfg.seed_stagger_hours if body.stagger_hours is None else body.stagger_hours
    result = seed(work_orders, tracks, ref, stagger_hours=stagger, min_electrified_m=cfg.min_electrified_m)
    write_audit({
        "type": "seed",
        "facility_id": body.facility_id,
        "count": len(result.allocations),
        "conflicts": len(result.conflicts),
    })
    return {"reference_time": ref.isoformat(), **_plan_payload(result, work_orders, ref)}


@app.post("/move")
async def move_endpoint(body: MoveRequest) -> Dict[str, Any]:
    tracks = _tracks_for(body.facility_id, body.tracks)
    work_orders = _work_orders_for(body.facility_id, body.work_orders)
    result = apply_manual_move(
        _allocations_from(body.allocations),
        body.allocation_id,
        body.track_id,
        _utc(body.start_time),
        tracks,
        min_electrified_m=cfg.min_electrified_m,
    )
    write_audit({
        "type": "move",
        "allocation_id": body.allocation_id,
        "track_id": body.track_id,
        "start_time": _utc(body.start_time).isoformat(),
        "conflicts": len(result.conflicts),
    })
    return _plan_payload(result, work_orders)


@app.post("/resolve")
async def resolve_endpoint(body: ResolveRequest) -> Dict[str, Any]:
    tracks = _tracks_for(body.facility_id, body.tracks)
    work_orders = _work_orders_for(body.facility_id, body.work_orders)
    ref = _reference_time(body.reference_time)
    strategy = body.strategy or cfg.resolve_strategy
    result = auto_resolve(
        work_orders,
        tracks,
        _allocations_from(body.allocations),
        ref,
        min_electrified_m=cfg.min_electrified_m,
        strategy=strategy,
    )
    write_audit({
        "type": "resolve",
        "facility_id": body.facility_id,
        "strategy": strategy,
        "count": len(result.allocations),
        "unassigned": len(result.unassigned),
        "conflicts": len(result.conflicts),
    })
    return {"reference_time": ref.isoformat(), "strategy": strategy, **_plan_payload(result, work_orders, ref)}


@app.post("/conflicts")
async def conflicts_endpoint(body: ConflictRequest) -> Dict[str, Any]:
    tracks = _tracks_for(body.facility_id, body.tracks)
    found = detect_conflicts(_allocations_from(body.allocations), tracks, min_electrified_m=cfg.min_electrified_m)
    return {
        "conflicts": [ConflictOut.model_validate(c).model_dump(mode="json") for c in found],
        "conflict_count": len(found),
    }


@app.get("/demo")
async def demo(facility_id: str = "GAB", strategy: str | None = None) -> Dict[str, Any]:
    session = SchedulingSession(
        tracks=REGISTRY.list_tracks(facility_id),
        reference_time=_default_reference_time(),
        min_electrified_m=cfg.min_electrified_m,
        stagger_hours=cfg.seed_stagger_hours,
        strategy=strategy or cfg.resolve_strategy,
    )
    seeded = session.load(load_work_orders(facility_id=facility_id))
    resolved = session.resolve()
    return {
        "facility_id": facility_id,
        "state": session.state.value,
        "seeded_conflict_count": len(seeded.conflicts),
        **_plan_payload(resolved, session.work_orders, session.reference_time),
    }


# Persistence APIs
@app.post("/scenarios")
async def create_scenario(body: Dict[str, Any]) -> JSONResponse:
    name = body.get("name", "scenario")
    payload = body.get("payload")
    if not isinstance(payload, dict):
        return JSONResponse(status_code=422, content={"error": "payload must be an object"})
    try:
        SeedRequest.model_validate(payload)
    except PydanticValidationError as exc:
        return JSONResponse(status_code=422, content={"error": "invalid scenario payload", "detail": exc.errors(include_url=False)})
    sid = save_scenario(name, payload)
    return JSONResponse(content={"id": sid})


@app.get("/scenarios")
async def scenarios(offset: int = 0, limit: int = 50) -> Dict[str, Any]:
    return {"items": list_scenarios(offset=offset, limit=limit)}


@app.get("/scenarios/{sid}")
async def scenario_details(sid: int) -> JSONResponse:
    s = get_scenario(sid)
    if not s:
        return JSONResponse(status_code=404, content={"error": "scenario not found"})
    return JSONResponse(content={"scenario": {**s, "payload": json.loads(s["payload"])}})


@app.put("/scenarios/{sid}")
async def update_scenario_api(sid: int, body: Dict[str, Any]) -> Dict[str, Any]:
    name = body.get("name")
    payload = body.get("payload")
    ok = update_scenario(sid, name=name, payload=payload if isinstance(payload, dict) else None)
    return {"updated": bool(ok)}


@app.delete("/scenarios/{sid}")
async def delete_scenario_api(sid: int) -> Dict[str, Any]:
    return {"deleted": bool(delete_scenario(sid))}


@app.post("/scenarios/{sid}/plan")
async def plan_scenario(
    sid: int,
    resolve: bool = True,
    strategy: str | None = None,
    reference_time: datetime | None = None,
    name: str | None = None,
    comment: str | None = None,
) -> JSONResponse:
    s = get_scenario(sid)
    if not s:
        return JSONResponse(status_code=404, content={"error": "scenario not found"})
    req = SeedRequest.model_validate_json(s["payload"])
    session = SchedulingSession(
        tracks=_tracks_for(req.facility_id, req.tracks),
        reference_time=_reference_time(reference_time, req.reference_time),
        min_electrified_m=cfg.min_electrified_m,
        stagger_hours=cfg.seed_stagger_hours if req.stagger_hours is None else req.stagger_hours,
        strategy=strategy or cfg.resolve_strategy,
    )
    session.load(_work_orders_for(req.facility_id, req.work_orders))
    if resolve:
        session.resolve()
    body = _plan_payload(session.result, session.work_orders, session.reference_time)
    pid = save_plan(
        scenario_id=sid,
        state=session.state.value,
        reference_time=session.reference_time.isoformat(),
        allocations=body["allocations"],
        conflicts=body["conflicts"],
        unassigned=body["unassigned"],
        strategy=session.strategy if resolve else None,
        name=name,
        comment=comment,
    )
    write_audit({
        "type": "plan",
        "scenario_id": sid,
        "plan_id": pid,
        "state": session.state.value,
        "conflicts": body["conflict_count"],
    })
    return JSONResponse(content={"plan_id": pid, "state": session.state.value, **body})


@app.get("/plans/{pid}")
async def plan_details(pid: int) -> JSONResponse:
    p = get_plan(pid)
    if not p:
        return JSONResponse(status_code=404, content={"error": "plan not found"})
    return JSONResponse(content={"plan": p})


@app.get("/scenarios/{sid}/plans")
async def list_plans_for_scenario(sid: int, offset: int = 0, limit: int = 50) -> Dict[str, Any]:
    return {"items": list_plans_by_scenario(sid, offset=offset, limit=limit)}


@app.delete("/plans/{pid}")
async def delete_plan_api(pid: int) -> Dict[str, Any]:
    return {"deleted": bool(delete_plan(pid))}
