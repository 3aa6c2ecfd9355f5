"""Stage and vehicle-family defaults used to build work orders.

A demand record only names the vehicle, the maintenance stage and a
nominal duration. Vehicle length and the need for overhead line come from
the stage; the nominal duration is raised (never lowered) to the planning
baseline of the vehicle family when one is known.
"""

from __future__ import annotations

from typing import Dict, Optional

from .models import Priority, WorkOrder

DEFAULT_DURATION_HOURS = 4.0
DEFAULT_VEHICLE_LENGTH_M = 68.0

STAGE_VEHICLE_LENGTH_M: Dict[str, float] = {
    "IS3": 97.0,
    "IS4": 116.0,
}

# stages that need the pantograph raised under catenary
ELECTRIFIED_STAGES = frozenset({"LATHE", "IS3", "IS4"})

# stage tags used on demand lists that differ from the profile table keys
STAGE_ALIASES: Dict[str, str] = {"LATHE": "WHEEL_LATHE"}

# Planning baselines per vehicle family and stage, in hours
FAMILY_DURATION_HOURS: Dict[str, Dict[str, float]] = {
    "FLIRT3": {
        "IS1": 2.0, "IS2": 6.0, "IS3": 16.0, "IS4": 32.0, "IS5": 64.0, "IS6": 72.0,
        "WHEEL_LATHE": 6.0,
    },
    "MIREO": {
        "IS1": 2.0, "IS2": 6.0, "IS3": 16.0, "IS4": 32.0, "IS5": 64.0, "IS6": 72.0,
        "WHEEL_LATHE": 6.5,
    },
    "DESIRO_HC": {
        "IS1": 2.0, "IS2": 6.0, "IS3": 18.0, "IS4": 36.0, "IS5": 68.0, "IS6": 76.0,
        "WHEEL_LATHE": 7.0,
    },
}


def normalize_stage(stage: str) -> str:
    return str(stage or "").strip().upper()


def vehicle_family(vehicle_id: str) -> Optional[str]:
    """Infer the vehicle family from the fleet number.

    660xx units are FLIRT3. The 780xx fleet is mixed and split by the
    numeric suffix: multiples of 3 are DESIRO_HC, other even numbers MIREO,
    the rest FLIRT3.
    """
    vid = str(vehicle_id or "")
    if vid.startswith("660"):
        return "FLIRT3"
    if vid.startswith("780"):
        suffix = vid[3:]
        if not suffix.isdigit():
            return None
        n = int(suffix)
        if n % 3 == 0:
            return "DESIRO_HC"
        if n % 2 == 0:
            return "MIREO"
        return "FLIRT3"
    return None


def stage_vehicle_length(stage: str) -> float:
    return STAGE_VEHICLE_LENGTH_M.get(normalize_stage(stage), DEFAULT_VEHICLE_LENGTH_M)


def stage_requires_electrification(stage: str) -> bool:
    return normalize_stage(stage) in ELECTRIFIED_STAGES


def profile_duration(vehicle_id: str, stage: str) -> Optional[float]:
    family = vehicle_family(vehicle_id)
    if family is None:
        return None
    key = normalize_stage(stage)
    key = STAGE_ALIASES.get(key, key)
    return FAMILY_DURATION_HOURS.get(family, {}).get(key)


def refined_duration(vehicle_id: str, stage: str, nominal_hours: Optional[float]) -> float:
    base = DEFAULT_DURATION_HOURS if nominal_hours is None else float(nominal_hours)
    baseline = profile_duration(vehicle_id, stage)
    if baseline is None or base <= 0:
        # non-positive nominal durations are left for WorkOrder to reject
        return base
    return max(base, baseline)


def build_work_order(
    id: str,
    vehicle_id: str,
    stage: str,
    priority: "str | Priority" = Priority.MEDIUM,
    duration_hours: Optional[float] = None,
    facility_id: Optional[str] = None,
    vehicle_length_m: Optional[float] = None,
    requires_electrification: Optional[bool] = None,
    refine_duration: bool = True,
) -> WorkOrder:
    """Build a WorkOrder from a demand record, filling stage defaults.

    Explicit ``vehicle_length_m`` / ``requires_electrification`` win over
    the stage defaults. With ``refine_duration`` the nominal duration is
    raised to the family baseline for the stage.
    """
    stage_n = normalize_stage(stage)
    if refine_duration:
        duration = refined_duration(vehicle_id, stage_n, duration_hours)
    else:
        duration = DEFAULT_DURATION_HOURS if duration_hours is None else float(duration_hours)
    return WorkOrder(
        id=id,
        vehicle_id=str(vehicle_id),
        stage=stage_n,
        priority=Priority.parse(priority),
        vehicle_length_m=stage_vehicle_length(stage_n) if vehicle_length_m is None else float(vehicle_length_m),
        requires_electrification=(
            stage_requires_electrification(stage_n)
            if requires_electrification is None
            else bool(requires_electrification)
        ),
        duration_hours=duration,
        facility_id=facility_id,
    )
