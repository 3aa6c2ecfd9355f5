import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import UnknownFacilityError, UnknownTrackError, ValidationError
from .models import Track, WorkOrder
from .profiles import build_work_order

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parents[1] / "data"
FACILITIES_FILE = DATA_DIR / "facilities.json"
WORK_ORDERS_FILE = DATA_DIR / "work_orders.json"

_TRACK_KEYS = {
    "id",
    "facility_id",
    "length_m",
    "electrified_length_m",
    "gradient_per_mille",
    "speed_limit_kmh",
    "clearance_m",
    "segment",
    "use",
}

_WORK_ORDER_KEYS = {
    "id",
    "vehicle_id",
    "stage",
    "priority",
    "duration_hours",
    "facility_id",
    "vehicle_length_m",
    "requires_electrification",
}


def track_from_dict(d: Mapping[str, Any], facility_id: Optional[str] = None) -> Track:
    clean = {k: v for k, v in d.items() if k in _TRACK_KEYS}
    if facility_id is not None:
        clean.setdefault("facility_id", facility_id)
    if "id" not in clean or "length_m" not in clean or "facility_id" not in clean:
        raise ValidationError(f"Track record needs id, facility_id and length_m: {dict(d)!r}")
    clean["id"] = str(clean["id"])
    return Track(**clean)


def work_order_from_dict(d: Mapping[str, Any], refine_duration: bool = True) -> WorkOrder:
    clean = {k: v for k, v in d.items() if k in _WORK_ORDER_KEYS}
    if "id" not in clean or "vehicle_id" not in clean or "stage" not in clean:
        raise ValidationError(f"Work order record needs id, vehicle_id and stage: {dict(d)!r}")
    return build_work_order(refine_duration=refine_duration, **clean)


class TrackRegistry:
    """Catalogue of tracks per facility, fixed for the life of a session.

    Track order within a facility is the order of the facility table and is
    the candidate order used by the resolver.
    """

    def __init__(self, facilities: Mapping[str, Sequence[Track]], names: Optional[Mapping[str, str]] = None) -> None:
        self._tracks: Dict[str, Tuple[Track, ...]] = {}
        self._by_id: Dict[str, Track] = {}
        self._names: Dict[str, str] = dict(names or {})
        for fid, tracks in facilities.items():
            for t in tracks:
                if t.id in self._by_id:
                    raise ValidationError(f"Duplicate track id {t.id!r}")
                if t.facility_id != fid:
                    raise ValidationError(f"Track {t.id!r} belongs to {t.facility_id!r}, listed under {fid!r}")
                self._by_id[t.id] = t
            self._tracks[fid] = tuple(tracks)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TrackRegistry":
        facilities: Dict[str, List[Track]] = {}
        names: Dict[str, str] = {}
        for f in payload.get("facilities", []):
            fid = str(f["id"])
            names[fid] = f.get("name") or fid
            facilities[fid] = [track_from_dict(t, facility_id=fid) for t in f.get("tracks", [])]
        return cls(facilities, names=names)

    def facilities(self) -> List[str]:
        return list(self._tracks)

    def facility_name(self, facility_id: str) -> str:
        if facility_id not in self._tracks:
            raise UnknownFacilityError(facility_id)
        return self._names.get(facility_id, facility_id)

    def list_tracks(self, facility_id: str) -> Tuple[Track, ...]:
        try:
            return self._tracks[facility_id]
        except KeyError:
            raise UnknownFacilityError(facility_id) from None

    def get_track(self, track_id: str) -> Track:
        try:
            return self._by_id[track_id]
        except KeyError:
            raise UnknownTrackError(track_id) from None

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


def load_registry(path: Optional[Path] = None) -> TrackRegistry:
    path = Path(path) if path else FACILITIES_FILE
    data = json.loads(path.read_text(encoding="utf-8"))
    registry = TrackRegistry.from_payload(data)
    logger.info("Loaded %d tracks across %d facilities from %s", len(registry), len(registry.facilities()), path)
    return registry


def load_work_orders(path: Optional[Path] = None, facility_id: Optional[str] = None) -> List[WorkOrder]:
    path = Path(path) if path else WORK_ORDERS_FILE
    data = json.loads(path.read_text(encoding="utf-8"))
    orders = [work_order_from_dict(d) for d in data.get("work_orders", [])]
    return filter_by_facility(orders, facility_id) if facility_id else orders


def filter_by_facility(work_orders: Iterable[WorkOrder], facility_id: str) -> List[WorkOrder]:
    return [wo for wo in work_orders if wo.facility_id == facility_id]
