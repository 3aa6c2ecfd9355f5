import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from depot_planner.config import PlannerConfig

_cfg = PlannerConfig()
DATA_DIR = Path(__file__).parents[2] / "data"
DB_PATH: Path = Path(_cfg.db_path) if _cfg.db_path else DATA_DIR / "depot_planner.db"


def set_db_path(path: Path) -> None:
    global DB_PATH
    DB_PATH = Path(path)


def _conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    with _conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS scenarios (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS plans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                scenario_id INTEGER,
                state TEXT NOT NULL,
                strategy TEXT,
                name TEXT,
                comment TEXT,
                reference_time TEXT NOT NULL,
                allocations TEXT NOT NULL,
                conflicts TEXT NOT NULL,
                unassigned TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(scenario_id) REFERENCES scenarios(id)
            )
            """
        )
        conn.commit()


def save_scenario(name: str, payload: Dict[str, Any]) -> int:
    with _conn() as conn:
        cur = conn.cursor()
        cur.execute("INSERT INTO scenarios(name, payload) VALUES(?, ?)", (name, json.dumps(payload, ensure_ascii=False)))
        conn.commit()
        return int(cur.lastrowid)


def get_scenario(sid: int) -> Optional[Dict[str, Any]]:
    with _conn() as conn:
        r = conn.execute("SELECT id, name, payload, created_at FROM scenarios WHERE id=?", (sid,)).fetchone()
        return dict(r) if r else None


def list_scenarios(offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
    with _conn() as conn:
        rows = conn.execute(
            "SELECT id, name, created_at FROM scenarios ORDER BY id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
        return [dict(r) for r in rows]


def update_scenario(sid: int, name: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> bool:
    sets = []
    args: List[Any] = []
    if name is not None:
        sets.append("name=?")
        args.append(name)
    if payload is not None:
        sets.append("payload=?")
        args.append(json.dumps(payload, ensure_ascii=False))
    if not sets:
        return False
    args.append(sid)
    with _conn() as conn:
        cur = conn.cursor()
        cur.execute(f"UPDATE scenarios SET {', '.join(sets)} WHERE id=?", tuple(args))
        conn.commit()
        return cur.rowcount > 0


def delete_scenario(sid: int) -> bool:
    with _conn() as conn:
        cur = conn.cursor()
        # Delete plans first, then scenario
        cur.execute("DELETE FROM plans WHERE scenario_id=?", (sid,))
        cur.execute("DELETE FROM scenarios WHERE id=?", (sid,))
        conn.commit()
        return cur.rowcount > 0


def save_plan(
    scenario_id: Optional[int],
    state: str,
    reference_time: str,
    allocations: List[Dict[str, Any]],
    conflicts: List[Dict[str, Any]],
    unassigned: List[Dict[str, Any]],
    strategy: Optional[str] = None,
    name: Optional[str] = None,
    comment: Optional[str] = None,
) -> int:
    with _conn() as conn:
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO plans(scenario_id, state, strategy, name, comment, reference_time, allocations, conflicts, unassigned)"
            " VALUES(?,?,?,?,?,?,?,?,?)",
            (
                scenario_id,
                state,
                strategy,
                name,
                comment,
                reference_time,
                json.dumps(allocations, ensure_ascii=False),
                json.dumps(conflicts, ensure_ascii=False),
                json.dumps(unassigned, ensure_ascii=False),
            ),
        )
        conn.commit()
        return int(cur.lastrowid)


def get_plan(pid: int) -> Optional[Dict[str, Any]]:
    with _conn() as conn:
        r = conn.execute("SELECT * FROM plans WHERE id=?", (pid,)).fetchone()
        if not r:
            return None
        plan = dict(r)
    for col in ("allocations", "conflicts", "unassigned"):
        plan[col] = json.loads(plan[col])
    return plan


def list_plans_by_scenario(sid: int, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
    with _conn() as conn:
        rows = conn.execute(
            "SELECT id, state, strategy, name, comment, reference_time, created_at FROM plans"
            " WHERE scenario_id=? ORDER BY id DESC LIMIT ? OFFSET ?",
            (sid, limit, offset),
        ).fetchall()
        return [dict(r) for r in rows]


def delete_plan(pid: int) -> bool:
    with _conn() as conn:
        cur = conn.cursor()
        cur.execute("DELETE FROM plans WHERE id=?", (pid,))
        conn.commit()
        return cur.rowcount > 0
