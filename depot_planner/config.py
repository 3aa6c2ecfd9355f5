from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env early (no error if missing)
load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class PlannerConfig:
    # sqlite file for saved scenarios and plans
    db_path: str | None = os.getenv("DEPOT_DB_PATH")
    # directory receiving events.jsonl
    audit_dir: str | None = os.getenv("DEPOT_AUDIT_DIR")
    # Optional facility table replacing the bundled one
    facilities_file: str | None = os.getenv("DEPOT_FACILITIES_FILE")
    min_electrified_m: float = _float_env("DEPOT_MIN_ELECTRIFIED_M", 50.0)
    seed_stagger_hours: float = _float_env("DEPOT_SEED_STAGGER_HOURS", 8.0)
    # 'first_fit' | 'earliest_free'
    resolve_strategy: str = os.getenv("DEPOT_RESOLVE_STRATEGY", "first_fit").lower()
    log_level: str = os.getenv("DEPOT_LOG_LEVEL", "INFO").upper()

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
