"""
config.py — Configuration Module for Ward Administration

Default file locations, the staff roster loader (CSV via pandas) and the
optional JSON settings file whose keys override facility_config defaults.

Roster CSV columns:
  staff_id, role, full_name, email, phone, username,
  specialty, license_number, certification
role is "doctor" or "nurse"; doctors need license_number, nurses need
certification (enforced later by models.create_doctor / create_nurse).
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from hospital_admin.facility_config import (
    AUDIT_RETENTION_DAYS,
    BED_SCORING_WEIGHTS,
    COMPLIANCE_THRESHOLDS,
    FORECAST_SETTINGS,
    ISOLATION_ROOMS,
    MAINTENANCE_INTERVALS,
    MAX_HOURS_PER_DAY,
    OCCUPANCY_HISTORY_LIMIT,
    SHIFT_DEFINITIONS,
    WARD_LAYOUTS,
)
from hospital_admin.models import DoctorInfo, NurseInfo

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"
DEFAULT_ROSTER_PATH    = DEFAULT_CONFIG_DIR / "staff_roster.csv"
DEFAULT_SETTINGS_PATH  = DEFAULT_CONFIG_DIR / "settings.json"
DEFAULT_SNAPSHOT_PATH  = DEFAULT_OUTPUT_DIR / "hospital_state.json"
DEFAULT_AUDIT_PATH     = DEFAULT_OUTPUT_DIR / "audit_log.json"

ROSTER_COLUMNS = [
    "staff_id", "role", "full_name", "email", "phone", "username",
    "specialty", "license_number", "certification",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _cell(row: Any, name: str) -> str:
    """Read a CSV cell as a stripped string; NaN / missing → ''."""
    value = row.get(name, "")
    if value is None or (isinstance(value, float) and value != value):
        return ""
    text = str(value).strip()
    return "" if text.lower() == "nan" else text


# ---------------------------------------------------------------------------
# Roster loader
# ---------------------------------------------------------------------------

def load_staff_roster(
    roster_path: Optional[Path] = None,
) -> List[Union[DoctorInfo, NurseInfo]]:
    """
    Load staff from a roster CSV.

    Returns DoctorInfo / NurseInfo in file order.  Rows with an unknown role
    are skipped with a warning; field validation happens at hire time.
    """
    import pandas as pd

    path = Path(roster_path or DEFAULT_ROSTER_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    df = pd.read_csv(path, dtype=str)
    missing = [c for c in ("staff_id", "role", "full_name") if c not in df.columns]
    if missing:
        raise ValueError(f"Roster {path} is missing required columns: {missing}")

    staff: List[Union[DoctorInfo, NurseInfo]] = []
    for line_no, (_, row) in enumerate(df.iterrows(), start=2):
        role = _cell(row, "role").lower()
        common = {
            "staff_id":  _cell(row, "staff_id"),
            "full_name": _cell(row, "full_name"),
            "email":     _cell(row, "email"),
            "phone":     _cell(row, "phone"),
            "username":  _cell(row, "username"),
        }
        if role == "doctor":
            staff.append(DoctorInfo(
                license_number=_cell(row, "license_number"),
                specialty=_cell(row, "specialty"),
                **common,
            ))
        elif role == "nurse":
            staff.append(NurseInfo(certification=_cell(row, "certification"), **common))
        else:
            logger.warning(f"{path.name}:{line_no}: unknown role {role!r}, row skipped")

    doctors = sum(1 for s in staff if isinstance(s, DoctorInfo))
    logger.info(f"Loaded {len(staff)} staff ({doctors} doctors) from {path}")
    return staff


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def get_config() -> Dict[str, Any]:
    """Default settings, as accepted by facility.HospitalSystem(settings=...)."""
    return {
        "hospital_name":           "General Hospital",
        "ward_layouts":            [dict(w) for w in WARD_LAYOUTS],
        "isolation_rooms":         set(ISOLATION_ROOMS),
        "shift_definitions":       {k: dict(v) for k, v in SHIFT_DEFINITIONS.items()},
        "max_hours_per_day":       MAX_HOURS_PER_DAY,
        "compliance_thresholds":   COMPLIANCE_THRESHOLDS.copy(),
        "forecast_settings":       FORECAST_SETTINGS.copy(),
        "bed_scoring_weights":     BED_SCORING_WEIGHTS.copy(),
        "maintenance_intervals":   MAINTENANCE_INTERVALS.copy(),
        "audit_retention_days":    AUDIT_RETENTION_DAYS,
        "occupancy_history_limit": OCCUPANCY_HISTORY_LIMIT,
    }


def load_settings(settings_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Merge a JSON settings file onto get_config().  Dict-valued settings are
    merged key by key; everything else is replaced.  Missing file → defaults.
    """
    settings = get_config()
    path = Path(settings_path or DEFAULT_SETTINGS_PATH)
    if not path.exists():
        logger.warning(f"Settings file not found: {path}. Using defaults.")
        return settings

    with open(path) as f:
        overrides = json.load(f)
    if not isinstance(overrides, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")

    for key, value in overrides.items():
        if key not in settings:
            logger.warning(f"Ignoring unknown setting {key!r} in {path}")
            continue
        if isinstance(settings[key], dict) and isinstance(value, dict):
            settings[key].update(value)
        elif key == "isolation_rooms":
            settings[key] = set(value)
        else:
            settings[key] = value

    # one daily cap for both the schedule and the hour rule
    if "max_hours_per_day" in overrides:
        settings["compliance_thresholds"]["max_hours_per_day"] = settings["max_hours_per_day"]
    else:
        settings["max_hours_per_day"] = settings["compliance_thresholds"]["max_hours_per_day"]

    logger.info(f"Loaded settings from {path}: {sorted(overrides)}")
    return settings
