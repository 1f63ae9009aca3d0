"""
facility_config.py — Ward Layout, Shift Grid & Policy Constants

FACILITY LAYOUT
───────────────
  WARD_A  General Care Ward A    (specialization: general)
      A1: 2 beds   A2: 4 beds   A3: 1 bed (isolation)
      A4: 3 beds   A5: 2 beds   A6: 4 beds            → 16 beds
  WARD_B  Intensive Care Ward B  (specialization: intensive)
      B1: 3 beds   B2: 2 beds   B3: 4 beds
      B4: 1 bed (isolation)     B5: 3 beds   B6: 2 beds → 15 beds
                                                      ─────────
                                                        31 beds

  Bed ids are room id + 1-based position (A2-1 … A2-4).  Position 0 is the
  bed nearest the room entrance.

WEEKLY SHIFT GRID
─────────────────
  7 days × 2 periods = 14 slots, keyed "<day>_<period>":
    morning    08:00–16:00   (8 h)
    afternoon  14:00–22:00   (8 h)   ← overlaps morning 14:00–16:00
  MAX_HOURS_PER_DAY = 8, so at most one slot per staff member per day.

BED SCORING (SmartBedFinder)
────────────────────────────
  care_level  40  ward specialization == patient care level
  balance     25  × (1 - ward occupancy)
  mobility    20  × entrance proximity (assisted / bedbound only)
  isolation   15  isolation patients: capable beds only (hard filter);
                  others: earned on ordinary beds only
  Max attainable = 100 → confidence is the score itself as a percent.

COMPLIANCE
──────────
  min_nurses 2 | min_doctors 1 | overcrowding > 95 % | forecast: last 6
  occupancy samples projected 24 h ahead.
"""

from typing import Any, Dict, List, Tuple

# ---------------------------------------------------------------------------
# Wards
# ---------------------------------------------------------------------------
WARD_LAYOUTS: List[Dict[str, Any]] = [
    {
        "ward_id":        "WARD_A",
        "name":           "General Care Ward A",
        "room_prefix":    "A",
        "specialization": "general",
        "beds_per_room":  [2, 4, 1, 3, 2, 4],
    },
    {
        "ward_id":        "WARD_B",
        "name":           "Intensive Care Ward B",
        "room_prefix":    "B",
        "specialization": "intensive",
        "beds_per_room":  [3, 2, 4, 1, 3, 2],
    },
]

# Single-bed rooms double as isolation rooms
ISOLATION_ROOMS = {"A3", "B4"}


# ---------------------------------------------------------------------------
# Shift grid
# ---------------------------------------------------------------------------
DAYS_OF_WEEK: Tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday",
)

SHIFT_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    "morning":   {"start": "08:00", "end": "16:00", "hours": 8,
                  "description": "Morning shift 0800-1600"},
    "afternoon": {"start": "14:00", "end": "22:00", "hours": 8,
                  "description": "Afternoon shift 1400-2200"},
}

MAX_HOURS_PER_DAY = 8


# ---------------------------------------------------------------------------
# Compliance rules
# ---------------------------------------------------------------------------
COMPLIANCE_THRESHOLDS: Dict[str, Any] = {
    "min_nurses":          2,
    "min_doctors":         1,
    "max_hours_per_day":   MAX_HOURS_PER_DAY,
    "overcrowding_rate":   95.0,    # percent
}

FORECAST_SETTINGS: Dict[str, Any] = {
    "samples":       6,      # last N occupancy samples fed to the trend line
    "horizon_hours": 24.0,   # how far past the last sample to project
}


# ---------------------------------------------------------------------------
# Bed finder weights
# ---------------------------------------------------------------------------
BED_SCORING_WEIGHTS: Dict[str, float] = {
    "care_level": 40.0,
    "balance":    25.0,
    "mobility":   20.0,
    "isolation":  15.0,
}

LOW_MOBILITY_LEVELS = {"assisted", "bedbound"}


# ---------------------------------------------------------------------------
# Background jobs (seconds) & retention
# ---------------------------------------------------------------------------
MAINTENANCE_INTERVALS: Dict[str, int] = {
    "compliance_sweep": 60 * 60,        # hourly
    "maintenance":      6 * 60 * 60,    # every six hours
    "rebalance":        30 * 60,        # every thirty minutes
}

AUDIT_RETENTION_DAYS = 30
OCCUPANCY_HISTORY_LIMIT = 48


def slot_key(day: str, period: str) -> str:
    """Build the canonical slot key, e.g. ('Monday', 'MORNING') → 'monday_morning'."""
    return f"{day.strip().lower()}_{period.strip().lower()}"


def split_slot_key(key: str) -> Tuple[str, str]:
    """Inverse of slot_key. Raises ValueError on a malformed key."""
    day, sep, period = key.partition("_")
    if not sep or not day or not period:
        raise ValueError(f"Malformed slot key: {key!r}")
    return day, period


def all_slot_keys() -> List[str]:
    """Every slot key in weekly order (monday_morning … sunday_afternoon)."""
    return [slot_key(day, period) for day in DAYS_OF_WEEK for period in SHIFT_DEFINITIONS]
