"""
compliance.py — Rule-based Compliance Evaluator

Rules (each evaluated independently; ALL findings are collected):
  - INSUFFICIENT_NURSES:   nurse headcount < min_nurses (2)
  - NO_DOCTOR_AVAILABLE:   doctor headcount < min_doctors (1)
  - UNCOVERED_SHIFTS:      any slot with zero staff (one issue, all keys)
  - NURSE_HOUR_VIOLATION:  one per staff member over max_hours_per_day
  - OVERCROWDING_RISK:     occupancy rate > overcrowding_rate (95 %)
  - OCCUPANCY_TREND_RISK:  least-squares trend of recent occupancy samples
                           projected past the threshold within the horizon

quick_check() runs only the first three rules (fast health probe).

The evaluator is pure: it reads the snapshots it is given and mutates
nothing.  Compliance findings are data, not exceptions.

Usage:
  evaluator = ComplianceEvaluator()
  issues = evaluator.evaluate(directory.snapshot(), schedule.snapshot(), 42.0)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from hospital_admin.facility_config import (
    COMPLIANCE_THRESHOLDS,
    FORECAST_SETTINGS,
    SHIFT_DEFINITIONS,
    split_slot_key,
)

logger = logging.getLogger(__name__)

RULE_INSUFFICIENT_NURSES = "INSUFFICIENT_NURSES"
RULE_NO_DOCTOR = "NO_DOCTOR_AVAILABLE"
RULE_UNCOVERED_SHIFTS = "UNCOVERED_SHIFTS"
RULE_HOUR_VIOLATION = "NURSE_HOUR_VIOLATION"
RULE_OVERCROWDING = "OVERCROWDING_RISK"
RULE_TREND = "OCCUPANCY_TREND_RISK"

OccupancySample = Tuple[Union[datetime, str], float]


@dataclass
class ComplianceIssue:
    rule: str
    description: str
    staff_id: Optional[str] = None
    slot_keys: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [self.rule]
        if self.staff_id:
            parts.append(f"staff={self.staff_id}")
        parts.append(f"→ {self.description}")
        return " | ".join(parts)


@dataclass
class HealthCheckResult:
    ok: bool
    issues: List[ComplianceIssue] = field(default_factory=list)

    @property
    def summary(self) -> str:
        if self.ok:
            return "All quick checks passed"
        return "Issues found: " + "; ".join(i.rule for i in self.issues)


@dataclass
class OccupancyForecast:
    current_rate: float
    projected_rate: float
    slope_per_hour: float
    horizon_hours: float
    samples_used: int
    crosses_threshold: bool


def _as_datetime(value: Union[datetime, str]) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))


class ComplianceEvaluator:
    """
    Stateless rule set over directory / schedule snapshots.

    directory_snapshot: anything with .doctors and .nurses dicts
                        (directory.DirectorySnapshot).
    schedule_snapshot:  {slot_key: [staff_id, ...]}.
    """

    def __init__(
        self,
        thresholds: Optional[Dict[str, Any]] = None,
        forecast_settings: Optional[Dict[str, Any]] = None,
        shift_definitions: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.thresholds = dict(COMPLIANCE_THRESHOLDS)
        self.thresholds.update(thresholds or {})
        self.forecast_settings = dict(FORECAST_SETTINGS)
        self.forecast_settings.update(forecast_settings or {})
        self.shift_definitions = shift_definitions or SHIFT_DEFINITIONS

    # -----------------------------------------------------------------------
    # Staffing
    # -----------------------------------------------------------------------

    def check_nurse_headcount(self, directory_snapshot: Any) -> List[ComplianceIssue]:
        count = len(directory_snapshot.nurses)
        minimum = self.thresholds["min_nurses"]
        if count < minimum:
            return [ComplianceIssue(
                rule=RULE_INSUFFICIENT_NURSES,
                description=f"Need minimum {minimum} nurses for shift coverage. Current: {count}",
                details={"count": count, "minimum": minimum},
            )]
        return []

    def check_doctor_headcount(self, directory_snapshot: Any) -> List[ComplianceIssue]:
        count = len(directory_snapshot.doctors)
        minimum = self.thresholds["min_doctors"]
        if count < minimum:
            return [ComplianceIssue(
                rule=RULE_NO_DOCTOR,
                description=f"Need at least {minimum} doctor for daily prescription duties",
                details={"count": count, "minimum": minimum},
            )]
        return []

    # -----------------------------------------------------------------------
    # Schedule
    # -----------------------------------------------------------------------

    def check_shift_coverage(self, schedule_snapshot: Dict[str, List[str]]) -> List[ComplianceIssue]:
        uncovered = [key for key, staff in schedule_snapshot.items() if not staff]
        if uncovered:
            return [ComplianceIssue(
                rule=RULE_UNCOVERED_SHIFTS,
                description="Shifts without coverage: " + ", ".join(uncovered),
                slot_keys=uncovered,
            )]
        return []

    def daily_hours(self, schedule_snapshot: Dict[str, List[str]]) -> Dict[str, Dict[str, float]]:
        """{staff_id: {day: scheduled hours}} derived from the slot keys."""
        hours: Dict[str, Dict[str, float]] = {}
        for key, staff_ids in schedule_snapshot.items():
            try:
                day, period = split_slot_key(key)
            except ValueError:
                logger.warning(f"Skipping malformed slot key in schedule: {key!r}")
                continue
            slot_hours = float(self.shift_definitions.get(period, {}).get("hours", 0))
            for staff_id in staff_ids:
                per_day = hours.setdefault(staff_id, {})
                per_day[day] = per_day.get(day, 0.0) + slot_hours
        return hours

    def check_hour_limits(
        self,
        directory_snapshot: Any,
        schedule_snapshot: Dict[str, List[str]],
    ) -> List[ComplianceIssue]:
        limit = self.thresholds["max_hours_per_day"]
        names = {sid: s.full_name for sid, s in directory_snapshot.staff.items()} \
            if hasattr(directory_snapshot, "staff") else {}
        issues = []
        for staff_id, per_day in sorted(self.daily_hours(schedule_snapshot).items()):
            over = {day: h for day, h in per_day.items() if h > limit}
            if not over:
                continue
            name = names.get(staff_id, staff_id)
            days = ", ".join(f"{d} ({h:g}h)" for d, h in over.items())
            issues.append(ComplianceIssue(
                rule=RULE_HOUR_VIOLATION,
                description=f"{name} exceeds {limit:g}-hour daily limit on {days}",
                staff_id=staff_id,
                details={"days": over, "limit": limit},
            ))
        return issues

    # -----------------------------------------------------------------------
    # Occupancy
    # -----------------------------------------------------------------------

    def check_overcrowding(self, occupancy_rate: float) -> List[ComplianceIssue]:
        threshold = self.thresholds["overcrowding_rate"]
        if occupancy_rate > threshold:
            return [ComplianceIssue(
                rule=RULE_OVERCROWDING,
                description=f"Bed occupancy at {occupancy_rate:.1f}% - risk of overcrowding",
                details={"occupancy_rate": occupancy_rate, "threshold": threshold},
            )]
        return []

    def forecast_occupancy(
        self,
        history: Sequence[OccupancySample],
        samples: Optional[int] = None,
        horizon_hours: Optional[float] = None,
    ) -> Optional[OccupancyForecast]:
        """
        Least-squares line through the last N (timestamp, rate) samples,
        projected horizon_hours past the last sample.  None with < 2 samples.
        """
        samples = samples or self.forecast_settings["samples"]
        horizon = horizon_hours if horizon_hours is not None else self.forecast_settings["horizon_hours"]
        recent = list(history)[-samples:]
        if len(recent) < 2:
            return None

        t0 = _as_datetime(recent[0][0])
        xs = [(_as_datetime(ts) - t0).total_seconds() / 3600.0 for ts, _ in recent]
        ys = [float(rate) for _, rate in recent]
        n = len(xs)
        mean_x = sum(xs) / n
        mean_y = sum(ys) / n
        var_x = sum((x - mean_x) ** 2 for x in xs)
        slope = (
            sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys)) / var_x
            if var_x > 0 else 0.0
        )
        intercept = mean_y - slope * mean_x
        projected = intercept + slope * (xs[-1] + horizon)
        current = ys[-1]
        threshold = self.thresholds["overcrowding_rate"]

        return OccupancyForecast(
            current_rate=current,
            projected_rate=projected,
            slope_per_hour=slope,
            horizon_hours=horizon,
            samples_used=n,
            crosses_threshold=current <= threshold < projected,
        )

    def check_occupancy_trend(self, history: Sequence[OccupancySample]) -> List[ComplianceIssue]:
        forecast = self.forecast_occupancy(history)
        if forecast is None or not forecast.crosses_threshold:
            return []
        return [ComplianceIssue(
            rule=RULE_TREND,
            description=(
                f"Occupancy projected to reach {forecast.projected_rate:.1f}% within "
                f"{forecast.horizon_hours:g}h (now {forecast.current_rate:.1f}%, "
                f"{forecast.slope_per_hour:+.2f}%/h)"
            ),
            details={
                "projected_rate": forecast.projected_rate,
                "slope_per_hour": forecast.slope_per_hour,
                "samples": forecast.samples_used,
            },
        )]

    # -----------------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------------

    def evaluate(
        self,
        directory_snapshot: Any,
        schedule_snapshot: Dict[str, List[str]],
        occupancy_rate: float,
        occupancy_history: Optional[Sequence[OccupancySample]] = None,
    ) -> List[ComplianceIssue]:
        """Run every rule and return all findings (empty list = compliant)."""
        issues: List[ComplianceIssue] = []
        issues.extend(self.check_nurse_headcount(directory_snapshot))
        issues.extend(self.check_doctor_headcount(directory_snapshot))
        issues.extend(self.check_shift_coverage(schedule_snapshot))
        issues.extend(self.check_hour_limits(directory_snapshot, schedule_snapshot))
        issues.extend(self.check_overcrowding(occupancy_rate))
        if occupancy_history:
            issues.extend(self.check_occupancy_trend(occupancy_history))
        return issues

    def quick_check(
        self,
        directory_snapshot: Any,
        schedule_snapshot: Dict[str, List[str]],
    ) -> HealthCheckResult:
        issues: List[ComplianceIssue] = []
        issues.extend(self.check_nurse_headcount(directory_snapshot))
        issues.extend(self.check_doctor_headcount(directory_snapshot))
        issues.extend(self.check_shift_coverage(schedule_snapshot))
        return HealthCheckResult(ok=not issues, issues=issues)
