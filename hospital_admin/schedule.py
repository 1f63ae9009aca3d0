"""
schedule.py — Weekly Shift Schedule (14 fixed slots)

Slots are built once from DAYS_OF_WEEK × SHIFT_DEFINITIONS and keyed
"<day>_<period>" (monday_morning … sunday_afternoon).  A slot holds zero
or more staff ids.

assign_staff() checks, in order:
  1. slot exists                                  → unknown_slot
  2. staff not already in this slot               → already_assigned
  3. no overlapping slot held on the same day     → overlapping_shift
  4. day total stays ≤ MAX_HOURS_PER_DAY (8 h)    → daily_hour_limit

On success the slot's assigned set and the staff record's shift_keys are
updated together under the schedule lock — either both change or neither.

Usage:
  schedule = ShiftSchedule()
  result = schedule.assign_staff(nurse, "monday_morning")
  if not result.assigned: print(result.reason)
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from hospital_admin.facility_config import (
    DAYS_OF_WEEK,
    MAX_HOURS_PER_DAY,
    SHIFT_DEFINITIONS,
    slot_key,
)
from hospital_admin.models import ShiftSlot

logger = logging.getLogger(__name__)

REASON_UNKNOWN_SLOT = "unknown_slot"
REASON_UNKNOWN_STAFF = "unknown_staff"
REASON_ALREADY_ASSIGNED = "already_assigned"
REASON_OVERLAPPING_SHIFT = "overlapping_shift"
REASON_DAILY_HOUR_LIMIT = "daily_hour_limit"
REASON_NOT_ASSIGNED = "not_assigned"


@dataclass
class AssignmentResult:
    assigned: bool
    slot_key: str
    staff_id: str
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.assigned


def _minutes(hhmm: str) -> int:
    hours, _, minutes = hhmm.partition(":")
    return int(hours) * 60 + int(minutes or 0)


def slots_overlap(a: ShiftSlot, b: ShiftSlot) -> bool:
    """True when two slots share a day and their time ranges intersect."""
    if a.day != b.day:
        return False
    return _minutes(a.start) < _minutes(b.end) and _minutes(b.start) < _minutes(a.end)


class ShiftSchedule:
    """Fixed weekly grid of shift slots with per-day hour enforcement."""

    def __init__(
        self,
        days: Optional[List[str]] = None,
        shift_definitions: Optional[Dict[str, Dict[str, Any]]] = None,
        max_hours_per_day: float = MAX_HOURS_PER_DAY,
    ):
        self.lock = threading.RLock()
        self.max_hours_per_day = max_hours_per_day
        self.slots: Dict[str, ShiftSlot] = {}
        for day in (days or DAYS_OF_WEEK):
            for period, definition in (shift_definitions or SHIFT_DEFINITIONS).items():
                key = slot_key(day, period)
                self.slots[key] = ShiftSlot(
                    key=key,
                    day=day,
                    period=period,
                    start=definition["start"],
                    end=definition["end"],
                    hours=float(definition["hours"]),
                )
        logger.info(f"Weekly schedule template created ({len(self.slots)} shifts)")

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_slot(self, key: str) -> Optional[ShiftSlot]:
        return self.slots.get(key.strip().lower()) if key else None

    def slots_for_staff(self, staff_id: str) -> List[ShiftSlot]:
        with self.lock:
            return [s for s in self.slots.values() if staff_id in s.assigned]

    def hours_for_day(self, staff_id: str, day: str) -> float:
        day = day.strip().lower()
        with self.lock:
            return sum(
                s.hours for s in self.slots.values()
                if s.day == day and staff_id in s.assigned
            )

    def find_uncovered_shifts(self) -> List[str]:
        """Every slot key with zero assigned staff, in weekly order."""
        with self.lock:
            return [key for key, slot in self.slots.items() if not slot.assigned]

    def has_uncovered_shifts(self) -> bool:
        return bool(self.find_uncovered_shifts())

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    def check_assignment(self, staff_id: str, key: str) -> Optional[str]:
        """Return the rejection reason for (staff, slot), or None if allowed."""
        slot = self.get_slot(key)
        if slot is None:
            return REASON_UNKNOWN_SLOT
        if staff_id in slot.assigned:
            return REASON_ALREADY_ASSIGNED
        held_today = [
            s for s in self.slots.values()
            if s.day == slot.day and staff_id in s.assigned
        ]
        if any(slots_overlap(slot, other) for other in held_today):
            return REASON_OVERLAPPING_SHIFT
        if sum(s.hours for s in held_today) + slot.hours > self.max_hours_per_day:
            return REASON_DAILY_HOUR_LIMIT
        return None

    def assign_staff(self, staff: Any, key: str) -> AssignmentResult:
        """
        Assign a staff record (anything with staff_id and shift_keys) to a slot.

        Returns an AssignmentResult; never raises for a rejected assignment.
        """
        staff_id = staff.staff_id
        with self.lock:
            reason = self.check_assignment(staff_id, key)
            if reason is not None:
                logger.warning(f"Shift assignment rejected: {staff_id} → {key} ({reason})")
                return AssignmentResult(False, key, staff_id, reason)

            slot = self.get_slot(key)
            slot.assigned.add(staff_id)
            try:
                staff.shift_keys.add(slot.key)
            except Exception:
                slot.assigned.discard(staff_id)
                raise
            logger.info(f"Shift assigned: {staff_id} → {slot.key}")
            return AssignmentResult(True, slot.key, staff_id)

    def unassign_staff(self, staff: Any, key: str) -> AssignmentResult:
        staff_id = staff.staff_id
        with self.lock:
            slot = self.get_slot(key)
            if slot is None:
                return AssignmentResult(False, key, staff_id, REASON_UNKNOWN_SLOT)
            if staff_id not in slot.assigned:
                return AssignmentResult(False, slot.key, staff_id, REASON_NOT_ASSIGNED)
            slot.assigned.discard(staff_id)
            staff.shift_keys.discard(slot.key)
            logger.info(f"Shift unassigned: {staff_id} ✗ {slot.key}")
            return AssignmentResult(True, slot.key, staff_id)

    # -----------------------------------------------------------------------
    # Snapshot
    # -----------------------------------------------------------------------

    def snapshot(self) -> Dict[str, List[str]]:
        """{slot_key: sorted staff ids} for every slot, in weekly order."""
        with self.lock:
            return {key: sorted(slot.assigned) for key, slot in self.slots.items()}

    def restore(self, assignments: Dict[str, List[str]]) -> None:
        """
        Replace all assignments wholesale (snapshot load).  Hour limits are NOT
        re-checked here; the compliance evaluator reports any violations.
        """
        with self.lock:
            for slot in self.slots.values():
                slot.assigned.clear()
            for key, staff_ids in assignments.items():
                slot = self.get_slot(key)
                if slot is None:
                    logger.warning(f"Snapshot references unknown slot {key} — skipped")
                    continue
                slot.assigned.update(staff_ids)

    def slot_hours(self) -> Dict[str, float]:
        return {key: slot.hours for key, slot in self.slots.items()}

    def slot_days(self) -> Dict[str, str]:
        return {key: slot.day for key, slot in self.slots.items()}
