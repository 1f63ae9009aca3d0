"""
facility.py — HospitalSystem: the collaborator facade

Wires the four stores together and exposes the operations the interactive
layer calls:

  Staff      add_doctor, add_nurse, assign_shift, unassign_shift
  Patients   admit_patient, discharge_patient, move_patient,
             process_waiting_list, suggest_rebalance
  Checks     run_compliance_check, quick_health_check, check_data_integrity
  State      capture_state, save, load
  Lifecycle  start_background_jobs, shutdown

LOCK ORDER
──────────
Cross-store operations always take directory → beds → schedule.  Compliance
evaluation runs on capture_state() copies with no store lock held.

FOLLOW-UPS
──────────
After hires and shift changes a short follow-up runs on a thread pool
(health probe, coverage milestone).  Follow-up failures are logged and never
reach the caller.

Usage:
  system = HospitalSystem("St. Example")
  system.add_nurse(NurseInfo("N1", "Jane Roe", "RN"))
  result = system.admit_patient(PatientProfile("P1", "John Doe", "Flu"))
  if result.queued: print(f"waiting list position {result.queue_position}")
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from hospital_admin.audit import ActivityLogger
from hospital_admin.bed_finder import BedSuggestion, SmartBedFinder
from hospital_admin.beds import BedRegistry
from hospital_admin.compliance import ComplianceEvaluator, ComplianceIssue, HealthCheckResult
from hospital_admin.directory import HospitalDirectory
from hospital_admin.errors import ConflictError
from hospital_admin.facility_config import (
    AUDIT_RETENTION_DAYS,
    MAX_HOURS_PER_DAY,
    OCCUPANCY_HISTORY_LIMIT,
)
from hospital_admin.maintenance import MaintenanceScheduler
from hospital_admin.models import (
    Doctor,
    DoctorInfo,
    Nurse,
    NurseInfo,
    Patient,
    PatientProfile,
    create_doctor,
    create_nurse,
    create_patient,
    profile_from_patient,
)
from hospital_admin.schedule import REASON_UNKNOWN_STAFF, AssignmentResult, ShiftSchedule
from hospital_admin.snapshot import FacilityState, load_snapshot, save_snapshot

logger = logging.getLogger(__name__)

MOVE_UNKNOWN_BED = "unknown_bed"
MOVE_SOURCE_EMPTY = "source_empty"
MOVE_TARGET_OCCUPIED = "target_occupied"
MOVE_TARGET_UNSUITABLE = "target_unsuitable"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class AdmissionResult:
    """Either an admitted patient with the chosen bed, or a waiting-list entry."""
    patient: Optional[Patient]
    suggestion: Optional[BedSuggestion] = None
    queued: bool = False
    queue_position: Optional[int] = None

    @property
    def bed_id(self) -> Optional[str]:
        return self.patient.bed_id if self.patient else None


@dataclass
class MoveResult:
    ok: bool
    reason: Optional[str] = None
    patient_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class IntegrityReport:
    ok: bool
    problems: List[str] = field(default_factory=list)


@dataclass
class TransferSuggestion:
    patient_id: str
    from_bed: str
    to_bed: str
    reason: str


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

class HospitalSystem:

    def __init__(
        self,
        name: str = "Hospital",
        settings: Optional[Dict[str, Any]] = None,
        audit_log: Optional[ActivityLogger] = None,
    ):
        settings = settings or {}
        self.name = name
        self.settings = settings

        self.directory = HospitalDirectory()
        self.registry = BedRegistry(
            layouts=settings.get("ward_layouts"),
            isolation_rooms=settings.get("isolation_rooms"),
        )
        thresholds = dict(settings.get("compliance_thresholds") or {})
        max_hours = settings.get("max_hours_per_day", thresholds.get("max_hours_per_day", MAX_HOURS_PER_DAY))
        thresholds["max_hours_per_day"] = max_hours

        self.schedule = ShiftSchedule(
            shift_definitions=settings.get("shift_definitions"),
            max_hours_per_day=max_hours,
        )
        self.finder = SmartBedFinder(self.registry, weights=settings.get("bed_scoring_weights"))
        self.evaluator = ComplianceEvaluator(
            thresholds=thresholds,
            forecast_settings=settings.get("forecast_settings"),
            shift_definitions=settings.get("shift_definitions"),
        )
        self.audit = audit_log or ActivityLogger()

        self.history_limit = int(settings.get("occupancy_history_limit", OCCUPANCY_HISTORY_LIMIT))
        self._history_lock = threading.Lock()
        self._occupancy_history: List[Tuple[str, float]] = []

        self.degraded = False
        self.degraded_reasons: List[str] = []

        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="followup")
        self._followups: List[Future] = []
        self._followups_lock = threading.Lock()
        self._coverage_lock = threading.Lock()
        self._coverage_announced = False
        self.scheduler = None

        logger.info(f"{self.name}: system initialised ({self.registry.total_beds()} beds)")

    # -----------------------------------------------------------------------
    # Staff
    # -----------------------------------------------------------------------

    def add_doctor(self, info: DoctorInfo, actor: str = "ADMIN") -> Doctor:
        doctor = create_doctor(info)
        self.directory.add_doctor(doctor)
        self.audit.log_staff_action(
            "ADD_DOCTOR", actor, f"Added Dr. {doctor.full_name} ({doctor.staff_id})"
        )
        self._submit_followup(self._after_hire, doctor.staff_id)
        return doctor

    def add_nurse(self, info: NurseInfo, actor: str = "ADMIN") -> Nurse:
        nurse = create_nurse(info)
        self.directory.add_nurse(nurse)
        self.audit.log_staff_action(
            "ADD_NURSE", actor, f"Added nurse {nurse.full_name} ({nurse.staff_id})"
        )
        self._submit_followup(self._after_hire, nurse.staff_id)
        return nurse

    def assign_shift(self, staff_id: str, slot_key: str, actor: str = "ADMIN") -> AssignmentResult:
        with self.directory.lock:
            staff = self.directory.find_staff(staff_id)
            if staff is None:
                logger.warning(f"Shift assignment rejected: unknown staff {staff_id}")
                return AssignmentResult(False, slot_key, staff_id, REASON_UNKNOWN_STAFF)
            result = self.schedule.assign_staff(staff, slot_key)
        if result.assigned:
            self.audit.log_staff_action(
                "ASSIGN_SHIFT", actor, f"{staff_id} assigned to {result.slot_key}"
            )
            self._submit_followup(self._after_schedule_change)
        return result

    def unassign_shift(self, staff_id: str, slot_key: str, actor: str = "ADMIN") -> AssignmentResult:
        with self.directory.lock:
            staff = self.directory.find_staff(staff_id)
            if staff is None:
                return AssignmentResult(False, slot_key, staff_id, REASON_UNKNOWN_STAFF)
            result = self.schedule.unassign_staff(staff, slot_key)
        if result.assigned:
            self.audit.log_staff_action(
                "UNASSIGN_SHIFT", actor, f"{staff_id} removed from {result.slot_key}"
            )
            self._submit_followup(self._after_schedule_change)
        return result

    # -----------------------------------------------------------------------
    # Patients
    # -----------------------------------------------------------------------

    def admit_patient(
        self,
        profile: PatientProfile,
        actor: str = "ADMIN",
        when: Optional[datetime] = None,
    ) -> AdmissionResult:
        """
        Validate, pick the best free bed and admit.  When nothing qualifies
        the patient joins the waiting list instead (queued=True).
        """
        patient = create_patient(profile, admitted_at=when)
        with self.directory.lock:
            if self.directory.has_patient_id(patient.patient_id):
                raise ConflictError(f"Patient with ID {patient.patient_id} already exists")
            with self.registry.lock:
                suggestion = self.finder.find_best_bed(profile)
                if suggestion is None:
                    position = self.directory.enqueue_waiting(profile, queued_at=when)
                else:
                    self._place(patient, suggestion.bed_id)

        if suggestion is None:
            self.audit.log_patient_action(
                "QUEUE_PATIENT", actor,
                f"{patient.full_name} ({patient.patient_id}) waiting, position {position}",
            )
            return AdmissionResult(patient=None, queued=True, queue_position=position)

        self.record_occupancy(when)
        self.audit.log_patient_action(
            "ADMIT_PATIENT", actor,
            f"{patient.full_name} ({patient.patient_id}) → bed {suggestion.bed_id} "
            f"({suggestion.confidence}% match)",
        )
        return AdmissionResult(patient=patient, suggestion=suggestion)

    def _place(self, patient: Patient, bed_id: str) -> None:
        """Assign bed and register patient. Caller holds directory + registry locks."""
        self.registry.assign(bed_id, patient.patient_id)
        patient.bed_id = bed_id
        try:
            self.directory.add_patient(patient)
        except ConflictError:
            self.registry.release(bed_id)
            patient.bed_id = None
            raise

    def discharge_patient(self, patient_id: str, actor: str = "ADMIN") -> Patient:
        with self.directory.lock:
            patient = self.directory.get_patient(patient_id)
            with self.registry.lock:
                bed = self.registry.find_bed(patient.bed_id) if patient.bed_id else None
                if bed is not None and bed.patient_id == patient_id:
                    self.registry.release(bed.bed_id)
                self.directory.remove_patient(patient_id)

        self.record_occupancy()
        self.audit.log_patient_action(
            "DISCHARGE_PATIENT", actor,
            f"{patient.full_name} ({patient_id}) discharged from bed {patient.bed_id}",
        )
        self.process_waiting_list()
        return patient

    def move_patient(self, from_bed: str, to_bed: str, actor: str = "ADMIN") -> MoveResult:
        with self.directory.lock, self.registry.lock:
            source = self.registry.find_bed(from_bed)
            target = self.registry.find_bed(to_bed)
            if source is None or target is None:
                return self._reject_move(from_bed, to_bed, MOVE_UNKNOWN_BED)
            if not source.occupied:
                return self._reject_move(from_bed, to_bed, MOVE_SOURCE_EMPTY)
            if target.occupied:
                return self._reject_move(from_bed, to_bed, MOVE_TARGET_OCCUPIED)

            patient_id = source.patient_id
            patient = self.directory.patients.get(patient_id)
            if patient is not None and not self.finder.is_suitable(target, patient):
                return self._reject_move(from_bed, to_bed, MOVE_TARGET_UNSUITABLE)

            self.registry.release(source.bed_id)
            self.registry.assign(target.bed_id, patient_id)
            if patient is not None:
                patient.bed_id = target.bed_id

        self.record_occupancy()
        self.audit.log_patient_action(
            "MOVE_PATIENT", actor, f"{patient_id} moved {from_bed} → {to_bed}"
        )
        return MoveResult(ok=True, patient_id=patient_id)

    def _reject_move(self, from_bed: str, to_bed: str, reason: str) -> MoveResult:
        logger.warning(f"Move rejected: {from_bed} → {to_bed} ({reason})")
        return MoveResult(ok=False, reason=reason)

    def process_waiting_list(self) -> List[Patient]:
        """Admit waiting patients in arrival order; entries that still do not fit stay queued."""
        admitted: List[Patient] = []
        with self.directory.lock, self.registry.lock:
            for entry in self.directory.waiting_list():
                suggestion = self.finder.find_best_bed(entry.profile)
                if suggestion is None:
                    continue
                self.directory.remove_waiting(entry.patient_id)
                patient = create_patient(entry.profile)
                self._place(patient, suggestion.bed_id)
                admitted.append(patient)

        for patient in admitted:
            self.audit.log_patient_action(
                "ADMIT_FROM_WAITING_LIST", "SYSTEM",
                f"{patient.full_name} ({patient.patient_id}) → bed {patient.bed_id}",
            )
        if admitted:
            self.record_occupancy()
        return admitted

    def suggest_rebalance(self) -> List[TransferSuggestion]:
        """
        Read-only: patients whose care level does not match their ward, paired
        with a free suitable bed in a matching ward.  Nothing is moved.
        """
        suggestions: List[TransferSuggestion] = []
        claimed = set()
        with self.directory.lock, self.registry.lock:
            for bed in self.registry.iter_beds():
                if not bed.occupied:
                    continue
                patient = self.directory.patients.get(bed.patient_id)
                if patient is None:
                    continue
                ward = self.registry.ward_of(bed)
                if ward.specialization == patient.care_level:
                    continue
                for candidate in self.finder.rank_beds(profile_from_patient(patient)):
                    target_ward = self.registry.ward_of(candidate.bed)
                    if target_ward.specialization != patient.care_level:
                        continue
                    if candidate.bed_id in claimed:
                        continue
                    claimed.add(candidate.bed_id)
                    suggestions.append(TransferSuggestion(
                        patient_id=patient.patient_id,
                        from_bed=bed.bed_id,
                        to_bed=candidate.bed_id,
                        reason=(
                            f"{patient.care_level.value} care patient in {ward.name}; "
                            f"{target_ward.name} has a free bed"
                        ),
                    ))
                    break
        if suggestions:
            logger.info(f"Rebalance: {len(suggestions)} transfer(s) suggested")
        return suggestions

    # -----------------------------------------------------------------------
    # Occupancy history
    # -----------------------------------------------------------------------

    def record_occupancy(self, when: Optional[datetime] = None) -> Tuple[str, float]:
        sample = (
            (when or datetime.now()).isoformat(timespec="seconds"),
            self.registry.occupancy_rate(),
        )
        with self._history_lock:
            self._occupancy_history.append(sample)
            if len(self._occupancy_history) > self.history_limit:
                del self._occupancy_history[:-self.history_limit]
        return sample

    def occupancy_history(self) -> List[Tuple[str, float]]:
        with self._history_lock:
            return list(self._occupancy_history)

    def trim_history(self, limit: Optional[int] = None) -> int:
        limit = self.history_limit if limit is None else limit
        with self._history_lock:
            excess = max(len(self._occupancy_history) - limit, 0)
            if excess:
                del self._occupancy_history[:excess]
        return excess

    # -----------------------------------------------------------------------
    # Checks
    # -----------------------------------------------------------------------

    def run_compliance_check(self) -> List[ComplianceIssue]:
        state = self.capture_state()
        issues = self.evaluator.evaluate(
            state.directory,
            state.schedule,
            state.occupancy_rate,
            state.occupancy_history,
        )
        for issue in issues:
            self.audit.log_compliance_issue(issue.rule, issue.description)
        if issues:
            logger.warning(f"Compliance check: {len(issues)} issue(s) found")
        else:
            logger.info("Compliance check: all rules passed")
        return issues

    def quick_health_check(self) -> HealthCheckResult:
        with self.directory.lock:
            directory_snapshot = self.directory.snapshot()
            with self.schedule.lock:
                schedule_snapshot = self.schedule.snapshot()
        return self.evaluator.quick_check(directory_snapshot, schedule_snapshot)

    def check_data_integrity(self) -> IntegrityReport:
        """
        Cross-check registry ↔ directory ↔ schedule.  Mismatches are logged as
        warnings and put the system in degraded mode; nothing is repaired.
        """
        problems: List[str] = []
        with self.directory.lock, self.registry.lock, self.schedule.lock:
            patients = self.directory.patients
            for bed in self.registry.iter_beds():
                if not bed.occupied:
                    continue
                patient = patients.get(bed.patient_id)
                if patient is None:
                    problems.append(f"Bed {bed.bed_id} holds unknown patient {bed.patient_id}")
                elif patient.bed_id != bed.bed_id:
                    problems.append(
                        f"Bed {bed.bed_id} holds {patient.patient_id} but patient record "
                        f"points to {patient.bed_id}"
                    )
            for patient in patients.values():
                if patient.bed_id is None:
                    continue
                bed = self.registry.find_bed(patient.bed_id)
                if bed is None:
                    problems.append(f"Patient {patient.patient_id} assigned to unknown bed {patient.bed_id}")
                elif bed.patient_id != patient.patient_id:
                    problems.append(
                        f"Patient {patient.patient_id} points to bed {bed.bed_id} "
                        f"which holds {bed.patient_id}"
                    )
            for entry in self.directory.waiting_list():
                if entry.patient_id in patients:
                    problems.append(f"Patient {entry.patient_id} is both admitted and waiting")

            staff = {**self.directory.doctors, **self.directory.nurses}
            for key, slot in self.schedule.slots.items():
                for staff_id in slot.assigned:
                    member = staff.get(staff_id)
                    if member is None:
                        problems.append(f"Shift {key} assigned to unknown staff {staff_id}")
                    elif key not in member.shift_keys:
                        problems.append(f"Shift {key} lists {staff_id} but staff record does not")
            for staff_id, member in staff.items():
                for key in member.shift_keys:
                    slot = self.schedule.get_slot(key)
                    if slot is None or staff_id not in slot.assigned:
                        problems.append(f"Staff {staff_id} lists shift {key} not held in schedule")

        for problem in problems:
            logger.warning(f"Integrity: {problem}")
        if problems:
            self.degraded = True
            self.degraded_reasons = list(problems)
            self.audit.log_system_event(
                "INTEGRITY_MISMATCH", f"{len(problems)} mismatch(es); running in degraded mode"
            )
        else:
            self.degraded = False
            self.degraded_reasons = []
        return IntegrityReport(ok=not problems, problems=problems)

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------

    def capture_state(self) -> FacilityState:
        with self.directory.lock, self.registry.lock, self.schedule.lock:
            state = FacilityState(
                hospital_name=self.name,
                directory=self.directory.snapshot(),
                beds=self.registry.snapshot(),
                schedule=self.schedule.snapshot(),
                occupancy_rate=self.registry.occupancy_rate(),
            )
        state.occupancy_history = self.occupancy_history()
        return state

    def save(self, path: Path) -> Path:
        saved = save_snapshot(self.capture_state(), path)
        self.audit.log_system_event("SNAPSHOT_SAVED", f"State written to {saved}")
        return saved

    def load(self, path: Path) -> bool:
        """Restore from a snapshot. Returns False when the file does not exist."""
        state = load_snapshot(path)
        if state is None:
            return False
        d = state.directory
        with self.directory.lock, self.registry.lock, self.schedule.lock:
            self.directory.restore(
                list(d.doctors.values()),
                list(d.nurses.values()),
                list(d.patients.values()),
                list(d.waiting),
            )
            self.registry.restore(state.beds)
            self.schedule.restore(state.schedule)
        with self._history_lock:
            self._occupancy_history = list(state.occupancy_history)[-self.history_limit:]
        if state.hospital_name:
            self.name = state.hospital_name
        self._coverage_announced = not self.schedule.has_uncovered_shifts()
        self.audit.log_system_event("SNAPSHOT_LOADED", f"State restored from {path}")
        self.check_data_integrity()
        return True

    # -----------------------------------------------------------------------
    # Background work
    # -----------------------------------------------------------------------

    def run_maintenance(self, retention_days: int = AUDIT_RETENTION_DAYS) -> Dict[str, int]:
        removed = self.audit.cleanup_old_logs(retention_days)
        trimmed = self.trim_history()
        return {"audit_entries_removed": removed, "history_samples_trimmed": trimmed}

    def start_background_jobs(self, intervals: Optional[Dict[str, float]] = None):
        if self.scheduler is None:
            self.scheduler = MaintenanceScheduler(
                self,
                intervals=intervals or self.settings.get("maintenance_intervals"),
                retention_days=self.settings.get("audit_retention_days", AUDIT_RETENTION_DAYS),
            )
        self.scheduler.start()
        return self.scheduler

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        self._executor.shutdown(wait=True)
        logger.info(f"{self.name}: shut down")

    def wait_for_followups(self, timeout: Optional[float] = None) -> None:
        with self._followups_lock:
            pending = list(self._followups)
        wait(pending, timeout=timeout)
        with self._followups_lock:
            self._followups = [f for f in self._followups if not f.done()]

    def _submit_followup(self, func, *args) -> Optional[Future]:
        try:
            future = self._executor.submit(self._run_followup, func, *args)
        except RuntimeError:
            # executor already shut down
            logger.debug(f"Follow-up {func.__name__} skipped after shutdown")
            return None
        with self._followups_lock:
            self._followups = [f for f in self._followups if not f.done()]
            self._followups.append(future)
        return future

    @staticmethod
    def _run_followup(func, *args) -> None:
        try:
            func(*args)
        except Exception:
            logger.exception(f"Follow-up task {func.__name__} failed")

    def _after_hire(self, staff_id: str) -> None:
        health = self.quick_health_check()
        logger.info(f"After hiring {staff_id}: {health.summary}")

    def _after_schedule_change(self) -> None:
        with self._coverage_lock:
            uncovered = self.schedule.find_uncovered_shifts()
            if uncovered:
                self._coverage_announced = False
                return
            if self._coverage_announced:
                return
            self._coverage_announced = True
        self.audit.log_system_event(
            "FULL_COVERAGE_ACHIEVED", "Every shift slot has at least one staff member"
        )
