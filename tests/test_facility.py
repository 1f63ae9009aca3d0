"""
tests/test_facility.py — HospitalSystem facade scenarios.

Tests: hiring, admission + waiting list, discharge, transfers, shift
assignment, compliance / health checks, integrity, rebalance, follow-ups.
"""

import sys
import threading
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hospital_admin.audit import CATEGORY_COMPLIANCE, CATEGORY_SYSTEM
from hospital_admin.compliance import RULE_HOUR_VIOLATION, RULE_INSUFFICIENT_NURSES, RULE_NO_DOCTOR
from hospital_admin.errors import ConflictError, NotFoundError, ValidationError
from hospital_admin.facility import (
    MOVE_SOURCE_EMPTY,
    MOVE_TARGET_OCCUPIED,
    MOVE_TARGET_UNSUITABLE,
    MOVE_UNKNOWN_BED,
    HospitalSystem,
)
from hospital_admin.facility_config import all_slot_keys
from hospital_admin.models import DoctorInfo, NurseInfo, PatientProfile
from hospital_admin.schedule import (
    REASON_DAILY_HOUR_LIMIT,
    REASON_OVERLAPPING_SHIFT,
    REASON_UNKNOWN_STAFF,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def system():
    s = HospitalSystem("Test General")
    yield s
    s.shutdown()


def patient(pid, isolation=False, care="general", mobility="independent"):
    return PatientProfile(
        patient_id=pid,
        full_name=f"Patient {pid}",
        condition="Observation",
        needs_isolation=isolation,
        care_level=care,
        mobility=mobility,
    )


def fill_all_beds(system):
    for i in range(1, 32):
        result = system.admit_patient(patient(f"P{i:02d}"))
        assert not result.queued
    assert system.registry.occupied_count() == 31


def staff_fully(system):
    system.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
    system.add_nurse(NurseInfo("N2", "Tomas Lindqvist", "RN"))
    system.add_doctor(DoctorInfo("D1", "Amelia Hart", "LIC-1"))
    for key in all_slot_keys():
        assert system.assign_shift("N1" if key.endswith("morning") else "N2", key).assigned


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------

class TestStaff:

    def test_add_doctor_and_nurse(self, system):
        doctor = system.add_doctor(DoctorInfo("D1", "Amelia Hart", "LIC-1"))
        nurse = system.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
        assert system.directory.get_staff("D1") is doctor
        assert system.directory.get_staff("N1") is nurse
        actions = [e.action for e in system.audit.entries()]
        assert actions[:2] == ["ADD_DOCTOR", "ADD_NURSE"]

    def test_invalid_doctor_not_added(self, system):
        with pytest.raises(ValidationError):
            system.add_doctor(DoctorInfo("D1", "", ""))
        assert system.directory.doctors == {}

    def test_duplicate_id_conflicts(self, system):
        system.add_doctor(DoctorInfo("S1", "Amelia Hart", "LIC-1"))
        with pytest.raises(ConflictError):
            system.add_nurse(NurseInfo("S1", "Grace Mwangi", "RN"))


# ---------------------------------------------------------------------------
# Admission / discharge
# ---------------------------------------------------------------------------

    def test_blank_optional_contact_fields(self, system):
        nurse = system.add_nurse(NurseInfo("N9", "Ivo Petrov", "RN", email=None, phone=None, username=None))
        assert (nurse.email, nurse.phone, nurse.username) == ("", "", "")
        doctor = system.add_doctor(DoctorInfo("D9", "Lena Roth", "LIC-9", specialty=None, email=None))
        assert doctor.specialty == ""

    def test_followup_futures_pruned(self, system):
        for i in range(10):
            system.add_nurse(NurseInfo(f"N{i}", f"Nurse {i}", "RN"))
        for future in list(system._followups):
            future.result(timeout=5)
        system.add_nurse(NurseInfo("N99", "Last Hire", "RN"))
        assert len(system._followups) == 1


class TestAdmission:

    def test_admit_assigns_best_bed(self, system):
        result = system.admit_patient(patient("P1"))
        assert not result.queued
        assert result.bed_id == "A1-1"
        assert result.suggestion.confidence == 100
        assert system.registry.get_bed("A1-1").patient_id == "P1"
        assert system.directory.get_patient("P1").bed_id == "A1-1"

    def test_invalid_profile_mutates_nothing(self, system):
        with pytest.raises(ValidationError):
            system.admit_patient(PatientProfile("P1", "", "", care_level="unknown"))
        assert system.registry.occupied_count() == 0
        assert system.directory.waiting_list() == []

    def test_duplicate_patient_conflicts(self, system):
        system.admit_patient(patient("P1"))
        with pytest.raises(ConflictError):
            system.admit_patient(patient("P1"))
        assert system.registry.occupied_count() == 1

    def test_full_facility_queues_32nd_patient(self, system):
        fill_all_beds(system)
        result = system.admit_patient(patient("P32"))
        assert result.queued
        assert result.patient is None
        assert result.queue_position == 1
        assert system.registry.occupancy_rate() == pytest.approx(100.0)

    def test_isolation_patient_queued_when_isolation_rooms_full(self, system):
        system.admit_patient(patient("ISO1", isolation=True))
        system.admit_patient(patient("ISO2", isolation=True))
        result = system.admit_patient(patient("ISO3", isolation=True))
        assert result.queued
        assert system.registry.occupied_count() == 2

    def test_discharge_frees_bed_and_admits_waiting(self, system):
        system.admit_patient(patient("ISO1", isolation=True))
        system.admit_patient(patient("ISO2", isolation=True, care="intensive"))
        system.admit_patient(patient("ISO3", isolation=True))

        discharged = system.discharge_patient("ISO1")
        assert discharged.bed_id == "A3-1"
        assert system.directory.waiting_list() == []
        assert system.directory.get_patient("ISO3").bed_id == "A3-1"

    def test_waiting_list_keeps_unfit_entries_in_place(self, system):
        fill_all_beds(system)
        system.admit_patient(patient("ISO", isolation=True))
        system.admit_patient(patient("GEN"))

        system.discharge_patient("P01")     # frees A1-1, not isolation-capable
        assert [e.patient_id for e in system.directory.waiting_list()] == ["ISO"]
        assert system.directory.get_patient("GEN").bed_id == "A1-1"

    def test_discharge_unknown_patient(self, system):
        with pytest.raises(NotFoundError):
            system.discharge_patient("nobody")

    def test_occupancy_history_recorded(self, system):
        system.admit_patient(patient("P1"))
        system.admit_patient(patient("P2"))
        history = system.occupancy_history()
        assert len(history) == 2
        assert history[-1][1] == pytest.approx(2 * 100.0 / 31)

    def test_history_is_bounded(self):
        s = HospitalSystem("Small history", settings={"occupancy_history_limit": 3})
        try:
            for i in range(5):
                s.admit_patient(patient(f"P{i}"))
            assert len(s.occupancy_history()) == 3
        finally:
            s.shutdown()


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------

class TestMove:

    def test_move_success(self, system):
        system.admit_patient(patient("P1"))
        result = system.move_patient("A1-1", "B2-1")
        assert result.ok and result.patient_id == "P1"
        assert system.registry.get_bed("A1-1").patient_id is None
        assert system.registry.get_bed("B2-1").patient_id == "P1"
        assert system.directory.get_patient("P1").bed_id == "B2-1"
        assert system.check_data_integrity().ok

    def test_unknown_bed(self, system):
        assert system.move_patient("A1-1", "Z9-9").reason == MOVE_UNKNOWN_BED

    def test_source_empty(self, system):
        assert system.move_patient("A1-1", "A1-2").reason == MOVE_SOURCE_EMPTY

    def test_target_occupied(self, system):
        system.admit_patient(patient("P1"))
        system.admit_patient(patient("P2"))
        result = system.move_patient("A1-1", "A1-2")
        assert not result
        assert result.reason == MOVE_TARGET_OCCUPIED

    def test_isolation_patient_cannot_leave_isolation(self, system):
        system.admit_patient(patient("ISO", isolation=True))
        result = system.move_patient("A3-1", "A1-1")
        assert result.reason == MOVE_TARGET_UNSUITABLE
        assert system.registry.get_bed("A3-1").patient_id == "ISO"


# ---------------------------------------------------------------------------
# Shifts
# ---------------------------------------------------------------------------

class TestShifts:

    def test_monday_then_tuesday(self, system):
        system.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
        assert system.assign_shift("N1", "monday_morning").assigned
        rejected = system.assign_shift("N1", "monday_afternoon")
        assert rejected.reason == REASON_OVERLAPPING_SHIFT
        assert system.assign_shift("N1", "tuesday_morning").assigned
        assert system.directory.get_staff("N1").shift_keys == {"monday_morning", "tuesday_morning"}

    def test_unknown_staff(self, system):
        assert system.assign_shift("ghost", "monday_morning").reason == REASON_UNKNOWN_STAFF

    def test_unassign(self, system):
        system.add_doctor(DoctorInfo("D1", "Amelia Hart", "LIC-1"))
        system.assign_shift("D1", "friday_morning")
        assert system.unassign_shift("D1", "friday_morning").assigned
        assert system.schedule.get_slot("friday_morning").assigned == set()

    def test_full_coverage_announced_once(self, system):
        staff_fully(system)
        system.wait_for_followups()
        events = [e for e in system.audit.entries(CATEGORY_SYSTEM)
                  if e.action == "FULL_COVERAGE_ACHIEVED"]
        assert len(events) == 1


    def test_hour_cap_override_shared_with_evaluator(self):
        long_shifts = {
            "morning":   {"start": "06:00", "end": "18:00", "hours": 12},
            "afternoon": {"start": "18:00", "end": "22:00", "hours": 4},
        }
        s = HospitalSystem("Long Shifts", settings={"shift_definitions": long_shifts,
                                                   "max_hours_per_day": 16})
        try:
            s.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
            assert s.assign_shift("N1", "monday_morning").assigned
            assert s.assign_shift("N1", "monday_afternoon").assigned
            assert s.evaluator.thresholds["max_hours_per_day"] == 16
            rules = {i.rule for i in s.run_compliance_check()}
            assert RULE_HOUR_VIOLATION not in rules
        finally:
            s.shutdown()

    def test_lower_hour_cap_rejects_standard_shift(self):
        s = HospitalSystem("Short Days", settings={"compliance_thresholds": {"max_hours_per_day": 6}})
        try:
            s.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
            assert s.schedule.max_hours_per_day == 6
            assert s.assign_shift("N1", "monday_morning").reason == REASON_DAILY_HOUR_LIMIT
        finally:
            s.shutdown()

# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

class TestChecks:

    def test_quick_check_one_nurse_no_doctor(self, system):
        system.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
        result = system.quick_health_check()
        assert not result.ok
        rules = [i.rule for i in result.issues]
        assert RULE_INSUFFICIENT_NURSES in rules
        assert RULE_NO_DOCTOR in rules

    def test_fully_staffed_is_healthy(self, system):
        staff_fully(system)
        assert system.quick_health_check().ok
        assert system.run_compliance_check() == []

    def test_compliance_issues_audited(self, system):
        issues = system.run_compliance_check()
        assert issues
        logged = system.audit.entries(CATEGORY_COMPLIANCE)
        assert [e.action for e in logged] == [i.rule for i in issues]

    def test_integrity_clean(self, system):
        system.admit_patient(patient("P1"))
        report = system.check_data_integrity()
        assert report.ok and report.problems == []
        assert not system.degraded

    def test_integrity_mismatch_degrades(self, system):
        system.admit_patient(patient("P1"))
        system.registry.get_bed("B1-1").patient_id = "GHOST"
        report = system.check_data_integrity()
        assert not report.ok
        assert any("GHOST" in p for p in report.problems)
        assert system.degraded
        # degraded mode keeps the system usable
        assert not system.admit_patient(patient("P2")).queued

    def test_integrity_schedule_mismatch(self, system):
        system.add_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
        system.directory.get_staff("N1").shift_keys.add("monday_morning")
        report = system.check_data_integrity()
        assert not report.ok


# ---------------------------------------------------------------------------
# Rebalance
# ---------------------------------------------------------------------------

class TestRebalance:

    def test_general_patient_in_ward_b_gets_suggestion(self, system):
        for i in range(16):
            system.admit_patient(patient(f"A{i:02d}"))
        overflow = system.admit_patient(patient("OVER"))
        assert overflow.bed_id.startswith("B")

        system.discharge_patient("A00")
        before = system.registry.snapshot()
        suggestions = system.suggest_rebalance()

        assert len(suggestions) == 1
        assert suggestions[0].patient_id == "OVER"
        assert suggestions[0].to_bed.startswith("A")
        assert system.registry.snapshot() == before

    def test_nothing_to_rebalance(self, system):
        system.admit_patient(patient("P1"))
        system.admit_patient(patient("P2", care="intensive"))
        assert system.suggest_rebalance() == []


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrentCallers:

    def test_parallel_admit_discharge_assign(self, system):
        for i in range(8):
            system.add_nurse(NurseInfo(f"N{i}", f"Nurse {i}", "RN"))
        mismatches = []
        errors = []
        stop = threading.Event()

        def observe():
            while not stop.is_set():
                state = system.capture_state()
                occupied = sum(1 for pid in state.beds.values() if pid)
                if occupied != len(state.directory.patients):
                    mismatches.append((occupied, len(state.directory.patients)))

        def worker(n):
            try:
                keys = all_slot_keys()
                for j in range(3):
                    pid = f"T{n}-{j}"
                    system.admit_patient(patient(pid, care="intensive" if j % 2 else "general"))
                    system.assign_shift(f"N{n}", keys[(n * 2 + j * 2) % len(keys)])
                system.discharge_patient(f"T{n}-0")
            except Exception as e:
                errors.append(e)

        observer = threading.Thread(target=observe)
        observer.start()
        workers = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in workers:
            t.start()
        for t in workers:
            t.join(timeout=10)
        stop.set()
        observer.join(timeout=10)
        system.wait_for_followups()

        assert errors == []
        assert mismatches == []
        assert system.registry.occupied_count() == len(system.directory.patients) == 16
        assert system.check_data_integrity().ok
