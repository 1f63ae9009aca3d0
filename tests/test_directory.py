"""
tests/test_directory.py — Staff and patient records, waiting list, validation.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hospital_admin.directory import HospitalDirectory
from hospital_admin.errors import ConflictError, NotFoundError, ValidationError
from hospital_admin.models import (
    CareLevel,
    DoctorInfo,
    Mobility,
    NurseInfo,
    PatientProfile,
    create_doctor,
    create_nurse,
    create_patient,
    validate_patient_profile,
)


@pytest.fixture
def directory():
    return HospitalDirectory()


def _profile(pid="P1", **kw):
    return PatientProfile(patient_id=pid, full_name="Ana Silva", condition="Pneumonia", **kw)


class TestValidation:

    def test_doctor_missing_fields_all_reported(self):
        with pytest.raises(ValidationError) as exc:
            create_doctor(DoctorInfo(staff_id="", full_name=" ", license_number=""))
        assert exc.value.fields == ["staff_id", "full_name", "license_number"]
        assert exc.value.subject == "doctor"

    def test_nurse_bad_contact(self):
        info = NurseInfo(staff_id="N1", full_name="Grace", certification="RN",
                         email="not-an-email", phone="12")
        with pytest.raises(ValidationError) as exc:
            create_nurse(info)
        assert exc.value.fields == ["email", "phone"]

    def test_phone_formatting_tolerated(self):
        nurse = create_nurse(NurseInfo(staff_id="N1", full_name="Grace", certification="RN",
                                       phone="+1 (555) 010-1234"))
        assert nurse.phone == "+1 (555) 010-1234"

    def test_patient_enum_fields(self):
        errors = validate_patient_profile(_profile(care_level="critical", mobility="flying"))
        assert [e.field for e in errors] == ["care_level", "mobility"]

    def test_create_patient_normalises(self):
        patient = create_patient(_profile(care_level="Intensive", mobility="BEDBOUND"))
        assert patient.care_level == CareLevel.INTENSIVE
        assert patient.mobility == Mobility.BEDBOUND
        assert patient.admitted_at is not None

    def test_strings_stripped(self):
        doctor = create_doctor(DoctorInfo(staff_id=" D1 ", full_name=" Amelia Hart ",
                                          license_number=" LIC-1 "))
        assert (doctor.staff_id, doctor.full_name, doctor.license_number) == ("D1", "Amelia Hart", "LIC-1")


class TestStaff:

    def test_add_and_lookup(self, directory):
        doctor = create_doctor(DoctorInfo("D1", "Amelia Hart", "LIC-1"))
        directory.add_doctor(doctor)
        assert directory.get_staff("D1") is doctor

    def test_staff_ids_unique_across_roles(self, directory):
        directory.add_doctor(create_doctor(DoctorInfo("S1", "Amelia Hart", "LIC-1")))
        with pytest.raises(ConflictError):
            directory.add_nurse(create_nurse(NurseInfo("S1", "Grace Mwangi", "RN")))
        assert directory.nurses == {}

    def test_unknown_staff(self, directory):
        assert directory.find_staff("X") is None
        with pytest.raises(NotFoundError):
            directory.get_staff("X")


class TestWaitingList:

    def test_fifo_positions(self, directory):
        assert directory.enqueue_waiting(_profile("P1")) == 1
        assert directory.enqueue_waiting(_profile("P2")) == 2
        assert [e.patient_id for e in directory.waiting_list()] == ["P1", "P2"]

    def test_duplicate_waiting_id_conflicts(self, directory):
        directory.enqueue_waiting(_profile("P1"))
        with pytest.raises(ConflictError):
            directory.enqueue_waiting(_profile("P1"))

    def test_remove_waiting(self, directory):
        directory.enqueue_waiting(_profile("P1"))
        directory.enqueue_waiting(_profile("P2"))
        directory.remove_waiting("P1")
        assert [e.patient_id for e in directory.waiting_list()] == ["P2"]
        with pytest.raises(NotFoundError):
            directory.remove_waiting("P1")

    def test_has_patient_id_covers_waiting(self, directory):
        directory.enqueue_waiting(_profile("P1"))
        assert directory.has_patient_id("P1")
        assert not directory.has_patient_id("P2")


class TestSnapshot:

    def test_snapshot_is_a_copy(self, directory):
        nurse = create_nurse(NurseInfo("N1", "Grace Mwangi", "RN"))
        directory.add_nurse(nurse)
        snap = directory.snapshot()
        nurse.shift_keys.add("monday_morning")
        assert snap.nurses["N1"].shift_keys == set()
        assert set(snap.staff) == {"N1"}
