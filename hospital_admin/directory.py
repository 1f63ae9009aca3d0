"""
directory.py — Hospital Directory (staff, patients, waiting list)

Exclusive owner of Doctor / Nurse / Patient records.  Staff ids are unique
across doctors AND nurses.  The admission waiting list is FIFO by arrival.

Lock order for cross-store work is directory → beds → schedule; the
directory lock is always taken first.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

from hospital_admin.errors import ConflictError, NotFoundError
from hospital_admin.models import Doctor, Nurse, Patient, PatientProfile

logger = logging.getLogger(__name__)

Staff = Union[Doctor, Nurse]


@dataclass
class WaitingEntry:
    profile: PatientProfile
    queued_at: str

    @property
    def patient_id(self) -> str:
        return self.profile.patient_id


@dataclass
class DirectorySnapshot:
    """Point-in-time deep copy; safe to read without any lock."""
    doctors: Dict[str, Doctor] = field(default_factory=dict)
    nurses: Dict[str, Nurse] = field(default_factory=dict)
    patients: Dict[str, Patient] = field(default_factory=dict)
    waiting: List[WaitingEntry] = field(default_factory=list)

    @property
    def staff(self) -> Dict[str, Staff]:
        merged: Dict[str, Staff] = dict(self.doctors)
        merged.update(self.nurses)
        return merged


class HospitalDirectory:

    def __init__(self):
        self.lock = threading.RLock()
        self.doctors: Dict[str, Doctor] = {}
        self.nurses: Dict[str, Nurse] = {}
        self.patients: Dict[str, Patient] = {}
        self._waiting: List[WaitingEntry] = []

    # -----------------------------------------------------------------------
    # Staff
    # -----------------------------------------------------------------------

    def add_doctor(self, doctor: Doctor) -> Doctor:
        with self.lock:
            self._ensure_new_staff_id(doctor.staff_id)
            self.doctors[doctor.staff_id] = doctor
            return doctor

    def add_nurse(self, nurse: Nurse) -> Nurse:
        with self.lock:
            self._ensure_new_staff_id(nurse.staff_id)
            self.nurses[nurse.staff_id] = nurse
            return nurse

    def _ensure_new_staff_id(self, staff_id: str) -> None:
        if staff_id in self.doctors or staff_id in self.nurses:
            raise ConflictError(f"Staff member with ID {staff_id} already exists")

    def find_staff(self, staff_id: str) -> Optional[Staff]:
        with self.lock:
            return self.doctors.get(staff_id) or self.nurses.get(staff_id)

    def get_staff(self, staff_id: str) -> Staff:
        staff = self.find_staff(staff_id)
        if staff is None:
            raise NotFoundError(f"Staff member not found: {staff_id}")
        return staff

    # -----------------------------------------------------------------------
    # Patients
    # -----------------------------------------------------------------------

    def has_patient_id(self, patient_id: str) -> bool:
        """True when the id is admitted OR waiting."""
        with self.lock:
            return patient_id in self.patients or any(
                e.patient_id == patient_id for e in self._waiting
            )

    def add_patient(self, patient: Patient) -> Patient:
        with self.lock:
            if patient.patient_id in self.patients:
                raise ConflictError(f"Patient with ID {patient.patient_id} already exists")
            self.patients[patient.patient_id] = patient
            return patient

    def get_patient(self, patient_id: str) -> Patient:
        with self.lock:
            patient = self.patients.get(patient_id)
        if patient is None:
            raise NotFoundError(f"Patient not found: {patient_id}")
        return patient

    def remove_patient(self, patient_id: str) -> Patient:
        with self.lock:
            patient = self.patients.pop(patient_id, None)
        if patient is None:
            raise NotFoundError(f"Patient not found: {patient_id}")
        return patient

    # -----------------------------------------------------------------------
    # Waiting list (FIFO)
    # -----------------------------------------------------------------------

    def enqueue_waiting(self, profile: PatientProfile, queued_at: Optional[datetime] = None) -> int:
        """Append to the waiting list; returns the 1-based queue position."""
        with self.lock:
            if self.has_patient_id(profile.patient_id):
                raise ConflictError(f"Patient with ID {profile.patient_id} already exists")
            stamp = (queued_at or datetime.now()).isoformat(timespec="seconds")
            self._waiting.append(WaitingEntry(profile=profile, queued_at=stamp))
            return len(self._waiting)

    def waiting_list(self) -> List[WaitingEntry]:
        with self.lock:
            return list(self._waiting)

    def remove_waiting(self, patient_id: str) -> WaitingEntry:
        with self.lock:
            for i, entry in enumerate(self._waiting):
                if entry.patient_id == patient_id:
                    return self._waiting.pop(i)
        raise NotFoundError(f"Patient not on waiting list: {patient_id}")

    # -----------------------------------------------------------------------
    # Snapshot / restore
    # -----------------------------------------------------------------------

    def snapshot(self) -> DirectorySnapshot:
        with self.lock:
            return DirectorySnapshot(
                doctors=copy.deepcopy(self.doctors),
                nurses=copy.deepcopy(self.nurses),
                patients=copy.deepcopy(self.patients),
                waiting=copy.deepcopy(self._waiting),
            )

    def restore(
        self,
        doctors: List[Doctor],
        nurses: List[Nurse],
        patients: List[Patient],
        waiting: List[WaitingEntry],
    ) -> None:
        with self.lock:
            self.doctors = {d.staff_id: d for d in doctors}
            self.nurses = {n.staff_id: n for n in nurses}
            self.patients = {p.patient_id: p for p in patients}
            self._waiting = list(waiting)
        logger.info(
            f"Directory restored: {len(self.doctors)} doctors, "
            f"{len(self.nurses)} nurses, {len(self.patients)} patients, "
            f"{len(self._waiting)} waiting"
        )
