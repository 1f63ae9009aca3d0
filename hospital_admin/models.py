"""
models.py — Records, configuration structs and validation

Records (owned by the stores):
  Bed, Room, Ward        → beds.BedRegistry
  Doctor, Nurse, Patient → directory.HospitalDirectory
  ShiftSlot              → schedule.ShiftSchedule

Configuration structs (input to the create_* constructors):
  DoctorInfo, NurseInfo, PatientProfile

validate_* functions are pure and return EVERY failing field; create_*
raise ValidationError carrying that list.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from hospital_admin.errors import FieldError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\d{8,15}$")


class CareLevel(Enum):
    GENERAL = "general"
    INTENSIVE = "intensive"


class Mobility(Enum):
    INDEPENDENT = "independent"
    ASSISTED = "assisted"
    BEDBOUND = "bedbound"


class StaffRole(Enum):
    DOCTOR = "doctor"
    NURSE = "nurse"


# ---------------------------------------------------------------------------
# Facility structure
# ---------------------------------------------------------------------------

@dataclass
class Bed:
    bed_id: str
    room_id: str
    ward_id: str
    position: int
    isolation_capable: bool = False
    patient_id: Optional[str] = None

    @property
    def occupied(self) -> bool:
        return self.patient_id is not None


@dataclass
class Room:
    room_id: str
    ward_id: str
    beds: List[Bed] = field(default_factory=list)
    isolation_capable: bool = False


@dataclass
class Ward:
    ward_id: str
    name: str
    specialization: CareLevel
    index: int
    rooms: List[Room] = field(default_factory=list)

    def beds(self) -> List[Bed]:
        return [bed for room in self.rooms for bed in room.beds]


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@dataclass
class StaffMember:
    staff_id: str
    full_name: str
    email: str = ""
    phone: str = ""
    username: str = ""
    shift_keys: Set[str] = field(default_factory=set)

    role: StaffRole = field(init=False, default=StaffRole.NURSE)

    def to_record(self) -> Dict[str, Any]:
        return {
            "staff_id":   self.staff_id,
            "full_name":  self.full_name,
            "email":      self.email,
            "phone":      self.phone,
            "username":   self.username,
            "shift_keys": sorted(self.shift_keys),
        }


@dataclass
class Doctor(StaffMember):
    specialty: str = ""
    license_number: str = ""

    def __post_init__(self) -> None:
        self.role = StaffRole.DOCTOR

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        record.update(specialty=self.specialty, license_number=self.license_number)
        return record


@dataclass
class Nurse(StaffMember):
    certification: str = ""

    def __post_init__(self) -> None:
        self.role = StaffRole.NURSE

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        record["certification"] = self.certification
        return record


@dataclass
class Patient:
    patient_id: str
    full_name: str
    condition: str
    email: str = ""
    phone: str = ""
    gender: str = ""
    date_of_birth: str = ""
    needs_isolation: bool = False
    care_level: CareLevel = CareLevel.GENERAL
    mobility: Mobility = Mobility.INDEPENDENT
    diet: str = ""
    allergies: str = ""
    medications: str = ""
    bed_id: Optional[str] = None
    admitted_at: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "patient_id":      self.patient_id,
            "full_name":       self.full_name,
            "condition":       self.condition,
            "email":           self.email,
            "phone":           self.phone,
            "gender":          self.gender,
            "date_of_birth":   self.date_of_birth,
            "needs_isolation": self.needs_isolation,
            "care_level":      self.care_level.value,
            "mobility":        self.mobility.value,
            "diet":            self.diet,
            "allergies":       self.allergies,
            "medications":     self.medications,
            "bed_id":          self.bed_id,
            "admitted_at":     self.admitted_at,
        }


@dataclass
class ShiftSlot:
    key: str
    day: str
    period: str
    start: str
    end: str
    hours: float
    assigned: Set[str] = field(default_factory=set)


# ---------------------------------------------------------------------------
# Configuration structs
# ---------------------------------------------------------------------------

@dataclass
class DoctorInfo:
    staff_id: str
    full_name: str
    license_number: str
    specialty: str = ""
    email: str = ""
    phone: str = ""
    username: str = ""


@dataclass
class NurseInfo:
    staff_id: str
    full_name: str
    certification: str
    email: str = ""
    phone: str = ""
    username: str = ""


@dataclass
class PatientProfile:
    patient_id: str
    full_name: str
    condition: str
    needs_isolation: bool = False
    care_level: str = "general"
    mobility: str = "independent"
    email: str = ""
    phone: str = ""
    gender: str = ""
    date_of_birth: str = ""
    diet: str = ""
    allergies: str = ""
    medications: str = ""

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.__dict__)
        record["care_level"] = enum_text(self.care_level)
        record["mobility"] = enum_text(self.mobility)
        return record


# ---------------------------------------------------------------------------
# Validation (pure)
# ---------------------------------------------------------------------------

def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _check_required(obj: Any, names: List[str]) -> List[FieldError]:
    return [FieldError(n, "is required") for n in names if _blank(getattr(obj, n, None))]


def _check_contact(obj: Any) -> List[FieldError]:
    errors = []
    email = (getattr(obj, "email", "") or "").strip()
    if email and not EMAIL_PATTERN.match(email):
        errors.append(FieldError("email", f"not a valid address: {email!r}"))
    phone = (getattr(obj, "phone", "") or "").strip()
    if phone:
        digits = re.sub(r"[\s\-+()]", "", phone)
        if not PHONE_PATTERN.match(digits):
            errors.append(FieldError("phone", f"expected 8-15 digits: {phone!r}"))
    return errors


def enum_text(raw: Any) -> str:
    if isinstance(raw, Enum):
        raw = raw.value
    return str(raw).strip().lower()


def _check_enum(obj: Any, name: str, enum_cls: type) -> List[FieldError]:
    raw = getattr(obj, name, None)
    allowed = [m.value for m in enum_cls]
    if enum_text(raw) not in allowed:
        return [FieldError(name, f"must be one of {allowed}, got {raw!r}")]
    return []


def validate_doctor_info(info: DoctorInfo) -> List[FieldError]:
    return _check_required(info, ["staff_id", "full_name", "license_number"]) + _check_contact(info)


def validate_nurse_info(info: NurseInfo) -> List[FieldError]:
    return _check_required(info, ["staff_id", "full_name", "certification"]) + _check_contact(info)


def validate_patient_profile(profile: PatientProfile) -> List[FieldError]:
    errors = _check_required(profile, ["patient_id", "full_name", "condition"])
    errors += _check_enum(profile, "care_level", CareLevel)
    errors += _check_enum(profile, "mobility", Mobility)
    errors += _check_contact(profile)
    return errors


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def create_doctor(info: DoctorInfo) -> Doctor:
    errors = validate_doctor_info(info)
    if errors:
        raise ValidationError(errors, subject="doctor")
    return Doctor(
        staff_id=info.staff_id.strip(),
        full_name=info.full_name.strip(),
        email=_clean(info.email),
        phone=_clean(info.phone),
        username=_clean(info.username),
        specialty=_clean(info.specialty),
        license_number=info.license_number.strip(),
    )


def create_nurse(info: NurseInfo) -> Nurse:
    errors = validate_nurse_info(info)
    if errors:
        raise ValidationError(errors, subject="nurse")
    return Nurse(
        staff_id=info.staff_id.strip(),
        full_name=info.full_name.strip(),
        email=_clean(info.email),
        phone=_clean(info.phone),
        username=_clean(info.username),
        certification=_clean(info.certification),
    )


def create_patient(profile: PatientProfile, admitted_at: Optional[datetime] = None) -> Patient:
    errors = validate_patient_profile(profile)
    if errors:
        raise ValidationError(errors, subject="patient")
    return Patient(
        patient_id=profile.patient_id.strip(),
        full_name=profile.full_name.strip(),
        condition=profile.condition.strip(),
        email=_clean(profile.email),
        phone=_clean(profile.phone),
        gender=profile.gender,
        date_of_birth=profile.date_of_birth,
        needs_isolation=bool(profile.needs_isolation),
        care_level=CareLevel(enum_text(profile.care_level)),
        mobility=Mobility(enum_text(profile.mobility)),
        diet=profile.diet,
        allergies=profile.allergies,
        medications=profile.medications,
        admitted_at=(admitted_at or datetime.now()).isoformat(timespec="seconds"),
    )


def profile_from_patient(patient: Patient) -> PatientProfile:
    """Rebuild the admission profile of an existing patient (used for transfers)."""
    return PatientProfile(
        patient_id=patient.patient_id,
        full_name=patient.full_name,
        condition=patient.condition,
        needs_isolation=patient.needs_isolation,
        care_level=patient.care_level.value,
        mobility=patient.mobility.value,
        email=patient.email,
        phone=patient.phone,
        gender=patient.gender,
        date_of_birth=patient.date_of_birth,
        diet=patient.diet,
        allergies=patient.allergies,
        medications=patient.medications,
    )
