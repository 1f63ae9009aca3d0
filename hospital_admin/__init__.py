"""
Ward Administration Core

Modules:
- facility_config: Ward layout, shift grid, policy constants
- models: Staff / patient records and validation
- beds: Bed registry (wards, rooms, beds, occupancy)
- bed_finder: Weighted bed suggestion for admissions
- schedule: Weekly shift schedule with daily hour limits
- compliance: Staffing, coverage and occupancy rules
- directory: Staff, patients and the admission waiting list
- facility: HospitalSystem facade tying the stores together
- maintenance: Recurring background jobs
- snapshot / audit / exporter / config: persistence and I/O
"""

from .config import (
    get_config,
    load_settings,
    load_staff_roster,
)

from .errors import (
    ConflictError,
    HospitalAdminError,
    IntegrityError,
    NotFoundError,
    SnapshotError,
    ValidationError,
)

from .models import (
    DoctorInfo,
    NurseInfo,
    PatientProfile,
)

from .facility import (
    AdmissionResult,
    HospitalSystem,
    IntegrityReport,
    MoveResult,
    TransferSuggestion,
)

__all__ = [
    "get_config",
    "load_settings",
    "load_staff_roster",
    "ConflictError",
    "HospitalAdminError",
    "IntegrityError",
    "NotFoundError",
    "SnapshotError",
    "ValidationError",
    "DoctorInfo",
    "NurseInfo",
    "PatientProfile",
    "AdmissionResult",
    "HospitalSystem",
    "IntegrityReport",
    "MoveResult",
    "TransferSuggestion",
]
