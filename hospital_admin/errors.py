"""
errors.py — Exception taxonomy for ward administration

  validation  → ValidationError   (bad or missing fields, nothing mutated)
  conflict    → ConflictError     (duplicate id, occupied bed, hour cap)
  not-found   → NotFoundError     (unknown bed / staff / slot / patient)
  integrity   → IntegrityError    (registry vs directory mismatch)
  persistence → SnapshotError     (snapshot could not be read or written)

Compliance findings are NOT errors; see compliance.ComplianceIssue.
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class HospitalAdminError(Exception):
    """Base class for every failure raised by hospital_admin."""


class ValidationError(HospitalAdminError):
    """Raised with the full list of failing fields, never just the first."""

    def __init__(self, errors: List[FieldError], subject: str = "record"):
        self.errors = list(errors)
        self.subject = subject
        joined = "; ".join(str(e) for e in self.errors)
        super().__init__(f"Invalid {subject}: {joined}")

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class ConflictError(HospitalAdminError):
    pass


class NotFoundError(HospitalAdminError):
    pass


class IntegrityError(HospitalAdminError):
    pass


class SnapshotError(HospitalAdminError):
    pass
