"""
snapshot.py — Versioned facility snapshot (JSON)

Schema v1 — flat records joined by id:
  {
    "schema_version": 1,
    "saved_at":       "2026-03-02T08:00:00",
    "hospital_name":  "...",
    "doctors":        [{staff_id, full_name, ..., shift_keys: [...]}],
    "nurses":         [{staff_id, full_name, ..., shift_keys: [...]}],
    "patients":       [{patient_id, ..., bed_id}],
    "beds":           {bed_id: patient_id | null},
    "schedule":       {slot_key: [staff_id, ...]},
    "waiting_list":   [{profile: {...}, queued_at}],
    "occupancy_history": [[timestamp, rate], ...]
  }

save_snapshot() writes a temp file beside the target and os.replace()s it,
so a crash mid-write never leaves a truncated snapshot.  load_snapshot()
returns None when the file is absent (fresh start).
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from hospital_admin.directory import DirectorySnapshot, WaitingEntry
from hospital_admin.errors import SnapshotError
from hospital_admin.models import CareLevel, Doctor, Mobility, Nurse, Patient, PatientProfile

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1


@dataclass
class FacilityState:
    """Consistent copy of every store, taken by HospitalSystem.capture_state()."""
    hospital_name: str
    directory: DirectorySnapshot
    beds: Dict[str, Optional[str]]
    schedule: Dict[str, List[str]]
    occupancy_rate: float
    occupancy_history: List[Tuple[str, float]] = field(default_factory=list)
    captured_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------

def state_to_document(state: FacilityState) -> Dict[str, Any]:
    d = state.directory
    return {
        "schema_version":    SNAPSHOT_SCHEMA_VERSION,
        "saved_at":          datetime.now().isoformat(timespec="seconds"),
        "hospital_name":     state.hospital_name,
        "doctors":           [doc.to_record() for doc in d.doctors.values()],
        "nurses":            [nurse.to_record() for nurse in d.nurses.values()],
        "patients":          [p.to_record() for p in d.patients.values()],
        "beds":              dict(state.beds),
        "schedule":          {k: list(v) for k, v in state.schedule.items()},
        "waiting_list":      [
            {"profile": e.profile.to_record(), "queued_at": e.queued_at}
            for e in d.waiting
        ],
        "occupancy_history": [[ts, rate] for ts, rate in state.occupancy_history],
    }


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------

def _doctor_from_record(rec: Dict[str, Any]) -> Doctor:
    return Doctor(
        staff_id=rec["staff_id"],
        full_name=rec["full_name"],
        email=rec.get("email", ""),
        phone=rec.get("phone", ""),
        username=rec.get("username", ""),
        shift_keys=set(rec.get("shift_keys", [])),
        specialty=rec.get("specialty", ""),
        license_number=rec.get("license_number", ""),
    )


def _nurse_from_record(rec: Dict[str, Any]) -> Nurse:
    return Nurse(
        staff_id=rec["staff_id"],
        full_name=rec["full_name"],
        email=rec.get("email", ""),
        phone=rec.get("phone", ""),
        username=rec.get("username", ""),
        shift_keys=set(rec.get("shift_keys", [])),
        certification=rec.get("certification", ""),
    )


def _patient_from_record(rec: Dict[str, Any]) -> Patient:
    return Patient(
        patient_id=rec["patient_id"],
        full_name=rec["full_name"],
        condition=rec.get("condition", ""),
        email=rec.get("email", ""),
        phone=rec.get("phone", ""),
        gender=rec.get("gender", ""),
        date_of_birth=rec.get("date_of_birth", ""),
        needs_isolation=bool(rec.get("needs_isolation", False)),
        care_level=CareLevel(rec.get("care_level", "general")),
        mobility=Mobility(rec.get("mobility", "independent")),
        diet=rec.get("diet", ""),
        allergies=rec.get("allergies", ""),
        medications=rec.get("medications", ""),
        bed_id=rec.get("bed_id"),
        admitted_at=rec.get("admitted_at"),
    )


def document_to_state(doc: Dict[str, Any]) -> FacilityState:
    """Rebuild a FacilityState; raises SnapshotError on an unsupported schema."""
    version = doc.get("schema_version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot schema version {version!r} "
            f"(expected {SNAPSHOT_SCHEMA_VERSION})"
        )
    try:
        doctors = [_doctor_from_record(r) for r in doc.get("doctors", [])]
        nurses = [_nurse_from_record(r) for r in doc.get("nurses", [])]
        patients = [_patient_from_record(r) for r in doc.get("patients", [])]
        waiting = [
            WaitingEntry(profile=PatientProfile(**w["profile"]), queued_at=w["queued_at"])
            for w in doc.get("waiting_list", [])
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError(f"Malformed snapshot record: {e}") from e

    beds = dict(doc.get("beds", {}))
    occupied = sum(1 for v in beds.values() if v)
    return FacilityState(
        hospital_name=doc.get("hospital_name", ""),
        directory=DirectorySnapshot(
            doctors={d.staff_id: d for d in doctors},
            nurses={n.staff_id: n for n in nurses},
            patients={p.patient_id: p for p in patients},
            waiting=waiting,
        ),
        beds=beds,
        schedule={k: list(v) for k, v in doc.get("schedule", {}).items()},
        occupancy_rate=(occupied * 100.0 / len(beds)) if beds else 0.0,
        occupancy_history=[(ts, float(rate)) for ts, rate in doc.get("occupancy_history", [])],
        captured_at=doc.get("saved_at", ""),
    )


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------

def save_snapshot(state: FacilityState, path: Path) -> Path:
    """Atomically write the snapshot (temp file + os.replace)."""
    path = Path(path)
    document = state_to_document(state)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        logger.error(f"Failed to save snapshot to {path}: {e}")
        raise SnapshotError(f"Could not write snapshot {path}: {e}") from e

    logger.info(
        f"Snapshot saved → {path}: {len(document['doctors'])} doctors, "
        f"{len(document['nurses'])} nurses, {len(document['patients'])} patients"
    )
    return path


def load_snapshot(path: Path) -> Optional[FacilityState]:
    """Load a snapshot. Returns None if the file does not exist."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Snapshot not found: {path}. Starting with an empty facility.")
        return None
    try:
        with open(path) as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Could not read snapshot {path}: {e}") from e
    if not isinstance(document, dict):
        raise SnapshotError(f"Snapshot {path} is not a JSON object")
    return document_to_state(document)
