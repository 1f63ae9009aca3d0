"""
tests/test_config.py — Roster and settings loaders, CLI smoke test.
"""

import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hospital_admin.cli import main
from hospital_admin.config import (
    DEFAULT_ROSTER_PATH,
    get_config,
    load_settings,
    load_staff_roster,
)
from hospital_admin.facility import HospitalSystem
from hospital_admin.models import DoctorInfo, NurseInfo

ROSTER_HEADER = "staff_id,role,full_name,email,phone,username,specialty,license_number,certification\n"


@pytest.fixture
def roster_file(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_text(
        ROSTER_HEADER
        + "D1,doctor,Amelia Hart,amelia@example.org,,ahart,Cardiology,LIC-1,\n"
        + "N1,Nurse,Grace Mwangi,,5550101234,gmwangi,,,RN\n"
        + "X1,porter,Sam Cole,,,,,,\n"
    )
    return path


class TestRoster:

    def test_load_roster(self, roster_file):
        staff = load_staff_roster(roster_file)
        assert len(staff) == 2
        doctor, nurse = staff
        assert isinstance(doctor, DoctorInfo)
        assert doctor.license_number == "LIC-1"
        assert doctor.phone == ""
        assert isinstance(nurse, NurseInfo)
        assert nurse.certification == "RN"
        assert nurse.phone == "5550101234"

    def test_missing_roster(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_staff_roster(tmp_path / "nope.csv")

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("id,name\n1,Someone\n")
        with pytest.raises(ValueError):
            load_staff_roster(path)

    def test_sample_roster_hires_cleanly(self):
        system = HospitalSystem("Sample")
        try:
            for info in load_staff_roster(DEFAULT_ROSTER_PATH):
                if isinstance(info, DoctorInfo):
                    system.add_doctor(info)
                else:
                    system.add_nurse(info)
            assert len(system.directory.doctors) == 2
            assert len(system.directory.nurses) == 4
        finally:
            system.shutdown()


class TestSettings:

    def test_defaults_when_missing(self, tmp_path):
        assert load_settings(tmp_path / "none.json") == get_config()

    def test_overrides_merge(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "hospital_name": "St. Elsewhere",
            "compliance_thresholds": {"min_nurses": 3},
            "isolation_rooms": ["A1"],
            "unknown_key": 1,
        }))
        settings = load_settings(path)
        assert settings["hospital_name"] == "St. Elsewhere"
        assert settings["compliance_thresholds"]["min_nurses"] == 3
        assert settings["compliance_thresholds"]["min_doctors"] == 1
        assert settings["isolation_rooms"] == {"A1"}
        assert "unknown_key" not in settings

    def test_hour_cap_kept_in_sync(self, tmp_path):
        top = tmp_path / "top.json"
        top.write_text(json.dumps({"max_hours_per_day": 12}))
        settings = load_settings(top)
        assert settings["compliance_thresholds"]["max_hours_per_day"] == 12

        nested = tmp_path / "nested.json"
        nested.write_text(json.dumps({"compliance_thresholds": {"max_hours_per_day": 10}}))
        settings = load_settings(nested)
        assert settings["max_hours_per_day"] == 10
        system = HospitalSystem("Synced", settings=settings)
        try:
            assert system.schedule.max_hours_per_day == 10
            assert system.evaluator.thresholds["max_hours_per_day"] == 10
        finally:
            system.shutdown()

    def test_settings_drive_system(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"isolation_rooms": ["A1"]}))
        system = HospitalSystem("Custom", settings=load_settings(path))
        try:
            capable = [b.bed_id for b in system.registry.iter_beds() if b.isolation_capable]
            assert capable == ["A1-1", "A1-2"]
        finally:
            system.shutdown()


class TestCli:

    def test_seed_then_check(self, roster_file, tmp_path):
        common = [
            "--snapshot", str(tmp_path / "state.json"),
            "--settings", str(tmp_path / "settings.json"),
            "--audit-log", str(tmp_path / "audit.json"),
        ]
        assert main(common + ["seed", "--roster", str(roster_file)]) == 0
        assert (tmp_path / "state.json").exists()
        # one nurse, no shifts: quick check must fail
        assert main(common + ["check"]) == 1

    def test_export(self, roster_file, tmp_path):
        pytest.importorskip("openpyxl")
        common = ["--snapshot", str(tmp_path / "state.json"),
                  "--settings", str(tmp_path / "settings.json"),
                  "--audit-log", str(tmp_path / "audit.json")]
        main(common + ["seed", "--roster", str(roster_file)])
        out = tmp_path / "out"
        assert main(common + ["export", "--output-dir", str(out)]) == 0
        for name in ("schedule.csv", "schedule.xlsx", "compliance_report.txt", "audit_log.csv"):
            assert (out / name).exists()
