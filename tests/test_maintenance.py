"""
tests/test_maintenance.py — Recurring background jobs.

Tests: job dispatch, failure isolation, timer re-arming, stop, real system.
"""

import sys
import threading
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hospital_admin.errors import NotFoundError
from hospital_admin.facility import HospitalSystem
from hospital_admin.maintenance import MaintenanceScheduler, RecurringJob


class FakeSystem:

    def __init__(self):
        self.calls = []

    def run_compliance_check(self):
        self.calls.append("compliance")
        return ["issue"]

    def run_maintenance(self, retention_days):
        self.calls.append(("maintenance", retention_days))
        return {"audit_entries_removed": 0, "history_samples_trimmed": 0}

    def suggest_rebalance(self):
        raise RuntimeError("registry unavailable")


class TestRunJobNow:

    def test_dispatch(self):
        system = FakeSystem()
        scheduler = MaintenanceScheduler(system, retention_days=7)
        assert scheduler.run_job_now("compliance_sweep") == ["issue"]
        scheduler.run_job_now("maintenance")
        assert system.calls == ["compliance", ("maintenance", 7)]

    def test_failure_is_contained(self):
        errors = []
        scheduler = MaintenanceScheduler(FakeSystem(), on_error=lambda n, e: errors.append((n, e)))
        assert scheduler.run_job_now("rebalance") is None
        assert scheduler.jobs["rebalance"].failures == 1
        assert errors[0][0] == "rebalance"
        assert isinstance(errors[0][1], RuntimeError)

    def test_unknown_job(self):
        with pytest.raises(NotFoundError):
            MaintenanceScheduler(FakeSystem()).run_job_now("defrag")

    def test_default_intervals(self):
        scheduler = MaintenanceScheduler(FakeSystem())
        assert scheduler.jobs["compliance_sweep"].interval == 3600
        assert scheduler.jobs["maintenance"].interval == 21600
        assert scheduler.jobs["rebalance"].interval == 1800


class TestTimers:

    def test_job_rearms_until_stopped(self):
        done = threading.Event()
        results = []

        def on_result(name, result):
            results.append(result)
            if len(results) >= 3:
                done.set()

        counter = iter(range(100))
        job = RecurringJob("tick", 0.01, lambda: next(counter), on_result=on_result)
        job.start()
        try:
            assert done.wait(timeout=5)
        finally:
            job.stop()
        assert not job.running
        assert results[:3] == [0, 1, 2]

    def test_failing_job_keeps_running(self):
        done = threading.Event()
        failures = []

        def on_error(name, exc):
            failures.append(exc)
            if len(failures) >= 2:
                done.set()

        def boom():
            raise ValueError("bad tick")

        job = RecurringJob("boom", 0.01, boom, on_error=on_error)
        job.start()
        try:
            assert done.wait(timeout=5)
        finally:
            job.stop()
        assert job.failures >= 2

    def test_raising_callbacks_do_not_stop_job(self):
        done = threading.Event()
        results = []

        def on_result(name, result):
            results.append(result)
            if len(results) >= 3:
                done.set()
            raise RuntimeError("callback broke")

        job = RecurringJob("flaky-callback", 0.01, lambda: "ok", on_result=on_result)
        job.start()
        try:
            assert done.wait(timeout=5)
        finally:
            job.stop()
        assert job.runs >= 3
        assert job.failures == 0

    def test_raising_error_callback_is_contained(self):
        def on_error(name, exc):
            raise RuntimeError("reporter down")

        def boom():
            raise ValueError("bad tick")

        job = RecurringJob("boom", 60, boom, on_error=on_error)
        assert job.run_once() is None
        assert job.failures == 1

    def test_scheduler_start_stop(self):
        scheduler = MaintenanceScheduler(FakeSystem(), intervals={"compliance_sweep": 60})
        scheduler.start()
        assert all(job.running for job in scheduler.jobs.values())
        scheduler.stop()
        assert not any(job.running for job in scheduler.jobs.values())


class TestWithHospitalSystem:

    def test_background_jobs_on_real_system(self):
        system = HospitalSystem("Jobs General")
        try:
            scheduler = system.start_background_jobs()
            issues = scheduler.run_job_now("compliance_sweep")
            assert issues  # no staff yet
            summary = scheduler.run_job_now("maintenance")
            assert summary["history_samples_trimmed"] == 0
            assert scheduler.run_job_now("rebalance") == []
        finally:
            system.shutdown()
        assert not any(job.running for job in system.scheduler.jobs.values())
