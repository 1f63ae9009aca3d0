"""
maintenance.py — Recurring background jobs

Three independent jobs, each on its own threading.Timer chain:

  compliance_sweep  every hour        full compliance evaluation
  maintenance       every six hours   audit log retention + history trimming
  rebalance         every 30 minutes  transfer suggestions (read-only)

A job run never propagates an exception: failures are logged with the
traceback, reported through on_error, and the job simply re-arms for its
next interval.  Timers are daemon threads so an unstopped scheduler never
blocks interpreter exit.

Usage:
  scheduler = MaintenanceScheduler(system)
  scheduler.start()
  ...
  scheduler.stop()
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from hospital_admin.errors import NotFoundError
from hospital_admin.facility_config import AUDIT_RETENTION_DAYS, MAINTENANCE_INTERVALS

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, Any], None]
ErrorCallback = Callable[[str, BaseException], None]


class RecurringJob:
    """Runs func every `interval` seconds until stopped."""

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Any],
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.name = name
        self.interval = interval
        self.func = func
        self.on_result = on_result
        self.on_error = on_error
        self.runs = 0
        self.failures = 0
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        with self._lock:
            if not self._stopped:
                return
            self._stopped = False
            self._arm()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval, self._tick)
        self._timer.daemon = True
        self._timer.name = f"job-{self.name}"
        self._timer.start()

    def _tick(self) -> None:
        try:
            self.run_once()
        finally:
            with self._lock:
                if not self._stopped:
                    self._arm()

    def run_once(self) -> Any:
        """Run the job now. Returns its result, or None when it failed."""
        self.runs += 1
        try:
            result = self.func()
        except Exception as e:
            self.failures += 1
            logger.exception(f"Background job {self.name} failed")
            self._notify(self.on_error, e)
            return None
        self._notify(self.on_result, result)
        return result

    def _notify(self, callback: Optional[Callable[[str, Any], None]], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(self.name, payload)
        except Exception:
            logger.exception(f"Callback for background job {self.name} failed")


class MaintenanceScheduler:
    """
    Owns the recurring jobs for one HospitalSystem.

    system: anything exposing run_compliance_check(), run_maintenance(days)
            and suggest_rebalance() — facility.HospitalSystem.
    """

    def __init__(
        self,
        system: Any,
        intervals: Optional[Dict[str, float]] = None,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        retention_days: int = AUDIT_RETENTION_DAYS,
    ):
        self.system = system
        self.intervals = dict(MAINTENANCE_INTERVALS)
        self.intervals.update(intervals or {})
        self.on_result = on_result or self._log_result
        self.on_error = on_error
        self.retention_days = retention_days

        self.jobs: Dict[str, RecurringJob] = {
            name: RecurringJob(name, self.intervals[name], func, self.on_result, self.on_error)
            for name, func in (
                ("compliance_sweep", self._compliance_sweep),
                ("maintenance",      self._maintenance),
                ("rebalance",        self._rebalance),
            )
        }

    # -----------------------------------------------------------------------
    # Jobs
    # -----------------------------------------------------------------------

    def _compliance_sweep(self) -> List[Any]:
        return self.system.run_compliance_check()

    def _maintenance(self) -> Dict[str, int]:
        return self.system.run_maintenance(self.retention_days)

    def _rebalance(self) -> List[Any]:
        return self.system.suggest_rebalance()

    @staticmethod
    def _log_result(name: str, result: Any) -> None:
        if isinstance(result, list):
            logger.info(f"Background job {name}: {len(result)} finding(s)")
        else:
            logger.info(f"Background job {name}: {result}")

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def start(self) -> None:
        for job in self.jobs.values():
            job.start()
        schedule = ", ".join(f"{n}={j.interval:g}s" for n, j in self.jobs.items())
        logger.info(f"Maintenance scheduler started ({schedule})")

    def stop(self) -> None:
        for job in self.jobs.values():
            job.stop()
        logger.info("Maintenance scheduler stopped")

    def run_job_now(self, name: str) -> Any:
        job = self.jobs.get(name)
        if job is None:
            raise NotFoundError(f"Unknown background job: {name}")
        return job.run_once()
