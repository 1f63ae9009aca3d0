"""
cli.py — Command-line entry point

Commands:
  seed    --roster CSV              hire staff from a roster into the snapshot
  check   [--full]                  quick health probe (or full compliance run)
  export  --output-dir DIR [--visual]
                                    schedule CSV/Excel, audit CSV, compliance
                                    report, optional occupancy chart

Common options: --snapshot PATH, --settings PATH, --audit-log PATH.

Usage:
  python -m hospital_admin.cli seed --roster config/staff_roster.csv
  python -m hospital_admin.cli check --full
  python -m hospital_admin.cli export --output-dir output/ --visual
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from hospital_admin.config import (
    DEFAULT_AUDIT_PATH,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_ROSTER_PATH,
    DEFAULT_SETTINGS_PATH,
    DEFAULT_SNAPSHOT_PATH,
    load_settings,
    load_staff_roster,
)
from hospital_admin.errors import ConflictError, HospitalAdminError, ValidationError
from hospital_admin.exporter import (
    export_audit_log,
    export_compliance_report,
    export_occupancy_chart,
    export_schedule_to_csv,
    export_schedule_to_excel,
)
from hospital_admin.facility import HospitalSystem
from hospital_admin.models import DoctorInfo

logger = logging.getLogger(__name__)

SEP = "=" * 60


def _open_system(args: argparse.Namespace) -> HospitalSystem:
    settings = load_settings(Path(args.settings))
    system = HospitalSystem(settings.get("hospital_name", "Hospital"), settings=settings)
    system.load(Path(args.snapshot))
    return system


def _close_system(system: HospitalSystem, args: argparse.Namespace, save: bool) -> None:
    if save:
        system.save(Path(args.snapshot))
        system.audit.save(Path(args.audit_log))
    system.shutdown()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_seed(args: argparse.Namespace) -> int:
    system = _open_system(args)
    hired, skipped = 0, 0
    for info in load_staff_roster(Path(args.roster)):
        try:
            if isinstance(info, DoctorInfo):
                system.add_doctor(info, actor="ROSTER")
            else:
                system.add_nurse(info, actor="ROSTER")
            hired += 1
        except (ValidationError, ConflictError) as e:
            skipped += 1
            print(f"  ✗ {info.staff_id or '(no id)'}: {e}")
    system.wait_for_followups()
    _close_system(system, args, save=True)
    print(f"\n  Hired {hired} staff, skipped {skipped}. Snapshot → {args.snapshot}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    system = _open_system(args)
    integrity = system.check_data_integrity()

    print(f"\n{SEP}\n  {system.name} — {'FULL COMPLIANCE CHECK' if args.full else 'QUICK HEALTH CHECK'}\n{SEP}")
    print(f"  Occupancy: {system.registry.occupancy_rate():.1f}% "
          f"({system.registry.occupied_count()}/{system.registry.total_beds()} beds)")
    print(f"  Waiting:   {len(system.directory.waiting_list())} patient(s)")

    if args.full:
        issues = system.run_compliance_check()
    else:
        issues = system.quick_health_check().issues

    if issues:
        for issue in issues:
            print(f"  ✗ [{issue.rule}] {issue.description}")
    else:
        print("  ✓ No compliance issues")

    if not integrity.ok:
        print(f"  ⚠ Degraded mode: {len(integrity.problems)} integrity problem(s)")
        for problem in integrity.problems:
            print(f"      {problem}")
    print(SEP)

    _close_system(system, args, save=args.full)
    return 1 if issues or not integrity.ok else 0


def cmd_export(args: argparse.Namespace) -> int:
    system = _open_system(args)
    out = Path(args.output_dir)
    state = system.capture_state()
    names = {sid: s.full_name for sid, s in state.directory.staff.items()}

    export_schedule_to_csv(state.schedule, out / "schedule.csv", staff_names=names)
    export_schedule_to_excel(state.schedule, out / "schedule.xlsx", staff_names=names)
    issues = system.run_compliance_check()
    export_compliance_report(
        issues,
        out / "compliance_report.txt",
        occupancy_rate=state.occupancy_rate,
        hospital_name=system.name,
        integrity_problems=system.degraded_reasons,
        uncovered_shifts=[k for k, staff in state.schedule.items() if not staff],
    )
    export_audit_log(system.audit.entries(), out / "audit_log.csv")

    if args.visual:
        ward_rates = {
            w.name: system.registry.ward_occupancy(w.ward_id) * 100.0
            for w in system.registry.wards
        }
        export_occupancy_chart(
            ward_rates,
            out / "ward_occupancy.png",
            threshold=system.evaluator.thresholds["overcrowding_rate"],
        )

    _close_system(system, args, save=False)
    print(f"\n  Exports written to {out}/")
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ward administration: staff, beds, shifts, compliance")
    parser.add_argument("--snapshot",  default=str(DEFAULT_SNAPSHOT_PATH), help="Snapshot JSON path")
    parser.add_argument("--settings",  default=str(DEFAULT_SETTINGS_PATH), help="Settings JSON path")
    parser.add_argument("--audit-log", default=str(DEFAULT_AUDIT_PATH),    help="Audit log JSON path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Hire staff from a roster CSV")
    seed.add_argument("--roster", default=str(DEFAULT_ROSTER_PATH), help="Roster CSV path")
    seed.set_defaults(func=cmd_seed)

    check = sub.add_parser("check", help="Run health / compliance checks (exit 1 on issues)")
    check.add_argument("--full", action="store_true", help="Run every compliance rule")
    check.set_defaults(func=cmd_check)

    export = sub.add_parser("export", help="Write schedule, audit and compliance exports")
    export.add_argument("--output-dir", default=str(DEFAULT_OUTPUT_DIR), help="Output directory")
    export.add_argument("--visual", action="store_true", help="Also render a matplotlib ward occupancy chart")
    export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (HospitalAdminError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
