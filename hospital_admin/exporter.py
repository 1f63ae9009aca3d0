"""
exporter.py — Export Layer for Ward Administration

Outputs:
  - CSV: flat (slot, day, period, staff) weekly schedule
  - Excel (.xlsx): formatted day × period grid with staff names
  - CSV: audit trail (timestamp, category, action, actor, description)
  - Compliance report (.txt): findings, occupancy and integrity status
  - Ward occupancy chart (.png, matplotlib) — optional

Usage:
  from hospital_admin.exporter import export_schedule_to_csv, export_schedule_to_excel
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from hospital_admin.facility_config import DAYS_OF_WEEK, SHIFT_DEFINITIONS, split_slot_key

logger = logging.getLogger(__name__)

Schedule = Dict[str, List[str]]   # slot_key → [staff_id]

UNCOVERED_LABEL = "UNCOVERED"


def _display(staff_ids: List[str], staff_names: Dict[str, str]) -> List[str]:
    return [staff_names.get(sid, sid) for sid in staff_ids]


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_schedule_to_csv(
    schedule: Schedule,
    output_path: Path,
    staff_names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export the weekly schedule to flat CSV: slot, day, period, staff.

    One row per assignment; an uncovered slot gets a single row with an
    empty staff cell so every slot appears in the file.
    """
    import csv
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = staff_names or {}

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["slot", "day", "period", "staff"])
        writer.writeheader()
        for key, staff_ids in schedule.items():
            day, period = split_slot_key(key)
            people = _display(staff_ids, names) or [""]
            for person in people:
                writer.writerow({"slot": key, "day": day, "period": period, "staff": person})

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def export_schedule_to_excel(
    schedule: Schedule,
    output_path: Path,
    staff_names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export the weekly schedule to a formatted Excel grid.

    Rows = day (monday … sunday), columns = period, cells = staff names
    joined with "; " (or UNCOVERED).
    """
    import pandas as pd

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = staff_names or {}

    rows = []
    for key, staff_ids in schedule.items():
        day, period = split_slot_key(key)
        people = _display(staff_ids, names) or [UNCOVERED_LABEL]
        for person in people:
            rows.append({"Day": day.capitalize(), "Period": period.capitalize(), "Staff": person})

    df = pd.DataFrame(rows)
    if df.empty:
        df.to_excel(output_path, index=False)
        logger.info(f"Excel exported (empty) → {output_path}")
        return

    grid = df.pivot_table(
        index="Day",
        columns="Period",
        values="Staff",
        aggfunc=lambda x: "; ".join(x),
    )
    day_order = [d.capitalize() for d in DAYS_OF_WEEK if d.capitalize() in grid.index]
    period_order = [p.capitalize() for p in SHIFT_DEFINITIONS if p.capitalize() in grid.columns]
    grid = grid.reindex(index=day_order, columns=period_order)
    grid.columns.name = None

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Schedule")
        _format_excel_grid(writer, "Schedule")

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str) -> None:
    """Header colours, column widths, and UNCOVERED cells highlighted."""
    try:
        from openpyxl.styles import Alignment, Font, PatternFill
        ws = writer.sheets[sheet_name]
        header_fill = PatternFill("solid", fgColor="1F4E79")
        header_font = Font(bold=True, color="FFFFFF")
        uncovered_fill = PatternFill("solid", fgColor="F8CBAD")

        for cell in ws[1]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

        for col in ws.columns:
            max_len = max((len(str(c.value)) for c in col if c.value), default=8)
            ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)

        for row in ws.iter_rows(min_row=2):
            for cell in row:
                if cell.value == UNCOVERED_LABEL:
                    cell.fill = uncovered_fill

    except Exception as e:
        logger.warning(f"Excel formatting failed (non-critical): {e}")


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

def export_audit_log(entries: Iterable[Any], output_path: Path) -> int:
    """Write audit.AuditEntry records to CSV. Returns the row count."""
    import csv
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fields = ["timestamp", "category", "action", "actor", "description"]

    count = 0
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fields)
        writer.writeheader()
        for entry in entries:
            writer.writerow({name: getattr(entry, name) for name in fields})
            count += 1

    logger.info(f"Audit log exported → {output_path} ({count} entries)")
    return count


# ---------------------------------------------------------------------------
# Compliance Report
# ---------------------------------------------------------------------------

def export_compliance_report(
    issues: List[Any],
    output_path: Path,
    occupancy_rate: float,
    hospital_name: str = "",
    integrity_problems: Optional[List[str]] = None,
    uncovered_shifts: Optional[List[str]] = None,
) -> str:
    """
    Export the compliance report (text format).

    Includes:
      - Overall status and bed occupancy
      - Each finding with its rule id
      - Uncovered shift keys
      - Registry / directory integrity problems (degraded mode)
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    sep = "=" * 70
    status = "✓ COMPLIANT" if not issues else f"✗ {len(issues)} ISSUE(S)"
    lines = [
        sep,
        f"  COMPLIANCE REPORT{(' — ' + hospital_name) if hospital_name else ''}",
        sep,
        "",
        f"  Status:            {status}",
        f"  Bed occupancy:     {occupancy_rate:.1f}%",
        "",
        "─" * 70,
        "  Findings",
        "─" * 70,
    ]
    if issues:
        for issue in issues:
            lines.append(f"  [{issue.rule}] {issue.description}")
    else:
        lines.append("  (none)")

    if uncovered_shifts is not None:
        lines += [
            "",
            "─" * 70,
            "  Uncovered Shifts",
            "─" * 70,
        ]
        lines.extend(f"  {key}" for key in uncovered_shifts)
        if not uncovered_shifts:
            lines.append("  (all shifts covered)")

    if integrity_problems:
        lines += [
            "",
            "─" * 70,
            "  Integrity (DEGRADED MODE)",
            "─" * 70,
        ]
        lines.extend(f"  {p}" for p in integrity_problems)

    lines.append("")
    lines.append(sep)

    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Compliance report exported → {output_path}")
    return report_text


# ---------------------------------------------------------------------------
# Occupancy chart (matplotlib)
# ---------------------------------------------------------------------------

def export_occupancy_chart(
    ward_occupancy: Dict[str, float],
    output_path: Path,
    threshold: float = 95.0,
) -> Optional[Path]:
    """
    Bar chart of per-ward occupancy (percent) with the overcrowding line.
    Returns None when matplotlib is unavailable.
    """
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not installed — skip occupancy chart. Install with: pip install matplotlib")
        return None

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    wards = list(ward_occupancy)
    rates = [ward_occupancy[w] for w in wards]
    colors = ["#b22222" if r > threshold else "#4a90d9" for r in rates]

    fig, ax = plt.subplots(figsize=(8, 4.5))
    ax.bar(wards, rates, color=colors, alpha=0.85, width=0.5)
    ax.axhline(threshold, color="crimson", linewidth=1.5, linestyle="--", label=f"Overcrowding: {threshold:.0f}%")
    ax.set_ylim(0, 105)
    ax.set_ylabel("Occupancy (%)")
    ax.set_title("Ward Occupancy")
    ax.legend(loc="upper right")
    plt.tight_layout()
    fig.savefig(output_path, dpi=120)
    plt.close(fig)

    logger.info(f"Occupancy chart exported → {output_path}")
    return output_path
