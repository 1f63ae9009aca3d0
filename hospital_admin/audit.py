"""
audit.py — Append-only activity log

Categories: STAFF, PATIENT, COMPLIANCE, SYSTEM.  Each entry records the
action tag, the actor, a human-readable description and a timestamp.
Entries are mirrored to the module logger and can be persisted to JSON;
the core never reads them back for decisions.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CATEGORY_STAFF = "STAFF"
CATEGORY_PATIENT = "PATIENT"
CATEGORY_COMPLIANCE = "COMPLIANCE"
CATEGORY_SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class AuditEntry:
    category: str
    action: str
    actor: str
    description: str
    timestamp: str

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


class ActivityLogger:

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[AuditEntry] = []

    def log(
        self,
        category: str,
        action: str,
        description: str,
        actor: str = "SYSTEM",
        when: Optional[datetime] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            category=category,
            action=action,
            actor=actor,
            description=description,
            timestamp=(when or datetime.now()).isoformat(timespec="seconds"),
        )
        with self._lock:
            self._entries.append(entry)
        level = logging.WARNING if category == CATEGORY_COMPLIANCE else logging.INFO
        logger.log(level, f"[{category}] {action} ({actor}): {description}")
        return entry

    def log_staff_action(self, action: str, actor: str, description: str) -> AuditEntry:
        return self.log(CATEGORY_STAFF, action, description, actor=actor)

    def log_patient_action(self, action: str, actor: str, description: str) -> AuditEntry:
        return self.log(CATEGORY_PATIENT, action, description, actor=actor)

    def log_compliance_issue(self, rule: str, description: str) -> AuditEntry:
        return self.log(CATEGORY_COMPLIANCE, rule, description)

    def log_system_event(self, action: str, description: str) -> AuditEntry:
        return self.log(CATEGORY_SYSTEM, action, description)

    def entries(self, category: Optional[str] = None) -> List[AuditEntry]:
        with self._lock:
            if category is None:
                return list(self._entries)
            return [e for e in self._entries if e.category == category]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def cleanup_old_logs(self, max_age_days: int, now: Optional[datetime] = None) -> int:
        """Drop entries older than max_age_days. Returns the number removed."""
        cutoff = (now or datetime.now()) - timedelta(days=max_age_days)
        with self._lock:
            before = len(self._entries)
            self._entries = [
                e for e in self._entries
                if datetime.fromisoformat(e.timestamp) >= cutoff
            ]
            removed = before - len(self._entries)
        if removed:
            logger.info(f"Audit log trimmed: {removed} entries older than {max_age_days} days")
        return removed

    def save(self, path: Path) -> Path:
        """Append current entries to a JSON list file (created if missing)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        existing: List[Dict[str, Any]] = []
        if path.exists():
            with open(path) as f:
                data = json.load(f)
                existing = data if isinstance(data, list) else [data]
        existing.extend(e.to_record() for e in self.entries())
        with open(path, "w") as f:
            json.dump(existing, f, indent=2)
        logger.info(f"Audit log saved → {path} ({len(existing)} entries)")
        return path
