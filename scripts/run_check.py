#!/usr/bin/env python3
"""
Compliance check - load the saved facility snapshot and report issues

Usage:
  python scripts/run_check.py check --full
  python scripts/run_check.py seed --roster config/staff_roster.csv

Exit code 1 when issues are found.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hospital_admin.cli import main

if __name__ == "__main__":
    sys.exit(main())
