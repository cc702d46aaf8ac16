#!/usr/bin/env python3
"""Merge duplicate evidence rows (same url and content hash) into the newest one.

Usage:
    python scripts/dedupe_evidence.py --dry-run
    python scripts/dedupe_evidence.py

Source pointers and agent runs of older duplicates are moved to the survivor before the
older rows are soft-deleted. Exits 1 if any group failed or duplicates remain.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from regtruth.db.session import SessionLocal
from regtruth.evidence.dedup import merge_duplicate_evidence


def main() -> int:
    parser = argparse.ArgumentParser(description="Merge duplicate evidence rows")
    parser.add_argument("--dry-run", action="store_true", help="Only report duplicate groups")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        report = merge_duplicate_evidence(db, dry_run=args.dry_run)
        print(
            f"dry_run={args.dry_run} "
            f"groups_found={report.groups_found} "
            f"groups_merged={report.groups_merged} "
            f"pointers_migrated={report.pointers_migrated} "
            f"agent_runs_migrated={report.agent_runs_migrated} "
            f"artifacts_adopted={report.artifacts_adopted} "
            f"rules_reset={report.rules_reset} "
            f"evidence_soft_deleted={report.evidence_soft_deleted} "
            f"remaining_groups={report.remaining_groups}"
        )
        for err in report.errors:
            print(f"error={err}", file=sys.stderr)
        if args.dry_run:
            return 0
        return 0 if not report.errors and report.remaining_groups == 0 else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
