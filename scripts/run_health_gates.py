#!/usr/bin/env python3
"""Evaluate pipeline health gates for cron / CI gating.

Usage:
    python scripts/run_health_gates.py

Prints one line per gate and pass/warn/fail counts. Exits 1 on any FAIL.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from regtruth.db.session import SessionLocal
from regtruth.ops.health_gates import GateStatus, run_health_gates, summarize


def main() -> int:
    db = SessionLocal()
    try:
        results = run_health_gates(db)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    for r in results:
        print(
            f"{r.status.value} gate={r.name} value={r.value} "
            f"warn={r.warn_threshold} fail={r.fail_threshold} detail={r.detail!r}"
        )
    counts = summarize(results)
    print(f"pass={counts['PASS']} warn={counts['WARN']} fail={counts['FAIL']}")
    return 1 if counts[GateStatus.FAIL.value] else 0


if __name__ == "__main__":
    sys.exit(main())
