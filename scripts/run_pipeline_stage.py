#!/usr/bin/env python3
"""Run one pipeline stage locally.

Usage:
    python scripts/run_pipeline_stage.py parse
    python scripts/run_pipeline_stage.py release --idempotency-key 2026-10-16

Stages: parse, extract, verify, compose, arbitrate, review, release, revalidate,
effective_scan, drain_content_sync, mark_stale.
Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from regtruth.db.session import SessionLocal
from regtruth.pipeline.executor import run_stage
from regtruth.pipeline.stages import STAGE_REGISTRY


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("job_type", choices=sorted(STAGE_REGISTRY))
    parser.add_argument("--idempotency-key", default=None)
    parser.add_argument("--limit", type=int, default=None, help="Batch size for parse/extract/verify")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        result = run_stage(db, args.job_type, idempotency_key=args.idempotency_key, limit=args.limit)
        print(" ".join(f"{k}={v}" for k, v in result.items() if k != "error"))
        if result.get("error"):
            print(f"error={result['error']}", file=sys.stderr)
        return 0 if result["status"] == "completed" else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
