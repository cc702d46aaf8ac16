#!/usr/bin/env python3
"""Hand PENDING content-sync events to the Celery queue.

Usage:
    python scripts/drain_content_sync.py [--limit N]

Safe to run repeatedly: each event moves PENDING -> ENQUEUED exactly once.
Exits 0 when every pending event was enqueued, 1 otherwise.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from regtruth.content_sync.drainer import drain_pending
from regtruth.content_sync.tasks import CeleryQueueBackend
from regtruth.db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Drain PENDING content-sync events")
    parser.add_argument("--limit", type=int, default=None)
    args = parser.parse_args()

    db = SessionLocal()
    try:
        counts = drain_pending(db, CeleryQueueBackend(), limit=args.limit)
        print(
            f"pending={counts['pending']} "
            f"enqueued={counts['enqueued']} "
            f"skipped={counts['skipped']} "
            f"errors={counts['errors']}"
        )
        return 0 if counts["errors"] == 0 else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
