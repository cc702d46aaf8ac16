#!/usr/bin/env python3
"""Compare the rule tables of the core and regulatory databases.

Usage:
    CORE_DATABASE_URL=... REGULATORY_DATABASE_URL=... python scripts/verify_rule_parity.py

Prints PASS/FAIL per table with the mismatching keys. Exits 1 on any FAIL.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.orm import Session

from regtruth.config import get_settings
from regtruth.db.session import build_engine
from regtruth.ops.parity import compare_rule_tables

MAX_KEYS_SHOWN = 20


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Rule table parity check")
    parser.add_argument("--core-url", default=settings.core_database_url)
    parser.add_argument("--regulatory-url", default=settings.regulatory_database_url)
    args = parser.parse_args()

    if not args.core_url or not args.regulatory_url:
        print("ERROR: both CORE_DATABASE_URL and REGULATORY_DATABASE_URL are required", file=sys.stderr)
        return 1

    core_engine = build_engine(args.core_url)
    regulatory_engine = build_engine(args.regulatory_url)
    try:
        with Session(core_engine) as core, Session(regulatory_engine) as regulatory:
            results = compare_rule_tables(core, regulatory)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        core_engine.dispose()
        regulatory_engine.dispose()

    for r in results:
        status = "PASS" if r.passed else "FAIL"
        print(f"{status} table={r.table} core={r.core_count} regulatory={r.regulatory_count}")
        for key in r.missing_in_core[:MAX_KEYS_SHOWN]:
            print(f"  missing_in_core={key}")
        for key in r.missing_in_regulatory[:MAX_KEYS_SHOWN]:
            print(f"  missing_in_regulatory={key}")
    failed = sum(1 for r in results if not r.passed)
    print(f"passed={len(results) - failed} failed={failed}")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
