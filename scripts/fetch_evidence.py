#!/usr/bin/env python3
"""Fetch source URLs and store them as evidence.

Usage:
    python scripts/fetch_evidence.py https://narodne-novine.nn.hr/clanci/sluzbeni/2024_12_152_2505.html
    python scripts/fetch_evidence.py --authority LAW URL [URL ...]

Each URL is fetched once (one retry on timeout) and stored get-or-create by
(url, content hash). Exits 1 if any URL could not be fetched.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from regtruth.db.session import SessionLocal
from regtruth.evidence.fetcher import fetch_source
from regtruth.evidence.store import store_evidence
from regtruth.models.enums import AuthorityLevel


async def _fetch_all(urls: list[str]):
    return await asyncio.gather(*(fetch_source(u) for u in urls))


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch and store evidence")
    parser.add_argument("urls", nargs="+")
    parser.add_argument("--authority", choices=[a.value for a in AuthorityLevel], default=None)
    args = parser.parse_args()

    fetched = asyncio.run(_fetch_all(args.urls))
    failures = 0
    db = SessionLocal()
    try:
        for url, source in zip(args.urls, fetched):
            if source is None:
                failures += 1
                print(f"url={url} status=fetch_failed", file=sys.stderr)
                continue
            evidence, created = store_evidence(
                db,
                url=source.url,
                raw=source.body,
                content_class=source.content_class,
                content_type=source.content_type,
                authority_level=args.authority,
                fetched_at=source.fetched_at,
            )
            db.commit()
            print(
                f"url={source.url} evidence_id={evidence.id} created={created} "
                f"content_class={evidence.content_class} content_hash={evidence.content_hash[:12]}"
            )
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
