"""Public read API for released rules."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from regtruth.db.session import get_db
from regtruth.rules.canonical import canonical_entries
from regtruth.rules.releaser import ReleaseIntegrityError, get_release, require_release_integrity
from regtruth.rules.resolve import resolve_rule_bundle
from regtruth.schemas.rules import CanonicalRuleEntry, ResolvedRuleBundle, RuleReleaseRead

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/resolve", response_model=ResolvedRuleBundle)
def resolve(
    concept: str = Query(..., min_length=1, max_length=128),
    on: date = Query(..., alias="date", description="ISO date the rule must be effective on"),
    db: Session = Depends(get_db),
):
    """Authoritative rule for a concept on a date, with the release that contains it."""
    try:
        bundle = resolve_rule_bundle(db, concept, on)
    except ReleaseIntegrityError as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Release {exc.version} failed its integrity check",
        ) from None
    if bundle is None:
        raise HTTPException(status_code=404, detail=f"No released rule for {concept} on {on.isoformat()}")
    return bundle


@router.get("/releases/{version}", response_model=RuleReleaseRead)
def release_detail(version: str, db: Session = Depends(get_db)):
    """One release with its canonical entries."""
    release_row = get_release(db, version)
    if release_row is None:
        raise HTTPException(status_code=404, detail=f"Release {version} not found")
    try:
        require_release_integrity(release_row)
    except ReleaseIntegrityError:
        raise HTTPException(
            status_code=503,
            detail=f"Release {version} failed its integrity check",
        ) from None
    return RuleReleaseRead(
        id=release_row.id,
        version=release_row.version,
        release_type=release_row.release_type,
        content_hash=release_row.content_hash,
        rule_count=release_row.rule_count,
        released_at=release_row.released_at,
        changelog=release_row.changelog,
        entries=[CanonicalRuleEntry(**e) for e in canonical_entries(release_row.rules)],
    )
