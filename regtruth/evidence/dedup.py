"""Evidence deduplication: merge live rows sharing (url, content_hash) into the newest.

Each duplicate group is one transaction: dependent SourcePointer and AgentRun rows are
re-pointed to the survivor, artifact kinds the survivor lacks are adopted from the older
rows, and the older rows are soft-deleted with merged_into_id. Every pointer on the
survivor is then re-verified against its primary text; rules citing a pointer that is no
longer GROUNDED go back to DRAFT. Nothing is physically deleted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from regtruth.grounding.revalidation import reverify_pointers
from regtruth.models.agent_run import AgentRun
from regtruth.models.enums import MatchType
from regtruth.models.evidence import Evidence
from regtruth.models.evidence_artifact import EvidenceArtifact
from regtruth.models.source_pointer import SourcePointer

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    url: str
    content_hash: str
    keep_id: uuid.UUID
    merge_ids: list[uuid.UUID]


@dataclass
class DedupReport:
    groups_found: int = 0
    groups_merged: int = 0
    pointers_migrated: int = 0
    agent_runs_migrated: int = 0
    artifacts_adopted: int = 0
    pointers_not_found: int = 0
    rules_reset: int = 0
    evidence_soft_deleted: int = 0
    remaining_groups: int = 0
    survivor_ids: list[uuid.UUID] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "groups_found": self.groups_found,
            "groups_merged": self.groups_merged,
            "pointers_migrated": self.pointers_migrated,
            "agent_runs_migrated": self.agent_runs_migrated,
            "artifacts_adopted": self.artifacts_adopted,
            "pointers_not_found": self.pointers_not_found,
            "rules_reset": self.rules_reset,
            "evidence_soft_deleted": self.evidence_soft_deleted,
            "remaining_groups": self.remaining_groups,
            "survivor_ids": [str(i) for i in self.survivor_ids],
            "errors": list(self.errors),
        }


def count_duplicate_groups(db: Session) -> int:
    """Post-check: number of (url, content_hash) pairs with more than one live row."""
    subq = (
        db.query(Evidence.url, Evidence.content_hash)
        .filter(Evidence.deleted_at.is_(None))
        .group_by(Evidence.url, Evidence.content_hash)
        .having(func.count(Evidence.id) > 1)
        .subquery()
    )
    return db.query(func.count()).select_from(subq).scalar() or 0


def find_duplicate_groups(db: Session) -> list[DuplicateGroup]:
    """Return duplicate groups; keep the newest by fetched_at (created_at breaks ties)."""
    keys = (
        db.query(Evidence.url, Evidence.content_hash)
        .filter(Evidence.deleted_at.is_(None))
        .group_by(Evidence.url, Evidence.content_hash)
        .having(func.count(Evidence.id) > 1)
        .order_by(Evidence.url, Evidence.content_hash)
        .all()
    )
    groups: list[DuplicateGroup] = []
    for url, digest in keys:
        rows = (
            db.query(Evidence)
            .filter(
                Evidence.url == url,
                Evidence.content_hash == digest,
                Evidence.deleted_at.is_(None),
            )
            .order_by(Evidence.fetched_at.desc(), Evidence.created_at.desc())
            .all()
        )
        groups.append(
            DuplicateGroup(
                url=url,
                content_hash=digest,
                keep_id=rows[0].id,
                merge_ids=[r.id for r in rows[1:]],
            )
        )
    return groups


def _adoptable_artifact_ids(db: Session, group: DuplicateGroup) -> list[uuid.UUID]:
    """Newest artifact of each kind that the survivor has none of."""
    have = {
        kind
        for (kind,) in db.query(EvidenceArtifact.kind)
        .filter(EvidenceArtifact.evidence_id == group.keep_id)
        .distinct()
        .all()
    }
    rows = (
        db.query(EvidenceArtifact.id, EvidenceArtifact.kind)
        .filter(EvidenceArtifact.evidence_id.in_(group.merge_ids))
        .order_by(EvidenceArtifact.created_at.desc(), EvidenceArtifact.id.desc())
        .all()
    )
    adopt: list[uuid.UUID] = []
    for artifact_id, kind in rows:
        if kind not in have:
            have.add(kind)
            adopt.append(artifact_id)
    return adopt


def _merge_group(db: Session, group: DuplicateGroup, report: DedupReport) -> None:
    now = datetime.now(UTC)
    adopt = _adoptable_artifact_ids(db, group)
    if adopt:
        artifacts = db.execute(
            update(EvidenceArtifact)
            .where(EvidenceArtifact.id.in_(adopt))
            .values(evidence_id=group.keep_id)
            .execution_options(synchronize_session=False)
        )
        report.artifacts_adopted += artifacts.rowcount or 0
    pointers = db.execute(
        update(SourcePointer)
        .where(SourcePointer.evidence_id.in_(group.merge_ids))
        .values(evidence_id=group.keep_id)
        .execution_options(synchronize_session=False)
    )
    runs = db.execute(
        update(AgentRun)
        .where(AgentRun.evidence_id.in_(group.merge_ids))
        .values(evidence_id=group.keep_id)
        .execution_options(synchronize_session=False)
    )
    deleted = db.execute(
        update(Evidence)
        .where(Evidence.id.in_(group.merge_ids), Evidence.deleted_at.is_(None))
        .values(deleted_at=now, merged_into_id=group.keep_id)
        .execution_options(synchronize_session=False)
    )
    report.pointers_migrated += pointers.rowcount or 0
    report.agent_runs_migrated += runs.rowcount or 0
    report.evidence_soft_deleted += deleted.rowcount or 0

    # Bulk updates bypass the identity map; reload before verifying.
    db.flush()
    db.expire_all()
    survivor_pointers = (
        db.query(SourcePointer)
        .filter(SourcePointer.evidence_id == group.keep_id)
        .order_by(SourcePointer.created_at.asc(), SourcePointer.id.asc())
        .all()
    )
    if survivor_pointers:
        counts = reverify_pointers(
            db,
            group.keep_id,
            survivor_pointers,
            reason=f"evidence merged into {group.keep_id}; pointer no longer grounded",
        )
        db.flush()
        report.pointers_not_found += sum(
            1 for p in survivor_pointers if p.match_type == MatchType.NOT_FOUND.value
        )
        report.rules_reset += counts["rules_reset"]


def merge_duplicate_evidence(db: Session, dry_run: bool = False) -> DedupReport:
    """Merge every duplicate group into its newest row, one commit per group.

    A failing group is rolled back and reported; other groups still merge.
    """
    groups = find_duplicate_groups(db)
    report = DedupReport(groups_found=len(groups))
    if dry_run:
        report.remaining_groups = len(groups)
        return report

    for group in groups:
        try:
            _merge_group(db, group, report)
            db.commit()
            report.groups_merged += 1
            report.survivor_ids.append(group.keep_id)
            logger.info(
                "Merged evidence group url=%s keep=%s merged=%d",
                group.url,
                group.keep_id,
                len(group.merge_ids),
            )
        except Exception as exc:
            db.rollback()
            logger.exception("Evidence merge failed for url=%s", group.url)
            report.errors.append(f"{group.url}: {exc}")

    db.expire_all()
    report.remaining_groups = count_duplicate_groups(db)
    return report
