"""Persist a ParseResult as the latest ParsedDocument of an evidence.

Creating the new latest parse, un-flagging the previous one, writing its nodes and
the PARSED_CLEAN_TEXT artifact happen in one transaction.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from regtruth.config import get_settings
from regtruth.evidence.store import store_artifact
from regtruth.grounding.revalidation import revalidate_evidence
from regtruth.models.enums import ArtifactKind, ContentClass
from regtruth.models.evidence import Evidence
from regtruth.models.parsed_document import ParsedDocument
from regtruth.models.provision_node import ProvisionNode
from regtruth.parser.structural import (
    ParserConfig,
    ParseResult,
    ParseStatus,
    parse_html,
    parse_text,
)

logger = logging.getLogger(__name__)


def get_latest_parse(db: Session, evidence_id: uuid.UUID) -> ParsedDocument | None:
    return (
        db.query(ParsedDocument)
        .filter(ParsedDocument.evidence_id == evidence_id, ParsedDocument.is_latest.is_(True))
        .first()
    )


def store_parsed_document(
    db: Session,
    evidence_id: uuid.UUID,
    result: ParseResult,
    parser_id: str,
    parser_version: str,
    parse_config_hash: str,
) -> tuple[ParsedDocument, bool, bool]:
    """Store result as the new latest parse. Commits.

    Returns (document, created, primary_text_changed). An identical parse (same parser
    id, version, config hash and clean text hash) as the current latest is not stored again.
    """
    latest = get_latest_parse(db, evidence_id)
    if (
        latest is not None
        and latest.parser_id == parser_id
        and latest.parser_version == parser_version
        and latest.parse_config_hash == parse_config_hash
        and latest.clean_text_hash == result.clean_text_hash
    ):
        logger.info("Parse unchanged for evidence %s; keeping %s", evidence_id, latest.id)
        return latest, False, False

    try:
        stored = store_artifact(
            db,
            evidence_id,
            ArtifactKind.PARSED_CLEAN_TEXT,
            result.clean_text,
            metadata={
                "parser_id": parser_id,
                "parser_version": parser_version,
                "coverage_percent": result.coverage_percent,
            },
        )
        if latest is not None:
            latest.is_latest = False
            db.flush()

        doc = ParsedDocument(
            evidence_id=evidence_id,
            artifact_id=stored.artifact.id,
            parser_id=parser_id,
            parser_version=parser_version,
            parse_config_hash=parse_config_hash,
            clean_text_hash=result.clean_text_hash,
            status=result.status.value,
            node_count=len(result.nodes),
            coverage_percent=result.coverage_percent,
            stats=result.stats,
            warnings=result.warnings,
            is_latest=True,
            supersedes_id=latest.id if latest is not None else None,
        )
        db.add(doc)
        db.flush()

        # result.nodes is ordered by depth, so every parent id is known before its children.
        ids_by_path: dict[str, uuid.UUID] = {}
        for node in result.nodes:
            row = ProvisionNode(
                id=uuid.uuid4(),
                parsed_document_id=doc.id,
                parent_id=ids_by_path.get(node.parent_path) if node.parent_path else None,
                node_type=node.node_type.value,
                label=node.label,
                path=node.path,
                sort_key=node.sort_key,
                order_index=node.order_index,
                depth=node.depth,
                raw_text=node.raw_text or None,
                normalized_text=node.normalized_text or None,
                start_offset=node.start_offset,
                end_offset=node.end_offset,
            )
            ids_by_path[node.path] = row.id
            db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Parsed evidence %s: status=%s nodes=%d coverage=%.1f%% supersedes=%s",
        evidence_id,
        doc.status,
        doc.node_count,
        doc.coverage_percent,
        doc.supersedes_id,
    )
    return doc, True, stored.primary_text_changed


def parse_evidence(db: Session, evidence: Evidence) -> tuple[ParsedDocument, bool, bool]:
    """Parse evidence raw content with the configured parser and store the result. Commits."""
    settings = get_settings()
    config = ParserConfig(min_coverage_percent=settings.parse_min_coverage)
    if evidence.content_class == ContentClass.HTML.value:
        result = parse_html(evidence.raw_content or "", config)
    else:
        result = parse_text(evidence.raw_content or "", config)
    return store_parsed_document(
        db,
        evidence.id,
        result,
        parser_id=settings.parser_id,
        parser_version=settings.parser_version,
        parse_config_hash=config.config_hash(),
    )


def parse_unparsed_evidence(db: Session, limit: int | None = None) -> dict:
    """Parse live evidence that has no latest parse yet; revalidate pointers when text changed."""
    q = (
        db.query(Evidence)
        .outerjoin(
            ParsedDocument,
            (ParsedDocument.evidence_id == Evidence.id) & ParsedDocument.is_latest.is_(True),
        )
        .filter(
            ParsedDocument.id.is_(None),
            Evidence.deleted_at.is_(None),
            Evidence.content_class != ContentClass.PDF_SCANNED.value,
        )
        .order_by(Evidence.fetched_at.asc(), Evidence.id.asc())
    )
    if limit:
        q = q.limit(limit)
    counts = {"parsed": 0, "failed": 0, "revalidated": 0}
    for evidence in q.all():
        doc, _created, changed = parse_evidence(db, evidence)
        counts["parsed"] += 1
        if doc.status == ParseStatus.FAILED.value:
            counts["failed"] += 1
        if changed:
            revalidate_evidence(db, evidence.id)
            counts["revalidated"] += 1
    return counts
