"""initial regulatory truth schema

Revision ID: 20261016_initial
Revises:
Create Date: 2026-10-16

Evidence store, structural parses, extraction runs, source pointers, rules,
conflicts, releases, content-sync outbox, rule tables and job runs.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261016_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
UUID = sa.Uuid(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "evidence",
        sa.Column("id", UUID, nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("content_class", sa.String(length=32), nullable=False),
        sa.Column("content_type", sa.String(length=255), nullable=True),
        sa.Column("raw_content", sa.Text(), nullable=True),
        sa.Column("raw_bytes", sa.LargeBinary(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("authority_level", sa.String(length=32), nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("staleness_status", sa.String(length=16), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_into_id", UUID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_evidence_url_content_hash", "evidence", ["url", "content_hash"])
    op.create_index("ix_evidence_deleted_at", "evidence", ["deleted_at"])

    op.create_table(
        "evidence_artifacts",
        sa.Column("id", UUID, nullable=False),
        sa.Column("evidence_id", UUID, nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("metadata", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "evidence_id", "kind", "content_hash", name="uq_evidence_artifacts_evidence_kind_hash"
        ),
    )
    op.create_index("ix_evidence_artifacts_evidence_id", "evidence_artifacts", ["evidence_id"])

    op.create_table(
        "parsed_documents",
        sa.Column("id", UUID, nullable=False),
        sa.Column("evidence_id", UUID, nullable=False),
        sa.Column("artifact_id", UUID, nullable=True),
        sa.Column("parser_id", sa.String(length=64), nullable=False),
        sa.Column("parser_version", sa.String(length=32), nullable=False),
        sa.Column("parse_config_hash", sa.String(length=64), nullable=False),
        sa.Column("clean_text_hash", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("node_count", sa.Integer(), nullable=False),
        sa.Column("coverage_percent", sa.Float(), nullable=False),
        sa.Column("stats", JSON, nullable=True),
        sa.Column("warnings", JSON, nullable=True),
        sa.Column("is_latest", sa.Boolean(), nullable=False),
        sa.Column("supersedes_id", UUID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["evidence_id"], ["evidence.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["artifact_id"], ["evidence_artifacts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["supersedes_id"], ["parsed_documents.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_parsed_documents_evidence_id", "parsed_documents", ["evidence_id"])
    op.create_index(
        "uq_parsed_documents_evidence_latest",
        "parsed_documents",
        ["evidence_id"],
        unique=True,
        postgresql_where=sa.text("is_latest"),
        sqlite_where=sa.text("is_latest"),
    )

    op.create_table(
        "provision_nodes",
        sa.Column("id", UUID, nullable=False),
        sa.Column("parsed_document_id", UUID, nullable=False),
        sa.Column("parent_id", UUID, nullable=True),
        sa.Column("node_type", sa.String(length=16), nullable=False),
        sa.Column("label", sa.String(length=64), nullable=True),
        sa.Column("path", sa.String(length=512), nullable=False),
        sa.Column("sort_key", sa.String(length=255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("depth", sa.Integer(), nullable=False),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("normalized_text", sa.Text(), nullable=True),
        sa.Column("start_offset", sa.Integer(), nullable=False),
        sa.Column("end_offset", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["parsed_document_id"], ["parsed_documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["provision_nodes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("parsed_document_id", "path", name="uq_provision_nodes_document_path"),
    )
    op.create_index("ix_provision_nodes_parsed_document_id", "provision_nodes", ["parsed_document_id"])

    op.create_table(
        "agent_runs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("agent_type", sa.String(length=32), nullable=False),
        sa.Column("evidence_id", UUID, nullable=True),
        sa.Column("extractor_version", sa.String(length=64), nullable=False),
        sa.Column("input_content_hash", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=True),
        sa.Column("warnings", JSON, nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_agent_runs_evidence_id", "agent_runs", ["evidence_id"])

    op.create_table(
        "extraction_quarantine",
        sa.Column("id", UUID, nullable=False),
        sa.Column("agent_run_id", UUID, nullable=True),
        sa.Column("evidence_id", UUID, nullable=True),
        sa.Column("payload", JSON, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "source_pointers",
        sa.Column("id", UUID, nullable=False),
        sa.Column("evidence_id", UUID, nullable=False),
        sa.Column("agent_run_id", UUID, nullable=True),
        sa.Column("domain", sa.String(length=128), nullable=False),
        sa.Column("concept_slug", sa.String(length=128), nullable=True),
        sa.Column("value_type", sa.String(length=32), nullable=True),
        sa.Column("extracted_value", sa.Text(), nullable=False),
        sa.Column("exact_quote", sa.Text(), nullable=False),
        sa.Column("article_ref", sa.String(length=255), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("effective_until", sa.Date(), nullable=True),
        sa.Column("match_type", sa.String(length=32), nullable=False),
        sa.Column("match_mode", sa.String(length=16), nullable=True),
        sa.Column("match_start", sa.Integer(), nullable=True),
        sa.Column("match_end", sa.Integer(), nullable=True),
        sa.Column("matched_prefix_length", sa.Integer(), nullable=True),
        sa.Column("divergence_index", sa.Integer(), nullable=True),
        sa.Column("diagnosis", sa.String(length=32), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["agent_run_id"], ["agent_runs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_source_pointers_evidence_id", "source_pointers", ["evidence_id"])
    op.create_index("ix_source_pointers_concept_slug", "source_pointers", ["concept_slug"])
    op.create_index("ix_source_pointers_match_type", "source_pointers", ["match_type"])

    op.create_table(
        "regulatory_rules",
        sa.Column("id", UUID, nullable=False),
        sa.Column("concept_slug", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("domain", sa.String(length=128), nullable=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("value_type", sa.String(length=32), nullable=False),
        sa.Column("normalized_value", sa.Text(), nullable=False),
        sa.Column("risk_tier", sa.String(length=4), nullable=False),
        sa.Column("authority_level", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_until", sa.Date(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("superseded_by_id", UUID, nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["superseded_by_id"], ["regulatory_rules.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_regulatory_rules_concept_slug", "regulatory_rules", ["concept_slug"])
    op.create_index("ix_regulatory_rules_status", "regulatory_rules", ["status"])

    op.create_table(
        "rule_source_pointers",
        sa.Column("rule_id", UUID, nullable=False),
        sa.Column("source_pointer_id", UUID, nullable=False),
        sa.ForeignKeyConstraint(["rule_id"], ["regulatory_rules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_pointer_id"], ["source_pointers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("rule_id", "source_pointer_id"),
    )

    op.create_table(
        "regulatory_conflicts",
        sa.Column("id", UUID, nullable=False),
        sa.Column("concept_slug", sa.String(length=128), nullable=False),
        sa.Column("conflict_type", sa.String(length=32), nullable=False),
        sa.Column("rule_a_id", UUID, nullable=False),
        sa.Column("rule_b_id", UUID, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("requires_human_review", sa.Boolean(), nullable=False),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        sa.Column("winning_rule_id", UUID, nullable=True),
        sa.Column("decided_by", sa.String(length=16), nullable=True),
        sa.Column("resolved_by", sa.String(length=255), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["rule_a_id"], ["regulatory_rules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["rule_b_id"], ["regulatory_rules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["winning_rule_id"], ["regulatory_rules.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_regulatory_conflicts_concept_slug", "regulatory_conflicts", ["concept_slug"])
    op.create_index("ix_regulatory_conflicts_status", "regulatory_conflicts", ["status"])

    op.create_table(
        "rule_releases",
        sa.Column("id", UUID, nullable=False),
        sa.Column("version", sa.String(length=32), nullable=False),
        sa.Column("release_type", sa.String(length=8), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("changelog", JSON, nullable=True),
        sa.Column("rule_count", sa.Integer(), nullable=False),
        sa.Column("previous_release_id", UUID, nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["previous_release_id"], ["rule_releases.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version"),
    )
    op.create_index("ix_rule_releases_released_at", "rule_releases", ["released_at"])

    op.create_table(
        "release_rules",
        sa.Column("release_id", UUID, nullable=False),
        sa.Column("rule_id", UUID, nullable=False),
        sa.ForeignKeyConstraint(["release_id"], ["rule_releases.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["rule_id"], ["regulatory_rules.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("release_id", "rule_id"),
    )

    op.create_table(
        "content_sync_events",
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("rule_id", UUID, nullable=False),
        sa.Column("concept_id", sa.String(length=128), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("payload", JSON, nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("dead_letter_reason", sa.String(length=32), nullable=True),
        sa.Column("dead_letter_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_content_sync_events_rule_id", "content_sync_events", ["rule_id"])
    op.create_index(
        "ix_content_sync_events_status_created", "content_sync_events", ["status", "created_at"]
    )

    op.create_table(
        "rule_tables",
        sa.Column("id", UUID, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "rule_versions",
        sa.Column("id", UUID, nullable=False),
        sa.Column("table_id", UUID, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_until", sa.Date(), nullable=True),
        sa.Column("data", JSON, nullable=False),
        sa.Column("data_hash", sa.String(length=64), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["table_id"], ["rule_tables.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("table_id", "version", name="uq_rule_versions_table_version"),
    )
    op.create_index("ix_rule_versions_table_id", "rule_versions", ["table_id"])

    op.create_table(
        "rule_snapshots",
        sa.Column("id", UUID, nullable=False),
        sa.Column("rule_version_id", UUID, nullable=False),
        sa.Column("data", JSON, nullable=False),
        sa.Column("data_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["rule_version_id"], ["rule_versions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rule_snapshots_rule_version_id", "rule_snapshots", ["rule_version_id"])

    op.create_table(
        "rule_calculations",
        sa.Column("id", UUID, nullable=False),
        sa.Column("rule_version_id", UUID, nullable=False),
        sa.Column("table_key", sa.String(length=128), nullable=False),
        sa.Column("input", JSON, nullable=False),
        sa.Column("result", JSON, nullable=False),
        sa.Column("reference_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["rule_version_id"], ["rule_versions.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rule_calculations_rule_version_id", "rule_calculations", ["rule_version_id"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("items_processed", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("result", JSON, nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_runs_job_type", "job_runs", ["job_type"])
    op.create_index("ix_job_runs_idempotency_key", "job_runs", ["idempotency_key"])


def downgrade() -> None:
    op.drop_index("ix_job_runs_idempotency_key", table_name="job_runs")
    op.drop_index("ix_job_runs_job_type", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_rule_calculations_rule_version_id", table_name="rule_calculations")
    op.drop_table("rule_calculations")
    op.drop_index("ix_rule_snapshots_rule_version_id", table_name="rule_snapshots")
    op.drop_table("rule_snapshots")
    op.drop_index("ix_rule_versions_table_id", table_name="rule_versions")
    op.drop_table("rule_versions")
    op.drop_table("rule_tables")
    op.drop_index("ix_content_sync_events_status_created", table_name="content_sync_events")
    op.drop_index("ix_content_sync_events_rule_id", table_name="content_sync_events")
    op.drop_table("content_sync_events")
    op.drop_table("release_rules")
    op.drop_index("ix_rule_releases_released_at", table_name="rule_releases")
    op.drop_table("rule_releases")
    op.drop_index("ix_regulatory_conflicts_status", table_name="regulatory_conflicts")
    op.drop_index("ix_regulatory_conflicts_concept_slug", table_name="regulatory_conflicts")
    op.drop_table("regulatory_conflicts")
    op.drop_table("rule_source_pointers")
    op.drop_index("ix_regulatory_rules_status", table_name="regulatory_rules")
    op.drop_index("ix_regulatory_rules_concept_slug", table_name="regulatory_rules")
    op.drop_table("regulatory_rules")
    op.drop_index("ix_source_pointers_match_type", table_name="source_pointers")
    op.drop_index("ix_source_pointers_concept_slug", table_name="source_pointers")
    op.drop_index("ix_source_pointers_evidence_id", table_name="source_pointers")
    op.drop_table("source_pointers")
    op.drop_table("extraction_quarantine")
    op.drop_index("ix_agent_runs_evidence_id", table_name="agent_runs")
    op.drop_table("agent_runs")
    op.drop_index("ix_provision_nodes_parsed_document_id", table_name="provision_nodes")
    op.drop_table("provision_nodes")
    op.drop_index("uq_parsed_documents_evidence_latest", table_name="parsed_documents")
    op.drop_index("ix_parsed_documents_evidence_id", table_name="parsed_documents")
    op.drop_table("parsed_documents")
    op.drop_index("ix_evidence_artifacts_evidence_id", table_name="evidence_artifacts")
    op.drop_table("evidence_artifacts")
    op.drop_index("ix_evidence_deleted_at", table_name="evidence")
    op.drop_index("ix_evidence_url_content_hash", table_name="evidence")
    op.drop_table("evidence")
