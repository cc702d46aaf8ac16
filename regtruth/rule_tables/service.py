"""Rule table service: immutable versions, snapshots and calculation audit records."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from regtruth.models.rule_table import RuleCalculation, RuleSnapshot, RuleTable, RuleVersion
from regtruth.rules.arbiter import periods_overlap
from regtruth.rules.canonical import compute_data_hash

logger = logging.getLogger(__name__)


class RuleTableError(ValueError):
    pass


def get_or_create_table(
    db: Session, key: str, name: str | None = None, description: str | None = None
) -> RuleTable:
    """Return the table for key, creating it when missing. Flushes, does not commit."""
    table = db.query(RuleTable).filter(RuleTable.key == key).first()
    if table is None:
        table = RuleTable(key=key, name=name or key, description=description)
        db.add(table)
        db.flush()
    return table


def create_rule_version(
    db: Session,
    table_key: str,
    data: dict[str, Any],
    effective_from: date,
    effective_until: date | None = None,
    publish: bool = True,
) -> RuleVersion:
    """Append the next version of a table. Commits.

    Versions are numbered 1, 2, ... per table; data_hash is the canonical JSON hash of data.

    Raises:
        RuleTableError: If effective_until is not after effective_from, or the period
            overlaps a published version with different data.
    """
    if effective_until is not None and effective_until <= effective_from:
        raise RuleTableError("effective_until must be after effective_from")
    table = get_or_create_table(db, table_key)
    data_hash = compute_data_hash(data)

    existing_versions = (
        db.query(RuleVersion)
        .filter(RuleVersion.table_id == table.id)
        .order_by(RuleVersion.version)
        .all()
    )
    for existing in existing_versions:
        if existing.published_at is None or existing.data_hash == data_hash:
            continue
        if periods_overlap(
            existing.effective_from, existing.effective_until, effective_from, effective_until
        ):
            raise RuleTableError(
                f"{table_key} v{existing.version} already covers {existing.effective_from}"
                f"..{existing.effective_until or 'open'} with different data"
            )

    current = (
        db.query(func.max(RuleVersion.version)).filter(RuleVersion.table_id == table.id).scalar()
    )
    version = RuleVersion(
        table_id=table.id,
        version=(current or 0) + 1,
        effective_from=effective_from,
        effective_until=effective_until,
        data=data,
        data_hash=data_hash,
        published_at=datetime.now(UTC) if publish else None,
    )
    try:
        db.add(version)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Rule table version created: table=%s version=%d hash=%s", table_key, version.version, data_hash[:12])
    return version


def get_effective_version(db: Session, table_key: str, on: date) -> RuleVersion | None:
    """Published version of table_key in force on the given date (latest version wins)."""
    return (
        db.query(RuleVersion)
        .join(RuleTable, RuleTable.id == RuleVersion.table_id)
        .filter(
            RuleTable.key == table_key,
            RuleVersion.published_at.is_not(None),
            RuleVersion.effective_from <= on,
            (RuleVersion.effective_until.is_(None)) | (RuleVersion.effective_until > on),
        )
        .order_by(RuleVersion.version.desc())
        .first()
    )


def snapshot_version(db: Session, version: RuleVersion) -> RuleSnapshot:
    """Freeze a copy of the version data. Commits.

    Raises:
        RuleTableError: If the stored data no longer matches its data_hash.
    """
    if compute_data_hash(version.data) != version.data_hash:
        raise RuleTableError(f"Rule version {version.id} data does not match its hash")
    snapshot = RuleSnapshot(rule_version_id=version.id, data=version.data, data_hash=version.data_hash)
    db.add(snapshot)
    db.commit()
    return snapshot


def record_calculation(
    db: Session,
    table_key: str,
    on: date,
    input_data: dict[str, Any],
    result: dict[str, Any],
) -> RuleCalculation:
    """Record a calculation against the version effective on the date. Commits.

    Raises:
        LookupError: If no published version of the table is effective on the date.
    """
    version = get_effective_version(db, table_key, on)
    if version is None:
        raise LookupError(f"No effective version of {table_key} on {on.isoformat()}")
    calc = RuleCalculation(
        rule_version_id=version.id,
        table_key=table_key,
        input=input_data,
        result=result,
        reference_date=on,
    )
    db.add(calc)
    db.commit()
    return calc
