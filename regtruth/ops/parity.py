"""Parity check between two physically separate copies of the rule tables.

RuleTable rows compare by key; RuleVersion rows by (table key, version, data hash,
effective from, effective until); RuleSnapshot and RuleCalculation rows by count per
(table key, version). Reported counts are always row counts.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.orm import Session

from regtruth.models.rule_table import RuleCalculation, RuleSnapshot, RuleTable, RuleVersion

logger = logging.getLogger(__name__)


@dataclass
class TableParity:
    table: str
    core_count: int
    regulatory_count: int
    missing_in_core: list[str] = field(default_factory=list)
    missing_in_regulatory: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.missing_in_core and not self.missing_in_regulatory


def _table_keys(db: Session) -> Counter:
    return Counter(key for (key,) in db.query(RuleTable.key).all())


def _version_keys(db: Session) -> Counter:
    rows = (
        db.query(
            RuleTable.key,
            RuleVersion.version,
            RuleVersion.data_hash,
            RuleVersion.effective_from,
            RuleVersion.effective_until,
        )
        .join(RuleTable, RuleTable.id == RuleVersion.table_id)
        .all()
    )
    return Counter(
        f"{key}|v{version}|{data_hash}|{start.isoformat()}|{until.isoformat() if until else ''}"
        for key, version, data_hash, start, until in rows
    )


def _counts_per_version(db: Session, model) -> Counter:
    rows = (
        db.query(RuleTable.key, RuleVersion.version, func.count(model.id))
        .join(RuleVersion, RuleVersion.id == model.rule_version_id)
        .join(RuleTable, RuleTable.id == RuleVersion.table_id)
        .group_by(RuleTable.key, RuleVersion.version)
        .all()
    )
    return Counter({f"{key}|v{version}|count={count}": 1 for key, version, count in rows})


def _row_count(db: Session, model) -> int:
    return db.query(func.count(model.id)).scalar() or 0


def _diff(
    table: str,
    core: Counter,
    regulatory: Counter,
    core_rows: int | None = None,
    regulatory_rows: int | None = None,
) -> TableParity:
    return TableParity(
        table=table,
        core_count=sum(core.values()) if core_rows is None else core_rows,
        regulatory_count=sum(regulatory.values()) if regulatory_rows is None else regulatory_rows,
        missing_in_core=sorted((regulatory - core).elements()),
        missing_in_regulatory=sorted((core - regulatory).elements()),
    )


def compare_rule_tables(core: Session, regulatory: Session) -> list[TableParity]:
    """Compare every rule table between the core and regulatory databases."""
    results = [
        _diff("RuleTable", _table_keys(core), _table_keys(regulatory)),
        _diff("RuleVersion", _version_keys(core), _version_keys(regulatory)),
        _diff(
            "RuleSnapshot",
            _counts_per_version(core, RuleSnapshot),
            _counts_per_version(regulatory, RuleSnapshot),
            _row_count(core, RuleSnapshot),
            _row_count(regulatory, RuleSnapshot),
        ),
        _diff(
            "RuleCalculation",
            _counts_per_version(core, RuleCalculation),
            _counts_per_version(regulatory, RuleCalculation),
            _row_count(core, RuleCalculation),
            _row_count(regulatory, RuleCalculation),
        ),
    ]
    for result in results:
        if result.passed:
            logger.info("Parity PASS: %s (%d rows)", result.table, result.core_count)
        else:
            logger.warning(
                "Parity FAIL: %s missing_in_core=%d missing_in_regulatory=%d",
                result.table,
                len(result.missing_in_core),
                len(result.missing_in_regulatory),
            )
    return results
