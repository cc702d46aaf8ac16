"""Parity check tests between two copies of the rule tables."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from regtruth.db.session import Base
from regtruth.ops.parity import compare_rule_tables
from regtruth.rule_tables.service import create_rule_version, record_calculation, snapshot_version


@pytest.fixture
def core_db():
    """A second, empty in-memory database standing in for the core copy."""
    from sqlalchemy import create_engine

    engine = create_engine("sqlite+pysqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _populate(db) -> None:
    version = create_rule_version(db, "doprinosi", {"zdravstveno": "16.5"}, date(2025, 1, 1))
    snapshot_version(db, version)
    record_calculation(db, "doprinosi", date(2025, 2, 1), {"bruto": "1000"}, {"zdravstveno": "165"})


def _by_table(results):
    return {r.table: r for r in results}


class TestCompareRuleTables:
    def test_same_database_passes(self, db) -> None:
        _populate(db)
        results = compare_rule_tables(db, db)
        assert all(r.passed for r in results)
        assert _by_table(results)["RuleVersion"].core_count == 1

    def test_identical_copies_pass(self, db, core_db) -> None:
        _populate(db)
        _populate(core_db)
        assert all(r.passed for r in compare_rule_tables(core_db, db))

    def test_missing_rows_reported_per_table(self, db, core_db) -> None:
        _populate(db)
        create_rule_version(core_db, "doprinosi", {"zdravstveno": "16.5"}, date(2025, 1, 1))

        results = _by_table(compare_rule_tables(core_db, db))

        assert results["RuleTable"].passed
        assert results["RuleVersion"].passed
        assert results["RuleSnapshot"].missing_in_core == ["doprinosi|v1|count=1"]
        assert not results["RuleCalculation"].passed

    def test_different_data_hash_is_a_mismatch(self, db, core_db) -> None:
        create_rule_version(db, "doprinosi", {"zdravstveno": "16.5"}, date(2025, 1, 1))
        create_rule_version(core_db, "doprinosi", {"zdravstveno": "16"}, date(2025, 1, 1))

        version = _by_table(compare_rule_tables(core_db, db))["RuleVersion"]

        assert len(version.missing_in_core) == 1
        assert len(version.missing_in_regulatory) == 1

    def test_snapshot_and_calculation_counts_are_row_counts(self, db, core_db) -> None:
        for session in (db, core_db):
            _populate(session)
            for bruto in ("2000", "3000"):
                record_calculation(session, "doprinosi", date(2025, 3, 1), {"bruto": bruto}, {"zdravstveno": "0"})
        record_calculation(db, "doprinosi", date(2025, 4, 1), {"bruto": "4000"}, {"zdravstveno": "660"})

        results = _by_table(compare_rule_tables(core_db, db))

        calculations = results["RuleCalculation"]
        assert calculations.core_count == 3
        assert calculations.regulatory_count == 4
        assert calculations.missing_in_core == ["doprinosi|v1|count=4"]
        assert calculations.missing_in_regulatory == ["doprinosi|v1|count=3"]
        assert results["RuleSnapshot"].core_count == 1
        assert results["RuleSnapshot"].passed
