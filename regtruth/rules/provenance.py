"""Provenance gate: a rule may only be approved or published if every pointer is citable."""

from __future__ import annotations

from sqlalchemy.orm import Session

from regtruth.evidence.refs import resolve_evidence_ref
from regtruth.grounding.verifier import satisfies_tier_policy
from regtruth.models.regulatory_rule import RegulatoryRule


class ProvenanceGateError(Exception):
    """Raised when a rule fails the provenance gate; problems lists every failing pointer."""

    def __init__(self, rule_id, problems: list[str]) -> None:
        super().__init__(f"Provenance gate failed for rule {rule_id}: {'; '.join(problems)}")
        self.rule_id = rule_id
        self.problems = problems


def provenance_problems(db: Session, rule: RegulatoryRule) -> list[str]:
    """Return why rule is not fully grounded (empty list when it is)."""
    problems: list[str] = []
    if not rule.source_pointers:
        return ["rule has no source pointers"]
    for pointer in rule.source_pointers:
        if resolve_evidence_ref(db, pointer.evidence_ref) is None:
            problems.append(f"pointer {pointer.id}: evidence {pointer.evidence_id} missing")
            continue
        if not satisfies_tier_policy(pointer.match_type, pointer.match_mode, rule.risk_tier):
            problems.append(
                f"pointer {pointer.id}: match {pointer.match_type}/{pointer.match_mode} "
                f"not acceptable for {rule.risk_tier}"
            )
    return problems


def require_provenance(db: Session, rule: RegulatoryRule) -> None:
    """Raise ProvenanceGateError unless every pointer of rule is citable."""
    problems = provenance_problems(db, rule)
    if problems:
        raise ProvenanceGateError(rule.id, problems)
