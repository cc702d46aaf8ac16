"""Canonical serialization of rule sets and table data.

The release content hash is the integrity contract with consumers: every place that
computes or verifies it must go through compute_content_hash.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import Any

from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.rules.values import as_date


def canonical_entry(rule: RegulatoryRule) -> dict[str, Any]:
    """{conceptSlug, value, valueType, effectiveFrom, effectiveUntil} with ISO date-only strings."""
    until = as_date(rule.effective_until)
    return {
        "conceptSlug": rule.concept_slug,
        "value": rule.value,
        "valueType": rule.value_type,
        "effectiveFrom": as_date(rule.effective_from).isoformat(),
        "effectiveUntil": until.isoformat() if until else None,
    }


def _sort_key(entry: dict[str, Any]) -> tuple:
    # conceptSlug orders the array; the rest only break ties deterministically.
    return (
        entry["conceptSlug"],
        entry["effectiveFrom"],
        entry["effectiveUntil"] or "",
        entry["value"],
        entry["valueType"],
    )


def canonical_entries(rules: Iterable[RegulatoryRule]) -> list[dict[str, Any]]:
    return sorted((canonical_entry(r) for r in rules), key=_sort_key)


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_content_hash(rules: Iterable[RegulatoryRule]) -> str:
    """SHA-256 hex of the canonical JSON array of member rule entries."""
    return hashlib.sha256(canonical_json(canonical_entries(rules)).encode("utf-8")).hexdigest()


def compute_data_hash(data: Any) -> str:
    """SHA-256 hex of canonical JSON for arbitrary table data (rule versions, snapshots)."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def entry_key(entry: dict[str, Any]) -> str:
    """Stable identity of one canonical entry; used to diff releases."""
    return canonical_json(entry)
