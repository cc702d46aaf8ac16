"""Soft references to Evidence.

Rules and pointers refer to evidence by id only; there is no foreign key across that
boundary. Dereference through resolve_evidence_ref and treat None as a normal outcome
(the evidence was merged away, soft-deleted, or never existed).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from regtruth.models.evidence import Evidence


@dataclass(frozen=True)
class EvidenceRef:
    """Typed evidence id. Not a relationship: resolving may return None."""

    evidence_id: uuid.UUID

    def __str__(self) -> str:
        return str(self.evidence_id)


def resolve_evidence_ref(
    db: Session,
    ref: EvidenceRef,
    include_deleted: bool = False,
) -> Evidence | None:
    """Return the referenced Evidence, or None when missing (or soft-deleted unless include_deleted)."""
    from regtruth.models.evidence import Evidence

    row = db.get(Evidence, ref.evidence_id)
    if row is None:
        return None
    if row.deleted_at is not None and not include_deleted:
        return None
    return row
