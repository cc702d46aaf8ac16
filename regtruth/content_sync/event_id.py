"""Deterministic content-sync event ids."""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import date


def compute_event_id(rule_id: uuid.UUID | str, event_type: str, effective_from: date | str) -> str:
    """SHA-256 over the canonical tuple (rule_id, type, effective_from ISO date).

    Pure: the same logical change always yields the same id, which is what makes
    enqueue idempotent. Never mix in timestamps or random values.
    """
    if isinstance(effective_from, date):
        effective_from = effective_from.isoformat()
    key = json.dumps([str(rule_id), str(event_type), effective_from], separators=(",", ":"))
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
