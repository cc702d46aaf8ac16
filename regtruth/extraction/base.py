"""Extractor collaborator interface."""

from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from regtruth.schemas.extraction import ExtractionResult


@runtime_checkable
class Extractor(Protocol):
    """Black box producing candidate assertions for one evidence.

    version participates in the AgentRun cache key: bump it when the prompt or model
    changes so evidence is extracted again.
    """

    version: str

    def extract(self, evidence_id: uuid.UUID) -> ExtractionResult: ...
