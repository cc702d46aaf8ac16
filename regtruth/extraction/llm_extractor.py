"""LLM-backed extractor.

Reads the evidence's primary text in a short-lived session, then calls the model in
JSON mode. Items that fail validation are returned in ExtractionResult.rejected with
a reason so the runner can quarantine them; they never raise.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable

from pydantic import ValidationError
from sqlalchemy.orm import Session

from regtruth.concepts.loader import get_concepts
from regtruth.config import get_settings
from regtruth.evidence.refs import EvidenceRef, resolve_evidence_ref
from regtruth.evidence.store import get_primary_text
from regtruth.llm.provider import LLMProvider
from regtruth.llm.router import ModelRole, get_llm_provider
from regtruth.prompts.loader import render_prompt
from regtruth.schemas.extraction import ExtractionItem, ExtractionResult

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = "extraction_v1"
MAX_DOCUMENT_CHARS = 60000


def _concept_lines() -> str:
    return "\n".join(
        f"- {c.slug}: {c.description}" for c in sorted(get_concepts().values(), key=lambda c: c.slug)
    )


def parse_extraction_response(evidence_id: uuid.UUID, raw: str) -> ExtractionResult:
    """Turn model output into an ExtractionResult; malformed parts become warnings."""
    result = ExtractionResult(evidence_id=evidence_id)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        result.warnings.append(f"response is not valid JSON: {exc.msg}")
        result.rejected.append({"item": {"raw": raw[:2000]}, "reason": "invalid JSON response"})
        return result

    items = data.get("extractions") if isinstance(data, dict) else None
    if not isinstance(items, list):
        result.warnings.append("response has no 'extractions' list")
        return result

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            result.warnings.append(f"item {index} is not an object")
            result.rejected.append({"item": {"raw": item}, "reason": "item is not an object"})
            continue
        try:
            result.extractions.append(ExtractionItem.model_validate(item))
        except ValidationError as exc:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            result.warnings.append(f"item {index} rejected: {reason}")
            result.rejected.append({"item": item, "reason": reason})
    return result


class LLMExtractor:
    """Extractor implementation backed by the configured LLM provider."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        provider: LLMProvider | None = None,
        version: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._provider = provider
        self.version = version or get_settings().extractor_version

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider(ModelRole.EXTRACTION)
        return self._provider

    def _load_text(self, evidence_id: uuid.UUID) -> str | None:
        db = self._session_factory()
        try:
            evidence = resolve_evidence_ref(db, EvidenceRef(evidence_id))
            if evidence is None:
                return None
            return get_primary_text(db, evidence)
        finally:
            db.close()

    def extract(self, evidence_id: uuid.UUID) -> ExtractionResult:
        text = self._load_text(evidence_id)
        if text is None:
            raise LookupError(f"Evidence not found: {evidence_id}")
        if not text.strip():
            return ExtractionResult(evidence_id=evidence_id, warnings=["evidence has no text"])

        warnings: list[str] = []
        if len(text) > MAX_DOCUMENT_CHARS:
            warnings.append(f"document truncated to {MAX_DOCUMENT_CHARS} characters")
            text = text[:MAX_DOCUMENT_CHARS]

        prompt = render_prompt(PROMPT_TEMPLATE, CONCEPTS=_concept_lines(), DOCUMENT=text)
        raw = self.provider.complete(
            prompt,
            response_format={"type": "json_object"},
            temperature=0.0,
        )
        result = parse_extraction_response(evidence_id, raw)
        result.warnings = warnings + result.warnings
        logger.info(
            "Extraction: evidence=%s items=%d rejected=%d",
            evidence_id,
            len(result.extractions),
            len(result.rejected),
        )
        return result
