"""Concept registry loader.

Maps regulatory concepts to a risk classification and to the content files that
content sync patches when a rule for the concept changes.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from regtruth.models.enums import RiskTier

_REGISTRY_PATH = Path(__file__).parent / "concepts.yaml"

# Concepts absent from the registry are treated as T1 so they still need a human.
UNKNOWN_CONCEPT_TIER = RiskTier.T1


@dataclass(frozen=True)
class ConceptDefinition:
    slug: str
    description: str
    classification: str
    legal_penalty: bool
    value_type: str | None
    aliases: tuple[str, ...]
    content_paths: tuple[str, ...]
    tool_ids: tuple[str, ...]

    @property
    def risk_tier(self) -> RiskTier:
        return tier_for_classification(self.classification, self.legal_penalty)


def tier_for_classification(classification: str, legal_penalty: bool) -> RiskTier:
    """Deadlines/thresholds/rates are T0 with a legal penalty, T1 without; procedures T2; info T3."""
    if classification in ("deadline", "threshold", "rate"):
        return RiskTier.T0 if legal_penalty else RiskTier.T1
    if classification == "procedure":
        return RiskTier.T2
    return RiskTier.T3


@lru_cache(maxsize=1)
def load_concept_registry() -> dict[str, Any]:
    """Load and return the concept registry YAML content.

    Raises:
        FileNotFoundError: If concepts.yaml is missing.
        ConceptRegistryValidationError: If the registry is structurally invalid.
    """
    from regtruth.concepts.validator import validate_concept_registry

    try:
        with _REGISTRY_PATH.open(encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Concept registry YAML is malformed: {exc}") from exc
    validate_concept_registry(data)
    return data


@lru_cache(maxsize=1)
def get_concepts() -> dict[str, ConceptDefinition]:
    """Return slug -> ConceptDefinition (cached after first call)."""
    out: dict[str, ConceptDefinition] = {}
    for entry in load_concept_registry()["concepts"]:
        out[entry["slug"]] = ConceptDefinition(
            slug=entry["slug"],
            description=entry.get("description") or "",
            classification=entry["classification"],
            legal_penalty=bool(entry.get("legal_penalty", False)),
            value_type=entry.get("value_type"),
            aliases=tuple(entry.get("aliases") or ()),
            content_paths=tuple(entry.get("content_paths") or ()),
            tool_ids=tuple(entry.get("tool_ids") or ()),
        )
    return out


@lru_cache(maxsize=1)
def _alias_index() -> dict[str, str]:
    index: dict[str, str] = {}
    for concept in get_concepts().values():
        index[concept.slug] = concept.slug
        for alias in concept.aliases:
            index[_slugify(alias)] = concept.slug
    return index


@lru_cache(maxsize=1)
def get_registry_version() -> str:
    """Registry 'version' when set, otherwise SHA-256 of the YAML file."""
    version = load_concept_registry().get("version")
    if isinstance(version, str) and version.strip():
        return version.strip()
    return hashlib.sha256(_REGISTRY_PATH.read_bytes()).hexdigest()


def _slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def get_concept(slug: str) -> ConceptDefinition | None:
    """Exact slug lookup (no alias resolution)."""
    return get_concepts().get(slug)


def resolve_concept_slug(name: str | None) -> str | None:
    """Resolve a slug, alias or free-form domain label to a registered slug, or None."""
    if not name:
        return None
    return _alias_index().get(_slugify(name))


def tier_for_concept(slug: str) -> RiskTier:
    concept = get_concept(slug)
    if concept is None:
        return UNKNOWN_CONCEPT_TIER
    return concept.risk_tier


def clear_registry_caches() -> None:
    """Clear all registry caches. Useful for testing."""
    load_concept_registry.cache_clear()
    get_concepts.cache_clear()
    _alias_index.cache_clear()
    get_registry_version.cache_clear()
