"""Concept registry schema validation.

Validates that concepts.yaml has the required structure:
- concepts: non-empty list of mappings with unique slugs
- each concept: classification from a closed set, boolean legal_penalty,
  list-of-strings content_paths / aliases / tool_ids when present
- aliases never collide with another concept's slug or alias
"""

from __future__ import annotations

from typing import Any

CLASSIFICATIONS = frozenset({"deadline", "threshold", "rate", "procedure", "informational"})


class ConceptRegistryValidationError(ValueError):
    """Raised when concept registry validation fails.

    Subclasses ValueError so callers can catch it via ``except ValueError``
    alongside ``FileNotFoundError`` without needing to import this class.
    """


def _check_str_list(slug: str, key: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        raise ConceptRegistryValidationError(f"concept '{slug}' {key} must be a list")
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConceptRegistryValidationError(
                f"concept '{slug}' {key} entries must be non-empty strings, got {item!r}"
            )


def validate_concept_registry(registry: dict[str, Any]) -> None:
    """Validate concept registry structure.

    Args:
        registry: Loaded concepts.yaml content.

    Raises:
        ConceptRegistryValidationError: When structure or uniqueness fails.
    """
    if not isinstance(registry, dict):
        raise ConceptRegistryValidationError("concept registry must be a dict")

    concepts = registry.get("concepts")
    if not isinstance(concepts, list) or not concepts:
        raise ConceptRegistryValidationError("concept registry 'concepts' must be a non-empty list")

    seen: set[str] = set()
    for entry in concepts:
        if not isinstance(entry, dict):
            raise ConceptRegistryValidationError(f"concept entries must be dicts, got {entry!r}")
        slug = entry.get("slug")
        if not isinstance(slug, str) or not slug.strip():
            raise ConceptRegistryValidationError(f"concept slug must be a non-empty string, got {slug!r}")
        if slug in seen:
            raise ConceptRegistryValidationError(f"concept registry contains duplicate: '{slug}'")
        seen.add(slug)

        classification = entry.get("classification")
        if classification not in CLASSIFICATIONS:
            raise ConceptRegistryValidationError(
                f"concept '{slug}' classification must be one of {sorted(CLASSIFICATIONS)}, "
                f"got {classification!r}"
            )
        if not isinstance(entry.get("legal_penalty", False), bool):
            raise ConceptRegistryValidationError(f"concept '{slug}' legal_penalty must be a bool")

        for key in ("content_paths", "aliases", "tool_ids"):
            _check_str_list(slug, key, entry.get(key))

        for path in entry.get("content_paths") or []:
            if path.startswith("/") or ".." in path.split("/"):
                raise ConceptRegistryValidationError(
                    f"concept '{slug}' content path must be relative to the content dir: '{path}'"
                )

    for entry in concepts:
        for alias in entry.get("aliases") or []:
            if alias in seen:
                raise ConceptRegistryValidationError(
                    f"concept '{entry['slug']}' alias '{alias}' collides with a slug or alias"
                )
            seen.add(alias)
