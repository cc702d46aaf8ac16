"""Patch the YAML frontmatter changelog of a content (MDX) file for one sync event."""

from __future__ import annotations

import re
from typing import Any

import yaml

from regtruth.models.enums import ContentSyncEventType
from regtruth.schemas.content_sync import ContentSyncPayloadV1

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class FrontmatterError(ValueError):
    """Content file has no frontmatter block or it is not a YAML mapping."""


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter mapping, body).

    Raises:
        FrontmatterError: If the file does not start with a --- block holding a mapping.
    """
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        raise FrontmatterError("missing frontmatter block")
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"invalid YAML frontmatter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError("frontmatter is not a mapping")
    return data, text[match.end():]


def join_frontmatter(data: dict[str, Any], body: str) -> str:
    dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{dumped}---\n{body}"


def summarize_change(payload: ContentSyncPayloadV1) -> str:
    if payload.type == ContentSyncEventType.RULE_SUPERSEDED:
        return "Superseded by a newer rule."
    if payload.change_type == "repeal":
        return "Rule repealed."
    if payload.change_type == "create":
        return "New rule created."
    if payload.previous_value is not None and payload.new_value is not None:
        return f"Updated from {payload.previous_value} to {payload.new_value}."
    if payload.new_value is not None:
        return f"Updated to {payload.new_value}."
    return "Rule updated."


def changelog_entry(payload: ContentSyncPayloadV1) -> dict[str, Any]:
    return {
        "eventId": payload.event_id,
        "date": payload.effective_from.isoformat(),
        "severity": payload.severity,
        "changeType": payload.change_type,
        "summary": summarize_change(payload),
        "effectiveFrom": payload.effective_from.isoformat(),
        "sourcePointerIds": [str(pid) for pid in payload.source_pointer_ids],
        "confidenceLevel": payload.confidence_level,
    }


def has_event(frontmatter: dict[str, Any], event_id: str) -> bool:
    changelog = frontmatter.get("changelog") or []
    return any(isinstance(e, dict) and e.get("eventId") == event_id for e in changelog)


def patch_frontmatter(text: str, payload: ContentSyncPayloadV1) -> str | None:
    """Return text with the event's changelog entry prepended, or None if already present.

    Other frontmatter keys and the body are preserved; lastUpdated is set to the event date.
    """
    data, body = split_frontmatter(text)
    if has_event(data, payload.event_id):
        return None
    changelog = data.get("changelog")
    if changelog is not None and not isinstance(changelog, list):
        raise FrontmatterError("changelog is not a list")
    data["lastUpdated"] = payload.effective_from.isoformat()
    data["changelog"] = [changelog_entry(payload)] + list(changelog or [])
    return join_frontmatter(data, body)
