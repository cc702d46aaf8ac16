"""Frontmatter patcher tests. Pure, no database."""

from __future__ import annotations

import uuid
from datetime import date

import pytest

from regtruth.content_sync.patcher import (
    FrontmatterError,
    changelog_entry,
    patch_frontmatter,
    split_frontmatter,
    summarize_change,
)
from regtruth.models.enums import ContentSyncEventType
from regtruth.schemas.content_sync import ContentSyncPayloadV1

POINTER_ID = uuid.UUID("5d0c2a0e-8f4b-4d55-9a57-3b9f3e1d2c10")

MDX = """---
title: PDV
description: Porez na dodanu vrijednost
lastUpdated: '2024-01-01'
---

# PDV

Opća stopa PDV-a iznosi 25%.
"""


def _payload(**overrides) -> ContentSyncPayloadV1:
    data = {
        "event_id": "a" * 64,
        "type": ContentSyncEventType.RULE_RELEASED,
        "rule_id": uuid.uuid4(),
        "concept_id": "pdv-standard-rate",
        "change_type": "update",
        "effective_from": date(2025, 1, 1),
        "previous_value": "25",
        "new_value": "24",
        "value_type": "percentage",
        "source_pointer_ids": [POINTER_ID],
        "confidence_level": 95,
        "severity": "breaking",
    }
    data.update(overrides)
    return ContentSyncPayloadV1(**data)


class TestSplitFrontmatter:
    def test_returns_mapping_and_body(self) -> None:
        data, body = split_frontmatter(MDX)
        assert data["title"] == "PDV"
        assert body.startswith("\n# PDV")

    def test_empty_block_is_empty_mapping(self) -> None:
        data, body = split_frontmatter("---\n\n---\nTekst\n")
        assert data == {}
        assert body == "Tekst\n"

    @pytest.mark.parametrize(
        "text",
        [
            "# Bez frontmattera\n",
            "---\n- samo\n- lista\n---\n",
            "---\ntitle: [nezatvoreno\n---\n",
        ],
    )
    def test_invalid_frontmatter_raises(self, text: str) -> None:
        with pytest.raises(FrontmatterError):
            split_frontmatter(text)


class TestPatchFrontmatter:
    def test_prepends_entry_and_keeps_other_keys(self) -> None:
        patched = patch_frontmatter(MDX, _payload())

        data, body = split_frontmatter(patched)
        assert data["title"] == "PDV"
        assert data["description"] == "Porez na dodanu vrijednost"
        assert data["lastUpdated"] == "2025-01-01"
        assert body == split_frontmatter(MDX)[1]
        (entry,) = data["changelog"]
        assert entry == {
            "eventId": "a" * 64,
            "date": "2025-01-01",
            "severity": "breaking",
            "changeType": "update",
            "summary": "Updated from 25 to 24.",
            "effectiveFrom": "2025-01-01",
            "sourcePointerIds": [str(POINTER_ID)],
            "confidenceLevel": 95,
        }

    def test_newest_entry_first(self) -> None:
        once = patch_frontmatter(MDX, _payload())
        twice = patch_frontmatter(once, _payload(event_id="b" * 64, effective_from=date(2026, 1, 1)))
        data, _ = split_frontmatter(twice)
        assert [e["eventId"] for e in data["changelog"]] == ["b" * 64, "a" * 64]

    def test_same_event_is_not_applied_twice(self) -> None:
        once = patch_frontmatter(MDX, _payload())
        assert patch_frontmatter(once, _payload()) is None

    def test_changelog_that_is_not_a_list_raises(self) -> None:
        text = "---\ntitle: PDV\nchangelog: nije lista\n---\nTekst\n"
        with pytest.raises(FrontmatterError, match="not a list"):
            patch_frontmatter(text, _payload())

    def test_croatian_text_stays_readable(self) -> None:
        patched = patch_frontmatter("---\ntitle: Porez na dobit – obveznici\n---\n", _payload())
        assert "Porez na dobit – obveznici" in patched


class TestSummarizeChange:
    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({"type": ContentSyncEventType.RULE_SUPERSEDED}, "Superseded by a newer rule."),
            ({"change_type": "repeal"}, "Rule repealed."),
            ({"change_type": "create", "previous_value": None}, "New rule created."),
            ({"previous_value": None}, "Updated to 24."),
            ({"previous_value": None, "new_value": None}, "Rule updated."),
        ],
    )
    def test_summary_text(self, overrides: dict, expected: str) -> None:
        assert summarize_change(_payload(**overrides)) == expected

    def test_entry_uses_summary(self) -> None:
        assert changelog_entry(_payload(change_type="repeal"))["summary"] == "Rule repealed."
