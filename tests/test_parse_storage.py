"""Parsed document storage tests: latest flag, supersedes chain, node tree, PARSED_CLEAN_TEXT."""

from __future__ import annotations

from regtruth.evidence.store import get_primary_text
from regtruth.models import ParsedDocument, ProvisionNode
from regtruth.parser.storage import (
    get_latest_parse,
    parse_evidence,
    parse_unparsed_evidence,
    store_parsed_document,
)
from regtruth.parser.structural import parse_text
from tests.factories import VAT_TEXT, make_evidence


class TestParseEvidence:
    def test_stores_latest_parse_with_nodes(self, db) -> None:
        evidence = make_evidence(db, text=VAT_TEXT)

        doc, created, changed = parse_evidence(db, evidence)

        assert created is True
        assert doc.is_latest is True
        assert doc.node_count > 0
        paths = {
            n.path
            for n in db.query(ProvisionNode).filter(ProvisionNode.parsed_document_id == doc.id).all()
        }
        assert "/clanak:38/stavak:1" in paths
        assert "/clanak:38/stavak:2" in paths

    def test_child_nodes_link_to_parent(self, db) -> None:
        evidence = make_evidence(db, text=VAT_TEXT)
        doc, _, _ = parse_evidence(db, evidence)
        nodes = {
            n.path: n
            for n in db.query(ProvisionNode).filter(ProvisionNode.parsed_document_id == doc.id).all()
        }
        assert nodes["/clanak:38/stavak:1"].parent_id == nodes["/clanak:38"].id

    def test_parsed_clean_text_becomes_primary_text(self, db) -> None:
        evidence = make_evidence(db, text=VAT_TEXT)
        parse_evidence(db, evidence)
        primary = get_primary_text(db, evidence)
        assert "Opća stopa PDV-a iznosi 25%." in primary

    def test_identical_reparse_is_not_stored(self, db) -> None:
        evidence = make_evidence(db, text=VAT_TEXT)
        first, _, _ = parse_evidence(db, evidence)

        second, created, changed = parse_evidence(db, evidence)

        assert created is False
        assert changed is False
        assert second.id == first.id
        assert db.query(ParsedDocument).filter(ParsedDocument.evidence_id == evidence.id).count() == 1


class TestStoreParsedDocument:
    def test_new_parser_version_supersedes_previous(self, db) -> None:
        evidence = make_evidence(db, text=VAT_TEXT)
        result = parse_text(VAT_TEXT)
        first, _, _ = store_parsed_document(db, evidence.id, result, "nn-structural", "1.0.0", "cfg")

        second, created, _ = store_parsed_document(db, evidence.id, result, "nn-structural", "1.1.0", "cfg")

        assert created is True
        assert second.supersedes_id == first.id
        assert get_latest_parse(db, evidence.id).id == second.id
        assert db.get(ParsedDocument, first.id).is_latest is False


class TestParseUnparsedEvidence:
    def test_parses_only_evidence_without_latest_parse(self, db) -> None:
        make_evidence(db, text=VAT_TEXT)
        make_evidence(db, text="Članak 1.\nTekst.", url="https://example.hr/a")

        counts = parse_unparsed_evidence(db)
        again = parse_unparsed_evidence(db)

        assert counts["parsed"] == 2
        assert again["parsed"] == 0
