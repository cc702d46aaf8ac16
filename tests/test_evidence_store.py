"""Evidence Store tests: get-or-create by (url, content_hash), artifacts, primary text, staleness."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from regtruth.evidence.refs import EvidenceRef, resolve_evidence_ref
from regtruth.evidence.repository import get_evidence, list_artifacts, list_evidence_by_url
from regtruth.evidence.store import (
    content_hash,
    get_primary_text,
    mark_stale_evidence,
    store_artifact,
    store_evidence,
)
from regtruth.models import Evidence
from regtruth.models.enums import ArtifactKind, ContentClass, StalenessStatus
from tests.factories import make_evidence

URL = "https://www.porezna-uprava.hr/HR_porezni_sustav/Stranice/pdv.aspx"


class TestStoreEvidence:
    def test_creates_evidence_with_hash(self, db) -> None:
        evidence, created = store_evidence(db, URL, "<p>Opća stopa PDV-a iznosi 25%.</p>", ContentClass.HTML)
        db.commit()
        assert created is True
        assert evidence.content_hash == content_hash("<p>Opća stopa PDV-a iznosi 25%.</p>")
        assert evidence.staleness_status == StalenessStatus.FRESH.value
        assert evidence.raw_content.startswith("<p>")

    def test_same_url_and_content_is_not_duplicated(self, db) -> None:
        first, created_first = store_evidence(db, URL, "isti sadržaj", ContentClass.HTML)
        second, created_second = store_evidence(db, URL, "isti sadržaj", ContentClass.HTML)
        db.commit()
        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        assert db.query(Evidence).filter(Evidence.url == URL).count() == 1

    def test_changed_content_creates_new_snapshot(self, db) -> None:
        first, _ = store_evidence(db, URL, "verzija 1", ContentClass.HTML)
        second, created = store_evidence(db, URL, "verzija 2", ContentClass.HTML)
        db.commit()
        assert created is True
        assert first.id != second.id
        assert len(list_evidence_by_url(db, URL)) == 2

    def test_pdf_bytes_kept_binary(self, db) -> None:
        body = b"%PDF-1.7 binary body"
        evidence, _ = store_evidence(db, URL + "/doc.pdf", body, ContentClass.PDF_TEXT)
        db.commit()
        assert evidence.raw_bytes == body
        assert evidence.raw_content is None
        assert evidence.content_hash == content_hash(body)

    def test_html_bytes_decoded(self, db) -> None:
        evidence, _ = store_evidence(db, URL, "Članak 1.".encode(), ContentClass.HTML)
        assert evidence.raw_content == "Članak 1."

    def test_soft_deleted_row_is_not_reused(self, db) -> None:
        first, _ = store_evidence(db, URL, "sadržaj", ContentClass.HTML)
        first.deleted_at = datetime.now(UTC)
        db.commit()
        second, created = store_evidence(db, URL, "sadržaj", ContentClass.HTML)
        assert created is True
        assert second.id != first.id


class TestArtifacts:
    def test_primary_text_falls_back_to_raw_content(self, db) -> None:
        evidence = make_evidence(db, text="Sirovi tekst")
        assert get_primary_text(db, evidence) == "Sirovi tekst"

    def test_ocr_text_wins_over_clean_text(self, db) -> None:
        evidence = make_evidence(db, text="sirovo")
        store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "čisti tekst")
        store_artifact(db, evidence.id, ArtifactKind.OCR_TEXT, "ocr tekst", metadata={"ocr_confidence": 0.91})
        db.commit()
        assert get_primary_text(db, evidence) == "ocr tekst"

    def test_new_primary_text_reports_change(self, db) -> None:
        evidence = make_evidence(db, text="sirovo")
        stored = store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "čisti tekst")
        assert stored.created is True
        assert stored.primary_text_changed is True

    def test_duplicate_artifact_is_not_stored_twice(self, db) -> None:
        evidence = make_evidence(db)
        store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "tekst")
        again = store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "tekst")
        db.commit()
        assert again.created is False
        assert again.primary_text_changed is False
        assert len(list_artifacts(db, evidence.id)) == 1

    def test_artifact_for_missing_evidence_raises(self, db) -> None:
        import uuid

        with pytest.raises(LookupError):
            store_artifact(db, uuid.uuid4(), ArtifactKind.OCR_TEXT, "tekst")

    def test_artifact_read_exposes_metadata(self, db) -> None:
        evidence = make_evidence(db)
        stored = store_artifact(db, evidence.id, "OCR_TEXT", "tekst", metadata={"ocr_confidence": 0.5})
        assert stored.artifact.kind == "OCR_TEXT"
        assert stored.artifact.metadata == {"ocr_confidence": 0.5}


class TestSoftReferences:
    def test_resolve_returns_none_for_missing(self, db) -> None:
        import uuid

        assert resolve_evidence_ref(db, EvidenceRef(uuid.uuid4())) is None

    def test_soft_deleted_hidden_unless_requested(self, db) -> None:
        evidence = make_evidence(db)
        evidence.deleted_at = datetime.now(UTC)
        db.commit()
        ref = EvidenceRef(evidence.id)
        assert resolve_evidence_ref(db, ref) is None
        assert resolve_evidence_ref(db, ref, include_deleted=True) is evidence
        assert get_evidence(db, evidence.id).deleted_at is not None


class TestStaleness:
    def test_old_fresh_evidence_becomes_stale(self, db) -> None:
        now = datetime(2025, 6, 1, tzinfo=UTC)
        old = make_evidence(db, text="staro", fetched_at=now - timedelta(days=120))
        new = make_evidence(db, text="novo", fetched_at=now - timedelta(days=5))

        marked = mark_stale_evidence(db, max_age_days=90, now=now)
        db.expire_all()

        assert marked == 1
        assert db.get(Evidence, old.id).staleness_status == StalenessStatus.STALE.value
        assert db.get(Evidence, new.id).staleness_status == StalenessStatus.FRESH.value

    def test_rerun_marks_nothing(self, db) -> None:
        now = datetime(2025, 6, 1, tzinfo=UTC)
        make_evidence(db, text="staro", fetched_at=now - timedelta(days=120))
        assert mark_stale_evidence(db, max_age_days=90, now=now) == 1
        assert mark_stale_evidence(db, max_age_days=90, now=now) == 0
