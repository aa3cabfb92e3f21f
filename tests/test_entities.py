"""Tests for knowledge base domain entities and vector ID helpers."""

import pytest

from src.knowledge_base.domain import (
    DocumentStatus,
    KnowledgeDocument,
    ReconciliationReport,
    RetrievalResult,
    RetrievedChunk,
    UNKNOWN_SOURCE,
    build_vector_id,
    build_vector_ids,
    parse_vector_id,
    sanitize_filename,
)


class TestVectorIds:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("Guide v1.pdf", "Guide_v1_pdf"),
            ("refund-policy (2024).md", "refund_policy__2024__md"),
            ("Überweisung.txt", "_berweisung_txt"),
            ("plain", "plain"),
        ]
    )
    def test_sanitize_filename(self, filename, expected):
        assert sanitize_filename(filename) == expected

    def test_build_vector_ids(self):
        assert build_vector_ids("Guide v1.pdf", 3) == [
            "Guide_v1_pdf_chunk_0",
            "Guide_v1_pdf_chunk_1",
            "Guide_v1_pdf_chunk_2",
        ]

    def test_build_vector_ids_for_empty_document(self):
        assert build_vector_ids("empty.txt", 0) == []

    def test_deletion_ids_match_ingestion_ids(self):
        ingested = [build_vector_id(sanitize_filename("Guide v1.pdf"), i) for i in range(5)]
        document = KnowledgeDocument(id="doc-1", filename="Guide v1.pdf", chunk_count=5)
        assert document.vector_ids == ingested

    def test_parse_vector_id(self):
        assert parse_vector_id("Guide_v1_pdf_chunk_12") == ("Guide_v1_pdf", 12)

    def test_parse_vector_id_takes_last_chunk_marker(self):
        assert parse_vector_id("notes_chunk_1_pdf_chunk_4") == ("notes_chunk_1_pdf", 4)

    @pytest.mark.parametrize("vector_id", ["random-id", "Guide_chunk_", "Guide_chunk_x", "_chunk_3"])
    def test_parse_rejects_foreign_ids(self, vector_id):
        assert parse_vector_id(vector_id) is None


class TestKnowledgeDocument:
    def test_defaults(self):
        document = KnowledgeDocument(id=None, filename="FAQ.md", chunk_count=2)
        assert document.status == DocumentStatus.INDEXED
        assert document.uploaded_at.tzinfo is not None
        assert document.vector_prefix == "FAQ_md"

    def test_rejects_negative_chunk_count(self):
        with pytest.raises(ValueError):
            KnowledgeDocument(id=None, filename="FAQ.md", chunk_count=-1)


class TestRetrievalTypes:
    def test_missing_metadata_degrades(self):
        chunk = RetrievedChunk.from_metadata(None, None)
        assert chunk.text == ""
        assert chunk.source == UNKNOWN_SOURCE
        assert chunk.score == 0.0

    def test_partial_metadata(self):
        chunk = RetrievedChunk.from_metadata({"text": "Reboot the modem."}, 0.42)
        assert chunk.text == "Reboot the modem."
        assert chunk.source == UNKNOWN_SOURCE
        assert chunk.score == pytest.approx(0.42)

    def test_sources_deduplicated_in_first_seen_order(self):
        chunks = [
            RetrievedChunk("a", "b.pdf", 0.9),
            RetrievedChunk("b", "a.pdf", 0.8),
            RetrievedChunk("c", "b.pdf", 0.7),
        ]
        result = RetrievalResult.from_chunks(chunks)
        assert result.source_documents == ["b.pdf", "a.pdf"]
        assert len(result.relevant_chunks) == 3

    def test_empty_result(self):
        result = RetrievalResult.empty()
        assert result.is_empty
        assert result.source_documents == []

    def test_report_consistency(self):
        assert ReconciliationReport().is_consistent
        assert not ReconciliationReport(orphaned_vector_ids=["x_chunk_0"]).is_consistent
