"""Tests for the sliding-window text chunker."""

import pytest

from src.knowledge_base.domain import TextChunker, normalize_text


class TestNormalizeText:
    def test_collapses_whitespace_runs(self):
        assert normalize_text("Step 1.\n\n  Reset\tthe   router.\r\n") == "Step 1. Reset the router."

    def test_whitespace_only_becomes_empty(self):
        assert normalize_text(" \n\t ") == ""


class TestTextChunker:
    def test_basic_ingestion_offsets(self):
        chunks = TextChunker(1000, 200).chunk("a" * 2500)

        assert [c.start for c in chunks] == [0, 800, 1600]
        assert [c.end for c in chunks] == [1000, 1800, 2500]
        assert [len(c.text) for c in chunks] == [1000, 1000, 900]
        assert [c.index for c in chunks] == [0, 1, 2]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    def test_empty_input_yields_no_chunks(self, text):
        assert TextChunker().split(text) == []

    def test_short_text_is_single_chunk(self):
        assert TextChunker().split("  Reset your password from the login page.  ") == [
            "Reset your password from the login page."
        ]

    def test_text_of_exactly_chunk_size_is_single_chunk(self):
        chunks = TextChunker(100, 20).chunk("b" * 100)
        assert len(chunks) == 1
        assert chunks[0].end == 100

    def test_cuts_after_period_past_midpoint(self):
        text = "a" * 70 + ". " + "b" * 100
        chunks = TextChunker(100, 20).chunk(text)

        assert chunks[0].text == "a" * 70 + "."
        assert chunks[0].end == 71
        assert chunks[1].start == 51

    def test_ignores_period_before_midpoint(self):
        text = "a" * 30 + ". " + "b" * 200
        chunks = TextChunker(100, 20).chunk(text)

        assert chunks[0].end == 100
        assert len(chunks[0].text) == 100

    def test_chunks_never_exceed_chunk_size(self):
        text = " ".join(f"Sentence number {i} explains one step." for i in range(300))
        chunks = TextChunker(250, 50).chunk(text)

        assert all(len(c.text) <= 250 for c in chunks)

    def test_chunks_cover_normalized_text_without_gaps(self):
        text = "\n".join(f"Policy {i}: refunds take {i % 7 + 1} days." for i in range(200))
        normalized = normalize_text(text)
        chunks = TextChunker(300, 60).chunk(text)

        assert chunks[0].start == 0
        assert chunks[-1].end == len(normalized)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start <= previous.end
            assert current.start > previous.start

    def test_consecutive_chunks_overlap_by_configured_amount(self):
        chunks = TextChunker(100, 25).chunk("x" * 400)

        for previous, current in zip(chunks, chunks[1:]):
            assert previous.end - current.start == 25

    def test_zero_overlap_chunks_abut(self):
        chunks = TextChunker(100, 0).chunk("y" * 250)

        assert [(c.start, c.end) for c in chunks] == [(0, 100), (100, 200), (200, 250)]

    def test_indices_are_contiguous(self):
        chunks = TextChunker(120, 30).chunk("word " * 500)
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_split_is_deterministic(self):
        text = "The VPN client must be restarted. " * 80
        chunker = TextChunker(200, 40)
        assert chunker.split(text) == chunker.split(text)

    def test_chunk_text_matches_offsets(self):
        text = "Escalate outages to tier two. Log every call. " * 40
        normalized = normalize_text(text)
        for chunk in TextChunker(150, 30).chunk(text):
            assert chunk.text == normalized[chunk.start:chunk.end].strip()

    @pytest.mark.parametrize(
        "size, overlap",
        [(0, 0), (-10, 0), (100, -1), (100, 100), (100, 150)]
    )
    def test_rejects_invalid_configuration(self, size, overlap):
        with pytest.raises(ValueError):
            TextChunker(size, overlap)
