"""Tests for passage splitting."""

import pytest

from site_chat_server.rag.chunker import Passage, split_passages


@pytest.fixture
def long_text():
    return " ".join(f"word{i}" for i in range(300))


@pytest.mark.unit
class TestSplitPassages:
    """Test overlapping passage splitting."""

    def test_passages_respect_chunk_size(self, long_text):
        passages = split_passages(long_text, chunk_size=100, chunk_overlap=20)

        assert len(passages) > 1
        assert all(len(p.text) <= 100 for p in passages)

    def test_positions_are_sequential(self, long_text):
        passages = split_passages(long_text, chunk_size=100, chunk_overlap=20)

        assert [p.position for p in passages] == list(range(len(passages)))

    def test_offsets_locate_passage_text(self, long_text):
        passages = split_passages(long_text, chunk_size=100, chunk_overlap=20)

        for passage in passages:
            assert long_text[passage.start : passage.end] == passage.text

    def test_neighbouring_passages_overlap(self, long_text):
        passages = split_passages(long_text, chunk_size=100, chunk_overlap=20)

        assert passages[0].overlap == 0
        for previous, current in zip(passages, passages[1:]):
            assert current.overlap == max(0, previous.end - current.start)
            assert current.overlap <= 20
        assert any(p.overlap > 0 for p in passages)

    def test_covers_whole_text(self, long_text):
        passages = split_passages(long_text, chunk_size=100, chunk_overlap=20)

        assert passages[0].text.startswith("word0 ")
        assert passages[-1].text.endswith("word299")

    def test_deterministic(self, long_text):
        assert split_passages(long_text, 100, 20) == split_passages(long_text, 100, 20)

    def test_short_text_single_passage(self):
        passages = split_passages("Just one short paragraph.", chunk_size=1000, chunk_overlap=200)

        assert passages == [Passage(text="Just one short paragraph.", position=0, start=0, end=25, overlap=0)]

    def test_prefers_paragraph_boundaries(self):
        text = "First paragraph about bread.\n\nSecond paragraph about shipping."

        passages = split_passages(text, chunk_size=40, chunk_overlap=0)

        assert [p.text for p in passages] == ["First paragraph about bread.", "Second paragraph about shipping."]

    @pytest.mark.parametrize("text", ["", "   \n\n  "])
    def test_empty_text(self, text):
        assert split_passages(text) == []

    def test_metadata_round_trip(self):
        passage = Passage(text="abc", position=4, start=10, end=13, overlap=2)

        assert Passage.from_metadata("abc", passage.to_metadata()) == passage
