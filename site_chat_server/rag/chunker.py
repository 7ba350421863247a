"""Split crawled text into overlapping passages."""

from dataclasses import dataclass

from langchain_text_splitters import RecursiveCharacterTextSplitter


@dataclass(frozen=True)
class Passage:
    """A bounded span of crawled text, the unit of embedding and retrieval.

    Attributes:
        text: Passage content
        position: Order of the passage within its corpus (0-based)
        start: Character offset of the passage in the corpus
        end: Character offset just past the passage
        overlap: Characters shared with the preceding passage
    """

    text: str
    position: int
    start: int
    end: int
    overlap: int = 0

    def to_metadata(self) -> dict:
        """Positional metadata stored next to the passage in the vector index."""
        return {"position": self.position, "start": self.start, "end": self.end, "overlap": self.overlap}

    @classmethod
    def from_metadata(cls, text: str, metadata: dict) -> "Passage":
        """Rebuild a passage from text and metadata read back from the index."""
        return cls(
            text=text,
            position=int(metadata.get("position", 0)),
            start=int(metadata.get("start", 0)),
            end=int(metadata.get("end", len(text))),
            overlap=int(metadata.get("overlap", 0)),
        )


def split_passages(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> list[Passage]:
    """Split text into overlapping passages.

    Splitting prefers paragraph, then line, then word boundaries, and is
    deterministic for identical input.

    Args:
        text: Corpus to split
        chunk_size: Maximum passage length in characters
        chunk_overlap: Characters repeated between neighbouring passages

    Returns:
        Passages in corpus order
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        add_start_index=True,
    )
    documents = splitter.create_documents([text])

    passages: list[Passage] = []
    previous_end = 0
    for position, doc in enumerate(documents):
        start = doc.metadata.get("start_index", -1)
        if start < 0:
            # Splitter could not locate the chunk; fall back to the previous boundary
            start = previous_end
        end = start + len(doc.page_content)
        overlap = max(0, previous_end - start) if passages else 0
        passages.append(Passage(text=doc.page_content, position=position, start=start, end=end, overlap=overlap))
        previous_end = end

    return passages
