"""LLM-based reranking of retrieved passages.

This is the second stage of the retrieval pipeline:
1. Vector search returns the top-K candidates
2. A language model scores every candidate 0-10 in one call (this module)
3. The top-N candidates by score ground the answer
"""

import json
import logging
import math
import re

from ..errors import RerankParseError, UpstreamProviderError
from ..providers import TextCompletionProvider
from .chunker import Passage

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)

RERANK_PROMPT = """Given the following user query and a list of document snippets, score each document for its relevance to the query from 0 to 10. The query is: "{query}". Respond ONLY with a JSON object where keys are the document index (as a string, e.g., "0", "1") and values are the scores.

Documents:
{documents}

JSON Response:"""


def build_rerank_prompt(query: str, candidates: list[Passage]) -> str:
    """Build the scoring prompt listing every candidate by index."""
    documents = "\n\n".join(f"Doc {i}: {passage.text}" for i, passage in enumerate(candidates))
    return RERANK_PROMPT.format(query=query, documents=documents)


def parse_scores(response: str) -> dict[str, float]:
    """Parse a rerank response into a candidate index -> score mapping.

    Code fences around the JSON are ignored. Scores that are not finite
    numbers (booleans, NaN and infinities included) are dropped.

    Raises:
        RerankParseError: If the response is not a JSON object
    """
    cleaned = _CODE_FENCE_RE.sub("", response).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise RerankParseError(f"Rerank response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise RerankParseError(f"Rerank response is a JSON {type(data).__name__}, expected an object")

    scores = {}
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        try:
            score = float(value)
        except OverflowError:
            continue
        if math.isfinite(score):
            scores[str(key).strip()] = score
    return scores


class LLMReranker:
    """Reorders candidate passages by language-model relevance scores."""

    def __init__(self, completion_provider: TextCompletionProvider, top_n: int = 3, temperature: float = 0.0):
        """Initialize the reranker.

        Args:
            completion_provider: Model used for scoring
            top_n: Number of passages to keep
            temperature: Sampling temperature for the scoring call
        """
        self.completion_provider = completion_provider
        self.top_n = top_n
        self.temperature = temperature

    def rerank(self, query: str, candidates: list[Passage]) -> list[Passage]:
        """Return the top_n candidates most relevant to query.

        Candidates the model did not score count as 0; ties keep retrieval
        order. If the model call fails or its response cannot be parsed,
        the first top_n candidates are returned in retrieval order.
        """
        if not candidates:
            return []

        logger.debug(f"[RERANK] Scoring {len(candidates)} candidates")
        try:
            response = self.completion_provider.complete(
                build_rerank_prompt(query, candidates), temperature=self.temperature
            )
            scores = parse_scores(response)
        except (RerankParseError, UpstreamProviderError) as e:
            logger.warning(f"[RERANK] Falling back to retrieval order: {e}")
            return candidates[: self.top_n]

        logger.debug(f"[RERANK] Parsed scores: {scores}")
        # sorted() is stable, so equal scores keep retrieval order
        ranked = sorted(
            range(len(candidates)),
            key=lambda i: scores.get(str(i), 0.0),
            reverse=True,
        )
        return [candidates[i] for i in ranked[: self.top_n]]
