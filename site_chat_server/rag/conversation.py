"""Retrieval-augmented conversation over a prepared site."""

import logging
from dataclasses import dataclass

from ..errors import InvalidInputError, NotReadyError
from ..providers import EmbeddingProvider, TextCompletionProvider
from .chunker import Passage
from .indexer import VectorIndex
from .reranker import LLMReranker
from .retriever import retrieve

logger = logging.getLogger(__name__)

INVALID_QUESTION_MESSAGE = "Please ask a valid question."
NOT_FOUND_ANSWER = "I'm sorry, I couldn't find information about that on this website."

SYSTEM_PROMPT = f"""You are an expert assistant for the website being discussed. Your goal is to provide accurate and helpful answers based ONLY on the context provided below. Be friendly and conversational. If you don't know the answer or it's not in the context, say "{NOT_FOUND_ANSWER}" DO NOT make up information.

Context:
{{context}}"""


@dataclass(frozen=True)
class ConversationTurn:
    """One answered question."""

    question: str
    answer: str


@dataclass(frozen=True)
class ConversationResult:
    """Answer to a question plus the history that includes it."""

    answer: str
    history: tuple[ConversationTurn, ...]


def format_context(passages: list[Passage]) -> str:
    """Join passage texts into the grounding context block."""
    return "\n\n".join(passage.text for passage in passages)


def build_messages(question: str, context: str, history: tuple[ConversationTurn, ...]) -> list[dict[str, str]]:
    """Assemble system instruction, prior turns and the new question."""
    messages = [{"role": "system", "content": SYSTEM_PROMPT.format(context=context)}]
    for turn in history:
        messages.append({"role": "user", "content": turn.question})
        messages.append({"role": "assistant", "content": turn.answer})
    messages.append({"role": "user", "content": question})
    return messages


class ConversationEngine:
    """Answers questions from an index: retrieve, rerank, then complete."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        completion_provider: TextCompletionProvider,
        reranker: LLMReranker,
        top_k: int = 5,
    ):
        """Initialize the engine.

        Args:
            embedding_provider: Provider the index was built with
            completion_provider: Model producing the answer
            reranker: Second-stage reranker narrowing the retrieved passages
            top_k: Passages retrieved before reranking
        """
        self.embedding_provider = embedding_provider
        self.completion_provider = completion_provider
        self.reranker = reranker
        self.top_k = top_k

    def answer(
        self, question, index: VectorIndex | None, history: tuple[ConversationTurn, ...] = ()
    ) -> ConversationResult:
        """Answer question grounded in index, given the prior turns.

        The history passed in is never modified; the returned result carries
        the extended history. Nothing is returned if the model call fails, so
        callers that persist ``result.history`` keep their old history.

        Args:
            question: User question
            index: Active vector index, or None when no site is prepared
            history: Prior turns, oldest first

        Returns:
            ConversationResult with the answer and the new history

        Raises:
            InvalidInputError: If question is not a non-empty string
            NotReadyError: If index is None
            UpstreamProviderError: If an embedding or completion call fails
        """
        if not isinstance(question, str) or not question.strip():
            raise InvalidInputError(INVALID_QUESTION_MESSAGE)
        if index is None:
            raise NotReadyError("Chatbot is not ready. Please prepare a site first.")

        logger.info(f"[CHAT] Received question: {question[:200]!r}")

        candidates = retrieve(index, question, self.top_k, self.embedding_provider)
        logger.debug(f"[CHAT] Retrieved {len(candidates)} passages for reranking")
        passages = self.reranker.rerank(question, candidates)

        messages = build_messages(question, format_context(passages), tuple(history))
        answer = self.completion_provider.complete(messages).strip()
        logger.info(f"[CHAT] Generated response ({len(answer)} chars)")

        return ConversationResult(answer=answer, history=(*history, ConversationTurn(question, answer)))
