"""Tests for retrieval-augmented conversation."""

import pytest
from conftest import FakeCompletionProvider

from site_chat_server.errors import InvalidInputError, NotReadyError, UpstreamProviderError
from site_chat_server.rag.conversation import (
    INVALID_QUESTION_MESSAGE,
    NOT_FOUND_ANSWER,
    ConversationEngine,
    ConversationTurn,
    build_messages,
)
from site_chat_server.rag.indexer import ingest
from site_chat_server.rag.reranker import LLMReranker
from site_chat_server.rag.retriever import retrieve

CORPUS = (
    "Our bakery sells sourdough bread every morning.\n\n"
    "The shipping policy covers returns within thirty days.\n\n"
    "Contact the support team by email at any time.\n\n"
)


@pytest.fixture
def index(embedding_provider, rag_config):
    return ingest(CORPUS, embedding_provider, rag_config)


@pytest.mark.unit
class TestRetrieve:
    """Test first-stage retrieval."""

    def test_returns_nearest_first(self, index, embedding_provider):
        passages = retrieve(index, "What is the shipping policy for returns?", 2, embedding_provider)

        assert len(passages) == 2
        assert "shipping" in passages[0].text


@pytest.mark.unit
class TestBuildMessages:
    """Test prompt assembly."""

    def test_system_then_history_then_question(self):
        history = (ConversationTurn("Hi?", "Hello!"), ConversationTurn("Open Sundays?", "Yes."))

        messages = build_messages("Any bread?", "Sourdough daily.", history)

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user", "assistant", "user"]
        assert "Sourdough daily." in messages[0]["content"]
        assert NOT_FOUND_ANSWER in messages[0]["content"]
        assert messages[1]["content"] == "Hi?"
        assert messages[4]["content"] == "Yes."
        assert messages[-1] == {"role": "user", "content": "Any bread?"}


@pytest.mark.unit
class TestConversationEngine:
    """Test answering questions against an index."""

    def test_answer_grounded_in_reranked_passages(self, engine, index, chat_provider, rerank_provider):
        rerank_provider.responses = ['{"0": 10, "1": 0, "2": 0}']

        result = engine.answer("Do you sell sourdough bread?", index)

        assert result.answer == "Sunrise Bakery sells sourdough bread."
        messages, _ = chat_provider.prompts[0]
        assert "sourdough bread every morning" in messages[0]["content"]
        assert messages[-1]["content"] == "Do you sell sourdough bread?"

    def test_answer_is_stripped(self, embedding_provider, rerank_provider, index):
        engine = ConversationEngine(
            embedding_provider, FakeCompletionProvider(["  Padded answer.\n"]), LLMReranker(rerank_provider)
        )

        assert engine.answer("Question?", index).answer == "Padded answer."

    def test_history_extended_without_mutating_input(self, engine, index):
        history = (ConversationTurn("First?", "First answer."),)

        result = engine.answer("Second?", index, history)

        assert history == (ConversationTurn("First?", "First answer."),)
        assert result.history == (
            ConversationTurn("First?", "First answer."),
            ConversationTurn("Second?", "Sunrise Bakery sells sourdough bread."),
        )

    def test_previous_turns_sent_to_model(self, engine, index, chat_provider):
        history = (ConversationTurn("What do you bake?", "Bread."),)

        engine.answer("When?", index, history)

        messages, _ = chat_provider.prompts[0]
        assert {"role": "user", "content": "What do you bake?"} in messages
        assert {"role": "assistant", "content": "Bread."} in messages

    @pytest.mark.parametrize("question", ["", "   ", None, 42])
    def test_invalid_question(self, engine, index, chat_provider, question):
        with pytest.raises(InvalidInputError, match=INVALID_QUESTION_MESSAGE):
            engine.answer(question, index)

        assert chat_provider.prompts == []

    def test_no_index(self, engine):
        with pytest.raises(NotReadyError):
            engine.answer("Hello?", None)

    def test_completion_failure_propagates(self, embedding_provider, rerank_provider, index):
        engine = ConversationEngine(
            embedding_provider,
            FakeCompletionProvider(error=UpstreamProviderError("backend down")),
            LLMReranker(rerank_provider),
        )

        with pytest.raises(UpstreamProviderError):
            engine.answer("Hello?", index)

    def test_rerank_failure_still_answers(self, embedding_provider, chat_provider, index):
        engine = ConversationEngine(
            embedding_provider, chat_provider, LLMReranker(FakeCompletionProvider(["not json"]), top_n=2)
        )

        result = engine.answer("Do you ship?", index)

        assert result.answer == "Sunrise Bakery sells sourdough bread."
