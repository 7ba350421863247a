"""Tests for per-session site preparation and chat."""

import pytest
from conftest import html_page

from site_chat_server.errors import ConfigurationError, EmptyContentError, InvalidInputError, NotReadyError
from site_chat_server.rag.cache import cache_key
from site_chat_server.rag.conversation import INVALID_QUESTION_MESSAGE
from site_chat_server.rag.session import Readiness, SiteSession, validate_site_url


@pytest.fixture
def session(pipeline, engine):
    return SiteSession("test", pipeline, engine)


@pytest.mark.unit
class TestValidateSiteUrl:
    """Test site URL validation."""

    def test_valid(self):
        assert validate_site_url("  https://example.com/docs ") == "https://example.com/docs"

    @pytest.mark.parametrize("url", [None, "", "   ", "example.com", "ftp://example.com", "https://", 42])
    def test_invalid(self, url):
        with pytest.raises(InvalidInputError):
            validate_site_url(url)


@pytest.mark.unit
class TestSiteSession:
    """Test the readiness lifecycle and conversation history."""

    def test_initially_not_ready(self, session):
        assert session.status() == {"state": "not_ready", "isReady": False, "siteUrl": None, "error": None}

    def test_answer_before_prepare(self, session):
        with pytest.raises(NotReadyError):
            session.answer("What do you sell?")

    def test_prepare_then_answer(self, session, example_site):
        result = session.prepare_site("https://example.com")

        assert result.site_url == "https://example.com"
        assert result.from_cache is False
        assert result.num_passages > 0
        assert session.status()["isReady"] is True
        assert session.status()["siteUrl"] == "https://example.com"

        answer = session.answer("What do you sell?")

        assert answer == "Sunrise Bakery sells sourdough bread."
        assert len(session.history) == 1
        assert session.history[0].question == "What do you sell?"

    def test_empty_question_leaves_history_unchanged(self, session, example_site):
        session.prepare_site("https://example.com")
        session.answer("What do you sell?")

        with pytest.raises(InvalidInputError, match=INVALID_QUESTION_MESSAGE):
            session.answer("   ")

        assert len(session.history) == 1

    def test_empty_question_rejected_before_readiness(self, session):
        with pytest.raises(InvalidInputError):
            session.answer("")

    def test_whitespace_site_not_ready(self, session, fake_site):
        fake_site.add("https://empty.example.com/", html_page("<script>app()</script>"))

        with pytest.raises(EmptyContentError):
            session.prepare_site("https://empty.example.com/")

        status = session.status()
        assert status["isReady"] is False
        assert status["siteUrl"] is None
        assert status["state"] == Readiness.FAILED.value
        assert status["error"]

    def test_failed_prepare_drops_previous_site(self, session, example_site):
        session.prepare_site("https://example.com")
        example_site.add("https://empty.example.com/", html_page(""))

        with pytest.raises(EmptyContentError):
            session.prepare_site("https://empty.example.com/")

        assert session.snapshot.index is None
        with pytest.raises(NotReadyError):
            session.answer("What do you sell?")

    def test_invalid_url_keeps_readiness(self, session, example_site):
        session.prepare_site("https://example.com")

        with pytest.raises(InvalidInputError):
            session.prepare_site("not a url")

        assert session.status()["isReady"] is True

    def test_second_prepare_uses_cache(self, pipeline, engine, example_site):
        SiteSession("a", pipeline, engine).prepare_site("https://example.com")
        requests_after_first = len(example_site.requested)

        result = SiteSession("b", pipeline, engine).prepare_site("https://www.example.com/")

        assert result.from_cache is True
        assert len(example_site.requested) == requests_after_first

    def test_prepare_resets_history(self, session, example_site):
        session.prepare_site("https://example.com")
        session.answer("What do you sell?")

        session.prepare_site("https://example.com")

        assert session.history == ()

    def test_unconfigured_embeddings(self, session, example_site, embedding_provider, pipeline):
        embedding_provider.configured = False

        with pytest.raises(ConfigurationError):
            session.prepare_site("https://example.com")

        assert not pipeline.cache_store.has_local(cache_key("https://example.com"))
        assert session.status()["isReady"] is False


@pytest.mark.unit
class TestSessionManager:
    """Test session lookup."""

    def test_default_session(self, session_manager):
        assert session_manager.get() is session_manager.get(None)
        assert session_manager.get() is session_manager.get("default")
        assert "default" in session_manager

    def test_sessions_are_independent(self, session_manager, example_site):
        session_manager.get("alice").prepare_site("https://example.com")

        assert session_manager.get("alice").status()["isReady"] is True
        assert session_manager.get("bob").status()["isReady"] is False
        assert len(session_manager) == 2
