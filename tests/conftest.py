"""
Shared fixtures: every test gets its own SQLite database file.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError

from src.core.database import build_engine, build_session_factory, init_db
from src.core.session_registry import SessionRegistry
from src.services.conversation_engine import ConversationEngine
from src.services.matching_engine import MatchingEngine
from src.services.request_store import RequestStore


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return RequestStore(session_factory)


@pytest.fixture
def sessions():
    return SessionRegistry()


@pytest.fixture
def matching(store):
    return MatchingEngine(store)


@pytest.fixture
def conversation(sessions, store):
    return ConversationEngine(sessions, store)


@pytest.fixture
def make_request(store):
    """Creates an open request with sensible defaults."""

    def _make(author_id="author", category="children", region="CAO", problem="Нужна помощь", **kwargs):
        request = store.create(
            author_id=author_id,
            author_name=kwargs.pop("author_name", "Автор"),
            problem=problem,
            phone=kwargs.pop("phone", "+7 (999) 123-45-67"),
            category=category,
            region=region,
            **kwargs
        )
        assert request is not None
        return request

    return _make


@pytest.fixture
def fail_transactions(store, monkeypatch):
    """Makes every later store transaction fail like a locked database."""

    def _break():
        @contextmanager
        def failing_transaction():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
            yield

        monkeypatch.setattr(store, "transaction", failing_transaction)

    return _break
