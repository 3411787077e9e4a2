"""
FastAPI dependencies wiring the process-wide services.
Tests replace them through app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from src.core.session_registry import SessionRegistry
from src.services.bot_handler import BotHandler
from src.services.conversation_engine import ConversationEngine
from src.services.matching_engine import MatchingEngine
from src.services.request_store import RequestStore


@lru_cache()
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()


@lru_cache()
def get_request_store() -> RequestStore:
    return RequestStore()


def get_matching_engine(store: RequestStore = Depends(get_request_store)) -> MatchingEngine:
    return MatchingEngine(store)


def get_conversation_engine(
    sessions: SessionRegistry = Depends(get_session_registry),
    store: RequestStore = Depends(get_request_store)
) -> ConversationEngine:
    return ConversationEngine(sessions, store)


def get_bot_handler(
    store: RequestStore = Depends(get_request_store),
    matching: MatchingEngine = Depends(get_matching_engine),
    conversation: ConversationEngine = Depends(get_conversation_engine),
    sessions: SessionRegistry = Depends(get_session_registry)
) -> BotHandler:
    return BotHandler(store, matching, conversation, sessions)
