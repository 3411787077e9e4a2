"""
Tests for the multi-step request creation flow.
"""

from src.core.session_registry import ConversationStep
from src.services.conversation_engine import ConversationOutcome


class TestConversationEngine:

    def test_full_flow_creates_request(self, conversation, store, matching):
        """Problem, address and phone produce one open request with a normalised phone."""
        assert conversation.begin("u1", "children", "CAO") == ConversationStep.AWAITING_PROBLEM

        result = conversation.submit_text("u1", "Анна", "Нужна помощь с уроками")
        assert result.kind == ConversationOutcome.ADVANCED
        assert result.step == ConversationStep.AWAITING_ADDRESS

        result = conversation.submit_text("u1", "Анна", "ул. Арбат, д. 1")
        assert result.kind == ConversationOutcome.ADVANCED
        assert result.step == ConversationStep.AWAITING_PHONE

        result = conversation.submit_text("u1", "Анна", "8 (999) 123-45-67")
        assert result.kind == ConversationOutcome.CREATED

        request = result.request
        assert request.author_id == "u1"
        assert request.author_name == "Анна"
        assert request.problem == "Нужна помощь с уроками"
        assert request.address == "ул. Арбат, д. 1"
        assert request.phone == "+7 (999) 123-45-67"
        assert request.category == "children"
        assert request.region == "CAO"

        assert conversation.current_step("u1") is None
        assert [r.id for r in matching.browse("children", "CAO")] == [request.id]

    def test_invalid_phone_keeps_state(self, conversation, store):
        """A bad phone is a re-prompt: nothing is created and the step stays."""
        conversation.begin("u1", "elderly", "SAO")
        conversation.submit_text("u1", "Анна", "Купить продукты")
        conversation.submit_text("u1", "Анна", "")

        result = conversation.submit_text("u1", "Анна", "12345")
        assert result.kind == ConversationOutcome.RE_PROMPT
        assert result.step == ConversationStep.AWAITING_PHONE
        assert conversation.current_step("u1") == ConversationStep.AWAITING_PHONE
        assert store.list_by_author("u1") == []

        result = conversation.submit_text("u1", "Анна", "+7 999 123 45 67")
        assert result.kind == ConversationOutcome.CREATED

    def test_blank_address_is_stored_as_none(self, conversation):
        """An empty address answer is accepted and kept empty."""
        conversation.begin("u1", "animals", "VAO")
        conversation.submit_text("u1", "Анна", "Найти хозяев котенку")
        conversation.submit_text("u1", "Анна", "   ")

        result = conversation.submit_text("u1", "Анна", "9991234567")
        assert result.request.address is None

    def test_empty_problem_is_reprompted(self, conversation):
        """Whitespace is not a problem description."""
        conversation.begin("u1", "nature", "ZAO")

        result = conversation.submit_text("u1", "Анна", "   ")
        assert result.kind == ConversationOutcome.RE_PROMPT
        assert conversation.current_step("u1") == ConversationStep.AWAITING_PROBLEM

    def test_text_is_stripped(self, conversation):
        """Surrounding whitespace is dropped from answers."""
        conversation.begin("u1", "nature", "ZAO")
        conversation.submit_text("u1", "Анна", "  Убрать мусор в парке  ")
        conversation.submit_text("u1", "Анна", " Парк Горького ")

        result = conversation.submit_text("u1", "Анна", "89991234567")
        assert result.request.problem == "Убрать мусор в парке"
        assert result.request.address == "Парк Горького"

    def test_text_without_flow_is_idle(self, conversation, store):
        """Free text outside a flow does nothing."""
        result = conversation.submit_text("u1", "Анна", "привет")

        assert result.kind == ConversationOutcome.IDLE
        assert store.list_by_author("u1") == []

    def test_begin_rejects_unknown_values(self, conversation):
        """A flow only starts for a known category and region."""
        assert conversation.begin("u1", "robots", "CAO") is None
        assert conversation.begin("u1", "children", "MARS") is None
        assert conversation.current_step("u1") is None

    def test_begin_restarts_flow(self, conversation):
        """Starting again discards the previous answers."""
        conversation.begin("u1", "children", "CAO")
        conversation.submit_text("u1", "Анна", "Первая проблема")

        conversation.begin("u1", "elderly", "SAO")
        assert conversation.current_step("u1") == ConversationStep.AWAITING_PROBLEM

    def test_reset_abandons_flow(self, conversation, store):
        """Reset drops the flow without creating anything."""
        conversation.begin("u1", "children", "CAO")
        conversation.submit_text("u1", "Анна", "Проблема")

        assert conversation.reset("u1") is True
        assert conversation.current_step("u1") is None
        assert conversation.reset("u1") is False
        assert store.list_by_author("u1") == []

    def test_users_have_independent_flows(self, conversation):
        """One user's answers never leak into another user's flow."""
        conversation.begin("u1", "children", "CAO")
        conversation.begin("u2", "animals", "SAO")
        conversation.submit_text("u1", "Анна", "Проблема Анны")

        assert conversation.current_step("u1") == ConversationStep.AWAITING_ADDRESS
        assert conversation.current_step("u2") == ConversationStep.AWAITING_PROBLEM

    def test_failed_create_ends_flow(self, conversation, store, fail_transactions):
        """When the request cannot be stored the flow ends and nothing is kept."""
        conversation.begin("u1", "children", "CAO")
        conversation.submit_text("u1", "Анна", "Проблема")
        conversation.submit_text("u1", "Анна", "Адрес")
        fail_transactions()

        result = conversation.submit_text("u1", "Анна", "89991234567")

        assert result.kind == ConversationOutcome.FAILED
        assert result.request is None
        assert conversation.current_step("u1") is None
        assert store.list_by_author("u1") == []
