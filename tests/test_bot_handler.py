"""
Tests for the event dispatcher: agreement gate, navigation, request flow,
reservation with author notification, cancellation and deletion.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.models.schemas import InboundEvent
from src.services.bot_handler import BotHandler


def command(user_id, text, name="Иван"):
    return InboundEvent(type="command", user_id=user_id, display_name=name, text=text)


def callback(user_id, payload, name="Иван"):
    return InboundEvent(type="callback", user_id=user_id, display_name=name, payload=payload)


def message(user_id, text, name="Иван"):
    return InboundEvent(type="message", user_id=user_id, display_name=name, text=text)


def payloads(reply_message):
    return [button.payload for row in reply_message.keyboard for button in row]


@pytest.fixture
def notifier():
    return AsyncMock(return_value={"success": True})


@pytest.fixture
def handler(store, matching, conversation, sessions, notifier):
    return BotHandler(store, matching, conversation, sessions, notifier=notifier)


@pytest.fixture
def send(handler):
    def _send(event):
        return asyncio.run(handler.handle_event(event)).messages
    return _send


class TestAgreementGate:

    def test_start_shows_agreement_until_accepted(self, send):
        """Nothing but the agreement is shown to a new user."""
        for event in (command("u1", "/start"), callback("u1", "want_to_help"), message("u1", "привет")):
            messages = send(event)
            assert len(messages) == 1
            assert "ПОЛЬЗОВАТЕЛЬСКОЕ СОГЛАШЕНИЕ" in messages[0].text
            assert payloads(messages[0]) == ["accept_agreement", "decline_agreement"]

    def test_about_is_not_gated(self, send):
        """The about text is available before accepting."""
        messages = send(command("u1", "/about"))
        assert messages[0].text.startswith("О боте")

    def test_accept_then_main_menu(self, send, store):
        """Accepting records the flag and opens the main menu."""
        messages = send(callback("u1", "accept_agreement"))

        assert store.has_accepted_agreement("u1")
        assert "Соглашение принято" in messages[0].text
        assert payloads(messages[1]) == ["want_to_help", "need_help", "profile"]
        assert "Главное меню" in send(command("u1", "/start"))[0].text

    def test_decline(self, send, store):
        """Declining leaves the user gated."""
        messages = send(callback("u1", "decline_agreement"))

        assert "необходимо принять" in messages[0].text
        assert not store.has_accepted_agreement("u1")

    def test_slash_text_is_a_command(self, send, store):
        """Text starting with a slash is handled as a command."""
        store.accept_agreement("u1")
        assert "Ваш профиль" in send(message("u1", "/profile"))[0].text

    def test_accept_failure_is_reported(self, send, store, fail_transactions):
        """If the acceptance cannot be stored the user sees an error, not the menu."""
        fail_transactions()

        messages = send(callback("u1", "accept_agreement"))

        assert len(messages) == 1
        assert messages[0].text == "Произошла ошибка. Попробуйте еще раз."
        assert not store.has_accepted_agreement("u1")


class TestRequestCreation:

    def setup_method(self):
        self.user = "author"

    def test_need_help_flow(self, send, store):
        """Menus lead to the text flow, which ends with a stored request."""
        store.accept_agreement(self.user)

        assert "moscow_need" in payloads(send(callback(self.user, "need_help"))[0])
        assert "district_need_CAO" in payloads(send(callback(self.user, "moscow_need"))[0])
        assert "category_need_children_CAO" in payloads(send(callback(self.user, "district_need_CAO"))[0])

        prompt = send(callback(self.user, "category_need_children_CAO"))[0]
        assert "опишите вашу проблему" in prompt.text

        assert "укажите адрес" in send(message(self.user, "Помочь с уроками"))[0].text
        assert "номер телефона" in send(message(self.user, "ул. Арбат, 1"))[0].text
        assert "Неверный формат" in send(message(self.user, "123"))[0].text

        created = send(message(self.user, "8 999 123 45 67"))[0]
        assert "Ваша заявка принята" in created.text
        assert "+7 (999) 123-45-67" in created.text
        assert payloads(created) == ["return_after_request"]

        requests = store.list_by_author(self.user)
        assert len(requests) == 1
        assert requests[0].author_name == "Иван"

    def test_free_text_without_flow_is_ignored(self, send, store):
        """Chatting outside a flow produces no reply."""
        store.accept_agreement(self.user)
        assert send(message(self.user, "просто текст")) == []

    def test_main_menu_abandons_flow(self, send, store, conversation):
        """Going back to the main menu drops the half-filled request."""
        store.accept_agreement(self.user)
        send(callback(self.user, "category_need_elderly_SAO"))
        send(message(self.user, "Проблема"))

        send(callback(self.user, "back_to_start"))

        assert conversation.current_step(self.user) is None
        assert send(message(self.user, "89991234567")) == []
        assert store.list_by_author(self.user) == []

    def test_created_request_clears_browsing_state(self, send, store, make_request, sessions):
        """Finishing the flow forgets the feed and own-list positions too."""
        store.accept_agreement(self.user)
        make_request(author_id=self.user)
        send(callback(self.user, "category_help_children_CAO"))
        send(callback(self.user, "my_requests"))
        assert sessions.get_browse_cursor(self.user) is not None

        send(callback(self.user, "category_need_children_CAO"))
        send(message(self.user, "Проблема"))
        send(message(self.user, "Адрес"))
        created = send(message(self.user, "89991234567"))[0]

        assert "Ваша заявка принята" in created.text
        assert sessions.get_browse_cursor(self.user) is None
        assert sessions.get_my_cursor(self.user) == 0
        assert sessions.get_conversation(self.user) is None

    def test_failed_create_clears_session(self, send, store, sessions, monkeypatch):
        """A request that cannot be stored ends the flow with an error."""
        store.accept_agreement(self.user)
        send(callback(self.user, "category_help_children_CAO"))
        send(callback(self.user, "category_need_children_CAO"))
        send(message(self.user, "Проблема"))
        send(message(self.user, "Адрес"))
        monkeypatch.setattr(store, "create", lambda *args, **kwargs: None)

        messages = send(message(self.user, "89991234567"))

        assert messages[0].text == "Произошла ошибка. Попробуйте еще раз."
        assert sessions.get_conversation(self.user) is None
        assert sessions.get_browse_cursor(self.user) is None
        assert send(message(self.user, "89991234567")) == []


class TestBrowsingAndReservation:

    @pytest.fixture(autouse=True)
    def accepted(self, store):
        for user_id in ("author", "helper", "other"):
            store.accept_agreement(user_id)

    def test_feed_hides_phone_until_responded(self, send, make_request):
        """The card offers to respond and keeps the phone hidden."""
        request = make_request(author_id="author", phone="+7 (916) 555-44-33")

        card = send(callback("helper", "category_help_children_CAO"))[0]

        assert "Заявка 1 из 1" in card.text
        assert "+7 (916) 555-44-33" not in card.text
        assert f"respond_{request.id}" in payloads(card)

    def test_empty_feed(self, send):
        """No open requests gives the empty screen."""
        card = send(callback("helper", "category_help_nature_ZAO"))[0]
        assert "нет активных заявок" in card.text

    def test_feed_navigation_clamps_index(self, send, make_request, sessions):
        """An index past the end shows the last request."""
        for _ in range(3):
            make_request()

        card = send(callback("helper", "next_5_children_CAO"))[0]

        assert "Заявка 3 из 3" in card.text
        assert "prev_1_children_CAO" in payloads(card)
        assert sessions.get_browse_cursor("helper").index == 2

    def test_respond_discloses_phone_and_notifies_author(self, send, make_request, notifier, store):
        """A successful response shows the contact and tells the author."""
        request = make_request(author_id="author", phone="+7 (916) 555-44-33")
        make_request(author_id="helper", phone="+7 (926) 111-22-33")

        messages = send(callback("helper", f"respond_{request.id}"))

        assert "успешно откликнулись" in messages[0].text
        assert "+7 (916) 555-44-33" in messages[0].text
        assert store.find_by_id(request.id).reserved_by == "helper"

        notifier.assert_awaited_once()
        recipient, text = notifier.await_args.args
        assert recipient == "author"
        assert "Иван" in text
        assert "+7 (926) 111-22-33" in text

    def test_notification_without_known_phone(self, send, make_request, notifier):
        """A responder without own requests is announced without a phone."""
        request = make_request(author_id="author")
        send(callback("helper", f"respond_{request.id}"))

        _, text = notifier.await_args.args
        assert "Телефон откликнувшегося: Не указан" in text

    def test_failed_notification_keeps_reservation(self, store, matching, conversation, sessions, make_request):
        """A broken transport does not undo the reservation."""
        request = make_request(author_id="author")
        failing = AsyncMock(side_effect=RuntimeError("transport down"))
        handler = BotHandler(store, matching, conversation, sessions, notifier=failing)

        reply = asyncio.run(handler.handle_event(callback("helper", f"respond_{request.id}")))

        assert "успешно откликнулись" in reply.messages[0].text
        assert store.find_by_id(request.id).reserved_by == "helper"

    def test_respond_twice(self, send, make_request):
        """The same user is told they already responded."""
        request = make_request()
        send(callback("helper", f"respond_{request.id}"))

        assert "уже откликались" in send(callback("helper", f"respond_{request.id}"))[0].text

    def test_respond_to_taken_request(self, send, make_request, notifier):
        """Losing the race shows the failure and the refreshed feed."""
        request = make_request()
        send(callback("other", "category_help_children_CAO"))
        send(callback("helper", f"respond_{request.id}"))

        messages = send(callback("other", f"respond_{request.id}"))

        assert "Не удалось откликнуться" in messages[0].text
        assert "нет активных заявок" in messages[1].text
        assert notifier.await_count == 1

    def test_respond_to_missing_request(self, send):
        """Unknown ids are reported as not found."""
        assert "не найдена" in send(callback("helper", "respond_999"))[0].text

    def test_cancel_response(self, send, make_request, store):
        """Cancelling frees the request and falls back to the profile."""
        request = make_request()
        send(callback("helper", f"respond_{request.id}"))

        card = send(callback("helper", "my_responses"))[0]
        assert f"cancel_response_{request.id}" in payloads(card)

        messages = send(callback("helper", f"cancel_response_{request.id}"))
        assert "успешно отменен" in messages[0].text
        assert "Ваш профиль" in messages[1].text
        assert store.find_by_id(request.id).reserved_by is None

    def test_cancel_someone_elses_reservation(self, send, make_request):
        """Cancelling without holding the reservation fails."""
        request = make_request()
        send(callback("helper", f"respond_{request.id}"))

        messages = send(callback("other", f"cancel_response_{request.id}"))
        assert "Не удалось отменить" in messages[0].text
        assert "Ваш профиль" in messages[1].text

    def test_response_to_deleted_request(self, send, make_request, store):
        """A response whose request is gone says so."""
        request = make_request(author_id="author")
        send(callback("helper", f"respond_{request.id}"))
        store.delete(request.id, "author")

        card = send(callback("helper", "my_responses"))[0]
        assert "больше не существует" in card.text


class TestOwnRequests:

    @pytest.fixture(autouse=True)
    def accepted(self, store):
        store.accept_agreement("author")
        store.accept_agreement("other")

    def test_profile_counts(self, send, make_request, matching):
        """The profile shows own request and response counts."""
        make_request(author_id="author")
        target = make_request(author_id="other")
        matching.reserve(target.id, "author")

        profile = send(callback("author", "profile"))[0]
        assert "Количество заявок: 1" in profile.text
        assert "Количество откликов: 1" in profile.text

    def test_own_request_card_shows_status(self, send, make_request, matching):
        """The author sees the response count and the reservation state."""
        request = make_request(author_id="author")
        matching.reserve(request.id, "other")

        card = send(callback("author", "my_requests"))[0]
        assert "Откликов: 1" in card.text
        assert "Статус: Зарезервирована" in card.text
        assert f"delete_{request.id}" in payloads(card)

    def test_delete_returns_to_clamped_list(self, send, make_request, store):
        """After deleting the last card the list shows the new last one."""
        older = make_request(author_id="author")
        newer = make_request(author_id="author")

        card = send(callback("author", "my_next_1"))[0]
        assert "Ваша заявка 2 из 2" in card.text
        assert f"delete_{older.id}" in payloads(card)

        messages = send(callback("author", f"delete_{older.id}"))
        assert "успешно удалена" in messages[0].text
        assert "Ваша заявка 1 из 1" in messages[1].text
        assert f"delete_{newer.id}" in payloads(messages[1])

    def test_delete_last_request_shows_profile(self, send, make_request):
        """With no requests left the profile is shown."""
        request = make_request(author_id="author")

        messages = send(callback("author", f"delete_{request.id}"))
        assert "Ваш профиль" in messages[1].text

    def test_non_author_cannot_delete(self, send, make_request, store):
        """Someone else's delete fails and the request stays."""
        request = make_request(author_id="author")

        messages = send(callback("other", f"delete_{request.id}"))
        assert "Не удалось удалить" in messages[0].text
        assert store.find_by_id(request.id) is not None

    def test_unknown_callback_shows_main_menu(self, send):
        """Unrecognised payloads fall back to the main menu."""
        assert "Главное меню" in send(callback("author", "something_odd"))[0].text
