"""
Dispatcher of inbound messenger events.

Turns commands, button callbacks and free text into render instructions,
delegating the domain work to the MatchingEngine, the ConversationEngine
and the RequestStore.
"""
import logging
import re
from typing import Awaitable, Callable, List, Optional

from src.core.session_registry import BrowseCursor, ConversationStep, SessionRegistry, clamp_index
from src.models.help_request import HelpRequest
from src.models.schemas import BotReply, EventType, InboundEvent, OutgoingMessage
from src.services.bot_messages import HELP, NEED, BotMessages
from src.services.conversation_engine import ConversationEngine, ConversationOutcome
from src.services.matching_engine import MatchingEngine
from src.services.messenger_service import MessengerService
from src.services.request_store import RequestStore

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], Awaitable[dict]]

ACCEPT_AGREEMENT = "accept_agreement"
DECLINE_AGREEMENT = "decline_agreement"

ACTION = f"({HELP}|{NEED})"
RESPOND_PATTERN = re.compile(r"^respond_(\d+)$")


class BotHandler:
    """Maps one InboundEvent to the list of messages shown to its sender"""

    def __init__(
        self,
        store: RequestStore,
        matching: MatchingEngine,
        conversation: ConversationEngine,
        sessions: SessionRegistry,
        notifier: Optional[Notifier] = None
    ):
        self.store = store
        self.matching = matching
        self.conversation = conversation
        self.sessions = sessions
        self.notifier = notifier or MessengerService.send_message

        # (pattern, handler) checked in order; every pattern is anchored
        self._callbacks = [
            (re.compile(r"^want_to_help$"), lambda e, m: [BotMessages.location_selection(HELP)]),
            (re.compile(r"^need_help$"), lambda e, m: [BotMessages.location_selection(NEED)]),
            (re.compile(r"^profile$"), lambda e, m: [self._profile(e)]),
            (re.compile(r"^back_to_profile$"), lambda e, m: [self._profile(e)]),
            (re.compile(r"^my_requests$"), lambda e, m: self._own_requests(e, 0)),
            (re.compile(r"^my_responses$"), lambda e, m: self._own_responses(e, 0)),
            (re.compile(r"^(back_to_start|return_after_request)$"), lambda e, m: self._main_menu(e)),
            (re.compile(rf"^moscow_{ACTION}$"), lambda e, m: [BotMessages.region_selection(m.group(1))]),
            (re.compile(rf"^back_to_location_{ACTION}$"), lambda e, m: [BotMessages.location_selection(m.group(1))]),
            (re.compile(rf"^back_to_districts_{ACTION}$"), lambda e, m: [BotMessages.region_selection(m.group(1))]),
            (re.compile(rf"^back_to_categories_{ACTION}_([A-Z]*)$"), self._back_to_categories),
            (re.compile(rf"^district_{ACTION}_([A-Z]+)$"), lambda e, m: [BotMessages.category_selection(m.group(1), m.group(2))]),
            (re.compile(rf"^category_{ACTION}_([a-z]+)_([A-Z]+)$"), self._category_chosen),
            (re.compile(r"^(?:next|prev)_(\d+)_([a-z]*)_([A-Z]*)$"), self._feed_page),
            (re.compile(r"^my_(?:next|prev)_(\d+)$"), lambda e, m: self._own_requests(e, int(m.group(1)))),
            (re.compile(r"^resp_(?:next|prev)_(\d+)$"), lambda e, m: self._own_responses(e, int(m.group(1)))),
            (re.compile(r"^delete_(\d+)$"), self._delete),
            (re.compile(r"^cancel_response_(\d+)$"), self._cancel),
        ]

    async def handle_event(self, event: InboundEvent) -> BotReply:
        messages = await self._dispatch(event)
        return BotReply(messages=messages)

    async def _dispatch(self, event: InboundEvent) -> List[OutgoingMessage]:
        user_id = event.user_id
        text = (event.text or "").strip()

        if event.type == EventType.COMMAND or (event.type == EventType.MESSAGE and text.startswith("/")):
            return self._command(event, text)

        if event.type == EventType.CALLBACK:
            payload = (event.payload or "").strip()
            if payload == ACCEPT_AGREEMENT:
                if not self.store.accept_agreement(user_id):
                    return [BotMessages.generic_error()]
                self.sessions.clear_all(user_id)
                return [BotMessages.agreement_accepted(), BotMessages.main_menu(self._name(event))]
            if payload == DECLINE_AGREEMENT:
                logger.info(f"User {user_id} declined the agreement")
                return [BotMessages.agreement_declined()]
            if not self.store.has_accepted_agreement(user_id):
                return [BotMessages.agreement(self._name(event))]
            return await self._callback(event, payload)

        if not self.store.has_accepted_agreement(user_id):
            return [BotMessages.agreement(self._name(event))]
        return self._free_text(event, text)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def _command(self, event: InboundEvent, text: str) -> List[OutgoingMessage]:
        # "/start@bot_name arg" -> "start"
        parts = text.lstrip("/").split()
        command = parts[0].split("@")[0].lower() if parts else "start"

        if command == "about":
            return [BotMessages.about()]

        if command == "start":
            self.sessions.clear_all(event.user_id)

        if not self.store.has_accepted_agreement(event.user_id):
            return [BotMessages.agreement(self._name(event))]

        if command == "start":
            return [BotMessages.main_menu(self._name(event))]
        if command == "profile":
            return [self._profile(event)]

        logger.info(f"Unknown command from {event.user_id}: {command}")
        return [BotMessages.main_menu(self._name(event))]

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    async def _callback(self, event: InboundEvent, payload: str) -> List[OutgoingMessage]:
        match = RESPOND_PATTERN.match(payload)
        if match:
            return await self._respond(event, int(match.group(1)))

        for pattern, handler in self._callbacks:
            match = pattern.match(payload)
            if match:
                return handler(event, match)

        logger.warning(f"Unknown callback from {event.user_id}: {payload}")
        return [BotMessages.main_menu(self._name(event))]

    def _main_menu(self, event: InboundEvent) -> List[OutgoingMessage]:
        self.sessions.clear_all(event.user_id)
        return [BotMessages.main_menu(self._name(event))]

    def _back_to_categories(self, event: InboundEvent, match) -> List[OutgoingMessage]:
        action, region = match.group(1), match.group(2)
        if not region:
            return [BotMessages.region_selection(action)]
        return [BotMessages.category_selection(action, region)]

    def _category_chosen(self, event: InboundEvent, match) -> List[OutgoingMessage]:
        action, category, region = match.group(1), match.group(2), match.group(3)

        if action == HELP:
            return self._feed(event.user_id, 0, category, region)

        step = self.conversation.begin(event.user_id, category, region)
        if step is None:
            return [BotMessages.generic_error()]
        return [BotMessages.ask_problem(category, region)]

    def _feed_page(self, event: InboundEvent, match) -> List[OutgoingMessage]:
        return self._feed(event.user_id, int(match.group(1)), match.group(2) or None, match.group(3) or None)

    def _feed(self, user_id: str, index: int, category: Optional[str], region: Optional[str]) -> List[OutgoingMessage]:
        """Shows one open request of the filtered list, clamping the position to the current list."""
        requests = self.matching.browse(category, region)
        index = clamp_index(index, len(requests))
        self.sessions.set_browse_cursor(user_id, BrowseCursor(index=index, category=category, region=region))

        if not requests:
            return [BotMessages.empty_feed(category, region)]

        request = requests[index]
        return [BotMessages.request_card(
            request,
            index,
            len(requests),
            category,
            region,
            has_responded=self.matching.has_responded(user_id, request.id)
        )]

    # =========================================================================
    # PROFILE, OWN REQUESTS AND RESPONSES
    # =========================================================================

    def _profile(self, event: InboundEvent) -> OutgoingMessage:
        requests_count = len(self.store.list_by_author(event.user_id))
        responses_count = len(self.store.list_responses_by_user(event.user_id))
        return BotMessages.profile(self._name(event), requests_count, responses_count)

    def _own_requests(self, event: InboundEvent, index: int, profile_when_empty: bool = False) -> List[OutgoingMessage]:
        requests = self.store.list_by_author(event.user_id)
        index = clamp_index(index, len(requests))
        self.sessions.set_my_cursor(event.user_id, index)

        if not requests:
            return [self._profile(event) if profile_when_empty else BotMessages.no_own_requests()]

        request = requests[index]
        responses_count = len(self.matching.request_responses(request.id))
        return [BotMessages.own_request_card(request, index, len(requests), responses_count)]

    def _own_responses(self, event: InboundEvent, index: int, profile_when_empty: bool = False) -> List[OutgoingMessage]:
        views = self.matching.responses_with_requests(event.user_id)
        index = clamp_index(index, len(views))
        self.sessions.set_my_cursor(event.user_id, index)

        if not views:
            return [self._profile(event) if profile_when_empty else BotMessages.no_own_responses()]

        view = views[index]
        if not view.request_exists:
            return [BotMessages.response_target_missing(index, len(views))]
        return [BotMessages.own_response_card(view.response, view.request, index, len(views))]

    # =========================================================================
    # RESERVATION, CANCELLATION, DELETION
    # =========================================================================

    async def _respond(self, event: InboundEvent, request_id: int) -> List[OutgoingMessage]:
        user_id = event.user_id

        if self.matching.has_responded(user_id, request_id):
            return [BotMessages.already_responded()]

        request = self.store.find_by_id(request_id)
        if request is None:
            return [BotMessages.request_not_found()]

        if not self.matching.reserve(request_id, user_id):
            cursor = self.sessions.get_browse_cursor(user_id) or BrowseCursor()
            return [BotMessages.reserve_failed()] + self._feed(user_id, cursor.index, cursor.category, cursor.region)

        await self._notify_author(event, request)
        return [BotMessages.reserve_success(request)]

    async def _notify_author(self, event: InboundEvent, request: HelpRequest) -> None:
        """Best effort: the reservation stands whatever happens here."""
        try:
            responder_phone = self.store.find_contact_phone(event.user_id)
            text = BotMessages.author_notification(self._name(event), request, responder_phone)
            result = await self.notifier(request.author_id, text)
            if isinstance(result, dict) and not result.get("success"):
                logger.warning(f"Author {request.author_id} not notified: {result.get('error')}")
        except Exception as e:
            logger.error(f"Error notifying author of request {request.id}: {e}", exc_info=True)

    def _cancel(self, event: InboundEvent, match) -> List[OutgoingMessage]:
        request_id = int(match.group(1))
        if self.matching.cancel(request_id, event.user_id):
            cursor = self.sessions.get_my_cursor(event.user_id)
            return [BotMessages.cancel_success()] + self._own_responses(event, cursor, profile_when_empty=True)
        return [BotMessages.cancel_failed(), self._profile(event)]

    def _delete(self, event: InboundEvent, match) -> List[OutgoingMessage]:
        request_id = int(match.group(1))
        if self.store.delete(request_id, event.user_id):
            cursor = self.sessions.get_my_cursor(event.user_id)
            return [BotMessages.delete_success()] + self._own_requests(event, cursor, profile_when_empty=True)
        return [BotMessages.delete_failed(), self._profile(event)]

    # =========================================================================
    # FREE TEXT
    # =========================================================================

    def _free_text(self, event: InboundEvent, text: str) -> List[OutgoingMessage]:
        if self.conversation.current_step(event.user_id) is None:
            logger.info(f"Ignoring free text from {event.user_id}: no request in progress")
            return []

        result = self.conversation.submit_text(event.user_id, self._name(event), text)

        if result.kind == ConversationOutcome.ADVANCED:
            if result.step == ConversationStep.AWAITING_ADDRESS:
                return [BotMessages.ask_address()]
            return [BotMessages.ask_phone()]

        if result.kind == ConversationOutcome.RE_PROMPT:
            if result.step == ConversationStep.AWAITING_PROBLEM:
                return [BotMessages.empty_problem()]
            return [BotMessages.invalid_phone()]

        if result.kind == ConversationOutcome.CREATED:
            self.sessions.clear_all(event.user_id)
            return [BotMessages.request_created(self._name(event), result.request)]

        if result.kind == ConversationOutcome.FAILED:
            self.sessions.clear_all(event.user_id)
            return [BotMessages.generic_error()]

        return []

    @staticmethod
    def _name(event: InboundEvent) -> str:
        return event.display_name or event.user_id
