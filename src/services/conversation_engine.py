"""
Multi-turn creation of a help request:
problem → address → phone, after category and region were picked on buttons.
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from src.core.constants import Category, Region
from src.core.session_registry import ConversationState, ConversationStep, SessionRegistry
from src.models.help_request import HelpRequest
from src.services.phone_validator import PhoneValidator
from src.services.request_store import RequestStore

logger = logging.getLogger(__name__)


class ConversationOutcome:
    IDLE = "idle"  # no flow in progress
    ADVANCED = "advanced"
    RE_PROMPT = "re_prompt"
    CREATED = "created"
    FAILED = "failed"


@dataclass
class ConversationResult:
    kind: str
    step: Optional[str] = None
    request: Optional[HelpRequest] = None


class ConversationEngine:

    def __init__(self, sessions: SessionRegistry, store: RequestStore):
        self.sessions = sessions
        self.store = store

    def begin(self, user_id: str, category, region) -> Optional[str]:
        """Starts a fresh flow; returns the first step or None for an unknown category/region."""
        parsed_category = Category.parse(category)
        parsed_region = Region.parse(region)
        if parsed_category is None or parsed_region is None:
            logger.warning(f"Cannot start flow for {user_id}: category={category}, region={region}")
            return None

        with self.sessions.user_lock(user_id):
            self.sessions.set_conversation(user_id, ConversationState(
                step=ConversationStep.AWAITING_PROBLEM,
                category=parsed_category.value,
                region=parsed_region.value
            ))
        logger.info(f"Started request flow for {user_id}")
        return ConversationStep.AWAITING_PROBLEM

    def current_step(self, user_id: str) -> Optional[str]:
        state = self.sessions.get_conversation(user_id)
        return state.step if state else None

    def reset(self, user_id: str) -> bool:
        return self.sessions.clear_conversation(user_id)

    def submit_text(self, user_id: str, display_name: str, text: str) -> ConversationResult:
        with self.sessions.user_lock(user_id):
            state = self.sessions.get_conversation(user_id)
            if state is None:
                return ConversationResult(ConversationOutcome.IDLE)

            text = (text or "").strip()

            if state.step == ConversationStep.AWAITING_PROBLEM:
                if not text:
                    return ConversationResult(ConversationOutcome.RE_PROMPT, step=state.step)
                self.sessions.set_conversation(user_id, dataclasses.replace(
                    state, step=ConversationStep.AWAITING_ADDRESS, problem=text
                ))
                return ConversationResult(ConversationOutcome.ADVANCED, step=ConversationStep.AWAITING_ADDRESS)

            if state.step == ConversationStep.AWAITING_ADDRESS:
                # Address is optional
                self.sessions.set_conversation(user_id, dataclasses.replace(
                    state, step=ConversationStep.AWAITING_PHONE, address=text or None
                ))
                return ConversationResult(ConversationOutcome.ADVANCED, step=ConversationStep.AWAITING_PHONE)

            if state.step == ConversationStep.AWAITING_PHONE:
                if not PhoneValidator.validate(text):
                    logger.info(f"Invalid phone from {user_id}, asking again")
                    return ConversationResult(ConversationOutcome.RE_PROMPT, step=state.step)

                request = self.store.create(
                    author_id=user_id,
                    author_name=display_name,
                    problem=state.problem,
                    phone=PhoneValidator.normalize(text),
                    category=state.category,
                    region=state.region,
                    address=state.address
                )
                self.sessions.clear_conversation(user_id)

                if request is None:
                    return ConversationResult(ConversationOutcome.FAILED)
                return ConversationResult(ConversationOutcome.CREATED, request=request)

            logger.warning(f"Unexpected conversation step for {user_id}: {state.step}")
            self.sessions.clear_conversation(user_id)
            return ConversationResult(ConversationOutcome.IDLE)
