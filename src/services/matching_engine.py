import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.core.constants import Category, Region
from src.models.help_request import HelpRequest
from src.models.response import Response
from src.services.request_store import RequestStore

logger = logging.getLogger(__name__)


@dataclass
class ResponseView:
    """An active response and the request it points at (None once deleted)."""

    response: Response
    request: Optional[HelpRequest]

    @property
    def request_exists(self) -> bool:
        return self.request is not None


class MatchingEngine:
    """Browsing, reservation and cancellation over the request store"""

    def __init__(self, store: RequestStore):
        self.store = store

    def browse(self, category=None, region=None) -> List[HelpRequest]:
        """
        Open requests (active and unreserved), highest rating first,
        then the ones waiting longest.

        Args:
            category: optional Category filter; unknown values are ignored
            region: optional Region filter; unknown values are ignored
        """
        parsed_category = Category.parse(category) if category else None
        parsed_region = Region.parse(region) if region else None

        with self.store.session() as db:
            query = db.query(HelpRequest).filter(
                HelpRequest.active.is_(True),
                HelpRequest.reserved_by.is_(None)
            )
            if parsed_category:
                query = query.filter(HelpRequest.category == parsed_category.value)
            if parsed_region:
                query = query.filter(HelpRequest.region == parsed_region.value)

            return query.order_by(
                HelpRequest.rating.desc(),
                HelpRequest.created_at.asc(),
                HelpRequest.id.asc()
            ).all()

    def reserve(self, request_id: int, responder_id: str) -> bool:
        """
        Claims an open request for the responder and records the response.

        Returns:
            True if this call won the reservation, False if the request is
            missing, deleted or already reserved (by anyone, including the caller)
        """
        responder_id = str(responder_id)
        try:
            with self.store.transaction() as db:
                claimed = db.query(HelpRequest).filter(
                    HelpRequest.id == request_id,
                    HelpRequest.active.is_(True),
                    HelpRequest.reserved_by.is_(None)
                ).update({HelpRequest.reserved_by: responder_id}, synchronize_session=False)

                if not claimed:
                    logger.info(f"Request {request_id} not reserved by {responder_id}: missing or already taken")
                    return False

                self.store.insert_response(db, responder_id, request_id)
        except SQLAlchemyError as e:
            logger.error(f"Error reserving request {request_id}: {e}", exc_info=True)
            return False

        logger.info(f"✅ Request {request_id} reserved by {responder_id}")
        return True

    def cancel(self, request_id: int, responder_id: str) -> bool:
        """
        Releases a reservation held by the responder and deactivates the response.
        The request is browsable again as soon as this returns True.
        """
        responder_id = str(responder_id)
        try:
            with self.store.transaction() as db:
                released = db.query(HelpRequest).filter(
                    HelpRequest.id == request_id,
                    HelpRequest.reserved_by == responder_id
                ).update({HelpRequest.reserved_by: None}, synchronize_session=False)

                if not released:
                    logger.info(f"Request {request_id} is not reserved by {responder_id}, nothing to cancel")
                    return False

                db.query(Response).filter(
                    Response.request_id == request_id,
                    Response.responder_id == responder_id,
                    Response.active.is_(True)
                ).update({Response.active: False}, synchronize_session=False)
        except SQLAlchemyError as e:
            logger.error(f"Error cancelling reservation of {request_id}: {e}", exc_info=True)
            return False

        logger.info(f"Reservation of {request_id} cancelled by {responder_id}")
        return True

    def has_responded(self, user_id: str, request_id: int) -> bool:
        return self.store.has_active_response(user_id, request_id)

    def request_responses(self, request_id: int) -> List[Response]:
        return self.store.list_responses_by_request(request_id)

    def responses_with_requests(self, user_id: str) -> List[ResponseView]:
        """The user's active responses, each paired with its request if it still exists."""
        responses = self.store.list_responses_by_user(user_id)
        if not responses:
            return []

        request_ids = {r.request_id for r in responses}
        with self.store.session() as db:
            requests = db.query(HelpRequest).filter(HelpRequest.id.in_(request_ids)).all()
        by_id = {r.id: r for r in requests}

        return [ResponseView(response=r, request=by_id.get(r.request_id)) for r in responses]
