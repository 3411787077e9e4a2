import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.core.constants import Category, Region
from src.core.database import SessionLocal, session_scope
from src.models.agreement import AgreementAcceptance
from src.models.help_request import HelpRequest, utcnow
from src.models.response import Response
from src.models.schemas import Snapshot, SnapshotRequest, SnapshotResponse

logger = logging.getLogger(__name__)


def _to_millis(moment: datetime) -> int:
    # SQLite hands back naive datetimes; they were written as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class RequestStore:
    """
    Durable collection of help requests, responses and agreement acceptances.

    Every mutation runs inside one open-mutate-commit transaction while holding
    the store lock, so concurrent handlers never observe or produce partial writes.
    Conflicts and missing rows are reported as False/None, never raised.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Serialised read-modify-write scope; commits on success, rolls back on error."""
        with self._lock:
            with session_scope(self._session_factory) as db:
                yield db

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session."""
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # =========================================================================
    # REQUESTS
    # =========================================================================

    def create(
        self,
        author_id: str,
        author_name: str,
        problem: str,
        phone: str,
        category,
        region,
        address: Optional[str] = None
    ) -> Optional[HelpRequest]:
        """
        Persists a new open request.

        Returns:
            The created HelpRequest, or None if the category/region is unknown
            or the write failed
        """
        parsed_category = Category.parse(category)
        parsed_region = Region.parse(region)
        if parsed_category is None or parsed_region is None:
            logger.warning(f"Rejected request from {author_id}: category={category}, region={region}")
            return None

        request = HelpRequest(
            author_id=str(author_id),
            author_name=author_name or "",
            problem=problem,
            phone=phone,
            category=parsed_category.value,
            region=parsed_region.value,
            address=address,
            created_at=utcnow(),
            rating=0,
            active=True,
            reserved_by=None
        )

        try:
            with self.transaction() as db:
                db.add(request)
                db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error creating request for {author_id}: {e}", exc_info=True)
            return None

        logger.info(f"Request created: {request.id} by {author_id} ({request.category}/{request.region})")
        return request

    def find_by_id(self, request_id: int) -> Optional[HelpRequest]:
        with self.session() as db:
            return db.query(HelpRequest).filter(HelpRequest.id == request_id).first()

    def list_by_author(self, author_id: str) -> List[HelpRequest]:
        """All requests of an author, newest first, whatever their state."""
        with self.session() as db:
            return db.query(HelpRequest).filter(
                HelpRequest.author_id == str(author_id)
            ).order_by(
                HelpRequest.created_at.desc(),
                HelpRequest.id.desc()
            ).all()

    def delete(self, request_id: int, author_id: str) -> bool:
        """
        Hard-deletes a request owned by the author.
        Responses pointing at it are kept.

        Returns:
            True if a row was removed, False if missing or owned by someone else
        """
        try:
            with self.transaction() as db:
                deleted_count = db.query(HelpRequest).filter(
                    HelpRequest.id == request_id,
                    HelpRequest.author_id == str(author_id)
                ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting request {request_id}: {e}", exc_info=True)
            return False

        if deleted_count > 0:
            logger.info(f"Request {request_id} deleted by {author_id}")
            return True

        logger.info(f"Request {request_id} not deleted: missing or not owned by {author_id}")
        return False

    def find_contact_phone(self, user_id: str) -> Optional[str]:
        """Phone the user left on their most recent own request, if any."""
        with self.session() as db:
            request = db.query(HelpRequest).filter(
                HelpRequest.author_id == str(user_id)
            ).order_by(HelpRequest.created_at.desc(), HelpRequest.id.desc()).first()
            return request.phone if request else None

    # =========================================================================
    # RESPONSES
    # =========================================================================

    def add_response(self, responder_id: str, request_id: int) -> Optional[Response]:
        try:
            with self.transaction() as db:
                response = self.insert_response(db, responder_id, request_id)
        except SQLAlchemyError as e:
            logger.error(f"Error adding response to {request_id}: {e}", exc_info=True)
            return None
        return response

    def insert_response(self, db: Session, responder_id: str, request_id: int) -> Response:
        """Adds an active response inside an already open transaction."""
        response = Response(
            responder_id=str(responder_id),
            request_id=request_id,
            created_at=utcnow(),
            active=True
        )
        db.add(response)
        db.flush()
        return response

    def update_response(self, response_id: int, active: bool) -> bool:
        try:
            with self.transaction() as db:
                updated = db.query(Response).filter(
                    Response.id == response_id
                ).update({Response.active: active}, synchronize_session=False)
        except SQLAlchemyError as e:
            logger.error(f"Error updating response {response_id}: {e}", exc_info=True)
            return False
        return updated > 0

    def list_responses_by_user(self, user_id: str) -> List[Response]:
        with self.session() as db:
            return db.query(Response).filter(
                Response.responder_id == str(user_id),
                Response.active.is_(True)
            ).order_by(Response.created_at, Response.id).all()

    def list_responses_by_request(self, request_id: int) -> List[Response]:
        with self.session() as db:
            return db.query(Response).filter(
                Response.request_id == request_id,
                Response.active.is_(True)
            ).order_by(Response.created_at, Response.id).all()

    def has_active_response(self, user_id: str, request_id: int) -> bool:
        with self.session() as db:
            return db.query(Response.id).filter(
                Response.responder_id == str(user_id),
                Response.request_id == request_id,
                Response.active.is_(True)
            ).first() is not None

    # =========================================================================
    # USER AGREEMENT
    # =========================================================================

    def has_accepted_agreement(self, user_id: str) -> bool:
        with self.session() as db:
            return db.query(AgreementAcceptance).filter(
                AgreementAcceptance.user_id == str(user_id)
            ).first() is not None

    def accept_agreement(self, user_id: str) -> bool:
        """Records the acceptance once; repeated calls are no-ops."""
        try:
            with self.transaction() as db:
                existing = db.query(AgreementAcceptance).filter(
                    AgreementAcceptance.user_id == str(user_id)
                ).first()
                if existing:
                    return True
                db.add(AgreementAcceptance(user_id=str(user_id), accepted_at=utcnow()))
        except SQLAlchemyError as e:
            logger.error(f"Error saving agreement for {user_id}: {e}", exc_info=True)
            return False

        logger.info(f"User {user_id} accepted the agreement")
        return True

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def load_snapshot(self) -> Snapshot:
        """Whole store contents in the legacy data.json layout."""
        with self.session() as db:
            requests = db.query(HelpRequest).order_by(HelpRequest.id).all()
            responses = db.query(Response).order_by(Response.id).all()
            accepted = db.query(AgreementAcceptance).order_by(AgreementAcceptance.accepted_at).all()

        return Snapshot(
            requests=[
                SnapshotRequest(
                    id=r.id,
                    author_id=r.author_id,
                    author_name=r.author_name,
                    problem=r.problem,
                    phone=r.phone,
                    category=r.category,
                    region=r.region,
                    address=r.address,
                    timestamp=_to_millis(r.created_at),
                    rating=r.rating,
                    active=r.active,
                    reserved_by=r.reserved_by
                )
                for r in requests
            ],
            responses=[
                SnapshotResponse(
                    id=r.id,
                    responder_id=r.responder_id,
                    request_id=r.request_id,
                    timestamp=_to_millis(r.created_at),
                    active=r.active
                )
                for r in responses
            ],
            accepted_user_ids=[a.user_id for a in accepted]
        )

    def save_snapshot(self, snapshot: Snapshot) -> bool:
        """
        Replaces the whole store with the snapshot in a single transaction.
        Requests with an unknown category or region are skipped.
        """
        skipped = 0
        try:
            with self.transaction() as db:
                db.query(Response).delete(synchronize_session=False)
                db.query(HelpRequest).delete(synchronize_session=False)
                db.query(AgreementAcceptance).delete(synchronize_session=False)

                for item in snapshot.requests:
                    category = Category.parse(item.category)
                    region = Region.parse(item.region)
                    if category is None or region is None:
                        logger.warning(f"Skipping request {item.id}: category={item.category}, region={item.region}")
                        skipped += 1
                        continue
                    db.add(HelpRequest(
                        id=item.id,
                        author_id=item.author_id,
                        author_name=item.author_name,
                        problem=item.problem,
                        phone=item.phone,
                        category=category.value,
                        region=region.value,
                        address=item.address,
                        created_at=_from_millis(item.timestamp),
                        rating=item.rating,
                        active=item.active,
                        reserved_by=item.reserved_by
                    ))

                for item in snapshot.responses:
                    db.add(Response(
                        id=item.id,
                        responder_id=item.responder_id,
                        request_id=item.request_id,
                        created_at=_from_millis(item.timestamp),
                        active=item.active
                    ))

                for user_id in dict.fromkeys(snapshot.accepted_user_ids):
                    db.add(AgreementAcceptance(user_id=user_id, accepted_at=utcnow()))

                db.flush()
                self._sync_sequences(db)
        except SQLAlchemyError as e:
            logger.error(f"Error saving snapshot: {e}", exc_info=True)
            return False

        logger.info(
            f"Snapshot saved: {len(snapshot.requests) - skipped} requests, "
            f"{len(snapshot.responses)} responses, {len(snapshot.accepted_user_ids)} agreements"
        )
        return True

    def _sync_sequences(self, db: Session) -> None:
        # PostgreSQL sequences do not advance on explicit ids
        if db.get_bind().dialect.name != "postgresql":
            return
        for table in ("help_requests", "responses"):
            db.execute(text(
                f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
            ))
