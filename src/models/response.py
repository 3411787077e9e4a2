from sqlalchemy import Column, String, Boolean, DateTime
from src.core.database import Base
from src.models.help_request import Identifier, utcnow


class Response(Base):
    __tablename__ = "responses"

    id = Column(Identifier, primary_key=True, autoincrement=True)
    responder_id = Column(String(64), nullable=False, index=True)
    # No foreign key: responses are kept after their request is deleted
    request_id = Column(Identifier, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    active = Column(Boolean, nullable=False, default=True, index=True)  # False once cancelled

    def __repr__(self):
        return f"<Response(id={self.id}, responder={self.responder_id}, request={self.request_id}, active={self.active})>"
