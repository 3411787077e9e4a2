from sqlalchemy import Column, String, DateTime
from src.core.database import Base
from src.models.help_request import utcnow


class AgreementAcceptance(Base):
    __tablename__ = "agreement_acceptances"

    user_id = Column(String(64), primary_key=True)
    accepted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<AgreementAcceptance(user_id={self.user_id})>"
