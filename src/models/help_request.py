from datetime import datetime, timezone
from sqlalchemy import BigInteger, Column, String, Text, Integer, Boolean, DateTime
from src.core.database import Base


def utcnow():
    return datetime.now(timezone.utc)


# Legacy ids are millisecond timestamps; SQLite only autoincrements INTEGER
Identifier = BigInteger().with_variant(Integer, "sqlite")


class HelpRequest(Base):
    __tablename__ = "help_requests"

    id = Column(Identifier, primary_key=True, autoincrement=True)
    author_id = Column(String(64), nullable=False, index=True)
    author_name = Column(String(255), nullable=False, default="")  # snapshot at creation time
    problem = Column(Text, nullable=False)
    phone = Column(String(50), nullable=False)
    category = Column(String(20), nullable=False, index=True)  # children, elderly, disabled, animals, nature
    region = Column(String(10), nullable=False, index=True)  # CAO, SAO, ... ZELAO
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    rating = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    reserved_by = Column(String(64), nullable=True, index=True)  # responder holding the reservation

    @property
    def is_open(self) -> bool:
        return bool(self.active) and self.reserved_by is None

    def __repr__(self):
        return f"<HelpRequest(id={self.id}, author={self.author_id}, category={self.category}, region={self.region}, reserved_by={self.reserved_by})>"
