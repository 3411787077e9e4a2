from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from .config import settings


def build_engine(url: str):
    # SQLite connections are shared between the webhook worker threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url.replace("localhost", "127.0.0.1"), connect_args=connect_args)


def build_session_factory(bind) -> sessionmaker:
    # Objects stay readable after commit; the store hands them out detached
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)

Base = declarative_base()

@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """
    Open a session, yield it for mutation and commit on exit.
    Any exception rolls the whole transaction back and is re-raised.
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def init_db(bind=None):
    """
    Creates all tables defined in the metadata.
    This replaces Alembic for simple setups.
    """
    # Import models here to ensure they are registered with Base
    from src.models.help_request import HelpRequest  # noqa
    from src.models.response import Response  # noqa
    from src.models.agreement import AgreementAcceptance  # noqa

    Base.metadata.create_all(bind=bind or engine)
