import logging

from fastapi import HTTPException
from sqlmodel import SQLModel, Session, create_engine

from gearlocker.config import get_settings

logger = logging.getLogger(__name__)


def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = _make_engine(get_settings().database_url)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    session = Session(engine)
    try:
        yield session
    except HTTPException:
        # domain errors roll back inside the service layer
        raise
    except Exception:
        session.rollback()
        logger.exception("rolled back session after unexpected error")
        raise
    finally:
        session.close()
