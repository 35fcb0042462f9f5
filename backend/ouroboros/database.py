import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .config import DATABASE_URL

_logger = logging.getLogger(__name__)

if DATABASE_URL.startswith("sqlite"):
    engine_args = {"connect_args": {"check_same_thread": False, "timeout": 30}}
else:
    engine_args = {"pool_pre_ping": True}

engine = create_engine(DATABASE_URL, **engine_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, label: str) -> Iterator[Session]:
    """Commit everything staged inside the block as one unit, or nothing.

    Any exception (HTTP or data-layer) rolls the whole unit back before it
    propagates to the handler boundary.
    """

    try:
        yield db
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        _logger.exception("Atomic unit %s rolled back", label)
        raise
    except Exception:
        db.rollback()
        raise
