import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from qc_tracker.core.exceptions import QCError, StorageError

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # in-memory sqlite must share one connection across threads
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True, pool_recycle=300)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_db_and_tables(engine: Engine) -> None:
    # make sure every table is registered on the metadata
    import qc_tracker.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Generator[Session, None, None]:
    session_factory = request.app.state.session_factory
    with session_factory() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing at all."""
    try:
        yield session
        session.commit()
    except QCError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise StorageError("Database operation failed") from e
    except Exception:
        session.rollback()
        raise
