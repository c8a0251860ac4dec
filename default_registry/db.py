import logging
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from default_registry.settings import app_settings

T = TypeVar("T")

logger = logging.getLogger(__name__)

# https://docs.sqlalchemy.org/en/20/orm/session_basics.html#using-a-sessionmaker
engine = create_engine(app_settings.test_database_url if app_settings.test_database_url else app_settings.database_url)
# https://docs.sqlalchemy.org/en/20/orm/session_api.html#sqlalchemy.orm.Session.__init__
SessionLocal = sessionmaker(expire_on_commit=False, bind=engine)


@contextmanager
def rollback_on_error(session: Session) -> Generator[None, None, None]:
    """
    Call ``session.rollback()`` and re-raise the exception.
    """
    try:
        yield
    except Exception:
        session.rollback()
        raise


def retry_on_integrity_error(session: Session, func: Callable[[], T], *, attempts: int | None = None) -> T:
    """
    Call ``func`` and commit the session. If a unique constraint fails, roll back and call ``func`` again.

    ``func`` must re-read everything it depends on, since a concurrent transaction has committed in the meantime. For
    example, a customer that didn't exist on the first attempt is found on the second.

    :param session: The database session.
    :param func: The body of the transaction.
    :param attempts: The maximum number of attempts (default ``MAX_TRANSACTION_RETRIES``).
    :return: The return value of ``func``.
    :raise IntegrityError: If the last attempt fails on a unique constraint.
    """
    if attempts is None:
        attempts = app_settings.max_transaction_retries

    attempt = 1
    while True:
        try:
            with rollback_on_error(session):
                result = func()
                session.commit()
                return result
        except IntegrityError:
            if attempt >= attempts:
                raise
            logger.warning("Retrying transaction after integrity error (attempt %d of %d)", attempt, attempts)
            attempt += 1


# This is a FastAPI dependency.
def get_db() -> Generator[Session, None, None]:
    """
    Get a SQLAlchemy session.
    """
    with SessionLocal() as session:
        yield session
