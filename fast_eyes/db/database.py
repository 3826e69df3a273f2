"""Generate database session(s), plus the transaction decorator used by the repository."""

import logging
from functools import wraps
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fast_eyes.core.config import get_settings
from fast_eyes.core.exceptions import GameError, RepositoryError
from fast_eyes.db.schema import Base

logger = logging.getLogger(__name__)

settings = get_settings()

# SQLite connections get shared across FastAPI's worker threads
engine = create_engine(
    settings.database_url,
    echo=settings.echo_sql,
    connect_args=(
        {"check_same_thread": False}
        if settings.database_url.startswith("sqlite")
        else {}
    ),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autoflush=False, bind=engine)


def init_db() -> None:
    """Ensure all tables are created"""
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


F = TypeVar("F", bound=Callable[..., Any])


def transactional(method: F) -> F:
    """
    Run a repository method as one transaction: commit when it returns, roll back when it raises.

    The decorated method must live on an object holding its Session as `self.db`, and must not commit itself.
    ----
    * GameError (guard rejections, not-found): rolled back and re-raised untouched.
    * SQLAlchemyError: rolled back, logged, and re-raised as RepositoryError (retryable, nothing was written).
    """

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        db: Session = self.db
        try:
            result = method(self, *args, **kwargs)
            db.commit()
            return result
        except GameError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            logger.error(
                f"Transaction failed in {method.__name__}: {exc}", exc_info=True
            )
            db.rollback()
            raise RepositoryError(
                f"{method.__name__} failed, nothing was written."
            ) from exc
        except Exception:
            logger.error(f"Transaction failed in {method.__name__}", exc_info=True)
            db.rollback()
            raise

    return wrapper  # type: ignore[return-value]
