"""
Database session management.
"""
import logging
from typing import Callable, Type, TypeVar
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from groupledger.core.config import settings
from groupledger.core.exceptions import Conflict
from groupledger.core.utils import generate_id
from groupledger.db.base import Base

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

T = TypeVar("T")


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    # Import models so SQLAlchemy registers them on Base.metadata
    import groupledger.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def insert_with_unique_id(db: Session, model: Type[T], build: Callable[[str], T]) -> T:
    """
    Persist a new aggregate root under a freshly generated id.

    A candidate id is probed first; the primary key constraint remains the
    source of truth, so an IntegrityError on commit rolls back and retries
    with a new id. Everything pending in the session is committed with the
    new row, so callers build the whole aggregate inside ``build``.

    Raises:
        Conflict: if every attempt collided.
    """
    for attempt in range(1, settings.ID_MAX_ATTEMPTS + 1):
        candidate = generate_id()
        if db.get(model, candidate) is not None:
            logger.warning(f"{model.__name__} id {candidate} already taken (attempt {attempt})")
            continue

        obj = build(candidate)
        db.add(obj)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"{model.__name__} id {candidate} collided on insert (attempt {attempt})")
            continue

        db.refresh(obj)
        return obj

    raise Conflict(f"Could not allocate a unique {model.__name__} id")
