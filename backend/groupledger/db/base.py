"""
Declarative base classes shared by all models.
"""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base
from groupledger.core.config import settings
from groupledger.core.utils import utcnow

Base = declarative_base()


class BaseModel(Base):
    """Base for owned child rows with a surrogate integer key."""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class RootModel(Base):
    """Base for aggregate roots identified by a generated public id.

    The primary key constraint is what guarantees id uniqueness; see
    ``groupledger.db.session.insert_with_unique_id``.
    """
    __abstract__ = True

    id = Column(String(settings.ID_LENGTH), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
