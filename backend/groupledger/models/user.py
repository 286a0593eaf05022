"""
User model backing the user directory.
"""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from groupledger.db.base import BaseModel


class User(BaseModel):
    """User directory entry; name and email are snapshotted into ledger rows."""
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    memberships = relationship("GroupMember", back_populates="user")
