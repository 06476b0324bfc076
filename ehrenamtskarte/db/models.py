from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint

from .base import Base


class StorageScope(str, Enum):
    LOCAL = "local"
    SESSION = "session"


class StorageItem(Base):
    """One slot of the per-browser key/value store that stands in for browser storage."""

    __tablename__ = "storage_items"
    __table_args__ = (UniqueConstraint("client_id", "key", name="uq_storage_client_key"),)

    id = Column(Integer, primary_key=True, index=True)
    # Browser id for local scope, browser-session id for session scope
    client_id = Column(String, index=True, nullable=False)
    key = Column(String, index=True, nullable=False)
    scope = Column(String, nullable=False, default=StorageScope.LOCAL.value)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
