"""Local snapshot model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from dentalsync.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalSnapshot(Base):
    """Encrypted value stored under a key in the device-local cache."""
    __tablename__ = "local_snapshots"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
