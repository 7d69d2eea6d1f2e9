"""Database models for snapshot storage."""
from sqlalchemy import Column, Integer, String, Text

from vocabtrack.models.base import Base, TimestampMixin


class Snapshot(Base, TimestampMixin):
    """One serialized progress document, stored whole under a key."""

    __tablename__ = "snapshots"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False, index=True)
    schema_version = Column(Integer, nullable=False)
    payload = Column(Text, nullable=False)  # JSON document
