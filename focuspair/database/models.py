"""SQLAlchemy ORM models for FocusPair."""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Record(Base):
    """One durable key/value record.

    The session store keeps its serialized session list and its scalar
    counters in separate records so a corrupt list never takes the
    counters down with it.
    """

    __tablename__ = "records"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return f"<Record key={self.key} size={len(self.value or '')}>"
